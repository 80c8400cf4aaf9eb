"""Tests for activation blocks, stack inference and interval remapping (activation.py)."""
from __future__ import annotations

import pytest

from activation import (
    ActivationBlock,
    active_blocks,
    available_blocks,
    block_key,
    blocks_by_lifeline,
    compute_activations,
    infer_stack_activations,
    parse_block_key,
    remap_interval,
    resolve_explicit_activations,
    stale_toggle_keys,
)
from models import Activation, ActivationBlockData, DiagramState, Lifeline, Message


def _lifelines(*ids):
    return tuple(Lifeline(id=i, name=i, color="#3B82F6", order=n) for n, i in enumerate(ids))


def _messages(*specs):
    """Build messages from ``(src, dst, type)`` tuples, ordered as given."""
    return tuple(
        Message(id=f"m{n}", from_lifeline_id=src, to_lifeline_id=dst,
                label="x", type=msg_type, order=n)
        for n, (src, dst, msg_type) in enumerate(specs)
    )


# A -> B -> C, then C returns to B and B returns to A
NESTED = _messages(
    ("A", "B", "sync"),
    ("B", "C", "sync"),
    ("C", "B", "return"),
    ("B", "A", "return"),
)


# ─────────────────────────────────────────────────────────
# Block keys
# ─────────────────────────────────────────────────────────


class TestBlockKeys:
    def test_key_format(self):
        assert block_key("user", 0, 2) == "user-0-2"
        assert ActivationBlock("user", 0, 2).key == "user-0-2"

    def test_parse_simple(self):
        assert parse_block_key("user-0-2") == ActivationBlock("user", 0, 2)

    def test_parse_lifeline_id_with_dashes(self):
        assert parse_block_key("lifeline-1712-3-ab12-4-7") == ActivationBlock("lifeline-1712-3-ab12", 4, 7)

    @pytest.mark.parametrize("key", ["bad", "a-x-1", "-1-2", "a-1"])
    def test_parse_rejects_malformed(self, key):
        assert parse_block_key(key) is None


# ─────────────────────────────────────────────────────────
# Manual toggles
# ─────────────────────────────────────────────────────────


class TestAvailableBlocks:
    def test_consecutive_touching_pairs(self):
        blocks = available_blocks(_lifelines("A", "B", "C"), NESTED)
        assert blocks == [
            ActivationBlock("A", 0, 3),
            ActivationBlock("B", 0, 1),
            ActivationBlock("B", 1, 2),
            ActivationBlock("B", 2, 3),
            ActivationBlock("C", 1, 2),
        ]

    def test_single_touching_message_gives_no_block(self):
        messages = _messages(("A", "B", "sync"))
        assert available_blocks(_lifelines("A", "B"), messages) == []

    def test_active_blocks_with_key_set(self):
        result = active_blocks(_lifelines("A", "B", "C"), NESTED, {"B-1-2", "Z-0-1"})
        assert result == [ActivationBlock("B", 1, 2)]

    def test_active_blocks_with_block_data(self):
        toggles = {
            "B-0-1": ActivationBlockData(is_active=True),
            "B-1-2": ActivationBlockData(is_active=False, text="waiting"),
        }
        result = active_blocks(_lifelines("A", "B", "C"), NESTED, toggles)
        assert result == [ActivationBlock("B", 0, 1)]

    def test_stale_keys(self):
        stale = stale_toggle_keys(_lifelines("A", "B", "C"), NESTED, ["B-0-1", "B-0-3", "Q-1-2"])
        assert stale == ["B-0-3", "Q-1-2"]


# ─────────────────────────────────────────────────────────
# Stack inference
# ─────────────────────────────────────────────────────────


class TestInferStackActivations:
    def test_nested_calls_close_innermost_first(self):
        assert infer_stack_activations(NESTED) == [
            ActivationBlock("B", 0, 3),
            ActivationBlock("C", 1, 2),
        ]

    def test_two_actors_nested_calls(self):
        messages = _messages(
            ("A", "B", "sync"),
            ("A", "B", "sync"),
            ("B", "A", "return"),
            ("B", "A", "return"),
        )
        assert infer_stack_activations(messages) == [
            ActivationBlock("B", 0, 3),
            ActivationBlock("B", 1, 2),
        ]

    def test_two_actors_calling_each_other(self):
        messages = _messages(
            ("A", "B", "sync"),
            ("B", "A", "sync"),
            ("A", "B", "return"),
            ("B", "A", "return"),
        )
        assert infer_stack_activations(messages) == [
            ActivationBlock("B", 0, 3),
            ActivationBlock("A", 1, 2),
        ]

    def test_return_with_nothing_pending_is_ignored(self):
        messages = _messages(("B", "A", "return"))
        assert infer_stack_activations(messages) == []

    def test_no_messages(self):
        assert infer_stack_activations(()) == []
        assert infer_stack_activations((), ["A", "B"]) == []

    def test_unanswered_requests_close_at_last_interaction(self):
        messages = _messages(("A", "B", "sync"), ("A", "B", "sync"))
        assert infer_stack_activations(messages) == [
            ActivationBlock("B", 0, 1),
            ActivationBlock("B", 1, 1),
        ]

    def test_self_message_does_not_crash(self):
        messages = _messages(("A", "B", "sync"), ("B", "B", "sync"))
        blocks = infer_stack_activations(messages)
        assert all(b.start_message_order <= b.end_message_order for b in blocks)
        assert {b.lifeline_id for b in blocks} == {"B"}

    def test_result_independent_of_input_order(self):
        assert infer_stack_activations(tuple(reversed(NESTED))) == infer_stack_activations(NESTED)

    def test_restricted_to_given_lifelines(self):
        assert infer_stack_activations(NESTED, ["C"]) == [ActivationBlock("C", 1, 2)]


# ─────────────────────────────────────────────────────────
# Explicit activations and dispatch
# ─────────────────────────────────────────────────────────


class TestComputeActivations:
    def test_explicit_skips_missing_lifelines(self):
        activations = [
            Activation("a1", "B", 2, 3),
            Activation("a2", "ghost", 0, 1),
            Activation("a3", "A", 0, 3),
        ]
        result = resolve_explicit_activations(activations, _lifelines("A", "B"))
        assert result == [ActivationBlock("A", 0, 3), ActivationBlock("B", 2, 3)]

    def test_auto_mode(self):
        state = DiagramState(lifelines=_lifelines("A", "B", "C"), messages=NESTED)
        assert compute_activations(state, "auto") == infer_stack_activations(NESTED)

    def test_manual_mode(self):
        state = DiagramState(lifelines=_lifelines("A", "B", "C"), messages=NESTED)
        assert compute_activations(state, "manual", {"C-1-2"}) == [ActivationBlock("C", 1, 2)]

    def test_manual_mode_without_toggles(self):
        state = DiagramState(lifelines=_lifelines("A", "B", "C"), messages=NESTED)
        assert compute_activations(state, "manual") == []

    def test_messages_to_missing_lifelines_are_ignored(self):
        state = DiagramState(lifelines=_lifelines("A", "B"), messages=NESTED)
        # B -> C and C -> B reference a lifeline that is gone
        assert compute_activations(state, "auto") == [ActivationBlock("B", 0, 3)]

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            compute_activations(DiagramState(), "sometimes")

    def test_blocks_by_lifeline(self):
        grouped = blocks_by_lifeline(infer_stack_activations(NESTED))
        assert grouped == {"B": [ActivationBlock("B", 0, 3)], "C": [ActivationBlock("C", 1, 2)]}


# ─────────────────────────────────────────────────────────
# Interval remapping
# ─────────────────────────────────────────────────────────


class TestRemapInterval:
    def test_nothing_removed(self):
        assert remap_interval(1, 2, [0, 1, 2, 3]) == (1, 2)

    def test_start_removed_snaps_forward(self):
        assert remap_interval(1, 3, [0, 2, 3]) == (1, 2)

    def test_end_removed_snaps_back(self):
        assert remap_interval(0, 2, [0, 1, 3]) == (0, 1)

    def test_earlier_message_removed_shifts_down(self):
        assert remap_interval(2, 3, [1, 2, 3]) == (1, 2)

    def test_whole_range_removed(self):
        assert remap_interval(1, 1, [0, 2]) is None
