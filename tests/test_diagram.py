"""Tests for the editable SequenceDiagram model (diagram.py)."""
from __future__ import annotations

import pytest

from activation import ActivationBlock
from diagram import (
    LEFT,
    RIGHT,
    SequenceDiagram,
    create_default_diagram,
    make_id_gen,
    make_unique_id_gen,
)
from errors import NotFound
from models import DEFAULT_COLORS


def _assert_dense(model):
    assert sorted(l.order for l in model.lifelines) == list(range(len(model.lifelines)))
    assert sorted(m.order for m in model.messages) == list(range(len(model.messages)))


def _three(model):
    return [model.add_lifeline(name=n) for n in ("A", "B", "C")]


# ─────────────────────────────────────────────────────────
# Id generators
# ─────────────────────────────────────────────────────────


class TestIdGenerators:
    def test_sequential(self):
        gen = make_id_gen()
        assert gen("lifeline") == "lifeline-1"
        assert gen("message") == "message-2"

    def test_unique_ids_differ(self):
        gen = make_unique_id_gen()
        first, second = gen("lifeline"), gen("lifeline")
        assert first != second
        assert first.startswith("lifeline-")


# ─────────────────────────────────────────────────────────
# Lifelines
# ─────────────────────────────────────────────────────────


class TestLifelines:
    def test_default_diagram(self):
        model = create_default_diagram(make_id_gen())
        assert [l.name for l in model.lifelines] == ["Front", "Back", "AI"]
        assert [l.color for l in model.lifelines] == [DEFAULT_COLORS[0], DEFAULT_COLORS[1], DEFAULT_COLORS[4]]
        assert model.name == "Untitled Diagram"

    def test_add_uses_defaults(self, model):
        first = model.add_lifeline()
        second = model.add_lifeline()
        assert first.name == "Actor"
        assert (first.order, second.order) == (0, 1)
        assert second.color == DEFAULT_COLORS[1]

    def test_color_is_normalized(self, model):
        assert model.add_lifeline(color="#abc").color == "#AABBCC"

    def test_update_keeps_order(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        updated = model.update_lifeline(b.id, name="Server", color="#10b981")
        assert (updated.name, updated.color, updated.order) == ("Server", "#10B981", 1)
        assert model.get_lifeline(b.id) == updated

    def test_rename_and_recolor(self, model):
        a = model.add_lifeline()
        model.rename_lifeline(a.id, "Client")
        model.recolor_lifeline(a.id, "not a color")
        assert model.get_lifeline(a.id).name == "Client"
        assert model.get_lifeline(a.id).color == a.color

    def test_delete_middle_lifeline(self, model):
        a, b, c = _three(model)
        model.add_message(a.id, b.id)
        model.add_message(b.id, c.id)
        kept = model.add_message(a.id, c.id)

        model.delete_lifeline(b.id)

        assert [(l.id, l.order) for l in model.lifelines] == [(a.id, 0), (c.id, 1)]
        assert [(m.id, m.order) for m in model.messages] == [(kept.id, 0)]
        _assert_dense(model)

    def test_delete_unknown(self, model):
        with pytest.raises(NotFound):
            model.delete_lifeline("nope")

    def test_not_found_is_lookup_error(self, model):
        with pytest.raises(LookupError):
            model.get_lifeline("nope")


class TestMoveLifeline:
    def test_move_right_swaps_with_neighbour(self, model):
        a, b, c = _three(model)
        assert model.move_lifeline_right(a.id) is True
        assert [l.id for l in sorted(model.lifelines, key=lambda l: l.order)] == [b.id, a.id, c.id]
        _assert_dense(model)

    def test_move_left(self, model):
        a, b, c = _three(model)
        assert model.move_lifeline(c.id, LEFT) is True
        assert model.get_lifeline(c.id).order == 1
        assert model.get_lifeline(b.id).order == 2

    def test_edges_are_no_ops(self, model):
        a, b, c = _three(model)
        assert model.move_lifeline_left(a.id) is False
        assert model.move_lifeline(c.id, RIGHT) is False
        assert [l.order for l in (model.get_lifeline(i.id) for i in (a, b, c))] == [0, 1, 2]

    def test_bad_direction(self, model):
        a = model.add_lifeline()
        with pytest.raises(ValueError):
            model.move_lifeline(a.id, 2)


# ─────────────────────────────────────────────────────────
# Messages
# ─────────────────────────────────────────────────────────


class TestMessages:
    def test_default_labels(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        assert model.add_message(a.id, b.id).label == "request()"
        assert model.add_message(b.id, a.id, "return").label == "response"

    def test_self_message_allowed(self, model):
        a = model.add_lifeline()
        assert model.add_message(a.id, a.id).is_self_message

    def test_unknown_lifeline(self, model):
        a = model.add_lifeline()
        with pytest.raises(NotFound):
            model.add_message(a.id, "ghost")
        assert model.messages == ()

    def test_invalid_type(self, model):
        a = model.add_lifeline()
        with pytest.raises(ValueError):
            model.add_message(a.id, a.id, "async")

    def test_update_message(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        m = model.add_message(a.id, b.id)
        updated = model.update_message(m.id, label="login()", description="  ", msg_type="return")
        assert (updated.label, updated.description, updated.type) == ("login()", None, "return")

    def test_delete_renumbers(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        m0 = model.add_message(a.id, b.id)
        m1 = model.add_message(b.id, a.id, "return")
        m2 = model.add_message(a.id, b.id)
        model.delete_message(m0.id)
        assert [(m.id, m.order) for m in model.messages] == [(m1.id, 0), (m2.id, 1)]

    def test_orders_stay_dense_through_edits(self, model):
        a, b, c = _three(model)
        msgs = [model.add_message(a.id, b.id), model.add_message(b.id, c.id),
                model.add_message(c.id, a.id), model.add_message(b.id, b.id)]
        model.delete_message(msgs[1].id)
        model.move_lifeline_right(a.id)
        model.add_lifeline()
        model.delete_lifeline(c.id)
        model.add_message(a.id, b.id)
        _assert_dense(model)


# ─────────────────────────────────────────────────────────
# Block toggles
# ─────────────────────────────────────────────────────────


class TestToggles:
    @pytest.fixture
    def pair(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        model.add_message(a.id, b.id)
        model.add_message(b.id, a.id, "return")
        return a, b

    def test_available_blocks(self, model, pair):
        a, b = pair
        assert model.available_blocks() == [ActivationBlock(a.id, 0, 1), ActivationBlock(b.id, 0, 1)]

    def test_toggle_on_and_off(self, model, pair):
        a, _ = pair
        block = ActivationBlock(a.id, 0, 1)
        assert model.toggle_block(block) is True
        assert model.is_block_active(block)
        assert model.activated_blocks == {block.key}
        assert model.compute_activations() == [block]
        assert model.toggle_block(block) is False
        assert model.activated_blocks_data == {}

    def test_text_survives_toggle_off(self, model, pair):
        a, _ = pair
        block = ActivationBlock(a.id, 0, 1)
        model.set_block_text(block, "thinking")
        assert not model.is_block_active(block)
        model.toggle_block(block)
        assert model.block_text(block) == "thinking"
        model.toggle_block(block)
        assert model.block_text(block) == "thinking"
        assert model.activated_blocks == set()

    def test_message_delete_clears_toggles(self, model, pair):
        a, _ = pair
        model.toggle_block(ActivationBlock(a.id, 0, 1))
        model.delete_message(model.messages[0].id)
        assert model.activated_blocks_data == {}

    def test_lifeline_delete_without_messages_keeps_other_toggles(self, model, pair):
        a, b = pair
        c = model.add_lifeline()
        model.toggle_block(ActivationBlock(a.id, 0, 1))
        model.delete_lifeline(c.id)
        assert model.activated_blocks == {f"{a.id}-0-1"}

    def test_auto_mode(self, model, pair):
        _, b = pair
        model.set_activation_mode("auto")
        assert model.compute_activations() == [ActivationBlock(b.id, 0, 1)]

    def test_invalid_mode(self, model):
        with pytest.raises(ValueError):
            model.set_activation_mode("sometimes")


# ─────────────────────────────────────────────────────────
# Explicit activations
# ─────────────────────────────────────────────────────────


class TestExplicitActivations:
    def test_renumbered_after_message_delete(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        first = model.add_message(a.id, b.id)
        model.add_message(a.id, b.id)
        model.add_message(b.id, a.id, "return")
        act = model.add_activation(b.id, 1, 2)

        model.delete_message(first.id)

        (moved,) = model.activations
        assert moved.id == act.id
        assert (moved.start_message_order, moved.end_message_order) == (0, 1)

    def test_dropped_with_its_lifeline(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        model.add_activation(b.id, 0, 0)
        model.delete_lifeline(b.id)
        assert model.activations == ()

    def test_reversed_range_is_sorted(self, model):
        a = model.add_lifeline()
        act = model.add_activation(a.id, 3, 1)
        assert (act.start_message_order, act.end_message_order) == (1, 3)

    def test_delete_unknown(self, model):
        with pytest.raises(NotFound):
            model.delete_activation("nope")

    def test_explicit_mode(self, model):
        a = model.add_lifeline()
        model.add_activation(a.id, 0, 2)
        model.set_activation_mode("explicit")
        assert model.compute_activations() == [ActivationBlock(a.id, 0, 2)]


# ─────────────────────────────────────────────────────────
# Groups
# ─────────────────────────────────────────────────────────


class TestGroups:
    def test_add_group(self, model):
        a, b, c = _three(model)
        group = model.add_group([a.id, c.id, a.id])
        assert group.name == "Group"
        assert group.lifeline_ids == (a.id, c.id)

    def test_add_group_unknown_member(self, model):
        with pytest.raises(NotFound):
            model.add_group(["ghost"])
        assert model.groups == ()

    def test_update_group(self, model):
        a, b, c = _three(model)
        group = model.add_group([a.id])
        updated = model.update_group(group.id, name="  Backend ", lifeline_ids=[b.id, c.id])
        assert updated.name == "Backend"
        assert updated.lifeline_ids == (b.id, c.id)

    def test_member_removed_with_lifeline(self, model, layout):
        a, b, c = _three(model)
        group = model.add_group([b.id])
        model.delete_lifeline(b.id)
        assert model.get_group(group.id).lifeline_ids == ()
        assert model.compute_group_bounds(group.id, layout=layout) is None

    def test_bounds_follow_moves(self, model, layout):
        a, b, c = _three(model)
        group = model.add_group([a.id])
        before = model.compute_group_bounds(group.id, 600, layout)
        model.move_lifeline_right(a.id)
        after = model.compute_group_bounds(group.id, 600, layout)
        assert after.x - before.x == layout.lifeline.spacing

    def test_delete_group(self, model):
        a = model.add_lifeline()
        group = model.add_group([a.id])
        model.delete_group(group.id)
        with pytest.raises(NotFound):
            model.get_group(group.id)


# ─────────────────────────────────────────────────────────
# Whole-diagram operations
# ─────────────────────────────────────────────────────────


class TestWholeDiagram:
    def test_clear(self, model):
        a = model.add_lifeline()
        model.add_message(a.id, a.id)
        model.add_group([a.id])
        model.clear()
        assert model.state.lifelines == ()
        assert model.state.messages == ()
        assert model.groups == ()
        assert model.name == "Untitled Diagram"

    def test_snapshot_round_trip(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        model.add_message(a.id, b.id)
        model.add_group([a.id, b.id])
        model.toggle_block(ActivationBlock(a.id, 0, 0))
        model.name = "Checkout"

        restored = SequenceDiagram.from_buml(model.snapshot(), id_gen=make_id_gen())

        assert restored.state == model.state
        assert restored.activated_blocks_data == model.activated_blocks_data
        assert restored.name == "Checkout"

    def test_new_ids_skip_loaded_ones(self, model):
        a, b = model.add_lifeline(), model.add_lifeline()
        model.add_message(a.id, b.id)
        loaded = SequenceDiagram.from_buml(model.snapshot(), id_gen=make_id_gen())

        c = loaded.add_lifeline()
        m = loaded.add_message(c.id, a.id)
        group = loaded.add_group([c.id])

        ids = [l.id for l in loaded.lifelines] + [x.id for x in loaded.messages] + [group.id]
        assert len(ids) == len(set(ids))
        assert c.id not in (a.id, b.id)
        assert m.id != model.messages[0].id

        loaded.delete_lifeline(a.id)
        assert [l.id for l in loaded.lifelines] == [b.id, c.id]

    def test_layout(self, model, layout):
        a, b = model.add_lifeline(), model.add_lifeline()
        m = model.add_message(a.id, b.id)
        result = model.compute_layout(layout)
        assert result.message_y[m.id] == 170
        assert result.lifeline_x[b.id] == 340
