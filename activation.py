"""
activation.py

Activation bars: which stretches of a lifeline are "active processing".

Three sources are supported, selected per diagram by ``ActivationMode``:

* MANUAL   - the user toggles blocks between consecutive messages touching a
             lifeline. Toggles are keyed ``"<lifelineId>-<start>-<end>"``;
             keys that no longer match a candidate block are inert.
* AUTO     - bars are inferred from message semantics. An incoming ``sync``
             opens a bar, an outgoing ``return`` closes the most recently
             opened one (LIFO, so nested calls close innermost first).
* EXPLICIT - bars are the stored ``Activation`` records.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from models import (
    Activation,
    ActivationBlockData,
    ActivationMode,
    DiagramState,
    Lifeline,
    Message,
    MessageType,
)

log = logging.getLogger(__name__)

# Toggle state accepted by the block functions: a set of active keys, or the
# full key -> ActivationBlockData mapping kept by the diagram model.
Toggles = Union[Mapping[str, ActivationBlockData], Iterable[str]]


@dataclass(frozen=True)
class ActivationBlock:
    """An interval on one lifeline, in message-order units (inclusive)."""
    lifeline_id: str
    start_message_order: int
    end_message_order: int

    @property
    def key(self) -> str:
        return block_key(self.lifeline_id, self.start_message_order, self.end_message_order)


def block_key(lifeline_id: str, start_order: int, end_order: int) -> str:
    """Build the persisted toggle key ``"<lifelineId>-<start>-<end>"``."""
    return f"{lifeline_id}-{start_order}-{end_order}"


def parse_block_key(key: str) -> Optional[ActivationBlock]:
    """Split a toggle key back into its parts.

    Lifeline ids may themselves contain ``-``, so the two orders are taken
    from the right.

    Returns:
        The block, or ``None`` if *key* is not in the expected format.
    """
    parts = str(key).rsplit("-", 2)
    if len(parts) != 3 or not parts[0]:
        return None
    try:
        start, end = int(parts[1]), int(parts[2])
    except ValueError:
        return None
    return ActivationBlock(parts[0], start, end)


def remap_interval(start: int, end: int, surviving: Sequence[int]) -> Optional[Tuple[int, int]]:
    """Renumber an inclusive message-order interval after messages were removed.

    *surviving* holds the old orders that remain, ascending; a surviving
    message's new order is its index there. The start snaps forward and the
    end snaps back to the nearest surviving message.

    Returns:
        The new ``(start, end)``, or ``None`` if no surviving message lies
        inside the interval.
    """
    new_start = bisect_left(surviving, start)
    new_end = bisect_right(surviving, end) - 1
    if new_start > new_end:
        return None
    return new_start, new_end


def _block_sort_key(block: ActivationBlock) -> Tuple[int, int, str]:
    return (block.start_message_order, block.end_message_order, block.lifeline_id)


def _touching_messages(lifeline_id: str, messages: Iterable[Message]) -> List[Message]:
    return sorted((m for m in messages if m.touches(lifeline_id)), key=lambda m: m.order)


# ─────────────────────────────────────────────────────────
# Manual block toggles
# ─────────────────────────────────────────────────────────

def available_blocks(lifelines: Iterable[Lifeline], messages: Sequence[Message]) -> List[ActivationBlock]:
    """Every block a user can toggle.

    A block exists between each pair of consecutive messages that touch a
    lifeline (as source or destination).
    """
    blocks: List[ActivationBlock] = []
    for lifeline in sorted(lifelines, key=lambda l: l.order):
        touching = _touching_messages(lifeline.id, messages)
        for first, second in zip(touching, touching[1:]):
            blocks.append(ActivationBlock(lifeline.id, first.order, second.order))
    return blocks


def is_toggled(key: str, toggles: Toggles) -> bool:
    if isinstance(toggles, Mapping):
        data = toggles.get(key)
        return data is not None and data.is_active
    return key in toggles


def active_blocks(
    lifelines: Iterable[Lifeline],
    messages: Sequence[Message],
    toggles: Toggles,
) -> List[ActivationBlock]:
    """Candidate blocks whose key is toggled on.

    Candidates are recomputed from the current message order, so toggle keys
    left over from before a delete or reorder simply match nothing.
    """
    if not isinstance(toggles, Mapping):
        toggles = set(toggles)
    return [b for b in available_blocks(lifelines, messages) if is_toggled(b.key, toggles)]


def stale_toggle_keys(
    lifelines: Iterable[Lifeline],
    messages: Sequence[Message],
    toggles: Iterable[str],
) -> List[str]:
    """Toggle keys that no longer correspond to any candidate block."""
    live = {b.key for b in available_blocks(lifelines, messages)}
    return [k for k in toggles if k not in live]


# ─────────────────────────────────────────────────────────
# Stack inference
# ─────────────────────────────────────────────────────────

def _infer_for_lifeline(lifeline_id: str, messages: Sequence[Message]) -> List[ActivationBlock]:
    touching = _touching_messages(lifeline_id, messages)
    if not touching:
        return []

    blocks: List[ActivationBlock] = []
    pending: List[int] = []
    for m in touching:
        if m.to_lifeline_id == lifeline_id and m.type == MessageType.SYNC:
            pending.append(m.order)
        elif m.from_lifeline_id == lifeline_id and m.type == MessageType.RETURN:
            if pending:
                blocks.append(ActivationBlock(lifeline_id, pending.pop(), m.order))
            else:
                log.debug("Return %s from %s has no pending request", m.id, lifeline_id)

    # Requests never answered stay open until the lifeline's last interaction
    last_order = touching[-1].order
    for start in pending:
        blocks.append(ActivationBlock(lifeline_id, start, last_order))
    return blocks


def infer_stack_activations(
    messages: Sequence[Message],
    lifeline_ids: Optional[Iterable[str]] = None,
) -> List[ActivationBlock]:
    """Infer activation bars from sync/return pairing.

    Args:
        messages: Messages in any order; they are processed by ``order``.
        lifeline_ids: Restrict inference to these lifelines. Defaults to
            every lifeline referenced by a message.

    Returns:
        Blocks sorted by ``(start, end, lifeline_id)``; the result does not
        depend on the order lifelines are visited in.
    """
    if lifeline_ids is None:
        ids = {m.from_lifeline_id for m in messages} | {m.to_lifeline_id for m in messages}
    else:
        ids = set(lifeline_ids)

    blocks: List[ActivationBlock] = []
    for lifeline_id in ids:
        blocks.extend(_infer_for_lifeline(lifeline_id, messages))
    return sorted(blocks, key=_block_sort_key)


# ─────────────────────────────────────────────────────────
# Explicit activations
# ─────────────────────────────────────────────────────────

def resolve_explicit_activations(
    activations: Iterable[Activation],
    lifelines: Iterable[Lifeline],
) -> List[ActivationBlock]:
    """Stored activations whose lifeline still exists."""
    live = {l.id for l in lifelines}
    blocks = []
    for a in activations:
        if a.lifeline_id not in live:
            log.debug("Skipping activation %s on missing lifeline %s", a.id, a.lifeline_id)
            continue
        blocks.append(ActivationBlock(a.lifeline_id, a.start_message_order, a.end_message_order))
    return sorted(blocks, key=_block_sort_key)


# ─────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────

def compute_activations(
    state: DiagramState,
    mode: str = ActivationMode.MANUAL,
    toggles: Optional[Toggles] = None,
) -> List[ActivationBlock]:
    """Activation bars to render for *state* under *mode*.

    Messages referencing deleted lifelines are ignored.
    """
    live = state.lifeline_ids()
    messages = [m for m in state.messages
                if m.from_lifeline_id in live and m.to_lifeline_id in live]

    if mode == ActivationMode.AUTO:
        return infer_stack_activations(messages, live)
    if mode == ActivationMode.EXPLICIT:
        return resolve_explicit_activations(state.activations, state.lifelines)
    if mode == ActivationMode.MANUAL:
        return active_blocks(state.lifelines, messages, toggles or {})
    raise ValueError(f"Unknown activation mode '{mode}'. Must be one of: {ActivationMode.ALL}")


def blocks_by_lifeline(blocks: Iterable[ActivationBlock]) -> Dict[str, List[ActivationBlock]]:
    """Group blocks per lifeline id, keeping their order."""
    grouped: Dict[str, List[ActivationBlock]] = defaultdict(list)
    for b in blocks:
        grouped[b.lifeline_id].append(b)
    return dict(grouped)
