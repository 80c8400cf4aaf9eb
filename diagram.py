"""
diagram.py

The live, editable sequence diagram.

``SequenceDiagram`` owns the ordered lifelines and messages, explicit
activations, manual block toggles and groups. Every mutator leaves
``order`` dense (``0..n-1``) on lifelines and messages and drops
references to anything it deletes before returning.
"""

from __future__ import annotations

import itertools
import logging
import random
import string
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from activation import (
    ActivationBlock,
    available_blocks,
    compute_activations,
    parse_block_key,
    remap_interval,
)
from buml.builder import BumlDiagram
from buml.director import construct_from_state
from debug_trace import trace_call
from errors import NotFound
from geometry import Layout, compute_layout
from group_bounds import GroupBounds, calculate_group_bounds
from models import (
    DEFAULT_COLORS,
    DEFAULT_GROUP_COLORS,
    DEFAULT_MESSAGE_LABELS,
    Activation,
    ActivationBlockData,
    ActivationMode,
    DiagramState,
    Group,
    Lifeline,
    Message,
    MessageType,
    unique_ids,
)
from settings import LayoutSettings, get_settings
from utils import normalize_hex_color

log = logging.getLogger(__name__)

IdGenerator = Callable[[str], str]

# Sentinel for "argument not given" in update methods
_UNSET = object()

LEFT = -1
RIGHT = 1


# ─────────────────────────────────────────────────────────
# Id generators
# ─────────────────────────────────────────────────────────

def make_id_gen() -> IdGenerator:
    """Return a callable that produces sequential ids ``lifeline-1, message-2, ...``."""
    counter = itertools.count(1)

    def _next_id(prefix: str) -> str:
        return f"{prefix}-{next(counter)}"

    return _next_id


def make_unique_id_gen() -> IdGenerator:
    """Return a callable producing ids unique across sessions.

    Format: ``<prefix>-<epoch ms>-<counter>-<7 random base36 chars>``.
    """
    counter = itertools.count(1)
    alphabet = string.ascii_lowercase + string.digits

    def _next_id(prefix: str) -> str:
        suffix = "".join(random.choices(alphabet, k=7))
        return f"{prefix}-{int(time.time() * 1000)}-{next(counter)}-{suffix}"

    return _next_id


def _key_lifeline(key: str) -> Optional[str]:
    block = parse_block_key(key)
    return block.lifeline_id if block is not None else None


# ─────────────────────────────────────────────────────────
# Model
# ─────────────────────────────────────────────────────────

class SequenceDiagram:
    """Editable sequence diagram.

    Args:
        id_gen: Callable ``prefix -> id`` used for every new record.
            Defaults to :func:`make_unique_id_gen`.
        activation_mode: One of :class:`models.ActivationMode`; defaults to
            the ``defaults.activation_mode`` setting.
        name: Diagram name stored in file metadata.
    """

    def __init__(self, id_gen: Optional[IdGenerator] = None,
                 activation_mode: Optional[str] = None,
                 name: Optional[str] = None):
        defaults = get_settings().settings.defaults
        self._id_gen = id_gen or make_unique_id_gen()
        self._lifelines: List[Lifeline] = []
        self._messages: List[Message] = []
        self._activations: List[Activation] = []
        self._groups: List[Group] = []
        self._toggles: Dict[str, ActivationBlockData] = {}
        self._activation_mode = ActivationMode.MANUAL
        self.set_activation_mode(activation_mode or defaults.activation_mode)
        self.name: Optional[str] = name
        self.created_at: Optional[str] = None

    # -- read access -------------------------------------------------------

    @property
    def lifelines(self) -> Tuple[Lifeline, ...]:
        return tuple(self._lifelines)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def activations(self) -> Tuple[Activation, ...]:
        return tuple(self._activations)

    @property
    def groups(self) -> Tuple[Group, ...]:
        return tuple(self._groups)

    @property
    def activation_mode(self) -> str:
        return self._activation_mode

    @property
    def activated_blocks(self) -> Set[str]:
        """Keys of blocks currently toggled on."""
        return {k for k, d in self._toggles.items() if d.is_active}

    @property
    def activated_blocks_data(self) -> Dict[str, ActivationBlockData]:
        return dict(self._toggles)

    @property
    def state(self) -> DiagramState:
        return DiagramState(
            lifelines=self.lifelines,
            messages=self.messages,
            activations=self.activations,
            groups=self.groups,
        )

    def get_lifeline(self, lifeline_id: str) -> Lifeline:
        for l in self._lifelines:
            if l.id == lifeline_id:
                return l
        raise NotFound("lifeline", lifeline_id)

    def get_message(self, message_id: str) -> Message:
        for m in self._messages:
            if m.id == message_id:
                return m
        raise NotFound("message", message_id)

    def get_group(self, group_id: str) -> Group:
        for g in self._groups:
            if g.id == group_id:
                return g
        raise NotFound("group", group_id)

    # -- internal helpers --------------------------------------------------

    def _replace_record(self, records: list, updated) -> None:
        for i, r in enumerate(records):
            if r.id == updated.id:
                records[i] = updated
                return

    def _new_id(self, prefix: str) -> str:
        """Next id from the generator that no record in the diagram already uses."""
        used = {r.id for records in (self._lifelines, self._messages, self._activations, self._groups)
                for r in records}
        new_id = self._id_gen(prefix)
        while new_id in used:
            new_id = self._id_gen(prefix)
        return new_id

    @staticmethod
    def _reindexed(records: Iterable) -> list:
        return [r if r.order == i else replace(r, order=i) for i, r in enumerate(records)]

    def _renumber_activations(self, surviving_orders: List[int]) -> None:
        """Renumber explicit activations after messages were removed."""
        kept = []
        for a in self._activations:
            interval = remap_interval(a.start_message_order, a.end_message_order, surviving_orders)
            if interval is None:
                log.debug("Dropping activation %s: no message left in its range", a.id)
                continue
            kept.append(replace(a, start_message_order=interval[0], end_message_order=interval[1]))
        self._activations = kept

    # -- lifelines ---------------------------------------------------------

    @trace_call("MODEL")
    def add_lifeline(self, color: Optional[str] = None, name: Optional[str] = None) -> Lifeline:
        """Append a lifeline at the right-most position."""
        count = len(self._lifelines)
        lifeline = Lifeline(
            id=self._new_id("lifeline"),
            name=name if name is not None else get_settings().settings.defaults.lifeline_name,
            color=normalize_hex_color(color, DEFAULT_COLORS[count % len(DEFAULT_COLORS)]),
            order=count,
        )
        self._lifelines.append(lifeline)
        log.debug("Added lifeline %s at order %d", lifeline.id, lifeline.order)
        return lifeline

    @trace_call("MODEL")
    def update_lifeline(self, lifeline_id: str, name=_UNSET, color=_UNSET) -> Lifeline:
        """Change a lifeline's name and/or color. Order is never affected."""
        lifeline = self.get_lifeline(lifeline_id)
        changes = {}
        if name is not _UNSET:
            changes["name"] = str(name)
        if color is not _UNSET:
            changes["color"] = normalize_hex_color(color, lifeline.color)
        updated = replace(lifeline, **changes)
        self._replace_record(self._lifelines, updated)
        return updated

    def rename_lifeline(self, lifeline_id: str, name: str) -> Lifeline:
        return self.update_lifeline(lifeline_id, name=name)

    def recolor_lifeline(self, lifeline_id: str, color: str) -> Lifeline:
        return self.update_lifeline(lifeline_id, color=color)

    @trace_call("MODEL")
    def delete_lifeline(self, lifeline_id: str) -> None:
        """Remove a lifeline and everything that depends on it.

        Messages touching it are removed and the remaining messages
        renumbered; when that happens every block toggle is invalidated,
        since toggle keys are built from message orders.
        """
        self.get_lifeline(lifeline_id)

        remaining = [l for l in self._lifelines if l.id != lifeline_id]
        kept_messages = [m for m in self._messages if not m.touches(lifeline_id)]
        removed_count = len(self._messages) - len(kept_messages)

        self._lifelines = self._reindexed(remaining)
        self._activations = [a for a in self._activations if a.lifeline_id != lifeline_id]
        if removed_count:
            self._renumber_activations([m.order for m in kept_messages])
            self._messages = self._reindexed(kept_messages)
            self._toggles = {}
        else:
            self._toggles = {
                k: d for k, d in self._toggles.items()
                if _key_lifeline(k) != lifeline_id
            }
        self._groups = [
            replace(g, lifeline_ids=tuple(i for i in g.lifeline_ids if i != lifeline_id))
            for g in self._groups
        ]
        log.debug("Deleted lifeline %s (%d messages removed)", lifeline_id, removed_count)

    @trace_call("MODEL")
    def move_lifeline(self, lifeline_id: str, direction: int) -> bool:
        """Swap a lifeline with its neighbour.

        Args:
            lifeline_id: The lifeline to move.
            direction: ``LEFT`` (-1) or ``RIGHT`` (+1).

        Returns:
            False if the lifeline was already at that edge (nothing changes).
        """
        if direction not in (LEFT, RIGHT):
            raise ValueError(f"direction must be {LEFT} or {RIGHT}, got {direction!r}")
        lifeline = self.get_lifeline(lifeline_id)
        target = lifeline.order + direction
        if target < 0 or target >= len(self._lifelines):
            return False
        ordered = list(self._lifelines)
        ordered[lifeline.order], ordered[target] = ordered[target], ordered[lifeline.order]
        self._lifelines = self._reindexed(ordered)
        return True

    def move_lifeline_left(self, lifeline_id: str) -> bool:
        return self.move_lifeline(lifeline_id, LEFT)

    def move_lifeline_right(self, lifeline_id: str) -> bool:
        return self.move_lifeline(lifeline_id, RIGHT)

    # -- messages ----------------------------------------------------------

    @trace_call("MODEL")
    def add_message(self, from_lifeline_id: str, to_lifeline_id: str,
                    msg_type: str = MessageType.SYNC, label: Optional[str] = None) -> Message:
        """Append a message below all existing ones.

        The default label depends on *msg_type* (``request()`` / ``response``).
        """
        if msg_type not in MessageType.ALL:
            raise ValueError(f"Invalid message type '{msg_type}'. Must be one of: {MessageType.ALL}")
        self.get_lifeline(from_lifeline_id)
        self.get_lifeline(to_lifeline_id)
        message = Message(
            id=self._new_id("message"),
            from_lifeline_id=from_lifeline_id,
            to_lifeline_id=to_lifeline_id,
            label=label if label is not None else DEFAULT_MESSAGE_LABELS[msg_type],
            type=msg_type,
            order=len(self._messages),
        )
        self._messages.append(message)
        log.debug("Added %s message %s (%s -> %s)", msg_type, message.id,
                  from_lifeline_id, to_lifeline_id)
        return message

    @trace_call("MODEL")
    def update_message(self, message_id: str, label=_UNSET, description=_UNSET,
                       msg_type=_UNSET) -> Message:
        """Change a message's label, description and/or type.

        A blank description is stored as ``None``. Changing the type changes
        what stack inference derives on the next pass.
        """
        message = self.get_message(message_id)
        changes = {}
        if label is not _UNSET:
            changes["label"] = str(label)
        if description is not _UNSET:
            text = (description or "").strip()
            changes["description"] = text or None
        if msg_type is not _UNSET:
            if msg_type not in MessageType.ALL:
                raise ValueError(f"Invalid message type '{msg_type}'. Must be one of: {MessageType.ALL}")
            changes["type"] = msg_type
        updated = replace(message, **changes)
        self._replace_record(self._messages, updated)
        return updated

    @trace_call("MODEL")
    def delete_message(self, message_id: str) -> None:
        """Remove a message, renumber the rest and invalidate all block toggles."""
        self.get_message(message_id)
        kept = [m for m in self._messages if m.id != message_id]
        self._renumber_activations([m.order for m in kept])
        self._messages = self._reindexed(kept)
        self._toggles = {}
        log.debug("Deleted message %s", message_id)

    # -- groups ------------------------------------------------------------

    def _check_lifeline_ids(self, lifeline_ids: Iterable[str]) -> Tuple[str, ...]:
        ids = unique_ids(lifeline_ids)
        for lifeline_id in ids:
            self.get_lifeline(lifeline_id)
        return ids

    @trace_call("MODEL")
    def add_group(self, lifeline_ids: Iterable[str], color: Optional[str] = None,
                  name: Optional[str] = None) -> Group:
        ids = self._check_lifeline_ids(lifeline_ids)
        count = len(self._groups)
        group = Group(
            id=self._new_id("group"),
            name=name if name is not None else get_settings().settings.defaults.group_name,
            color=normalize_hex_color(color, DEFAULT_GROUP_COLORS[count % len(DEFAULT_GROUP_COLORS)]),
            lifeline_ids=ids,
        )
        self._groups.append(group)
        return group

    @trace_call("MODEL")
    def update_group(self, group_id: str, name=_UNSET, color=_UNSET, lifeline_ids=_UNSET) -> Group:
        group = self.get_group(group_id)
        changes = {}
        if name is not _UNSET:
            changes["name"] = str(name).strip()
        if color is not _UNSET:
            changes["color"] = normalize_hex_color(color, group.color)
        if lifeline_ids is not _UNSET:
            changes["lifeline_ids"] = self._check_lifeline_ids(lifeline_ids)
        updated = replace(group, **changes)
        self._replace_record(self._groups, updated)
        return updated

    @trace_call("MODEL")
    def delete_group(self, group_id: str) -> None:
        self.get_group(group_id)
        self._groups = [g for g in self._groups if g.id != group_id]

    # -- explicit activations ----------------------------------------------

    @trace_call("MODEL")
    def add_activation(self, lifeline_id: str, start_message_order: int,
                       end_message_order: int) -> Activation:
        self.get_lifeline(lifeline_id)
        start, end = sorted((int(start_message_order), int(end_message_order)))
        activation = Activation(
            id=self._new_id("activation"),
            lifeline_id=lifeline_id,
            start_message_order=start,
            end_message_order=end,
        )
        self._activations.append(activation)
        return activation

    @trace_call("MODEL")
    def delete_activation(self, activation_id: str) -> None:
        if not any(a.id == activation_id for a in self._activations):
            raise NotFound("activation", activation_id)
        self._activations = [a for a in self._activations if a.id != activation_id]

    # -- manual block toggles ----------------------------------------------

    def available_blocks(self) -> List[ActivationBlock]:
        return available_blocks(self._lifelines, self._messages)

    def is_block_active(self, block: ActivationBlock) -> bool:
        data = self._toggles.get(block.key)
        return data is not None and data.is_active

    def block_text(self, block: ActivationBlock) -> Optional[str]:
        data = self._toggles.get(block.key)
        return data.text if data is not None else None

    @trace_call("MODEL")
    def toggle_block(self, block: ActivationBlock) -> bool:
        """Flip a block on or off.

        A block switched off keeps its text label, if any, so switching it
        back on restores the label.

        Returns:
            The new active state.
        """
        self.get_lifeline(block.lifeline_id)
        key = block.key
        data = self._toggles.get(key)
        if data is None or not data.is_active:
            self._toggles[key] = ActivationBlockData(is_active=True, text=data.text if data else None)
            return True
        if data.text:
            self._toggles[key] = replace(data, is_active=False)
        else:
            del self._toggles[key]
        return False

    @trace_call("MODEL")
    def set_block_text(self, block: ActivationBlock, text: Optional[str]) -> None:
        """Attach a text label to a block (blank text removes it)."""
        self.get_lifeline(block.lifeline_id)
        key = block.key
        data = self._toggles.get(key, ActivationBlockData(is_active=False))
        cleaned = (text or "").strip() or None
        if cleaned is None and not data.is_active:
            self._toggles.pop(key, None)
            return
        self._toggles[key] = replace(data, text=cleaned)

    # -- diagram-wide ------------------------------------------------------

    def set_activation_mode(self, mode: str) -> None:
        if mode not in ActivationMode.ALL:
            raise ValueError(f"Invalid activation mode '{mode}'. Must be one of: {ActivationMode.ALL}")
        self._activation_mode = mode

    @trace_call("MODEL")
    def clear(self) -> None:
        """Remove everything; the diagram name reverts to the default."""
        self._lifelines = []
        self._messages = []
        self._activations = []
        self._groups = []
        self._toggles = {}
        self.name = get_settings().settings.defaults.diagram_name
        self.created_at = None

    def snapshot(self) -> BumlDiagram:
        """Immutable copy of the current diagram, ready for serialization."""
        return construct_from_state(self)

    @trace_call("MODEL")
    def replace_with(self, diagram: BumlDiagram) -> None:
        """Replace the live state with a loaded diagram."""
        state = diagram.state
        self._lifelines = self._reindexed(state.sorted_lifelines())
        self._messages = self._reindexed(state.sorted_messages())
        self._activations = list(state.activations)
        self._groups = list(state.groups)
        self._toggles = dict(diagram.activated_blocks_data)
        self.set_activation_mode(diagram.activation_mode)
        self.name = diagram.name
        self.created_at = diagram.created_at

    @classmethod
    def from_buml(cls, diagram: BumlDiagram, id_gen: Optional[IdGenerator] = None) -> "SequenceDiagram":
        model = cls(id_gen=id_gen, activation_mode=diagram.activation_mode)
        model.replace_with(diagram)
        return model

    # -- derived values ----------------------------------------------------

    def compute_activations(self) -> List[ActivationBlock]:
        return compute_activations(self.state, self._activation_mode, self._toggles)

    def compute_layout(self, layout: Optional[LayoutSettings] = None) -> Layout:
        return compute_layout(self.state, layout)

    def compute_group_bounds(self, group_id: str, canvas_height: Optional[float] = None,
                             layout: Optional[LayoutSettings] = None) -> Optional[GroupBounds]:
        """Bounds of one group; ``None`` if none of its lifelines exist.

        *canvas_height* defaults to the height of the current layout.
        """
        group = self.get_group(group_id)
        if canvas_height is None:
            canvas_height = self.compute_layout(layout).canvas.height
        return calculate_group_bounds(group, self._lifelines, canvas_height, layout)


def create_default_diagram(id_gen: Optional[IdGenerator] = None) -> SequenceDiagram:
    """A new diagram seeded with the three starter lifelines."""
    model = SequenceDiagram(id_gen=id_gen)
    model.name = get_settings().settings.defaults.diagram_name
    model.add_lifeline(DEFAULT_COLORS[0], "Front")
    model.add_lifeline(DEFAULT_COLORS[1], "Back")
    model.add_lifeline(DEFAULT_COLORS[4], "AI")
    return model
