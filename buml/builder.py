"""
buml/builder.py

Step-by-step construction of an immutable ``BumlDiagram`` snapshot.

Usage::

    builder = BumlBuilder()
    builder.add_lifeline(a).add_message(m).set_activated_blocks(keys)
    diagram = builder.build()

``build()`` is where structural integrity is restored: records pointing at
lifelines that do not exist are dropped (and remembered in
``dropped_references``), and lifeline/message orders are renumbered to a
dense ``0..n-1`` sequence with toggle keys and activations following along.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from activation import block_key, parse_block_key, remap_interval
from errors import DanglingReference
from models import (
    Activation,
    ActivationBlockData,
    ActivationMode,
    DiagramState,
    Group,
    Lifeline,
    Message,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BumlDiagram:
    """A complete diagram snapshot.

    Attributes:
        state: Lifelines, messages, explicit activations and groups.
        activated_blocks_data: Toggle key -> block data (read-only mapping).
        activation_mode: Which activation source the diagram uses.
        name: Diagram name from file metadata.
        created_at: Creation timestamp carried over from a loaded file.
    """
    state: DiagramState = field(default_factory=DiagramState)
    activated_blocks_data: Mapping[str, ActivationBlockData] = field(
        default_factory=lambda: MappingProxyType({}))
    activation_mode: str = ActivationMode.MANUAL
    name: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def activated_blocks(self) -> Tuple[str, ...]:
        """Keys of blocks toggled on."""
        return tuple(k for k, d in self.activated_blocks_data.items() if d.is_active)


class BumlBuilder:
    """Accumulates diagram parts and assembles a ``BumlDiagram``."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Discard everything added so far."""
        self._lifelines: List[Lifeline] = []
        self._messages: List[Message] = []
        self._activations: List[Activation] = []
        self._groups: List[Group] = []
        self._blocks: Dict[str, ActivationBlockData] = {}
        self._activation_mode = ActivationMode.MANUAL
        self._name: Optional[str] = None
        self._created_at: Optional[str] = None
        self.dropped_references: List[DanglingReference] = []

    def add_lifeline(self, lifeline: Lifeline) -> "BumlBuilder":
        self._lifelines.append(lifeline)
        return self

    def add_message(self, message: Message) -> "BumlBuilder":
        self._messages.append(message)
        return self

    def add_activation(self, activation: Activation) -> "BumlBuilder":
        self._activations.append(activation)
        return self

    def add_group(self, group: Group) -> "BumlBuilder":
        self._groups.append(group)
        return self

    def set_activated_blocks(self, keys: Iterable[str]) -> "BumlBuilder":
        """Mark *keys* as active, keeping any text already set for them."""
        for key in keys:
            data = self._blocks.get(key, ActivationBlockData())
            self._blocks[key] = replace(data, is_active=True)
        return self

    def set_activated_blocks_data(self, data: Mapping[str, ActivationBlockData]) -> "BumlBuilder":
        """Merge per-block data (active flag and text) into the toggles."""
        for key, block in data.items():
            self._blocks[key] = block
        return self

    def set_activation_mode(self, mode: str) -> "BumlBuilder":
        if mode not in ActivationMode.ALL:
            raise ValueError(f"Invalid activation mode '{mode}'. Must be one of: {ActivationMode.ALL}")
        self._activation_mode = mode
        return self

    def set_name(self, name: Optional[str]) -> "BumlBuilder":
        self._name = name
        return self

    def set_created_at(self, created_at: Optional[str]) -> "BumlBuilder":
        self._created_at = created_at
        return self

    # -- assembly ----------------------------------------------------------

    def _drop(self, kind: str, owner_id: str, ref_id: str) -> None:
        ref = DanglingReference(kind, owner_id, ref_id)
        log.warning("Dropping dangling reference: %s", ref)
        self.dropped_references.append(ref)

    def _resolve_lifelines(self) -> List[Lifeline]:
        seen = set()
        lifelines = []
        for l in sorted(self._lifelines, key=lambda l: l.order):
            if l.id in seen:
                log.warning("Ignoring duplicate lifeline id '%s'", l.id)
                continue
            seen.add(l.id)
            lifelines.append(l)
        return [l if l.order == i else replace(l, order=i) for i, l in enumerate(lifelines)]

    def _resolve_messages(self, live: set) -> List[Message]:
        seen = set()
        messages = []
        for m in sorted(self._messages, key=lambda m: m.order):
            if m.id in seen:
                log.warning("Ignoring duplicate message id '%s'", m.id)
                continue
            seen.add(m.id)
            missing = [i for i in (m.from_lifeline_id, m.to_lifeline_id) if i not in live]
            if missing:
                self._drop("message", m.id, missing[0])
                continue
            messages.append(m)
        return messages

    def _resolve_activations(self, live: set, surviving: List[int]) -> List[Activation]:
        activations = []
        for a in self._activations:
            if a.lifeline_id not in live:
                self._drop("activation", a.id, a.lifeline_id)
                continue
            interval = remap_interval(a.start_message_order, a.end_message_order, surviving)
            if interval is None:
                log.warning("Dropping activation '%s': no message in its range", a.id)
                continue
            activations.append(replace(a, start_message_order=interval[0],
                                       end_message_order=interval[1]))
        return activations

    def _resolve_groups(self, live: set) -> List[Group]:
        groups = []
        for g in self._groups:
            for lifeline_id in g.lifeline_ids:
                if lifeline_id not in live:
                    self._drop("group", g.id, lifeline_id)
            groups.append(replace(g, lifeline_ids=tuple(i for i in g.lifeline_ids if i in live)))
        return groups

    def _resolve_blocks(self, live: set, order_map: Dict[int, int]) -> Dict[str, ActivationBlockData]:
        blocks = {}
        for key, data in self._blocks.items():
            block = parse_block_key(key)
            if block is None:
                log.warning("Ignoring malformed activation block key '%s'", key)
                continue
            if block.lifeline_id not in live:
                self._drop("activatedBlock", key, block.lifeline_id)
                continue
            start = order_map.get(block.start_message_order)
            end = order_map.get(block.end_message_order)
            if start is None or end is None:
                # Refers to a message that is gone; the key could never match again
                log.debug("Dropping stale activation block key '%s'", key)
                continue
            new_key = block_key(block.lifeline_id, start, end)
            if new_key in blocks:
                log.warning("Activation block key '%s' renumbers onto '%s', replacing an earlier entry",
                            key, new_key)
            blocks[new_key] = data
        return blocks

    def build(self) -> BumlDiagram:
        """Assemble the snapshot.

        The builder is left untouched; call :meth:`reset` before reuse.
        """
        self.dropped_references = []
        lifelines = self._resolve_lifelines()
        live = {l.id for l in lifelines}
        messages = self._resolve_messages(live)

        surviving = [m.order for m in messages]
        order_map = {old: new for new, old in enumerate(surviving)}
        messages = [m if m.order == i else replace(m, order=i) for i, m in enumerate(messages)]

        state = DiagramState(
            lifelines=tuple(lifelines),
            messages=tuple(messages),
            activations=tuple(self._resolve_activations(live, surviving)),
            groups=tuple(self._resolve_groups(live)),
        )
        return BumlDiagram(
            state=state,
            activated_blocks_data=MappingProxyType(self._resolve_blocks(live, order_map)),
            activation_mode=self._activation_mode,
            name=self._name,
            created_at=self._created_at,
        )
