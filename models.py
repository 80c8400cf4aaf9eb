"""
models.py

Data models and constants for sequence diagrams.

All records are frozen dataclasses: the diagram model replaces them instead
of mutating them, so snapshots handed out by the builder stay immutable.
Dict conversion uses the camelCase keys of the .buml file format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple


# ----------------------------
# Enumerations
# ----------------------------

class MessageType:
    """Message kind constants."""
    SYNC = "sync"
    RETURN = "return"

    ALL = (SYNC, RETURN)


class ActivationMode:
    """How a diagram derives its activation bars.

    MANUAL   - user toggles blocks between consecutive touching messages
    AUTO     - bars are inferred from sync/return pairing (stack semantics)
    EXPLICIT - bars come from the stored ``activations`` list
    """
    MANUAL = "manual"
    AUTO = "auto"
    EXPLICIT = "explicit"

    ALL = (MANUAL, AUTO, EXPLICIT)


# Default message labels per type
DEFAULT_MESSAGE_LABELS: Dict[str, str] = {
    MessageType.SYNC: "request()",
    MessageType.RETURN: "response",
}

DEFAULT_COLORS: Tuple[str, ...] = (
    "#3B82F6",  # Blue
    "#10B981",  # Emerald
    "#F59E0B",  # Amber
    "#EF4444",  # Red
    "#8B5CF6",  # Violet
    "#EC4899",  # Pink
    "#14B8A6",  # Teal
    "#6366F1",  # Indigo
)

# Lighter variants used as group backgrounds
DEFAULT_GROUP_COLORS: Tuple[str, ...] = (
    "#DBEAFE",  # Light Blue
    "#D1FAE5",  # Light Emerald
    "#FEF3C7",  # Light Amber
    "#FEE2E2",  # Light Red
    "#EDE9FE",  # Light Violet
    "#FCE7F3",  # Light Pink
    "#CCFBF1",  # Light Teal
    "#E0E7FF",  # Light Indigo
)


def _as_int(value: Any, fallback: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


# ----------------------------
# Records
# ----------------------------

@dataclass(frozen=True)
class Lifeline:
    """An actor/component positioned left to right by ``order``."""
    id: str
    name: str
    color: str
    order: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Lifeline":
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            color=str(d.get("color", DEFAULT_COLORS[0])),
            order=_as_int(d.get("order")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color, "order": self.order}


@dataclass(frozen=True)
class Message:
    """A horizontal arrow between two lifelines, positioned top to bottom by ``order``.

    ``description`` is an optional free-text note shown below the arrow.
    Self-messages (``from_lifeline_id == to_lifeline_id``) are allowed.
    """
    id: str
    from_lifeline_id: str
    to_lifeline_id: str
    label: str
    type: str
    order: int
    description: Optional[str] = None

    @property
    def is_self_message(self) -> bool:
        return self.from_lifeline_id == self.to_lifeline_id

    def touches(self, lifeline_id: str) -> bool:
        """Return True if the message starts or ends on *lifeline_id*."""
        return self.from_lifeline_id == lifeline_id or self.to_lifeline_id == lifeline_id

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        msg_type = d.get("type", MessageType.SYNC)
        if msg_type not in MessageType.ALL:
            msg_type = MessageType.SYNC
        description = d.get("description")
        return cls(
            id=str(d["id"]),
            from_lifeline_id=str(d["fromLifelineId"]),
            to_lifeline_id=str(d["toLifelineId"]),
            label=str(d.get("label", DEFAULT_MESSAGE_LABELS[msg_type])),
            type=msg_type,
            order=_as_int(d.get("order")),
            description=str(description) if description else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "fromLifelineId": self.from_lifeline_id,
            "toLifelineId": self.to_lifeline_id,
            "label": self.label,
        }
        if self.description:
            d["description"] = self.description
        d["type"] = self.type
        d["order"] = self.order
        return d


@dataclass(frozen=True)
class Activation:
    """An explicit activation period on a lifeline."""
    id: str
    lifeline_id: str
    start_message_order: int
    end_message_order: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Activation":
        start = _as_int(d.get("startMessageOrder"))
        end = _as_int(d.get("endMessageOrder"), start)
        if end < start:
            start, end = end, start
        return cls(
            id=str(d["id"]),
            lifeline_id=str(d["lifelineId"]),
            start_message_order=start,
            end_message_order=end,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lifelineId": self.lifeline_id,
            "startMessageOrder": self.start_message_order,
            "endMessageOrder": self.end_message_order,
        }


@dataclass(frozen=True)
class ActivationBlockData:
    """Toggle state for an activation block, with an optional text label."""
    is_active: bool = True
    text: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ActivationBlockData":
        if not isinstance(d, dict):
            return cls()
        text = d.get("text")
        return cls(is_active=bool(d.get("isActive", True)), text=str(text) if text else None)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"isActive": self.is_active}
        if self.text:
            d["text"] = self.text
        return d


@dataclass(frozen=True)
class Group:
    """A named visual bracket around a set of lifelines."""
    id: str
    name: str
    color: str
    lifeline_ids: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Group":
        ids = d.get("lifelineIds") or []
        if not isinstance(ids, list):
            ids = []
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            color=str(d.get("color", DEFAULT_GROUP_COLORS[0])),
            lifeline_ids=unique_ids(str(i) for i in ids),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "lifelineIds": list(self.lifeline_ids),
        }


def unique_ids(ids: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate ids while keeping first-seen order."""
    seen = set()
    out = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return tuple(out)


# ----------------------------
# Aggregate state
# ----------------------------

@dataclass(frozen=True)
class DiagramState:
    """Ordered lifelines, messages, explicit activations and groups."""
    lifelines: Tuple[Lifeline, ...] = ()
    messages: Tuple[Message, ...] = ()
    activations: Tuple[Activation, ...] = ()
    groups: Tuple[Group, ...] = ()

    def lifeline_ids(self) -> set:
        return {l.id for l in self.lifelines}

    def sorted_lifelines(self) -> Tuple[Lifeline, ...]:
        return tuple(sorted(self.lifelines, key=lambda l: l.order))

    def sorted_messages(self) -> Tuple[Message, ...]:
        return tuple(sorted(self.messages, key=lambda m: m.order))
