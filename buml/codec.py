"""
buml/codec.py

Serialize diagrams to the .buml JSON format and parse them back.

File layout::

    {
      "version": "1.2",
      "_documentation": {...},
      "diagram": {
        "activationMode": "manual" | "auto" | "explicit",
        "lifelines": [...], "messages": [...], "activations": [...],
        "activatedBlocks": ["<lifelineId>-<start>-<end>", ...],
        "activatedBlocksData": {"<key>": {"isActive": true, "text": "..."}},
        "groups": [...]
      },
      "metadata": {"createdAt": "...", "updatedAt": "...", "name": "..."}
    }

Version history:
    1.0  lifelines, messages, activations, activatedBlocks
    1.1  + groups, activatedBlocksData
    1.2  + activationMode

Documents from older versions load with the missing sections defaulted.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from buml.builder import BumlDiagram
from buml.director import construct_from_file
from errors import MalformedInput, SchemaViolation
from models import ActivationBlockData, ActivationMode
from schemas import validate_document_values
from settings import get_settings
from utils import RECORD_KEY_ORDER, sort_record_keys, utc_timestamp

log = logging.getLogger(__name__)

# File format version written by this module
BUML_VERSION = "1.2"

# Optional diagram sections and their container type (called for the default)
OPTIONAL_SECTIONS: Dict[str, type] = {
    "activations": list,
    "activatedBlocks": list,
    "activatedBlocksData": dict,
    "groups": list,
}

# Embedded, human/agent-readable description of the format
BUML_DOCUMENTATION: Dict[str, Any] = {
    "description": (
        "This is a .buml (Builder UML) file representing a sequence diagram. "
        "It describes the interaction between different actors/components (lifelines) "
        "through messages exchanged over time."
    ),
    "structure": {
        "activationMode": (
            'How activation bars are derived: "manual" (toggled blocks in activatedBlocks), '
            '"auto" (inferred from sync/return message pairs, innermost call closed first) '
            'or "explicit" (the activations array).'
        ),
        "lifelines": (
            "Array of actors/components in the diagram. Each lifeline has: "
            "id (unique identifier), name (display label), color (hex color for visual styling), "
            "and order (horizontal position from left to right, 0-indexed)."
        ),
        "messages": (
            "Array of arrows/communications between lifelines. Each message has: "
            "id (unique identifier), fromLifelineId (source actor), toLifelineId (destination actor), "
            "label (method/action name), description (optional details), "
            'type ("sync" for solid arrow requests, "return" for dashed arrow responses), '
            "and order (vertical position representing time sequence, 0-indexed)."
        ),
        "activations": (
            "Array of explicit activation periods: id, lifelineId, startMessageOrder, "
            'endMessageOrder. Used when activationMode is "explicit".'
        ),
        "activatedBlocks": (
            "Array of strings representing active processing periods on lifelines. "
            'Format: "lifelineId-startMessageOrder-endMessageOrder". '
            'Example: "user-0-2" means the user lifeline is active from message 0 to message 2. '
            "These show when a lifeline is actively processing between two consecutive messages."
        ),
        "activatedBlocksData": (
            "Object keyed like activatedBlocks holding {isActive, text} for each block; "
            "text is an optional label shown on the activation bar."
        ),
        "groups": (
            "Array of visual groupings of lifelines: id, name, color (background), "
            "lifelineIds (members; the box spans from the left-most to the right-most member)."
        ),
    },
    "usage": (
        "To recreate this diagram: 1) Create lifelines in order, "
        "2) Draw messages between them following the order sequence, "
        "3) Activate blocks between message pairs as specified, "
        "4) Draw groups around their member lifelines. "
        "The visual layout flows left-to-right for lifelines and top-to-bottom for time/messages."
    ),
}

Toggles = Union[Mapping[str, ActivationBlockData], Iterable[str]]


def _toggles_to_data(toggles: Toggles) -> Dict[str, ActivationBlockData]:
    if isinstance(toggles, Mapping):
        return dict(toggles)
    return {str(k): ActivationBlockData(is_active=True) for k in toggles}


def to_document(
    diagram: BumlDiagram,
    toggles: Optional[Toggles] = None,
    name: Optional[str] = None,
    now: Optional[datetime] = None,
    include_documentation: Optional[bool] = None,
) -> Dict[str, Any]:
    """Build the .buml document dict for *diagram*.

    Args:
        diagram: The snapshot to write.
        toggles: Overrides the diagram's block toggles (a set of active keys
            or a key -> ``ActivationBlockData`` mapping).
        name: Overrides the diagram name.
        now: Timestamp for ``updatedAt`` (and ``createdAt`` of new diagrams).
        include_documentation: Embed ``_documentation``; defaults to the
            ``persistence.include_documentation`` setting.
    """
    if include_documentation is None:
        include_documentation = get_settings().settings.persistence.include_documentation
    blocks = _toggles_to_data(toggles) if toggles is not None else dict(diagram.activated_blocks_data)
    state = diagram.state
    timestamp = utc_timestamp(now)

    doc: Dict[str, Any] = {"version": BUML_VERSION}
    if include_documentation:
        doc["_documentation"] = BUML_DOCUMENTATION
    doc["diagram"] = {
        "activationMode": diagram.activation_mode,
        "lifelines": [sort_record_keys(l.to_dict(), RECORD_KEY_ORDER["lifeline"])
                      for l in state.sorted_lifelines()],
        "messages": [sort_record_keys(m.to_dict(), RECORD_KEY_ORDER["message"])
                     for m in state.sorted_messages()],
        "activations": [sort_record_keys(a.to_dict(), RECORD_KEY_ORDER["activation"])
                        for a in state.activations],
        "activatedBlocks": [k for k, d in blocks.items() if d.is_active],
        "activatedBlocksData": {k: d.to_dict() for k, d in blocks.items()},
        "groups": [sort_record_keys(g.to_dict(), RECORD_KEY_ORDER["group"])
                   for g in state.groups],
    }

    metadata: Dict[str, Any] = {
        "createdAt": diagram.created_at or timestamp,
        "updatedAt": timestamp,
    }
    doc_name = name if name is not None else diagram.name
    if doc_name is not None:
        metadata["name"] = doc_name
    doc["metadata"] = metadata
    return doc


def serialize_to_buml(
    diagram: BumlDiagram,
    toggles: Optional[Toggles] = None,
    name: Optional[str] = None,
    now: Optional[datetime] = None,
    include_documentation: Optional[bool] = None,
) -> str:
    """Serialize *diagram* to .buml text (pretty-printed JSON)."""
    doc = to_document(diagram, toggles, name, now, include_documentation)
    return json.dumps(doc, indent=get_settings().settings.persistence.indent, ensure_ascii=False)


def _infer_activation_mode(diagram: Dict[str, Any]) -> str:
    """Mode for files written before ``activationMode`` existed."""
    if diagram["activations"] and not diagram["activatedBlocks"] and not diagram["activatedBlocksData"]:
        return ActivationMode.EXPLICIT
    return ActivationMode.MANUAL


def _version_tuple(version: str) -> tuple:
    parts = []
    for p in version.split("."):
        if not p.isdigit():
            break
        parts.append(int(p))
    return tuple(parts)


def parse_buml_file(content: Union[str, bytes]) -> Dict[str, Any]:
    """Parse .buml text and check its structure.

    Mandatory parts are ``version`` (string), ``diagram.lifelines`` and
    ``diagram.messages`` (arrays). Everything else is optional and defaulted,
    so files from older versions still load.

    Returns:
        The document dict with every optional section present.

    Raises:
        MalformedInput: The text is not valid JSON.
        SchemaViolation: A mandatory part is missing or has the wrong type.
    """
    try:
        parsed = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedInput(f"Invalid .buml file: malformed JSON ({e})") from e

    if not isinstance(parsed, dict):
        raise SchemaViolation("Invalid .buml file: top level must be an object")

    version = parsed.get("version")
    if not version or not isinstance(version, str):
        raise SchemaViolation("Invalid .buml file: missing or invalid version")

    diagram = parsed.get("diagram")
    if not isinstance(diagram, dict):
        raise SchemaViolation("Invalid .buml file: missing diagram data")
    if not isinstance(diagram.get("lifelines"), list):
        raise SchemaViolation("Invalid .buml file: lifelines must be an array")
    if not isinstance(diagram.get("messages"), list):
        raise SchemaViolation("Invalid .buml file: messages must be an array")

    if _version_tuple(version) > _version_tuple(BUML_VERSION):
        log.warning("File version %s is newer than supported %s; unknown fields are ignored",
                    version, BUML_VERSION)

    for section, default in OPTIONAL_SECTIONS.items():
        if not isinstance(diagram.get(section), default):
            if section in diagram:
                log.warning("Ignoring invalid '%s' section", section)
            diagram[section] = default()

    mode = diagram.get("activationMode")
    if mode not in ActivationMode.ALL:
        if mode is not None:
            log.warning("Unknown activationMode '%s'; inferring from content", mode)
        diagram["activationMode"] = _infer_activation_mode(diagram)

    metadata = parsed.get("metadata")
    if not isinstance(metadata, dict):
        now = utc_timestamp()
        parsed["metadata"] = {"createdAt": now, "updatedAt": now}

    if get_settings().settings.persistence.validate_on_load:
        _, problems = validate_document_values(parsed)
        for problem in problems:
            log.warning("buml: %s", problem)

    return parsed


def build_from_document(doc: Dict[str, Any]) -> BumlDiagram:
    """Reconstruct a diagram from a parsed document (see ``parse_buml_file``)."""
    return construct_from_file(doc)


def build_diagram_from_buml(content: Union[str, bytes]) -> BumlDiagram:
    """Parse .buml text and build the diagram in one step."""
    return build_from_document(parse_buml_file(content))
