"""
buml/director.py

The two ways a ``BumlDiagram`` gets built: from the live editing model (for
saving) and from a parsed .buml document (for loading). Both go through
``BumlBuilder`` so that the file shape and the live shape can diverge
without duplicating reconstruction logic.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from buml.builder import BumlBuilder, BumlDiagram
from models import Activation, ActivationBlockData, Group, Lifeline, Message
from schemas import normalize_record

log = logging.getLogger(__name__)

T = TypeVar("T")


def construct_from_state(model: Any, builder: Optional[BumlBuilder] = None) -> BumlDiagram:
    """Snapshot a live ``SequenceDiagram`` (or anything exposing the same attributes)."""
    builder = builder or BumlBuilder()
    builder.reset()

    for lifeline in model.lifelines:
        builder.add_lifeline(lifeline)
    for message in model.messages:
        builder.add_message(message)
    for activation in model.activations:
        builder.add_activation(activation)
    for group in model.groups:
        builder.add_group(group)

    builder.set_activated_blocks_data(model.activated_blocks_data)
    builder.set_activation_mode(model.activation_mode)
    builder.set_name(model.name)
    builder.set_created_at(getattr(model, "created_at", None))
    return builder.build()


def _records(items: List[Any], def_name: str, factory: Callable[[Dict[str, Any]], T]) -> List[T]:
    """Convert raw JSON records, skipping any that cannot be read."""
    out: List[T] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            log.warning("Skipping %s #%d: not an object", def_name, index)
            continue
        try:
            out.append(factory(normalize_record(def_name, raw)))
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Skipping %s #%d: %s", def_name, index, e)
    return out


def construct_from_file(doc: Dict[str, Any], builder: Optional[BumlBuilder] = None) -> BumlDiagram:
    """Rebuild a diagram from a document returned by ``parse_buml_file``.

    Optional sections are expected to be defaulted already.
    """
    builder = builder or BumlBuilder()
    builder.reset()
    diagram = doc["diagram"]

    for lifeline in _records(diagram["lifelines"], "lifeline", Lifeline.from_dict):
        builder.add_lifeline(lifeline)
    for message in _records(diagram["messages"], "message", Message.from_dict):
        builder.add_message(message)
    for activation in _records(diagram.get("activations", []), "activation", Activation.from_dict):
        builder.add_activation(activation)
    for group in _records(diagram.get("groups", []), "group", Group.from_dict):
        builder.add_group(group)

    blocks_data = {
        str(k): ActivationBlockData.from_dict(v)
        for k, v in (diagram.get("activatedBlocksData") or {}).items()
    }
    builder.set_activated_blocks_data(blocks_data)
    builder.set_activated_blocks(str(k) for k in diagram.get("activatedBlocks", []))

    mode = diagram.get("activationMode")
    if mode is not None:
        builder.set_activation_mode(mode)

    metadata = doc.get("metadata") or {}
    builder.set_name(metadata.get("name"))
    builder.set_created_at(metadata.get("createdAt"))
    return builder.build()
