"""
buml/files.py

Saving and loading .buml files on disk.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from buml.builder import BumlDiagram
from buml.codec import build_diagram_from_buml, serialize_to_buml
from debug_trace import trace_call, trace_exception
from errors import MalformedInput, SchemaViolation
from settings import get_settings
from utils import sanitize_filename

log = logging.getLogger(__name__)

BUML_EXTENSION = ".buml"


def buml_filename(name: Optional[str]) -> str:
    """File name for a diagram called *name*, e.g. ``"My Flow.buml"``."""
    return sanitize_filename(name) + BUML_EXTENSION


@trace_call("FILE")
def save_buml(
    diagram: BumlDiagram,
    directory: Optional[Union[str, Path]] = None,
    name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Write *diagram* to ``<directory>/<name>.buml``.

    Args:
        diagram: Snapshot to save (see ``SequenceDiagram.snapshot``).
        directory: Target directory; defaults to the workspace directory
            from the settings. Created if missing.
        name: Diagram name; defaults to the diagram's own name.
        now: Timestamp written as ``updatedAt``.

    Returns:
        Path of the written file.
    """
    name = name if name is not None else diagram.name
    target_dir = Path(directory) if directory is not None else get_settings().get_workspace_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / buml_filename(name)
    path.write_text(serialize_to_buml(diagram, name=name, now=now), encoding="utf-8")
    log.info("Saved diagram to %s", path)
    return path


@trace_call("FILE")
def load_buml(path: Union[str, Path]) -> BumlDiagram:
    """Read a .buml file.

    A file without ``metadata.name`` takes its name from the file name.

    Raises:
        OSError: The file cannot be read.
        MalformedInput: The file is not valid JSON.
        SchemaViolation: A mandatory part of the document is missing.
    """
    path = Path(path)
    try:
        diagram = build_diagram_from_buml(path.read_text(encoding="utf-8"))
    except (MalformedInput, SchemaViolation):
        trace_exception(f"Failed to load {path}")
        raise
    if not diagram.name:
        stem = path.name[:-len(BUML_EXTENSION)] if path.name.endswith(BUML_EXTENSION) else path.stem
        diagram = replace(diagram, name=stem)
    log.info("Loaded diagram from %s", path)
    return diagram
