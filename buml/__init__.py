"""
buml package

Snapshot building, .buml serialization and file I/O for sequence diagrams.
"""

from buml.builder import BumlBuilder, BumlDiagram
from buml.director import construct_from_file, construct_from_state
from buml.codec import (
    BUML_VERSION,
    build_diagram_from_buml,
    build_from_document,
    parse_buml_file,
    serialize_to_buml,
)
from buml.files import load_buml, save_buml

__all__ = [
    "BumlBuilder",
    "BumlDiagram",
    "construct_from_file",
    "construct_from_state",
    "BUML_VERSION",
    "build_diagram_from_buml",
    "build_from_document",
    "parse_buml_file",
    "serialize_to_buml",
    "load_buml",
    "save_buml",
]
