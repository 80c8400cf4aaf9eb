"""
errors.py

Exception types raised by the diagram model and the .buml codec.
"""

from __future__ import annotations


class BumlError(Exception):
    """Base class for all diagram and .buml errors."""


class MalformedInput(BumlError, ValueError):
    """The .buml text is not valid JSON."""


class SchemaViolation(BumlError, ValueError):
    """A mandatory part of the .buml document is missing or has the wrong type."""


class DanglingReference(BumlError):
    """A record references a lifeline or message that does not exist.

    Never raised to callers: the builder records these and drops the
    offending reference so that hand-edited files remain loadable.

    Args:
        kind: What holds the reference (``"message"``, ``"group"``, ...).
        owner_id: Id of the record holding the reference.
        ref_id: The id that could not be resolved.
    """

    def __init__(self, kind: str, owner_id: str, ref_id: str):
        super().__init__(f"{kind} '{owner_id}' references unknown id '{ref_id}'")
        self.kind = kind
        self.owner_id = owner_id
        self.ref_id = ref_id


class NotFound(BumlError, LookupError):
    """A mutator was given an id that is not in the diagram."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} '{item_id}' not found")
        self.kind = kind
        self.item_id = item_id
