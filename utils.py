"""
utils.py

Utility functions shared by the diagram model and the .buml codec.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

# Characters not allowed in file names on common platforms
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6}|[0-9A-Fa-f]{8}|[0-9A-Fa-f]{3})$")


def sanitize_filename(name: Optional[str], fallback: str = "diagram") -> str:
    """
    Make a diagram name safe to use as a file name.

    Replaces ``<>:"/\\|?*`` with ``_`` and strips surrounding whitespace.

    Args:
        name: The diagram name
        fallback: Name to use when nothing usable remains

    Returns:
        The sanitized name (without extension)
    """
    cleaned = _INVALID_FILENAME_CHARS.sub("_", name or "").strip()
    return cleaned or fallback


def normalize_hex_color(s: Optional[str], fallback: str) -> str:
    """
    Normalize a hex color string to ``#RRGGBB`` (or ``#RRGGBBAA``).

    Accepts the short ``#RGB`` form and a missing leading ``#``.

    Args:
        s: Hex string like "#RRGGBB", "RRGGBB" or "#RGB"
        fallback: Color to return if parsing fails

    Returns:
        Upper-case hex color or fallback
    """
    if not s:
        return fallback
    match = _HEX_RE.match(s.strip())
    if not match:
        return fallback
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return "#" + digits.upper()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """
    Format a timestamp as ISO 8601 UTC with millisecond precision.

    Example: ``2024-05-01T12:30:00.000Z``
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


# Canonical key order per .buml record type
RECORD_KEY_ORDER: Dict[str, List[str]] = {
    "lifeline": ["id", "name", "color", "order"],
    "message": ["id", "fromLifelineId", "toLifelineId", "label", "description", "type", "order"],
    "activation": ["id", "lifelineId", "startMessageOrder", "endMessageOrder"],
    "group": ["id", "name", "color", "lifelineIds"],
}


def sort_record_keys(rec: dict, key_order: Sequence[str]) -> dict:
    """
    Sort record keys in canonical order.

    Any keys not in *key_order* are appended at the end in their original
    order.

    Args:
        rec: The record dict
        key_order: Preferred key order

    Returns:
        New dict with keys sorted in canonical order
    """
    result = {}
    for key in key_order:
        if key in rec:
            result[key] = rec[key]
    for key in rec:
        if key not in result:
            result[key] = rec[key]
    return result
