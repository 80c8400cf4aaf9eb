"""
group_bounds.py

Bounding boxes for lifeline groups.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from models import DiagramState, Group, Lifeline
from settings import LayoutSettings, get_settings


@dataclass(frozen=True)
class GroupBounds:
    x: float
    y: float
    width: float
    height: float


def calculate_group_bounds(
    group: Group,
    lifelines: Iterable[Lifeline],
    canvas_height: float,
    layout: Optional[LayoutSettings] = None,
) -> Optional[GroupBounds]:
    """Calculate the box enclosing every lifeline of *group*.

    The box spans the min..max lifeline order of the members, so gaps
    between non-adjacent members are absorbed.

    Args:
        group: The group to measure.
        lifelines: All lifelines currently in the diagram.
        canvas_height: Height of the canvas; the box runs to its bottom.
        layout: Layout constants (defaults to the user settings).

    Returns:
        The bounds, or ``None`` when no member resolves to a live lifeline
        (the group is not rendered).
    """
    lay = layout if layout is not None else get_settings().settings.layout
    member_ids = set(group.lifeline_ids)
    orders = sorted(l.order for l in lifelines if l.id in member_ids)
    if not orders:
        return None

    min_order, max_order = orders[0], orders[-1]
    ll, grp = lay.lifeline, lay.group

    x = ll.start_x + min_order * ll.spacing - grp.padding
    y = ll.start_y - grp.header_height - grp.padding / 2
    width = (max_order - min_order + 1) * ll.spacing - ll.spacing + ll.header_width + grp.padding * 2
    height = canvas_height - y - grp.padding

    return GroupBounds(x=x, y=y, width=max(width, 0.0), height=max(height, 0.0))


def compute_all_group_bounds(
    state: DiagramState,
    canvas_height: float,
    layout: Optional[LayoutSettings] = None,
) -> Dict[str, GroupBounds]:
    """Bounds of every renderable group keyed by group id; inert groups are skipped."""
    result: Dict[str, GroupBounds] = {}
    for group in state.groups:
        bounds = calculate_group_bounds(group, state.lifelines, canvas_height, layout)
        if bounds is not None:
            result[group.id] = bounds
    return result
