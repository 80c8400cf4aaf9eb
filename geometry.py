"""
geometry.py

Pure layout functions mapping lifeline/message ranks to canvas coordinates.

Nothing here keeps state; derived visuals are recomputed on every mutation,
so identical inputs must always give identical outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from models import DiagramState, Lifeline
from settings import LayoutSettings, get_settings


@dataclass(frozen=True)
class ArrowGeometry:
    """Endpoints of a message arrow after the activation-bar inset."""
    x1: float
    x2: float
    y: float
    left_to_right: bool

    @property
    def mid_x(self) -> float:
        return (self.x1 + self.x2) / 2


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CanvasSize:
    width: float
    height: float


@dataclass(frozen=True)
class Layout:
    """Concrete positions for everything the renderer draws.

    Attributes:
        lifeline_x: Lifeline id -> horizontal center of its lifeline.
        message_y: Message id -> vertical position of its arrow.
        arrows: Message id -> arrow geometry (only messages whose lifelines exist).
        canvas: Overall canvas extents.
    """
    lifeline_x: Dict[str, float] = field(default_factory=dict)
    message_y: Dict[str, float] = field(default_factory=dict)
    arrows: Dict[str, ArrowGeometry] = field(default_factory=dict)
    canvas: CanvasSize = CanvasSize(0.0, 0.0)


def _layout_or_default(layout: Optional[LayoutSettings]) -> LayoutSettings:
    return layout if layout is not None else get_settings().settings.layout


def lifeline_x(lifeline: Lifeline, spacing: float, header_width: float, start_x: float) -> float:
    """Horizontal center of a lifeline."""
    return start_x + lifeline.order * spacing + header_width / 2


def message_y(order: int, start_y: float, header_height: float,
              message_spacing: float, top_margin: float) -> float:
    """Vertical position of the message at *order*."""
    return start_y + header_height + top_margin + order * message_spacing


def canvas_width(lifeline_count: int, start_x: float, spacing: float,
                 margin: float, min_width: float) -> float:
    return max(min_width, start_x + lifeline_count * spacing + margin)


def canvas_height(message_count: int, start_y: float, header_height: float,
                  message_spacing: float, top_gap: float, bottom_margin: float,
                  min_height: float) -> float:
    """Canvas height, leaving one spare message row below the last message."""
    return max(
        min_height,
        start_y + header_height + top_gap + (message_count + 1) * message_spacing + bottom_margin,
    )


def arrow_endpoints(from_x: float, to_x: float, activation_width: float) -> Tuple[float, float, bool]:
    """Inset arrow endpoints by half an activation bar in the direction of travel.

    A self-message (``from_x == to_x``) is a zero-width arrow, left to right,
    with no inset.

    Returns:
        ``(adjusted_from_x, adjusted_to_x, left_to_right)``
    """
    if from_x == to_x:
        return from_x, to_x, True
    left_to_right = from_x < to_x
    half = activation_width / 2
    if left_to_right:
        return from_x + half, to_x - half, True
    return from_x - half, to_x + half, False


# ─────────────────────────────────────────────────────────
# Settings-driven helpers
# ─────────────────────────────────────────────────────────

def get_lifeline_x(lifeline: Lifeline, layout: Optional[LayoutSettings] = None) -> float:
    ll = _layout_or_default(layout).lifeline
    return lifeline_x(lifeline, ll.spacing, ll.header_width, ll.start_x)


def get_message_y(order: int, layout: Optional[LayoutSettings] = None) -> float:
    lay = _layout_or_default(layout)
    return message_y(order, lay.lifeline.start_y, lay.lifeline.header_height,
                     lay.message.spacing, lay.message.top_margin)


def compute_canvas_size(lifeline_count: int, message_count: int,
                        layout: Optional[LayoutSettings] = None) -> CanvasSize:
    lay = _layout_or_default(layout)
    ll, cv = lay.lifeline, lay.canvas
    return CanvasSize(
        width=canvas_width(lifeline_count, ll.start_x, ll.spacing, cv.width_margin, cv.min_width),
        height=canvas_height(message_count, ll.start_y, ll.header_height, lay.message.spacing,
                             cv.height_top_gap, cv.bottom_margin, cv.min_height),
    )


def activation_bar_rect(lifeline: Lifeline, start_order: int, end_order: int,
                        layout: Optional[LayoutSettings] = None) -> Rect:
    """Rectangle of an activation bar centred on the lifeline.

    Bars spanning a single message still get the minimum visible height.
    """
    lay = _layout_or_default(layout)
    width = lay.activation.width
    top = get_message_y(start_order, lay)
    bottom = get_message_y(end_order, lay)
    return Rect(
        x=get_lifeline_x(lifeline, lay) - width / 2,
        y=top,
        width=width,
        height=max(bottom - top, lay.activation.min_height),
    )


def lifeline_line(lifeline: Lifeline, canvas: CanvasSize,
                  layout: Optional[LayoutSettings] = None) -> Tuple[float, float, float]:
    """Dashed lifeline below the header as ``(x, y_top, y_bottom)``."""
    lay = _layout_or_default(layout)
    x = get_lifeline_x(lifeline, lay)
    return x, lay.lifeline.start_y + lay.lifeline.header_height, canvas.height - lay.canvas.lifeline_bottom_inset


def compute_layout(state: DiagramState, layout: Optional[LayoutSettings] = None) -> Layout:
    """Compute positions for every lifeline and message in *state*.

    Messages whose endpoints do not resolve to a lifeline are left out of
    ``arrows`` (they are never rendered) but still occupy their row.
    """
    lay = _layout_or_default(layout)
    xs = {l.id: get_lifeline_x(l, lay) for l in state.lifelines}
    ys: Dict[str, float] = {}
    arrows: Dict[str, ArrowGeometry] = {}

    for m in state.messages:
        y = get_message_y(m.order, lay)
        ys[m.id] = y
        if m.from_lifeline_id not in xs or m.to_lifeline_id not in xs:
            continue
        x1, x2, ltr = arrow_endpoints(xs[m.from_lifeline_id], xs[m.to_lifeline_id],
                                      lay.activation.width)
        arrows[m.id] = ArrowGeometry(x1=x1, x2=x2, y=y, left_to_right=ltr)

    return Layout(
        lifeline_x=xs,
        message_y=ys,
        arrows=arrows,
        canvas=compute_canvas_size(len(state.lifelines), len(state.messages), lay),
    )
