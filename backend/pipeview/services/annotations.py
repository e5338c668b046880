"""
Depth grid and leader annotations for the cross-section view.

The cross-section view shows a horizontal depth grid lying on the
cutting plane (one line per metre from grade down to a floor depth,
labelled every ten metres) and, for every pipe cut by the plane, a
vertical leader from grade down to the top of the pipe with its depth
printed at the leader midpoint.  This module computes the geometry and
label text; drawing is left to the viewer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from .slicing import CuttingPlane, add, scale

if TYPE_CHECKING:
    from .cross_section import CrossSectionEntry

Vec3 = Tuple[float, float, float]

GRID_FLOOR_DEPTH: float = -50.0
GRID_STEP: float = 1.0
GRID_LINE_LENGTH: float = 1000.0
GRID_LABEL_EVERY: float = 10.0
# Grid labels sit this far along the plane tangent from the grid center.
GRID_LABEL_OFFSET: float = -5.0

LABEL_BASE_DISTANCE: float = 20.0
LABEL_BASE_SCALE: float = 2.0
LABEL_MIN_SCALE: float = 0.5
LABEL_MAX_SCALE: float = 5.0
LABEL_ASPECT: float = 0.25


@dataclass(frozen=True)
class DepthLabel:
    text: str
    anchor: Vec3


@dataclass(frozen=True)
class LeaderLine:
    """Vertical line from grade down to the top of a pipe.

    Attributes:
        pipe_id: Pipe the leader belongs to.
        start: Point at grade (elevation 0) above the intersection.
        end: Point at the top of the pipe.
        top_elevation: Elevation of the top of the pipe (centerline
            elevation plus radius).
        label: Depth label anchored at the leader midpoint.
    """

    pipe_id: str
    start: Vec3
    end: Vec3
    top_elevation: float
    label: DepthLabel


@dataclass(frozen=True)
class GridAnnotation:
    """One horizontal grid line of the depth grid."""

    depth: float
    start: Vec3
    end: Vec3
    anchor: Vec3
    label: Optional[str] = None
    pipe_ids: Tuple[str, ...] = field(default_factory=tuple)


def format_depth_label(value: float) -> str:
    """Format a depth or elevation as positive metres with millimetre precision."""
    return f"{abs(value):.3f}m"


def leader_label(leader: LeaderLine) -> DepthLabel:
    """Label for ``leader``: the top-of-pipe depth at the leader midpoint."""
    mid = (
        (leader.start[0] + leader.end[0]) / 2.0,
        (leader.start[1] + leader.end[1]) / 2.0,
        (leader.start[2] + leader.end[2]) / 2.0,
    )
    return DepthLabel(text=format_depth_label(leader.top_elevation), anchor=mid)


def make_leader_line(pipe_id: str, intersection: Vec3, radius: float) -> LeaderLine:
    """Build the leader for a centerline intersection point."""
    top = intersection[1] + radius
    start = (intersection[0], 0.0, intersection[2])
    end = (intersection[0], top, intersection[2])
    mid = (intersection[0], top / 2.0, intersection[2])
    return LeaderLine(
        pipe_id=pipe_id,
        start=start,
        end=end,
        top_elevation=top,
        label=DepthLabel(text=format_depth_label(top), anchor=mid),
    )


def label_scale(
    distance: float,
    base_distance: float = LABEL_BASE_DISTANCE,
    base_scale: float = LABEL_BASE_SCALE,
    min_scale: float = LABEL_MIN_SCALE,
    max_scale: float = LABEL_MAX_SCALE,
) -> Tuple[float, float]:
    """Screen-space scale of a label seen from ``distance`` metres.

    Returns:
        ``(sx, sy)`` where ``sx`` grows linearly with distance and is
        clamped to ``[min_scale, max_scale]``; ``sy`` keeps the 4:1
        label aspect.
    """
    sx = distance / base_distance * base_scale
    sx = max(min_scale, min(max_scale, sx))
    return sx, sx * LABEL_ASPECT


def grid_depths(floor_depth: float = GRID_FLOOR_DEPTH, step: float = GRID_STEP) -> List[float]:
    """Depths from grade (0) down to ``floor_depth`` inclusive, ``step`` apart."""
    if step <= 0:
        raise ValueError("grid step must be positive")
    count = int(math.floor(abs(floor_depth) / step + 1e-9))
    return [-(i * step) for i in range(count + 1)]


def _is_labelled(depth: float) -> bool:
    ratio = abs(depth) / GRID_LABEL_EVERY
    return math.isclose(ratio, round(ratio), abs_tol=1e-9)


def _leader_reaches(leader: LeaderLine, depth: float) -> bool:
    low = min(0.0, leader.top_elevation)
    high = max(0.0, leader.top_elevation)
    return low - 1e-9 <= depth <= high + 1e-9


def build_grid(
    plane: CuttingPlane,
    center: Vec3,
    floor_depth: float = GRID_FLOOR_DEPTH,
    step: float = GRID_STEP,
    entries: Iterable["CrossSectionEntry"] = (),
) -> List[GridAnnotation]:
    """Lay out the depth grid on ``plane``.

    Args:
        plane: The cutting plane; lines run along its tangent.
        center: Grid center; only its horizontal position is used.
        floor_depth: Deepest grid line (negative metres).
        step: Spacing between lines.
        entries: Cross-section entries whose leaders are matched
            against each grid depth.

    Returns:
        One :class:`GridAnnotation` per depth, shallowest first.
    """
    leaders = [entry.leader for entry in entries]
    half = GRID_LINE_LENGTH / 2.0
    grid: List[GridAnnotation] = []
    for depth in grid_depths(floor_depth, step):
        mid = (center[0], depth, center[2])
        labelled = _is_labelled(depth)
        grid.append(
            GridAnnotation(
                depth=depth,
                start=add(mid, scale(plane.tangent, -half)),
                end=add(mid, scale(plane.tangent, half)),
                anchor=add(mid, scale(plane.tangent, GRID_LABEL_OFFSET)),
                label=format_depth_label(depth) if labelled else None,
                pipe_ids=tuple(lead.pipe_id for lead in leaders if _leader_reaches(lead, depth)),
            )
        )
    return grid
