"""
Distance measurement between two pipes.

A measurement reports two distances:

- the *specified* distance between the two points the user clicked on
  the pipe surfaces;
- the *closest* distance between the two pipe meshes, found with the
  exact mesh-to-mesh search.

While the user drags from the first pipe, the viewer only needs cheap
previews: the pointer ray is intersected with the level plane through
the start point, or the centerlines are compared segment to segment.
The mesh search is reserved for the final click.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .closest_point import ClosestPointResult, closest_points_on_meshes, closest_points_on_segments
from .coordinates import Segment3
from .cross_section import PipeSolid
from .slicing import add, distance, scale

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

# Preview points farther than this from the start point are discarded.
PREVIEW_MAX_DISTANCE: float = 1000.0


@dataclass(frozen=True)
class MeasurementResult:
    pipe_a: str
    pipe_b: str
    specified: Optional[ClosestPointResult]
    closest: Optional[ClosestPointResult]


@dataclass(frozen=True)
class CenterlinePreview:
    """Centerline-to-centerline distance and the resulting surface gap."""

    centerline: ClosestPointResult
    surface_gap: float


def format_distance_label(value: float) -> str:
    return f"{value:.3f}m"


def measure_pipes(
    pipe_a: PipeSolid,
    pipe_b: PipeSolid,
    point_a: Optional[Vec3] = None,
    point_b: Optional[Vec3] = None,
) -> MeasurementResult:
    """Measure the distance between two different pipes.

    Args:
        pipe_a: First pipe.
        pipe_b: Second pipe.
        point_a: Point clicked on ``pipe_a``, if any.
        point_b: Point clicked on ``pipe_b``, if any.

    Returns:
        MeasurementResult: ``specified`` is ``None`` unless both points
        were given; ``closest`` is ``None`` when either pipe has no
        usable mesh.

    Raises:
        ValueError: If both arguments refer to the same pipe.
    """
    if pipe_a.pipe_id == pipe_b.pipe_id:
        raise ValueError("cannot measure a pipe against itself")

    specified = None
    if point_a is not None and point_b is not None:
        specified = ClosestPointResult(point_a=point_a, point_b=point_b, distance=distance(point_a, point_b))

    closest = None
    if pipe_a.mesh is not None and pipe_b.mesh is not None:
        closest = closest_points_on_meshes(pipe_a.mesh, pipe_b.mesh)
    if closest is None:
        logger.warning("No closest points between %s and %s", pipe_a.pipe_id, pipe_b.pipe_id)
    return MeasurementResult(pipe_a=pipe_a.pipe_id, pipe_b=pipe_b.pipe_id, specified=specified, closest=closest)


def preview_level_point(
    start_point: Vec3,
    ray_origin: Vec3,
    ray_direction: Vec3,
    max_distance: float = PREVIEW_MAX_DISTANCE,
) -> Optional[Vec3]:
    """Intersect the pointer ray with the horizontal plane through ``start_point``.

    Returns ``None`` when the ray is horizontal, points away from the
    plane or hits it at least ``max_distance`` from the start point.
    """
    dy = ray_direction[1]
    if abs(dy) < 1e-12:
        return None
    t = (start_point[1] - ray_origin[1]) / dy
    if t < 0.0:
        return None
    hit = add(ray_origin, scale(ray_direction, t))
    if not all(math.isfinite(c) for c in hit):
        return None
    if distance(start_point, hit) >= max_distance:
        return None
    return hit


def preview_centerline_distance(segment_a: Segment3, segment_b: Segment3) -> CenterlinePreview:
    """Closest points between two centerlines and the surface gap they imply."""
    result = closest_points_on_segments(segment_a.start, segment_a.end, segment_b.start, segment_b.end)
    gap = max(0.0, result.distance - segment_a.radius - segment_b.radius)
    return CenterlinePreview(centerline=result, surface_gap=gap)
