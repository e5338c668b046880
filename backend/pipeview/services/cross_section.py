"""
Cross sections of the pipe network against a vertical cutting plane.

Given the pipe the user clicked, a cutting plane through the clicked
point and the full set of pipe solids, ``compute_cross_section``
decides which pipes the plane cuts, where their centerlines meet it and
what their section outline looks like.  Pipes are found in three
passes:

1. the clicked pipe is always included.  Its centerline is intersected
   with the plane without restricting ``t`` to the segment;
2. the plane pass accepts every other pipe whose centerline crosses the
   plane within the segment;
3. the depth pass walks the grid depths and accepts pipes whose
   centerline crosses a grid depth within one radius of the plane.

A pipe appears at most once.  For every accepted pipe the injected
boolean kernel clips the pipe mesh with a thin slab lying on the plane.
The outline is sliced directly from the pipe mesh; when slicing yields
no closed loop the analytic ellipse of the cylinder is used instead.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .annotations import (
    GRID_FLOOR_DEPTH,
    GRID_STEP,
    GridAnnotation,
    LeaderLine,
    build_grid,
    grid_depths,
    make_leader_line,
)
from .boolean import BooleanKernel, make_slab_mesh
from .coordinates import Segment3
from .pipe_mesh import SolidMesh, build_pipe_mesh
from .slicing import (
    PARALLEL_EPS,
    CuttingPlane,
    add,
    compute_section_loop,
    cross,
    dot,
    intersect_line_with_level,
    intersect_line_with_plane,
    norm,
    normalize,
    scale,
    signed_distance_to_plane,
)

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

# Number of points used for the analytic outline fallback.
OUTLINE_SEGMENTS: int = 32

SOURCE_CLICKED = "clicked"
SOURCE_PLANE = "plane"
SOURCE_DEPTH = "depth"


@dataclass(frozen=True)
class PipeSolid:
    """A pipe as seen by the cross-section computer."""

    pipe_id: str
    segment: Segment3
    mesh: Optional[SolidMesh]


def make_pipe_solid(pipe_id: str, segment: Segment3) -> PipeSolid:
    return PipeSolid(pipe_id=pipe_id, segment=segment, mesh=build_pipe_mesh(segment))


@dataclass
class CrossSectionEntry:
    """One pipe cut by the plane.

    Attributes:
        pipe_id: Identifier of the pipe.
        intersection: Centerline point on (or snapped onto) the plane.
        t: Centerline parameter of ``intersection``.
        source: ``"clicked"``, ``"plane"`` or ``"depth"``.
        radius: Effective pipe radius.
        solid: Solid returned by the boolean kernel, ``None`` when no
            kernel was supplied or the kernel failed.
        outline: Section outline as a closed loop of 3D points on the
            plane, or ``None`` when the pipe runs parallel to the plane.
        leader: Leader line from grade to top of pipe.
    """

    pipe_id: str
    intersection: Vec3
    t: float
    source: str
    radius: float
    solid: Optional[SolidMesh]
    outline: Optional[List[Vec3]]
    leader: LeaderLine


@dataclass
class CrossSectionResult:
    plane: CuttingPlane
    center: Vec3
    entries: List[CrossSectionEntry] = field(default_factory=list)
    grid: List[GridAnnotation] = field(default_factory=list)

    def entry_for(self, pipe_id: str) -> Optional[CrossSectionEntry]:
        for entry in self.entries:
            if entry.pipe_id == pipe_id:
                return entry
        return None


def ellipse_outline(
    center: Vec3,
    axis: Vec3,
    radius: float,
    plane: CuttingPlane,
    segments: int = OUTLINE_SEGMENTS,
) -> Optional[List[Vec3]]:
    """Analytic section of an infinite cylinder with ``plane``.

    The minor semi-axis equals ``radius`` and lies perpendicular to the
    pipe axis; the major semi-axis is ``radius / |cos θ|`` where ``θ``
    is the angle between the axis and the plane normal.  Returns
    ``None`` when the axis is parallel to the plane.
    """
    axis = normalize(axis)
    cos_theta = dot(axis, plane.normal)
    if abs(cos_theta) < PARALLEL_EPS:
        return None
    minor_dir = cross(axis, plane.normal)
    if norm(minor_dir) < 1e-9:
        # Axis along the normal: the section is a circle
        minor_dir = plane.tangent
    minor_dir = normalize(minor_dir)
    major_dir = normalize(cross(plane.normal, minor_dir))
    major = radius / abs(cos_theta)
    points: List[Vec3] = []
    for k in range(segments):
        angle = 2.0 * math.pi * k / segments
        offset = add(scale(major_dir, major * math.cos(angle)), scale(minor_dir, radius * math.sin(angle)))
        points.append(add(center, offset))
    return points


def _plane_contains_extent(segment: Segment3, plane: CuttingPlane) -> bool:
    d0 = signed_distance_to_plane(segment.start, plane)
    d1 = signed_distance_to_plane(segment.end, plane)
    return min(d0, d1) - segment.radius <= 0.0 <= max(d0, d1) + segment.radius


def _plane_hit(segment: Segment3, plane: CuttingPlane) -> Optional[Tuple[Vec3, float]]:
    if not _plane_contains_extent(segment, plane):
        return None
    point, t, parallel = intersect_line_with_plane(segment.start, segment.end, plane)
    if parallel or t < 0.0 or t > 1.0:
        return None
    return point, t


def _depth_hit(segment: Segment3, plane: CuttingPlane, depths: Sequence[float]) -> Optional[Tuple[Vec3, float]]:
    if not _plane_contains_extent(segment, plane):
        return None
    low = min(segment.start[1], segment.end[1]) - segment.radius
    high = max(segment.start[1], segment.end[1]) + segment.radius
    for depth in depths:
        if depth < low or depth > high:
            continue
        hit = intersect_line_with_level(segment.start, segment.end, depth)
        if hit is None:
            continue
        point, t = hit
        if t < 0.0 or t > 1.0:
            continue
        if abs(signed_distance_to_plane(point, plane)) > segment.radius:
            continue
        return point, t
    return None


def _section_outline(solid: PipeSolid, intersection: Vec3, plane: CuttingPlane) -> Optional[List[Vec3]]:
    if solid.mesh is not None:
        loop = compute_section_loop(solid.mesh, plane)
        if loop is not None:
            return loop.points_3d
    return ellipse_outline(intersection, solid.segment.direction, solid.segment.radius, plane)


def _clip_solid(
    solid: PipeSolid,
    slab: Optional[SolidMesh],
    kernel: Optional[BooleanKernel],
) -> Optional[SolidMesh]:
    if kernel is None or slab is None or solid.mesh is None:
        return None
    try:
        return kernel.intersect(solid.mesh, slab)
    except Exception as exc:
        logger.warning("Boolean intersection failed for pipe %s: %s", solid.pipe_id, exc)
        return None


def _make_entry(
    solid: PipeSolid,
    point: Vec3,
    t: float,
    source: str,
    plane: CuttingPlane,
    slab: Optional[SolidMesh],
    kernel: Optional[BooleanKernel],
) -> CrossSectionEntry:
    return CrossSectionEntry(
        pipe_id=solid.pipe_id,
        intersection=point,
        t=t,
        source=source,
        radius=solid.segment.radius,
        solid=_clip_solid(solid, slab, kernel),
        outline=_section_outline(solid, point, plane),
        leader=make_leader_line(solid.pipe_id, point, solid.segment.radius),
    )


def compute_cross_section(
    clicked: PipeSolid,
    plane: CuttingPlane,
    all_solids: Sequence[PipeSolid],
    kernel: Optional[BooleanKernel] = None,
    floor_depth: float = GRID_FLOOR_DEPTH,
    step: float = GRID_STEP,
) -> CrossSectionResult:
    """Compute the cross section of the pipe network at ``plane``.

    Args:
        clicked: The pipe the user clicked.  Always part of the result
            when its geometry is finite.
        plane: Vertical cutting plane through the clicked point.
        all_solids: Every pipe in the scene.  ``clicked`` may be part of
            this sequence; it is not reported twice.
        kernel: Boolean kernel used to clip pipe meshes with the slab.
            When ``None`` the entries carry ``solid=None``.
        floor_depth: Deepest grid depth searched by the depth pass and
            laid out by the grid.
        step: Grid spacing.

    Returns:
        A fresh :class:`CrossSectionResult`; nothing is retained between
        calls.
    """
    debug = bool(os.getenv("PIPEVIEW_DEBUG"))
    slab = make_slab_mesh(plane) if kernel is not None else None
    entries: Dict[str, CrossSectionEntry] = {}
    center: Vec3 = (plane.anchor[0], 0.0, plane.anchor[2])

    if clicked.segment.is_finite():
        point, t, parallel = intersect_line_with_plane(clicked.segment.start, clicked.segment.end, plane)
        if parallel:
            logger.debug("Clicked pipe %s runs parallel to the plane; start point snapped", clicked.pipe_id)
        entries[clicked.pipe_id] = _make_entry(clicked, point, t, SOURCE_CLICKED, plane, slab, kernel)
        center = (point[0], 0.0, point[2])
    else:
        logger.warning("Clicked pipe %s has non-finite geometry; skipped", clicked.pipe_id)

    others = [s for s in all_solids if s.pipe_id not in entries]
    finite = []
    for solid in others:
        if not solid.segment.is_finite():
            logger.warning("Pipe %s has non-finite geometry; skipped", solid.pipe_id)
            continue
        finite.append(solid)

    for solid in finite:
        hit = _plane_hit(solid.segment, plane)
        if hit is None or solid.pipe_id in entries:
            continue
        entries[solid.pipe_id] = _make_entry(solid, hit[0], hit[1], SOURCE_PLANE, plane, slab, kernel)

    depths = grid_depths(floor_depth, step)
    for solid in finite:
        if solid.pipe_id in entries:
            continue
        hit = _depth_hit(solid.segment, plane, depths)
        if hit is None:
            continue
        entries[solid.pipe_id] = _make_entry(solid, hit[0], hit[1], SOURCE_DEPTH, plane, slab, kernel)

    result = CrossSectionResult(plane=plane, center=center, entries=list(entries.values()))
    result.grid = build_grid(plane, center, floor_depth, step, result.entries)
    if debug:
        logger.debug(
            "compute_cross_section: clicked=%s anchor=%s rotation=%s entries=%d",
            clicked.pipe_id,
            plane.anchor,
            plane.rotation_degrees,
            len(result.entries),
        )
    return result
