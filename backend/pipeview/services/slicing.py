"""
Cutting planes and mesh–plane slicing.

This module provides a pure‑Python representation of the vertical
cutting plane used for cross sections, together with the low level
helpers needed to intersect centerlines and triangle meshes with it.
A ``CuttingPlane`` is defined by an anchor point and a rotation about
the vertical (y) axis.  The plane always contains the vertical axis,
so its normal never has a vertical component.  With a rotation of
zero the normal is ``(0, 0, 1)`` and the plane is ``z = anchor.z``;
positive rotations turn the normal towards ``+x``.

Besides the plane itself the module offers:

- small tuple based vector helpers (``dot``, ``sub``, ``add`` …);
- parametric intersection of a centerline with the plane or with a
  horizontal level (a grid depth);
- triangle/mesh intersection producing ``SliceSegment`` objects;
- loop construction from those segments, projected into the plane's
  own ``(u, v)`` coordinates where ``u`` runs along the horizontal
  tangent and ``v`` is the elevation.

Debug logging can be enabled via the ``PIPEVIEW_DEBUG`` environment
variable.
"""

from __future__ import annotations

import os
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .pipe_mesh import SolidMesh

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

# Below this magnitude a centerline direction is considered parallel to
# the plane (or level) it is intersected with.
PARALLEL_EPS: float = 0.001


@dataclass(frozen=True)
class CuttingPlane:
    """Vertical cutting plane.

    Attributes:
        anchor: A point on the plane (usually the clicked point).
        rotation_degrees: Rotation of the plane about the vertical axis.
        normal: Unit normal, ``(sin a, 0, cos a)``.
        tangent: Unit horizontal direction lying in the plane,
            ``(cos a, 0, -sin a)``.
    """

    anchor: Vec3
    rotation_degrees: float
    normal: Vec3
    tangent: Vec3


def make_cutting_plane(anchor: Iterable[float], rotation_degrees: float = 0.0) -> CuttingPlane:
    """Construct a :class:`CuttingPlane` from an anchor and a rotation.

    Args:
        anchor: Any point on the plane as an ``(x, y, z)`` sequence.
        rotation_degrees: Rotation about the vertical axis in degrees.

    Returns:
        CuttingPlane: The plane with derived normal and tangent.
    """
    ax, ay, az = (float(c) for c in anchor)
    angle = math.radians(float(rotation_degrees))
    sin_a = math.sin(angle)
    cos_a = math.cos(angle)
    plane = CuttingPlane(
        anchor=(ax, ay, az),
        rotation_degrees=float(rotation_degrees),
        normal=(sin_a, 0.0, cos_a),
        tangent=(cos_a, 0.0, -sin_a),
    )
    if os.getenv("PIPEVIEW_DEBUG"):
        logger.debug(
            "CuttingPlane created: anchor=%s rotation=%s normal=%s",
            plane.anchor,
            plane.rotation_degrees,
            plane.normal,
        )
    return plane


__all__ = [
    "CuttingPlane",
    "make_cutting_plane",
    "PARALLEL_EPS",
    # vector helpers
    "dot",
    "sub",
    "add",
    "scale",
    "cross",
    "norm",
    "distance",
    "normalize",
    # centerline intersections
    "signed_distance_to_plane",
    "intersect_line_with_plane",
    "intersect_line_with_level",
    # mesh slicing and loops
    "SliceSegment",
    "SliceLoop",
    "intersect_triangle_with_plane",
    "intersect_mesh_with_plane",
    "merge_collinear_segments",
    "project_point_to_plane_uv",
    "lift_uv_to_3d",
    "build_snapped_points",
    "build_loops_from_segments",
    "find_outer_perimeter_loop",
    "compute_section_loop",
]


def dot(a: Vec3, b: Vec3) -> float:
    """Compute the dot product of two 3D vectors."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def sub(a: Vec3, b: Vec3) -> Vec3:
    """Subtract two 3D vectors (a - b)."""
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def add(a: Vec3, b: Vec3) -> Vec3:
    """Add two 3D vectors."""
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def scale(a: Vec3, s: float) -> Vec3:
    """Scale a 3D vector by ``s``."""
    return (a[0] * s, a[1] * s, a[2] * s)


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def norm(a: Vec3) -> float:
    return math.sqrt(dot(a, a))


def distance(a: Vec3, b: Vec3) -> float:
    """Euclidean distance between two points."""
    return norm(sub(a, b))


def normalize(a: Vec3) -> Vec3:
    """Return ``a`` scaled to unit length; zero vectors are returned unchanged."""
    length = norm(a)
    if length == 0.0:
        return a
    return scale(a, 1.0 / length)


def signed_distance_to_plane(p: Vec3, plane: CuttingPlane) -> float:
    """Signed distance from a point to the plane along its normal."""
    return dot(sub(p, plane.anchor), plane.normal)


def intersect_line_with_plane(
    start: Vec3,
    end: Vec3,
    plane: CuttingPlane,
    eps: float = PARALLEL_EPS,
) -> Tuple[Vec3, float, bool]:
    """Intersect the line through ``start``/``end`` with a cutting plane.

    The parameter is ``t = dot(anchor - start, n) / dot(end - start, n)``;
    for an unrotated plane this is ``(anchor.z - start.z) / direction.z``.
    When the direction component along the normal is below ``eps`` the
    line has no unique intersection: the start point is snapped onto the
    plane and ``t`` is reported as ``0``.

    Returns:
        A tuple ``(point, t, parallel)``.  ``t`` is not clamped; callers
        decide whether they need ``0 <= t <= 1``.
    """
    direction = sub(end, start)
    denom = dot(direction, plane.normal)
    offset = signed_distance_to_plane(start, plane)
    if abs(denom) < eps:
        return sub(start, scale(plane.normal, offset)), 0.0, True
    t = -offset / denom
    return add(start, scale(direction, t)), t, False


def intersect_line_with_level(
    start: Vec3,
    end: Vec3,
    elevation: float,
    eps: float = PARALLEL_EPS,
) -> Optional[Tuple[Vec3, float]]:
    """Intersect the line through ``start``/``end`` with the level ``y = elevation``.

    Returns ``(point, t)`` or ``None`` when the line is (nearly) horizontal.
    """
    dy = end[1] - start[1]
    if abs(dy) <= eps:
        return None
    t = (elevation - start[1]) / dy
    return add(start, scale(sub(end, start), t)), t


@dataclass
class SliceSegment:
    """A line segment resulting from intersecting a triangle with a plane.

    Each segment is defined by two distinct points ``p1`` and ``p2``.
    These points lie on the plane and are expressed as 3D tuples.
    """

    p1: Vec3
    p2: Vec3


@dataclass
class SliceLoop:
    """A closed loop of slice segments projected onto the plane.

    ``points_2d`` holds the ``(u, v)`` projection used for the signed
    area; the absolute area can be used to pick the outermost loop.
    """

    points_3d: List[Vec3]
    points_2d: List[Tuple[float, float]]
    area: float


def intersect_triangle_with_plane(
    A: Vec3,
    B: Vec3,
    C: Vec3,
    plane: CuttingPlane,
    eps: float = 1e-9,
) -> List[Vec3]:
    """Intersect a single triangle with a plane.

    Returns zero, one or two intersection points depending on how the
    triangle straddles the plane.  Coplanar triangles produce an empty
    list.  When numerical degeneracy yields more than two distinct
    points, the two furthest apart are retained.
    """
    dA = signed_distance_to_plane(A, plane)
    dB = signed_distance_to_plane(B, plane)
    dC = signed_distance_to_plane(C, plane)
    if abs(dA) < eps and abs(dB) < eps and abs(dC) < eps:
        if os.getenv("PIPEVIEW_DEBUG"):
            logger.debug(
                "intersect_triangle_with_plane: coplanar triangle at anchor=%s rotation=%s",
                plane.anchor,
                plane.rotation_degrees,
            )
        return []
    if (dA > eps and dB > eps and dC > eps) or (dA < -eps and dB < -eps and dC < -eps):
        return []
    points: List[Vec3] = []
    verts = [A, B, C]
    ds = [dA, dB, dC]
    for i, j in ((0, 1), (1, 2), (2, 0)):
        d_i = ds[i]
        d_j = ds[j]
        if d_i * d_j < -eps * eps:
            P, Q = verts[i], verts[j]
            # Interpolate shared edges in a fixed order so both adjacent
            # triangles produce bit-identical points.
            if Q < P:
                P, Q, d_i, d_j = Q, P, d_j, d_i
            t = d_i / (d_i - d_j)
            points.append(add(P, scale(sub(Q, P), t)))
        elif abs(d_i) < eps and abs(d_j) >= eps:
            points.append(verts[i])
        elif abs(d_j) < eps and abs(d_i) >= eps:
            points.append(verts[j])
    unique: List[Vec3] = []
    for p in points:
        if not any(
            math.isclose(p[0], q[0], abs_tol=eps)
            and math.isclose(p[1], q[1], abs_tol=eps)
            and math.isclose(p[2], q[2], abs_tol=eps)
            for q in unique
        ):
            unique.append(p)
    if len(unique) <= 2:
        return unique
    max_pair = (unique[0], unique[1])
    max_dist_sq = -1.0
    for i in range(len(unique)):
        for j in range(i + 1, len(unique)):
            d = sub(unique[i], unique[j])
            dist_sq = dot(d, d)
            if dist_sq > max_dist_sq:
                max_dist_sq = dist_sq
                max_pair = (unique[i], unique[j])
    return [max_pair[0], max_pair[1]]


def intersect_mesh_with_plane(
    mesh: SolidMesh,
    plane: CuttingPlane,
    eps: float = 1e-9,
) -> List[SliceSegment]:
    """Intersect a triangle mesh with a plane and collect line segments.

    Triangles touching the plane in a single vertex and coplanar
    triangles do not contribute.  Duplicate segments (shared by the two
    triangles of a quad) are removed and collinear segments sharing an
    endpoint are merged.

    Args:
        mesh: The mesh to slice.  It is not modified.
        plane: The cutting plane.
        eps: Tolerance used in distance comparisons.

    Returns:
        A list of :class:`SliceSegment` objects.
    """
    if mesh.faces is None or len(mesh.faces) == 0:
        return []
    verts = mesh.vertex_tuples()
    segs: List[SliceSegment] = []
    coplanar = 0
    for face in mesh.faces:
        i0, i1, i2 = int(face[0]), int(face[1]), int(face[2])
        try:
            A, B, C = verts[i0], verts[i1], verts[i2]
        except IndexError:
            # Malformed index buffer; skip
            continue
        pts = intersect_triangle_with_plane(A, B, C, plane, eps=eps)
        if not pts:
            if all(abs(signed_distance_to_plane(v, plane)) < eps for v in (A, B, C)):
                coplanar += 1
            continue
        if len(pts) == 2:
            segs.append(SliceSegment(p1=pts[0], p2=pts[1]))
    if os.getenv("PIPEVIEW_DEBUG"):
        logger.debug(
            "intersect_mesh_with_plane: inspected=%d triangles, segments=%d, coplanar=%d",
            len(mesh.faces),
            len(segs),
            coplanar,
        )
    return merge_collinear_segments(segs)


def _far_end(key: Tuple[Vec3, Vec3], point: Vec3) -> Vec3:
    return key[1] if key[0] == point else key[0]


def merge_collinear_segments(segments: Iterable[SliceSegment], tol: float = 1e-9) -> List[SliceSegment]:
    """Drop duplicate segments and join collinear runs.

    A quad cut by the plane yields two pieces meeting on its diagonal.
    Two segments are joined only when their shared endpoint belongs to
    no other segment, so loop corners survive.
    """
    pending: List[Tuple[Vec3, Vec3]] = list(
        dict.fromkeys(tuple(sorted((seg.p1, seg.p2))) for seg in segments)  # type: ignore[misc]
    )
    changed = True
    while changed:
        changed = False
        owners: Dict[Vec3, List[int]] = {}
        for idx, (p, q) in enumerate(pending):
            owners.setdefault(p, []).append(idx)
            owners.setdefault(q, []).append(idx)
        for point, idxs in owners.items():
            if len(idxs) != 2:
                continue
            i, j = idxs
            far_i = _far_end(pending[i], point)
            far_j = _far_end(pending[j], point)
            if norm(cross(sub(point, far_i), sub(far_j, far_i))) > tol:
                continue
            joined = tuple(sorted((far_i, far_j)))
            pending = [key for k, key in enumerate(pending) if k not in (i, j)]
            pending.append(joined)  # type: ignore[arg-type]
            changed = True
            break
    return [SliceSegment(p1=p, p2=q) for p, q in pending]


def project_point_to_plane_uv(p: Vec3, plane: CuttingPlane) -> Tuple[float, float]:
    """Project a 3D point into the plane's ``(u, v)`` coordinates.

    ``u`` is measured from the anchor along the horizontal tangent and
    ``v`` is the elevation.  The offset along the normal is ignored.
    """
    return (dot(sub(p, plane.anchor), plane.tangent), p[1])


def lift_uv_to_3d(
    points_uv: Iterable[Tuple[float, float]],
    plane: CuttingPlane,
) -> List[Vec3]:
    """Lift ``(u, v)`` points back onto the 3D plane."""
    ax, _, az = plane.anchor
    tx, _, tz = plane.tangent
    return [(ax + u * tx, v, az + u * tz) for u, v in points_uv]


def _polygon_area_2d(points_uv: List[Tuple[float, float]]) -> float:
    if len(points_uv) < 3:
        return 0.0
    shifted = points_uv[1:] + points_uv[:1]
    return 0.5 * sum(u0 * v1 - u1 * v0 for (u0, v0), (u1, v1) in zip(points_uv, shifted))


def build_snapped_points(
    segments: List[SliceSegment],
    eps: float,
) -> Tuple[List[Vec3], List[Tuple[int, int]]]:
    """Deduplicate segment endpoints using a snapping tolerance.

    Points are binned by rounding each coordinate to a multiple of
    ``eps``.  Returns the unique points and the undirected, deduplicated
    edges between their indices.
    """
    if eps <= 0.0:
        raise ValueError("eps must be positive for snapping")
    key_to_index: Dict[Tuple[int, int, int], int] = {}
    points: List[Vec3] = []
    unique_edges: List[Tuple[int, int]] = []
    seen_edges = set()

    def snap_key(pt: Vec3) -> Tuple[int, int, int]:
        return (int(round(pt[0] / eps)), int(round(pt[1] / eps)), int(round(pt[2] / eps)))

    for seg in segments:
        indices: List[int] = []
        for pt in (seg.p1, seg.p2):
            key = snap_key(pt)
            idx = key_to_index.get(key)
            if idx is None:
                idx = len(points)
                key_to_index[key] = idx
                points.append(pt)
            indices.append(idx)
        i, j = indices
        if i == j:
            continue
        edge_key = (i, j) if i < j else (j, i)
        if edge_key not in seen_edges:
            seen_edges.add(edge_key)
            unique_edges.append(edge_key)
    return points, unique_edges


def build_loops_from_segments(
    segments: List[SliceSegment],
    plane: CuttingPlane,
    snap_eps: float = 1e-6,
) -> List[SliceLoop]:
    """Construct closed loops from raw slice segments.

    Endpoints are snapped, an undirected adjacency graph is built and
    walked to form loops.  Each loop is projected onto the plane and
    its signed area computed.  Open chains and loops with fewer than
    three distinct vertices are dropped.
    """
    if not segments:
        return []
    points, edges = build_snapped_points(segments, snap_eps)
    adj: Dict[int, List[int]] = {i: [] for i in range(len(points))}
    for i, j in edges:
        adj[i].append(j)
        adj[j].append(i)
    visited_edges: set[frozenset[int]] = set()
    loops: List[SliceLoop] = []
    for i_start, j_start in edges:
        if frozenset({i_start, j_start}) in visited_edges:
            continue
        loop_indices: List[int] = [i_start]
        prev, curr = i_start, j_start
        visited_edges.add(frozenset({prev, curr}))
        closed = False
        while True:
            loop_indices.append(curr)
            if curr == loop_indices[0]:
                closed = True
                break
            next_idx: Optional[int] = None
            for nb in adj[curr]:
                if nb == prev:
                    continue
                if frozenset({curr, nb}) not in visited_edges:
                    next_idx = nb
                    break
            if next_idx is None:
                break
            visited_edges.add(frozenset({curr, next_idx}))
            prev, curr = curr, next_idx
        if not closed:
            continue
        loop_indices = loop_indices[:-1]
        if len(set(loop_indices)) < 3:
            continue
        pts_3d = [points[idx] for idx in loop_indices]
        pts_2d = [project_point_to_plane_uv(p, plane) for p in pts_3d]
        loops.append(SliceLoop(points_3d=pts_3d, points_2d=pts_2d, area=_polygon_area_2d(pts_2d)))
    return loops


def find_outer_perimeter_loop(loops: List[SliceLoop]) -> Optional[SliceLoop]:
    """The section outline is the loop enclosing the most area."""
    return max(loops, key=lambda lp: abs(lp.area), default=None)


def compute_section_loop(mesh: SolidMesh, plane: CuttingPlane) -> Optional[SliceLoop]:
    """Slice ``mesh`` with ``plane`` and return its outermost section loop."""
    segments = intersect_mesh_with_plane(mesh, plane)
    if not segments:
        return None
    return find_outer_perimeter_loop(build_loops_from_segments(segments, plane))
