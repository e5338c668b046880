"""
Nearest-point queries between points, segments, triangles and meshes.

All functions are pure and operate on plain ``(x, y, z)`` tuples.  The
mesh query is a layered brute force:

1. every vertex of A against every triangle of B,
2. every vertex of B against every triangle of A,
3. every triangle edge of A against every triangle edge of B.

Vertex–face and edge–edge checks alone miss configurations such as two
skew edges whose closest points are mid-edge, hence all three passes.
A running minimum is replaced only by a *strictly* smaller distance, so
ties keep the first witness pair found in pass order.  The result is
deterministic for a given vertex/index order.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Optional, Tuple

from .pipe_mesh import SolidMesh
from .slicing import add, distance, dot, scale, sub

Vec3 = Tuple[float, float, float]

# Squared segment lengths at or below this value collapse the segment to a point.
EPSILON: float = sys.float_info.epsilon


@dataclass(frozen=True)
class ClosestPointResult:
    """Witness points on primitive A and primitive B and their distance."""

    point_a: Vec3
    point_b: Vec3
    distance: float


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def closest_point_on_segment_to_point(point: Vec3, a: Vec3, b: Vec3) -> ClosestPointResult:
    """Closest point on segment ``a``–``b`` to ``point``.

    ``point_a`` is the query point itself and ``point_b`` the witness on
    the segment.  A zero-length segment yields ``a``.
    """
    ab = sub(b, a)
    denom = dot(ab, ab)
    if denom <= EPSILON:
        t = 0.0
    else:
        t = _clamp01(dot(sub(point, a), ab) / denom)
    witness = add(a, scale(ab, t))
    return ClosestPointResult(point_a=point, point_b=witness, distance=distance(point, witness))


def closest_points_on_segments(a1: Vec3, a2: Vec3, b1: Vec3, b2: Vec3) -> ClosestPointResult:
    """Closest points between segments ``a1``–``a2`` and ``b1``–``b2``.

    Solves for the parameters ``s`` (on A) and ``t`` (on B), clamps them
    to ``[0, 1]`` and re-solves the other parameter whenever a clamp
    pushes it out of range.  Segments whose squared length is at or below
    machine epsilon are treated as points.
    """
    d1 = sub(a2, a1)
    d2 = sub(b2, b1)
    r = sub(a1, b1)
    a = dot(d1, d1)
    e = dot(d2, d2)
    f = dot(d2, r)

    if a <= EPSILON and e <= EPSILON:
        s = 0.0
        t = 0.0
    elif a <= EPSILON:
        s = 0.0
        t = _clamp01(f / e)
    else:
        c = dot(d1, r)
        if e <= EPSILON:
            t = 0.0
            s = _clamp01(-c / a)
        else:
            b = dot(d1, d2)
            denom = a * e - b * b
            # Parallel segments: any s works, start from 0
            s = _clamp01((b * f - c * e) / denom) if denom != 0.0 else 0.0
            t = (b * s + f) / e
            if t < 0.0:
                t = 0.0
                s = _clamp01(-c / a)
            elif t > 1.0:
                t = 1.0
                s = _clamp01((b - c) / a)

    point_a = add(a1, scale(d1, s))
    point_b = add(b1, scale(d2, t))
    return ClosestPointResult(point_a=point_a, point_b=point_b, distance=distance(point_a, point_b))


def closest_point_on_triangle(point: Vec3, v0: Vec3, v1: Vec3, v2: Vec3) -> Tuple[Vec3, float]:
    """Closest point on triangle ``v0 v1 v2`` to ``point``.

    Uses the seven-region classification of the projected point in the
    ``(s, t)`` parameter plane of the triangle ``v0 + s*e0 + t*e1``:

    - region 0: interior,
    - regions 1, 3, 5: beyond the edges ``v1v2``, ``v0v2`` and ``v0v1``,
    - regions 2, 4, 6: beyond the vertices ``v2``, ``v0`` and ``v1``,
      where the answer lies on one of the two adjacent edges.

    Degenerate (zero-area) triangles fall back to the nearest of the
    three edges.

    Returns:
        ``(closest_point, distance)``.
    """
    edge0 = sub(v1, v0)
    edge1 = sub(v2, v0)
    diff = sub(v0, point)
    a = dot(edge0, edge0)
    b = dot(edge0, edge1)
    c = dot(edge1, edge1)
    d = dot(edge0, diff)
    e = dot(edge1, diff)
    det = a * c - b * b

    if det <= EPSILON * max(a * c, 1.0):
        best = closest_point_on_segment_to_point(point, v0, v1)
        for p, q in ((v1, v2), (v2, v0)):
            res = closest_point_on_segment_to_point(point, p, q)
            if res.distance < best.distance:
                best = res
        return best.point_b, best.distance

    s = b * e - c * d
    t = b * d - a * e
    if s + t <= det:
        if s < 0.0:
            if t < 0.0:
                # region 4
                if d < 0.0:
                    t = 0.0
                    s = _clamp01(-d / a)
                else:
                    s = 0.0
                    t = _clamp01(-e / c)
            else:
                # region 3
                s = 0.0
                t = _clamp01(-e / c)
        elif t < 0.0:
            # region 5
            t = 0.0
            s = _clamp01(-d / a)
        else:
            # region 0
            inv_det = 1.0 / det
            s *= inv_det
            t *= inv_det
    else:
        denom = a - 2.0 * b + c
        if s < 0.0:
            # region 2
            tmp0 = b + d
            tmp1 = c + e
            if tmp1 > tmp0:
                s = _clamp01((tmp1 - tmp0) / denom)
                t = 1.0 - s
            else:
                s = 0.0
                t = _clamp01(-e / c)
        elif t < 0.0:
            # region 6
            tmp0 = b + e
            tmp1 = a + d
            if tmp1 > tmp0:
                t = _clamp01((tmp1 - tmp0) / denom)
                s = 1.0 - t
            else:
                t = 0.0
                s = _clamp01(-d / a)
        else:
            # region 1
            s = _clamp01(((c + e) - (b + d)) / denom)
            t = 1.0 - s

    closest = add(v0, add(scale(edge0, s), scale(edge1, t)))
    return closest, distance(point, closest)


def barycentric_coordinates(point: Vec3, v0: Vec3, v1: Vec3, v2: Vec3) -> Optional[Tuple[float, float, float]]:
    """Barycentric coordinates ``(w0, w1, w2)`` of ``point`` w.r.t. the triangle.

    The point is assumed to lie in the triangle's plane.  Returns
    ``None`` for degenerate triangles.
    """
    edge0 = sub(v1, v0)
    edge1 = sub(v2, v0)
    vp = sub(point, v0)
    a = dot(edge0, edge0)
    b = dot(edge0, edge1)
    c = dot(edge1, edge1)
    d = dot(edge0, vp)
    e = dot(edge1, vp)
    det = a * c - b * b
    if abs(det) <= EPSILON * max(a * c, 1.0):
        return None
    w1 = (c * d - b * e) / det
    w2 = (a * e - b * d) / det
    return (1.0 - w1 - w2, w1, w2)


def closest_points_on_meshes(mesh_a: SolidMesh, mesh_b: SolidMesh) -> Optional[ClosestPointResult]:
    """Closest points between the surfaces of two triangle meshes.

    Returns ``None`` when either mesh has no index buffer, no vertices
    or no triangles.  Neither mesh is modified.
    """
    if mesh_a.faces is None or mesh_b.faces is None:
        return None
    if mesh_a.vertex_count == 0 or mesh_b.vertex_count == 0:
        return None
    if mesh_a.face_count == 0 or mesh_b.face_count == 0:
        return None

    verts_a = mesh_a.vertex_tuples()
    verts_b = mesh_b.vertex_tuples()
    faces_a = mesh_a.face_tuples()
    faces_b = mesh_b.face_tuples()

    min_distance = math.inf
    best_a: Optional[Vec3] = None
    best_b: Optional[Vec3] = None

    # 1. vertices of A against faces of B
    for va in verts_a:
        for i0, i1, i2 in faces_b:
            closest, dist = closest_point_on_triangle(va, verts_b[i0], verts_b[i1], verts_b[i2])
            if dist < min_distance:
                min_distance = dist
                best_a, best_b = va, closest

    # 2. vertices of B against faces of A
    for vb in verts_b:
        for i0, i1, i2 in faces_a:
            closest, dist = closest_point_on_triangle(vb, verts_a[i0], verts_a[i1], verts_a[i2])
            if dist < min_distance:
                min_distance = dist
                best_a, best_b = closest, vb

    # 3. edges of A against edges of B
    edges_b = [edge for face in faces_b for edge in ((face[0], face[1]), (face[1], face[2]), (face[2], face[0]))]
    for face in faces_a:
        for a0, a1 in ((face[0], face[1]), (face[1], face[2]), (face[2], face[0])):
            pa0, pa1 = verts_a[a0], verts_a[a1]
            for b0, b1 in edges_b:
                res = closest_points_on_segments(pa0, pa1, verts_b[b0], verts_b[b1])
                if res.distance < min_distance:
                    min_distance = res.distance
                    best_a, best_b = res.point_a, res.point_b

    if best_a is None or best_b is None:
        return None
    return ClosestPointResult(point_a=best_a, point_b=best_b, distance=min_distance)
