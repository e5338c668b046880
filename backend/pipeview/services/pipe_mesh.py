"""
Triangle mesh snapshots of pipe solids.

``SolidMesh`` is the read-only vertex/index snapshot used by the
closest-point and cross-section queries.  Vertices are stored as an
``(N, 3)`` float array and triangles as an ``(M, 3)`` integer array.
On the wire (and in the viewer) the same data travels as flat lists,
so helpers convert in both directions.

``build_pipe_mesh`` tessellates a centerline segment into a closed
cylinder with the same radial resolution as the viewer's cylinder
geometry (16 segments).  The ring is oriented so that angle zero
points horizontally and a quarter turn points up for horizontal pipes,
which puts mesh vertices at the top, bottom and sides of the pipe.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .coordinates import Segment3

logger = logging.getLogger(__name__)

RADIAL_SEGMENTS: int = 16


@dataclass(frozen=True, eq=False)
class SolidMesh:
    """Vertex and triangle buffers of a solid in world space.

    ``faces`` may be ``None`` to represent a mesh without an index
    buffer; such meshes cannot take part in closest-point queries.
    """

    vertices: np.ndarray
    faces: Optional[np.ndarray]

    @classmethod
    def from_flat(cls, vertices: Sequence[float], indices: Optional[Sequence[int]]) -> "SolidMesh":
        """Build a mesh from flat ``x, y, z, …`` and ``i0, i1, i2, …`` lists."""
        verts = np.asarray(vertices, dtype=float).reshape(-1, 3)
        faces = None
        if indices is not None:
            faces = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
        return cls(vertices=verts, faces=faces)

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def face_count(self) -> int:
        if self.faces is None:
            return 0
        return int(self.faces.shape[0])

    def vertex_tuples(self) -> List[Tuple[float, float, float]]:
        return [(float(x), float(y), float(z)) for x, y, z in self.vertices]

    def face_tuples(self) -> List[Tuple[int, int, int]]:
        if self.faces is None:
            return []
        return [(int(a), int(b), int(c)) for a, b, c in self.faces]

    def flat_vertices(self) -> List[float]:
        return [float(v) for v in self.vertices.reshape(-1)]

    def flat_indices(self) -> List[int]:
        if self.faces is None:
            return []
        return [int(i) for i in self.faces.reshape(-1)]

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.vertices)))

    def bounds(self) -> Tuple[List[float], List[float]]:
        """Axis-aligned bounding box as ``(min_xyz, max_xyz)``."""
        if self.vertex_count == 0:
            return [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]
        return self.vertices.min(axis=0).tolist(), self.vertices.max(axis=0).tolist()


def _ring_frame(axis: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(e1, e2)`` with ``e1 x e2 = axis`` and ``e2`` as close to up as possible."""
    up = np.array([0.0, 1.0, 0.0])
    e2 = up - np.dot(up, axis) * axis
    if np.linalg.norm(e2) < 1e-9:
        # Vertical pipe: any horizontal reference works
        ref = np.array([1.0, 0.0, 0.0])
        e2 = ref - np.dot(ref, axis) * axis
    e2 = e2 / np.linalg.norm(e2)
    e1 = np.cross(e2, axis)
    return e1, e2


def build_pipe_mesh(segment: Segment3, radial_segments: int = RADIAL_SEGMENTS) -> Optional[SolidMesh]:
    """Tessellate a centerline segment into a closed, outward-facing cylinder.

    The mesh has two rings of ``radial_segments`` vertices (start and end)
    plus one center vertex per cap, and no duplicated vertices, so it is
    watertight.  Returns ``None`` for zero-length or non-finite segments.
    """
    if not segment.is_finite() or radial_segments < 3:
        return None
    start = np.asarray(segment.start, dtype=float)
    end = np.asarray(segment.end, dtype=float)
    length = float(np.linalg.norm(end - start))
    if length <= 1e-12:
        logger.debug("build_pipe_mesh: zero-length segment at %s", segment.start)
        return None
    axis = (end - start) / length
    e1, e2 = _ring_frame(axis)
    n = radial_segments
    angles = np.arange(n) * (2.0 * math.pi / n)
    offsets = segment.radius * (np.outer(np.cos(angles), e1) + np.outer(np.sin(angles), e2))
    vertices = np.vstack([start + offsets, end + offsets, start, end])

    faces: List[Tuple[int, int, int]] = []
    c0, c1 = 2 * n, 2 * n + 1
    for k in range(n):
        a0, a1 = k, (k + 1) % n
        b0, b1 = n + k, n + (k + 1) % n
        faces.append((a0, a1, b1))
        faces.append((a0, b1, b0))
        faces.append((c0, a1, a0))
        faces.append((c1, b0, b1))
    return SolidMesh(vertices=vertices, faces=np.asarray(faces, dtype=np.int64))


def build_box_mesh(center: Sequence[float], axes: Sequence[Sequence[float]], half_extents: Sequence[float]) -> SolidMesh:
    """Build an oriented box.

    Args:
        center: Box center.
        axes: Three orthonormal, right-handed axis directions.
        half_extents: Half size of the box along each axis.
    """
    c = np.asarray(center, dtype=float)
    u, v, w = (np.asarray(a, dtype=float) * h for a, h in zip(axes, half_extents))
    corners = []
    for sz in (-1.0, 1.0):
        for sy, sx in ((-1.0, -1.0), (-1.0, 1.0), (1.0, 1.0), (1.0, -1.0)):
            corners.append(c + sx * u + sy * v + sz * w)
    # Same layout as a unit cube: 0-3 bottom ring, 4-7 top ring
    faces = [
        (0, 2, 1), (0, 3, 2),  # -w
        (4, 5, 6), (4, 6, 7),  # +w
        (0, 1, 5), (0, 5, 4),  # -v
        (3, 6, 2), (3, 7, 6),  # +v
        (0, 4, 7), (0, 7, 3),  # -u
        (1, 2, 6), (1, 6, 5),  # +u
    ]
    return SolidMesh(vertices=np.asarray(corners), faces=np.asarray(faces, dtype=np.int64))
