"""
Solid boolean capability used by the cross-section computer.

The cross-section code never builds CSG itself; it asks a
``BooleanKernel`` to intersect a pipe solid with a thin slab lying on
the cutting plane.  Any object with an ``intersect(a, b)`` method that
returns a :class:`SolidMesh` satisfies the protocol, which keeps the
computation testable with fake kernels.

``TrimeshBooleanKernel`` is the production adapter.  It converts both
solids to ``trimesh.Trimesh`` and dispatches to
``trimesh.boolean.intersection``.  The backend engine defaults to
``manifold`` and can be overridden with the ``PIPEVIEW_BOOLEAN_ENGINE``
environment variable.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

import numpy as np
import trimesh

from .pipe_mesh import SolidMesh, build_box_mesh
from .slicing import CuttingPlane

logger = logging.getLogger(__name__)

# Slab dimensions (meters) used when clipping a pipe against the cutting plane.
SLAB_THICKNESS: float = 0.01
SLAB_SIZE: float = 1000.0
DEFAULT_ENGINE: str = "manifold"


class BooleanKernelError(RuntimeError):
    """Raised when a boolean operation cannot be carried out."""


class BooleanKernel(Protocol):
    def intersect(self, solid_a: SolidMesh, solid_b: SolidMesh) -> SolidMesh:
        ...


def make_slab_mesh(
    plane: CuttingPlane,
    thickness: float = SLAB_THICKNESS,
    size: float = SLAB_SIZE,
) -> SolidMesh:
    """Build the thin box lying on ``plane``, centered on its anchor.

    The box spans ``size`` along the plane tangent and vertically, and
    ``thickness`` along the plane normal.
    """
    axes = (plane.tangent, (0.0, 1.0, 0.0), plane.normal)
    half = (size / 2.0, size / 2.0, thickness / 2.0)
    return build_box_mesh(plane.anchor, axes, half)


def _to_trimesh(solid: SolidMesh) -> "trimesh.Trimesh":
    if solid.faces is None or solid.face_count == 0:
        raise BooleanKernelError("solid has no triangles")
    return trimesh.Trimesh(
        vertices=np.asarray(solid.vertices, dtype=float),
        faces=np.asarray(solid.faces, dtype=np.int64),
        process=False,
    )


def engines_available() -> set[str]:
    """Return the set of trimesh boolean backends that are operational."""
    return set(trimesh.boolean.engines_available)


class TrimeshBooleanKernel:
    """``BooleanKernel`` implementation backed by :mod:`trimesh.boolean`."""

    def __init__(self, engine: Optional[str] = None) -> None:
        self.engine = engine or os.getenv("PIPEVIEW_BOOLEAN_ENGINE", DEFAULT_ENGINE)

    def is_available(self) -> bool:
        return self.engine in engines_available()

    def intersect(self, solid_a: SolidMesh, solid_b: SolidMesh) -> SolidMesh:
        mesh_a = _to_trimesh(solid_a)
        mesh_b = _to_trimesh(solid_b)
        try:
            result = trimesh.boolean.intersection([mesh_a, mesh_b], engine=self.engine, check_volume=False)
        except Exception as exc:
            raise BooleanKernelError(f"trimesh boolean intersection failed: {exc}") from exc
        if result is None or result.faces.size == 0:
            return SolidMesh(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3), dtype=np.int64))
        return SolidMesh(
            vertices=np.asarray(result.vertices, dtype=float),
            faces=np.asarray(result.faces, dtype=np.int64),
        )


def default_kernel() -> Optional[BooleanKernel]:
    """Return the trimesh kernel when its engine is installed, else ``None``."""
    kernel = TrimeshBooleanKernel()
    if not kernel.is_available():
        logger.warning("trimesh boolean engine %r is not available", kernel.engine)
        return None
    return kernel
