"""
Coordinate mapping for pipe records.

Pipe catalog entries store their geometry in a planar survey
convention: each raw vertex is an ``(east-west, north-south,
elevation)`` triple.  The viewer, on the other hand, works in a
y‑up world where the second component is the elevation.  This module
converts a :class:`PipeRecord` into a :class:`Segment3` (the two
centerline endpoints in world coordinates plus an effective radius),
which is the only geometric representation the rest of the engine
consumes.

Two data‑quality workarounds live here:

- The stored radius may be expressed in millimeters or in meters.
  Values above ``MILLIMETER_THRESHOLD`` are assumed to be millimeters
  and divided by 1000.  This is a heuristic inherited from the
  upstream data producer and is kept as is; fixing it requires a
  change to the catalog contract.
- ``start_point_depth`` / ``end_point_depth`` are centimeters measured
  from grade down to the *top* of the pipe.  A depth of exactly zero is
  treated as "top of pipe at grade" (the ``>= 0`` branch).  Negative
  values already express an elevation and are used unchanged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

# Minimum radius (meters) applied after unit normalisation.  Zero or
# negative radii would produce degenerate solids.
MIN_RADIUS: float = 0.05
# Radius assumed when the record carries no radius attribute.
DEFAULT_RADIUS: float = 0.3
# Stored radii strictly above this value are interpreted as millimeters.
MILLIMETER_THRESHOLD: float = 5.0
# Catalog shape code for cylindrical pipes.
CYLINDER_SHAPE_TYPE: int = 16
_CYLINDER_SHAPE_NAMES = {"Cylinder"}


@dataclass(frozen=True)
class PipeRecord:
    """A single pipe entry from the catalog.

    Attributes:
        pipe_id: Catalog identifier of the pipe.
        vertices: Raw polyline vertices as ``(east-west, north-south,
            elevation)`` triples.  Only the first and last vertex are used
            for the centerline.
        radius: Raw radius attribute (millimeters or meters), or ``None``
            when absent.
        start_point_depth: Top-of-pipe depth at the first vertex in
            centimeters, or ``None``.
        end_point_depth: Top-of-pipe depth at the last vertex in
            centimeters, or ``None``.
        name: Display name of the pipe.
        pipe_kind: Pipe kind tag (e.g. water, gas).
        material: Material tag.
        shape_type: Catalog shape code; ``16`` denotes a cylinder.  ``None``
            means the record does not say and is treated as a cylinder.
        geometry_type: Geometry type name from the catalog (for example
            ``"LineString"``).
        attributes: The raw attribute mapping as loaded.
    """

    pipe_id: str
    vertices: Tuple[Tuple[float, ...], ...]
    radius: Any = None
    start_point_depth: Any = None
    end_point_depth: Any = None
    name: Optional[str] = None
    pipe_kind: Optional[str] = None
    material: Optional[str] = None
    shape_type: Optional[Any] = None
    geometry_type: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_cylinder(self) -> bool:
        if self.shape_type is None:
            return True
        if str(self.shape_type) == str(CYLINDER_SHAPE_TYPE):
            return True
        return str(self.shape_type) in _CYLINDER_SHAPE_NAMES


@dataclass(frozen=True)
class Segment3:
    """Centerline of a pipe in world coordinates.

    ``start`` and ``end`` are ``(x, y, z)`` tuples where ``y`` is the
    elevation (negative below grade).  ``radius`` is in meters and is
    never below :data:`MIN_RADIUS`.
    """

    start: Vec3
    end: Vec3
    radius: float

    @property
    def direction(self) -> Vec3:
        return (
            self.end[0] - self.start[0],
            self.end[1] - self.start[1],
            self.end[2] - self.start[2],
        )

    @property
    def length(self) -> float:
        dx, dy, dz = self.direction
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def point_at(self, t: float) -> Vec3:
        """Return the centerline point at parameter ``t`` (0 = start, 1 = end)."""
        dx, dy, dz = self.direction
        return (self.start[0] + dx * t, self.start[1] + dy * t, self.start[2] + dz * t)

    def is_finite(self) -> bool:
        values = list(self.start) + list(self.end) + [self.radius]
        return all(math.isfinite(v) for v in values)


def _to_float(value: Any) -> Optional[float]:
    """Convert an attribute value to float, returning ``None`` on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_radius(raw: Any) -> float:
    """Normalise a raw radius attribute to meters.

    Missing values fall back to :data:`DEFAULT_RADIUS`.  Values above
    :data:`MILLIMETER_THRESHOLD` are divided by 1000 and the result is
    clamped to :data:`MIN_RADIUS`.  Unparseable values yield ``nan`` so
    callers can drop the record.
    """
    if raw is None:
        radius = DEFAULT_RADIUS
    else:
        value = _to_float(raw)
        if value is None:
            return float("nan")
        radius = value
    if not math.isfinite(radius):
        return float("nan")
    if radius > MILLIMETER_THRESHOLD:
        radius = radius / 1000.0
    return max(radius, MIN_RADIUS)


def depth_to_centerline_elevation(depth_cm: float, radius: float) -> float:
    """Convert a top-of-pipe depth in centimeters to a centerline elevation.

    Depths ``>= 0`` are below grade: the centerline sits ``radius``
    below the top of the pipe.  Negative values already express an
    elevation (in meters once divided by 100) and are returned as is.
    """
    depth = depth_cm / 100.0
    if depth >= 0:
        return -(depth + radius)
    return depth


def has_depth_attributes(record: PipeRecord) -> bool:
    start = _to_float(record.start_point_depth)
    end = _to_float(record.end_point_depth)
    return (
        start is not None
        and end is not None
        and math.isfinite(start)
        and math.isfinite(end)
    )


def _raw_vertex(vertex: Sequence[Any]) -> Optional[Tuple[float, float, float]]:
    if len(vertex) < 2:
        return None
    east = _to_float(vertex[0])
    north = _to_float(vertex[1])
    elevation = _to_float(vertex[2]) if len(vertex) > 2 else 0.0
    if east is None or north is None or elevation is None:
        return None
    return (east, north, elevation)


def map_pipe_to_segment(record: PipeRecord) -> Optional[Segment3]:
    """Map a pipe record to its world-space centerline segment.

    Returns ``None`` when the record cannot be mapped: fewer than two
    vertices, unparseable coordinates or a non-finite radius.  Missing
    depth attributes are not an error; the raw vertex elevations are
    used instead.

    Args:
        record: The catalog entry to convert.

    Returns:
        The :class:`Segment3` for the pipe or ``None``.
    """
    if record.vertices is None or len(record.vertices) < 2:
        logger.debug("map_pipe_to_segment(%s): fewer than two vertices", record.pipe_id)
        return None
    first = _raw_vertex(record.vertices[0])
    last = _raw_vertex(record.vertices[-1])
    if first is None or last is None:
        logger.warning("map_pipe_to_segment(%s): malformed vertex", record.pipe_id)
        return None

    radius = normalize_radius(record.radius) if record.is_cylinder else MIN_RADIUS
    if not math.isfinite(radius):
        logger.warning(
            "map_pipe_to_segment(%s): non-finite radius %r", record.pipe_id, record.radius
        )
        return None

    if has_depth_attributes(record):
        start_y = depth_to_centerline_elevation(float(record.start_point_depth), radius)
        end_y = depth_to_centerline_elevation(float(record.end_point_depth), radius)
    else:
        start_y = first[2] - radius
        end_y = last[2] - radius

    segment = Segment3(
        start=(first[0], start_y, first[1]),
        end=(last[0], end_y, last[1]),
        radius=radius,
    )
    if not segment.is_finite():
        logger.warning("map_pipe_to_segment(%s): non-finite coordinates", record.pipe_id)
        return None
    return segment


def map_pipes_to_segments(records: Sequence[PipeRecord]) -> Dict[str, Segment3]:
    """Map many records at once, silently dropping the unmappable ones."""
    segments: Dict[str, Segment3] = {}
    for record in records:
        segment = map_pipe_to_segment(record)
        if segment is not None:
            segments[record.pipe_id] = segment
    return segments


def pipe_record_from_dict(pipe_id: str, obj: Mapping[str, Any]) -> Optional[PipeRecord]:
    """Build a :class:`PipeRecord` from one catalog object.

    The object follows the catalog layout: ``attributes`` hold radius,
    depths and tags; ``geometry`` is a list whose first element carries
    ``type`` and ``vertices``.  Returns ``None`` when no geometry is
    present or its layout is not recognised.  Non-mapping attributes
    are treated as empty.
    """
    geometries = obj.get("geometry")
    if not isinstance(geometries, (list, tuple)) or not geometries:
        return None
    geom = geometries[0]
    if not isinstance(geom, Mapping):
        return None
    raw_attrs = obj.get("attributes")
    attrs: Dict[str, Any] = dict(raw_attrs) if isinstance(raw_attrs, Mapping) else {}
    raw_vertices = geom.get("vertices")
    if not isinstance(raw_vertices, (list, tuple)):
        raw_vertices = []
    vertices = tuple(tuple(v) for v in raw_vertices if isinstance(v, (list, tuple)))
    return PipeRecord(
        pipe_id=str(obj.get("id", pipe_id)),
        vertices=vertices,
        radius=attrs.get("radius"),
        start_point_depth=attrs.get("start_point_depth"),
        end_point_depth=attrs.get("end_point_depth"),
        name=attrs.get("name"),
        pipe_kind=attrs.get("pipe_kind"),
        material=attrs.get("material"),
        shape_type=obj.get("shape_type"),
        geometry_type=geom.get("type"),
        attributes=attrs,
    )
