"""
Routes for pipe-to-pipe distance measurement.

``POST /measurements`` runs the full mesh-to-mesh search once the user
has picked both pipes.  ``POST /measurements/preview`` is the cheap
variant called while dragging.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from .models import (
    DistanceResult,
    MeasurementRequest,
    MeasurementResponse,
    PreviewRequest,
    PreviewResponse,
)
from ..services.catalog import get_catalog
from ..services.closest_point import ClosestPointResult
from ..services.cross_section import PipeSolid
from ..services.measurement import (
    format_distance_label,
    measure_pipes,
    preview_centerline_distance,
    preview_level_point,
)
from ..services.slicing import distance

logger = logging.getLogger(__name__)

router = APIRouter()


def _distance_result(result: Optional[ClosestPointResult]) -> Optional[DistanceResult]:
    if result is None:
        return None
    return DistanceResult(
        pointA=list(result.point_a),
        pointB=list(result.point_b),
        distance=result.distance,
        label=format_distance_label(result.distance),
    )


def _require_known(pipe_id: str) -> None:
    if pipe_id not in get_catalog():
        raise HTTPException(status_code=404, detail=f"Pipe {pipe_id} not found")


def _unusable(pipe_id: str) -> HTTPException:
    return HTTPException(status_code=422, detail=f"Pipe {pipe_id} has no usable geometry")


def _require_solid(pipe_id: str) -> PipeSolid:
    _require_known(pipe_id)
    solid = get_catalog().solid(pipe_id)
    if solid is None:
        raise _unusable(pipe_id)
    return solid


@router.post("/measurements", response_model=MeasurementResponse)
async def create_measurement(request: MeasurementRequest) -> MeasurementResponse:
    """Measure specified and closest distances between two pipes.

    Raises:
        HTTPException: 400 when both ids name the same pipe, 404 for
            unknown pipes.
    """
    if request.pipeA == request.pipeB:
        raise HTTPException(status_code=400, detail="Select two different pipes")
    solid_a = _require_solid(request.pipeA)
    solid_b = _require_solid(request.pipeB)
    point_a = tuple(request.pointA) if request.pointA is not None else None
    point_b = tuple(request.pointB) if request.pointB is not None else None
    try:
        result = measure_pipes(solid_a, solid_b, point_a, point_b)  # type: ignore[arg-type]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return MeasurementResponse(
        pipeA=result.pipe_a,
        pipeB=result.pipe_b,
        specified=_distance_result(result.specified),
        closest=_distance_result(result.closest),
    )


@router.post("/measurements/preview", response_model=PreviewResponse)
async def preview_measurement(request: PreviewRequest) -> PreviewResponse:
    """Preview a measurement while the pointer moves.

    With a ray, the preview point is where the ray meets the level of
    the start point.  With two pipe ids, the centerline distance is
    returned instead.
    """
    start = tuple(request.startPoint)
    if request.rayOrigin is not None and request.rayDirection is not None:
        point = preview_level_point(start, tuple(request.rayOrigin), tuple(request.rayDirection))  # type: ignore[arg-type]
        if point is None:
            return PreviewResponse()
        dist = distance(start, point)  # type: ignore[arg-type]
        return PreviewResponse(point=list(point), distance=dist, label=format_distance_label(dist))
    if request.pipeA is not None and request.pipeB is not None:
        _require_known(request.pipeA)
        _require_known(request.pipeB)
        catalog = get_catalog()
        segment_a = catalog.segment(request.pipeA)
        if segment_a is None:
            raise _unusable(request.pipeA)
        segment_b = catalog.segment(request.pipeB)
        if segment_b is None:
            raise _unusable(request.pipeB)
        preview = preview_centerline_distance(segment_a, segment_b)
        return PreviewResponse(
            point=list(preview.centerline.point_b),
            distance=preview.centerline.distance,
            label=format_distance_label(preview.centerline.distance),
            surfaceGap=preview.surface_gap,
        )
    raise HTTPException(status_code=400, detail="Provide a ray or two pipe ids")
