"""
Routes for loading the pipe catalog and inspecting pipes.

The catalog lives in memory; posting a new document replaces it.
Pipes can be listed, inspected together with their world-space
centerline, and fetched as a tessellated mesh for rendering.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from .models import (
    CatalogLoadRequest,
    CatalogLoadResponse,
    MeshBBox,
    MeshResponse,
    PipeDetail,
    PipeSummary,
    SegmentInfo,
)
from ..services.catalog import get_catalog, parse_catalog
from ..services.coordinates import PipeRecord, map_pipe_to_segment
from ..services.pipe_mesh import build_pipe_mesh

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(record: PipeRecord) -> PipeSummary:
    return PipeSummary(
        pipeId=record.pipe_id,
        name=record.name,
        pipeKind=record.pipe_kind,
        material=record.material,
        mappable=map_pipe_to_segment(record) is not None,
    )


@router.post("/pipes", response_model=CatalogLoadResponse, status_code=201)
async def load_pipes(request: CatalogLoadRequest) -> CatalogLoadResponse:
    """Replace the catalog with the pipes of a CityJSON-style document."""
    try:
        records = parse_catalog({"CityObjects": request.CityObjects}, request.shapeTypes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    loaded = get_catalog().replace(records)
    logger.info("Catalog loaded with %d pipes", loaded)
    return CatalogLoadResponse(loaded=loaded)


@router.get("/pipes", response_model=list[PipeSummary])
async def list_pipes() -> list[PipeSummary]:
    return [_summary(r) for r in get_catalog().list_records()]


@router.get("/pipes/{pipe_id}", response_model=PipeDetail)
async def get_pipe(pipe_id: str) -> PipeDetail:
    """Return a pipe record with its centerline segment.

    Raises:
        HTTPException: If the pipe does not exist.
    """
    record = get_catalog().get(pipe_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Pipe not found")
    segment = map_pipe_to_segment(record)
    return PipeDetail(
        pipeId=record.pipe_id,
        name=record.name,
        pipeKind=record.pipe_kind,
        material=record.material,
        mappable=segment is not None,
        shapeType=record.shape_type,
        geometryType=record.geometry_type,
        attributes=dict(record.attributes),
        segment=(
            SegmentInfo(start=list(segment.start), end=list(segment.end), radius=segment.radius)
            if segment is not None
            else None
        ),
    )


@router.get("/pipes/{pipe_id}/mesh", response_model=MeshResponse)
async def get_pipe_mesh(pipe_id: str) -> MeshResponse:
    """Return the tessellated cylinder of a pipe.

    Raises:
        HTTPException: 404 for unknown pipes, 422 when the pipe has no
            usable centerline.
    """
    record = get_catalog().get(pipe_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Pipe not found")
    segment = map_pipe_to_segment(record)
    mesh = build_pipe_mesh(segment) if segment is not None else None
    if mesh is None:
        raise HTTPException(status_code=422, detail="Pipe geometry cannot be tessellated")
    lo, hi = mesh.bounds()
    return MeshResponse(
        pipeId=pipe_id,
        vertices=mesh.flat_vertices(),
        indices=mesh.flat_indices(),
        bbox=MeshBBox(min=lo, max=hi),
    )
