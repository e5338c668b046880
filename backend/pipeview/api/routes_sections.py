"""
Routes for cross sections and label scaling.

A cross section is requested with the clicked pipe, the clicked point
and the plane rotation.  The response lists every pipe cut by the
plane with its outline, clipped solid and depth leader, plus the depth
grid.  The boolean kernel is created once per process; when its
engine is missing the entries are returned with ``solid`` set to null.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from .models import (
    CrossSectionEntryInfo,
    CrossSectionRequest,
    CrossSectionResponse,
    DepthLabelInfo,
    GridLineInfo,
    LabelScaleResponse,
    LeaderInfo,
    SolidInfo,
)
from ..services.annotations import label_scale
from ..services.boolean import BooleanKernel, default_kernel
from ..services.catalog import get_catalog
from ..services.cross_section import CrossSectionEntry, compute_cross_section
from ..services.slicing import make_cutting_plane

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_kernel() -> Optional[BooleanKernel]:
    return default_kernel()


def _entry_info(entry: CrossSectionEntry) -> CrossSectionEntryInfo:
    solid = None
    if entry.solid is not None:
        solid = SolidInfo(vertices=entry.solid.flat_vertices(), indices=entry.solid.flat_indices())
    leader = entry.leader
    return CrossSectionEntryInfo(
        pipeId=entry.pipe_id,
        intersection=list(entry.intersection),
        t=entry.t,
        source=entry.source,
        radius=entry.radius,
        solid=solid,
        outline=[list(p) for p in entry.outline] if entry.outline is not None else None,
        leader=LeaderInfo(
            start=list(leader.start),
            end=list(leader.end),
            topElevation=leader.top_elevation,
            label=DepthLabelInfo(text=leader.label.text, anchor=list(leader.label.anchor)),
        ),
    )


@router.post("/cross-sections", response_model=CrossSectionResponse)
async def create_cross_section(request: CrossSectionRequest) -> CrossSectionResponse:
    """Compute the cross section through the clicked point.

    Raises:
        HTTPException: 404 for unknown pipes, 422 when the clicked pipe
            has no usable geometry, 500 when the computation fails.
    """
    catalog = get_catalog()
    if request.pipeId not in catalog:
        raise HTTPException(status_code=404, detail="Pipe not found")
    clicked = catalog.solid(request.pipeId)
    if clicked is None:
        raise HTTPException(status_code=422, detail="Pipe has no usable geometry")
    plane = make_cutting_plane(request.anchor, request.rotationDegrees)
    try:
        result = compute_cross_section(
            clicked,
            plane,
            catalog.solids(),
            kernel=get_kernel(),
            floor_depth=request.floorDepth,
            step=request.step,
        )
    except Exception as exc:
        logger.exception("Cross section failed for pipe %s", request.pipeId)
        raise HTTPException(status_code=500, detail=f"Cross section failed: {exc}")
    return CrossSectionResponse(
        anchor=list(plane.anchor),
        rotationDegrees=plane.rotation_degrees,
        normal=list(plane.normal),
        tangent=list(plane.tangent),
        center=list(result.center),
        entries=[_entry_info(e) for e in result.entries],
        grid=[
            GridLineInfo(
                depth=g.depth,
                start=list(g.start),
                end=list(g.end),
                anchor=list(g.anchor),
                label=g.label,
                pipeIds=list(g.pipe_ids),
            )
            for g in result.grid
        ],
    )


@router.get("/labels/scale", response_model=LabelScaleResponse)
async def get_label_scale(distance: float = Query(..., ge=0.0)) -> LabelScaleResponse:
    sx, sy = label_scale(distance)
    return LabelScaleResponse(sx=sx, sy=sy)
