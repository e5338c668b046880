"""
Pydantic data models for the pipe viewer API.

These models define the shapes of requests and responses exchanged
with the browser viewer.  Points travel as ``[x, y, z]`` lists in world
coordinates (y up, negative below grade).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PipeSummary(BaseModel):
    """Short description of a catalog pipe."""

    pipeId: str = Field(..., description="Catalog identifier of the pipe")
    name: Optional[str] = Field(default=None, description="Display name")
    pipeKind: Optional[str] = Field(default=None, description="Pipe kind tag")
    material: Optional[str] = Field(default=None, description="Material tag")
    mappable: bool = Field(..., description="Whether a centerline could be derived")


class SegmentInfo(BaseModel):
    start: List[float] = Field(..., description="Centerline start point")
    end: List[float] = Field(..., description="Centerline end point")
    radius: float = Field(..., description="Effective radius in meters")


class PipeDetail(PipeSummary):
    """A pipe together with its centerline segment."""

    shapeType: Optional[Any] = Field(default=None, description="Catalog shape code or name")
    geometryType: Optional[str] = Field(default=None, description="Geometry type name")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Raw attributes")
    segment: Optional[SegmentInfo] = Field(default=None, description="World-space centerline")


class CatalogLoadRequest(BaseModel):
    """Catalog document as served to the viewer."""

    CityObjects: Dict[str, Dict[str, Any]] = Field(..., description="Catalog objects keyed by id")
    shapeTypes: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional lookup from shape code to shape name"
    )


class CatalogLoadResponse(BaseModel):
    loaded: int = Field(..., description="Number of pipe records in the catalog")


class MeshBBox(BaseModel):
    """Axis‑aligned bounding box for a mesh."""

    min: List[float] = Field(..., description="Minimum x, y, z coordinates of the mesh")
    max: List[float] = Field(..., description="Maximum x, y, z coordinates of the mesh")


class MeshResponse(BaseModel):
    """Tessellated pipe solid."""

    pipeId: str = Field(..., description="Identifier of the pipe")
    vertices: List[float] = Field(..., description="Flat list of vertex positions (x, y, z …)")
    indices: List[int] = Field(..., description="Index buffer defining the mesh triangles")
    bbox: MeshBBox = Field(..., description="Bounding box around the mesh")


class DistanceResult(BaseModel):
    pointA: List[float]
    pointB: List[float]
    distance: float
    label: str = Field(..., description="Distance formatted in meters with millimeter precision")


class MeasurementRequest(BaseModel):
    pipeA: str = Field(..., description="First pipe id")
    pipeB: str = Field(..., description="Second pipe id")
    pointA: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)
    pointB: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)


class MeasurementResponse(BaseModel):
    pipeA: str
    pipeB: str
    specified: Optional[DistanceResult] = None
    closest: Optional[DistanceResult] = None


class PreviewRequest(BaseModel):
    """Drag preview.  Give either a ray or a second pipe."""

    startPoint: List[float] = Field(..., min_length=3, max_length=3)
    rayOrigin: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)
    rayDirection: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)
    pipeA: Optional[str] = None
    pipeB: Optional[str] = None


class PreviewResponse(BaseModel):
    point: Optional[List[float]] = Field(default=None, description="Preview end point")
    distance: Optional[float] = None
    label: Optional[str] = None
    surfaceGap: Optional[float] = Field(default=None, description="Centerline distance minus both radii")


class CrossSectionRequest(BaseModel):
    pipeId: str = Field(..., description="Clicked pipe")
    anchor: List[float] = Field(..., min_length=3, max_length=3, description="Clicked point")
    rotationDegrees: float = Field(default=0.0, description="Plane rotation about the vertical axis")
    floorDepth: float = Field(default=-50.0, le=0.0, description="Deepest grid line")
    step: float = Field(default=1.0, gt=0.0, description="Grid spacing")


class DepthLabelInfo(BaseModel):
    text: str
    anchor: List[float]


class LeaderInfo(BaseModel):
    start: List[float]
    end: List[float]
    topElevation: float
    label: DepthLabelInfo


class SolidInfo(BaseModel):
    vertices: List[float]
    indices: List[int]


class CrossSectionEntryInfo(BaseModel):
    pipeId: str
    intersection: List[float]
    t: float
    source: str
    radius: float
    solid: Optional[SolidInfo] = None
    outline: Optional[List[List[float]]] = None
    leader: LeaderInfo


class GridLineInfo(BaseModel):
    depth: float
    start: List[float]
    end: List[float]
    anchor: List[float]
    label: Optional[str] = None
    pipeIds: List[str] = Field(default_factory=list)


class CrossSectionResponse(BaseModel):
    anchor: List[float]
    rotationDegrees: float
    normal: List[float]
    tangent: List[float]
    center: List[float]
    entries: List[CrossSectionEntryInfo]
    grid: List[GridLineInfo]


class LabelScaleResponse(BaseModel):
    sx: float
    sy: float
