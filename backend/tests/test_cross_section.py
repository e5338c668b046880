"""
Tests for the cross-section computer.

Most tests inject a fake boolean kernel so they only exercise the
selection of pipes, the outlines and the leaders.  One test runs the
trimesh kernel when its manifold engine is installed.
"""

from __future__ import annotations

import sys
from pathlib import Path
import math
import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pipeview.services.boolean import SLAB_THICKNESS, TrimeshBooleanKernel, make_slab_mesh
from pipeview.services.coordinates import PipeRecord, Segment3, map_pipe_to_segment
from pipeview.services.cross_section import (
    PipeSolid,
    compute_cross_section,
    ellipse_outline,
    make_pipe_solid,
)
from pipeview.services.pipe_mesh import SolidMesh
from pipeview.services.slicing import make_cutting_plane


class RecordingKernel:
    """Fake kernel returning the slab and remembering its calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[SolidMesh, SolidMesh]] = []

    def intersect(self, solid_a: SolidMesh, solid_b: SolidMesh) -> SolidMesh:
        self.calls.append((solid_a, solid_b))
        return solid_b


class FailingKernel:
    def intersect(self, solid_a: SolidMesh, solid_b: SolidMesh) -> SolidMesh:
        raise RuntimeError("kernel exploded")


def _pipe(pipe_id: str, start, end, radius: float = 0.3) -> PipeSolid:
    solid = make_pipe_solid(pipe_id, Segment3(start=start, end=end, radius=radius))
    assert solid.mesh is not None
    return solid


def _extent(points, direction) -> float:
    values = [p[0] * direction[0] + p[1] * direction[1] + p[2] * direction[2] for p in points]
    return max(values) - min(values)


def test_perpendicular_cut_is_circle() -> None:
    pipe = _pipe("a", (0.0, -3.0, 0.0), (0.0, -3.0, 10.0), radius=0.4)
    plane = make_cutting_plane((0.0, -3.0, 5.0), 0.0)
    result = compute_cross_section(pipe, plane, [pipe])
    assert len(result.entries) == 1
    entry = result.entries[0]
    assert entry.source == "clicked"
    assert entry.t == pytest.approx(0.5)
    assert entry.intersection == pytest.approx((0.0, -3.0, 5.0))
    assert entry.outline is not None
    for p in entry.outline:
        assert math.dist(p, entry.intersection) == pytest.approx(0.4)
        assert p[2] == pytest.approx(5.0)


@pytest.mark.parametrize("theta", [20.0, 45.0, 60.0])
def test_oblique_cut_aspect_ratio(theta: float) -> None:
    """A horizontal pipe cut at angle θ gives minor/major = cos θ."""
    rad = math.radians(theta)
    direction = (math.sin(rad), 0.0, math.cos(rad))
    start = (-5.0 * direction[0], -4.0, -5.0 * direction[2])
    end = (5.0 * direction[0], -4.0, 5.0 * direction[2])
    pipe = _pipe("a", start, end, radius=0.5)
    plane = make_cutting_plane((0.0, -4.0, 0.0), 0.0)
    entry = compute_cross_section(pipe, plane, [pipe]).entries[0]
    assert entry.outline is not None
    major = _extent(entry.outline, plane.tangent)
    minor = _extent(entry.outline, (0.0, 1.0, 0.0))
    assert minor == pytest.approx(1.0)
    assert minor / major == pytest.approx(math.cos(rad))


def test_sloped_pipe_cut_at_midpoint() -> None:
    """Depths 200/800 cm with r = 0.25 give one hit at -5.25 m."""
    record = PipeRecord(
        pipe_id="slope",
        vertices=((0.0, 0.0, 0.0), (0.0, 10.0, 0.0)),
        radius=250,
        start_point_depth=200,
        end_point_depth=800,
    )
    segment = map_pipe_to_segment(record)
    assert segment is not None
    pipe = make_pipe_solid("slope", segment)
    plane = make_cutting_plane((0.0, -5.0, 5.0), 0.0)
    result = compute_cross_section(pipe, plane, [pipe])
    assert len(result.entries) == 1
    entry = result.entries[0]
    assert entry.intersection[1] == pytest.approx(-5.25)
    assert entry.leader.top_elevation == pytest.approx(-5.0)
    assert entry.leader.start == pytest.approx((0.0, 0.0, 5.0))
    assert entry.leader.label.text == "5.000m"
    assert entry.leader.label.anchor[1] == pytest.approx(-2.5)


def test_plane_pass_and_segment_restriction() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    crossing = _pipe("crossing", (3.0, -1.0, 0.0), (3.0, -3.0, 10.0))
    short = _pipe("short", (6.0, -2.0, 0.0), (6.0, -2.0, 2.0))
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked, crossing, short])
    ids = [e.pipe_id for e in result.entries]
    assert ids == ["clicked", "crossing"]
    hit = result.entry_for("crossing")
    assert hit is not None
    assert hit.source == "plane"
    assert hit.intersection == pytest.approx((3.0, -2.0, 5.0))


def test_depth_pass_finds_pipe_running_along_plane() -> None:
    """A steep pipe parallel to the plane is found by the depth pass."""
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    steep = _pipe("steep", (4.0, -1.5, 5.1), (4.0, -8.5, 5.1), radius=0.3)
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked, steep])
    hit = result.entry_for("steep")
    assert hit is not None
    assert hit.source == "depth"
    # Shallowest grid depth crossed by the centerline
    assert hit.intersection[1] == pytest.approx(-2.0)


def test_depth_pass_respects_radius_distance() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    far = _pipe("far", (4.0, -1.5, 6.0), (4.0, -8.5, 6.0), radius=0.3)
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked, far])
    assert result.entry_for("far") is None


def test_clicked_pipe_is_not_restricted_to_segment() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    plane = make_cutting_plane((0.0, -2.0, 12.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked])
    entry = result.entry_for("clicked")
    assert entry is not None
    assert entry.t == pytest.approx(1.2)
    # Slicing misses the mesh, the analytic outline is used
    assert entry.outline is not None
    assert len(entry.outline) == 32


def test_clicked_pipe_parallel_to_plane_snaps_start() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 3.0), (10.0, -2.0, 3.0))
    plane = make_cutting_plane((4.0, -2.0, 3.2), 0.0)
    entry = compute_cross_section(clicked, plane, [clicked]).entries[0]
    assert entry.t == 0.0
    assert entry.intersection == pytest.approx((0.0, -2.0, 3.2))


def test_kernel_receives_pipe_and_slab() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    other = _pipe("other", (3.0, -2.0, 0.0), (3.0, -2.0, 10.0))
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    kernel = RecordingKernel()
    result = compute_cross_section(clicked, plane, [clicked, other], kernel=kernel)
    assert len(kernel.calls) == 2
    pipe_mesh, slab = kernel.calls[0]
    assert pipe_mesh is clicked.mesh
    lo, hi = slab.bounds()
    assert hi[2] - lo[2] == pytest.approx(SLAB_THICKNESS)
    assert all(entry.solid is not None for entry in result.entries)


def test_kernel_failure_is_isolated() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked], kernel=FailingKernel())
    assert len(result.entries) == 1
    assert result.entries[0].solid is None
    assert result.entries[0].outline is not None


def test_non_finite_pipes_are_skipped() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    broken = PipeSolid(
        pipe_id="broken",
        segment=Segment3(start=(1.0, float("nan"), 0.0), end=(1.0, -2.0, 10.0), radius=0.3),
        mesh=None,
    )
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked, broken])
    assert [e.pipe_id for e in result.entries] == ["clicked"]


def test_results_do_not_accumulate() -> None:
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0))
    other = _pipe("other", (3.0, -2.0, 0.0), (3.0, -2.0, 10.0))
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    first = compute_cross_section(clicked, plane, [clicked, other])
    second = compute_cross_section(clicked, plane, [clicked])
    assert len(first.entries) == 2
    assert len(second.entries) == 1


def test_grid_is_attached_and_centered() -> None:
    clicked = _pipe("clicked", (2.0, -2.0, 0.0), (2.0, -2.0, 10.0))
    plane = make_cutting_plane((2.0, -2.0, 5.0), 0.0)
    result = compute_cross_section(clicked, plane, [clicked])
    assert result.center == pytest.approx((2.0, 0.0, 5.0))
    assert len(result.grid) == 51
    # The leader reaches from grade to -1.7, crossing depths 0 and -1
    assert result.grid[0].pipe_ids == ("clicked",)
    assert result.grid[1].pipe_ids == ("clicked",)
    assert result.grid[2].pipe_ids == ()


def test_ellipse_outline_parallel_axis() -> None:
    plane = make_cutting_plane((0.0, 0.0, 0.0), 0.0)
    assert ellipse_outline((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), 0.3, plane) is None


def test_slab_lies_on_plane() -> None:
    plane = make_cutting_plane((1.0, -2.0, 3.0), 90.0)
    slab = make_slab_mesh(plane)
    lo, hi = slab.bounds()
    assert hi[0] - lo[0] == pytest.approx(SLAB_THICKNESS)
    assert (lo[0] + hi[0]) / 2.0 == pytest.approx(1.0)


def test_trimesh_kernel_clips_pipe() -> None:
    kernel = TrimeshBooleanKernel()
    if not kernel.is_available():
        pytest.skip("manifold boolean engine not installed")
    clicked = _pipe("clicked", (0.0, -2.0, 0.0), (0.0, -2.0, 10.0), radius=0.5)
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    entry = compute_cross_section(clicked, plane, [clicked], kernel=kernel).entries[0]
    assert entry.solid is not None
    assert entry.solid.face_count > 0
    z = np.asarray(entry.solid.vertices)[:, 2]
    assert z.min() >= 5.0 - SLAB_THICKNESS
    assert z.max() <= 5.0 + SLAB_THICKNESS
