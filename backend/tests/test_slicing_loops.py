"""
Tests for loop construction and perimeter selection in slicing.py.

These tests validate that the helpers for snapping endpoints, building
loops from segments and selecting the outermost loop behave correctly
on simple synthetic geometries lying in a vertical cutting plane, and
that slicing a tessellated pipe produces a single closed section.
"""

from __future__ import annotations

import sys
from pathlib import Path
import math
import pytest

# Make the backend package importable when running tests directly via pytest
sys.path.append(str(Path(__file__).resolve().parents[1]))

from pipeview.services.coordinates import Segment3
from pipeview.services.pipe_mesh import build_pipe_mesh
from pipeview.services.slicing import (
    SliceSegment,
    build_loops_from_segments,
    build_snapped_points,
    compute_section_loop,
    find_outer_perimeter_loop,
    make_cutting_plane,
    merge_collinear_segments,
)


def create_rectangle_segments(width: float, height: float) -> list[SliceSegment]:
    """Create segments of a rectangle in the vertical plane z=0.

    The rectangle corners are (0,0,0), (width,0,0), (width,height,0) and (0,height,0).
    """
    p0 = (0.0, 0.0, 0.0)
    p1 = (width, 0.0, 0.0)
    p2 = (width, height, 0.0)
    p3 = (0.0, height, 0.0)
    return [
        SliceSegment(p1=p0, p2=p1),
        SliceSegment(p1=p1, p2=p2),
        SliceSegment(p1=p2, p2=p3),
        SliceSegment(p1=p3, p2=p0),
    ]


def test_rectangle_loops_and_area() -> None:
    """A single rectangle should produce one loop with area equal to width*height."""
    segments = create_rectangle_segments(4.0, 3.0)
    plane = make_cutting_plane((0.0, 0.0, 0.0), 0.0)
    loops = build_loops_from_segments(segments, plane, snap_eps=1e-4)
    assert len(loops) == 1
    loop = loops[0]
    assert len(loop.points_3d) == 4
    assert math.isclose(abs(loop.area), 12.0, rel_tol=1e-6)
    for p in loop.points_3d:
        assert math.isclose(p[2], 0.0, abs_tol=1e-6)


def test_outer_loop_selection_with_hole() -> None:
    """When an inner rectangle is present, the outer loop should be selected."""
    outer_segments = create_rectangle_segments(4.0, 4.0)
    inner_segments: list[SliceSegment] = []
    for seg in create_rectangle_segments(1.0, 1.0):
        p1 = (seg.p1[0] + 1.0, seg.p1[1] + 1.0, seg.p1[2])
        p2 = (seg.p2[0] + 1.0, seg.p2[1] + 1.0, seg.p2[2])
        inner_segments.append(SliceSegment(p1=p1, p2=p2))
    plane = make_cutting_plane((0.0, 0.0, 0.0), 0.0)
    loops = build_loops_from_segments(outer_segments + inner_segments, plane, snap_eps=1e-4)
    assert len(loops) == 2
    outer = find_outer_perimeter_loop(loops)
    assert outer is not None
    areas = sorted([abs(lp.area) for lp in loops], reverse=True)
    assert math.isclose(areas[0], 16.0, rel_tol=1e-6)
    assert math.isclose(areas[1], 1.0, rel_tol=1e-6)
    xs = [p[0] for p in outer.points_3d]
    assert math.isclose(min(xs), 0.0, abs_tol=1e-6)
    assert math.isclose(max(xs), 4.0, abs_tol=1e-6)


def test_open_chain_is_dropped() -> None:
    segments = create_rectangle_segments(2.0, 2.0)[:3]
    plane = make_cutting_plane((0.0, 0.0, 0.0), 0.0)
    assert build_loops_from_segments(segments, plane) == []


def test_snapping_merges_nearby_endpoints() -> None:
    segments = [
        SliceSegment(p1=(0.0, 0.0, 0.0), p2=(1.0, 0.0, 0.0)),
        SliceSegment(p1=(1.0 + 1e-9, 0.0, 0.0), p2=(1.0, 1.0, 0.0)),
    ]
    points, edges = build_snapped_points(segments, 1e-6)
    assert len(points) == 3
    assert len(edges) == 2


def test_snapping_requires_positive_eps() -> None:
    with pytest.raises(ValueError):
        build_snapped_points([], 0.0)


def test_find_outer_loop_of_nothing() -> None:
    assert find_outer_perimeter_loop([]) is None


def test_pipe_section_is_single_closed_loop() -> None:
    """Cutting a horizontal pipe across its axis yields one loop of ring size."""
    segment = Segment3(start=(0.0, -2.0, 0.0), end=(0.0, -2.0, 10.0), radius=0.5)
    mesh = build_pipe_mesh(segment)
    plane = make_cutting_plane((0.0, -2.0, 5.0), 0.0)
    loop = compute_section_loop(mesh, plane)
    assert loop is not None
    assert len(loop.points_3d) == 16
    # Area of the inscribed 16-gon
    expected = 0.5 * 16 * 0.5 ** 2 * math.sin(2.0 * math.pi / 16)
    assert abs(loop.area) == pytest.approx(expected, rel=1e-6)


def test_collinear_pieces_are_joined() -> None:
    segments = [
        SliceSegment(p1=(0.0, 0.0, 0.0), p2=(1.0, 0.0, 0.0)),
        SliceSegment(p1=(2.0, 0.0, 0.0), p2=(1.0, 0.0, 0.0)),
        SliceSegment(p1=(1.0, 0.0, 0.0), p2=(0.0, 0.0, 0.0)),  # duplicate, reversed
        SliceSegment(p1=(2.0, 0.0, 0.0), p2=(2.0, 1.0, 0.0)),  # corner
    ]
    merged = merge_collinear_segments(segments)
    ends = sorted(tuple(sorted((s.p1, s.p2))) for s in merged)
    assert ends == [
        ((0.0, 0.0, 0.0), (2.0, 0.0, 0.0)),
        ((2.0, 0.0, 0.0), (2.0, 1.0, 0.0)),
    ]


def test_junction_of_three_segments_is_kept() -> None:
    segments = [
        SliceSegment(p1=(0.0, 0.0, 0.0), p2=(1.0, 0.0, 0.0)),
        SliceSegment(p1=(1.0, 0.0, 0.0), p2=(2.0, 0.0, 0.0)),
        SliceSegment(p1=(1.0, 0.0, 0.0), p2=(1.0, 1.0, 0.0)),
    ]
    assert len(merge_collinear_segments(segments)) == 3
