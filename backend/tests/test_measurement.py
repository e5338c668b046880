"""
Tests for pipe-to-pipe measurement and the drag previews.
"""

from __future__ import annotations

import sys
from pathlib import Path
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pipeview.services.coordinates import Segment3
from pipeview.services.cross_section import PipeSolid, make_pipe_solid
from pipeview.services.measurement import (
    format_distance_label,
    measure_pipes,
    preview_centerline_distance,
    preview_level_point,
)


def _pipe(pipe_id: str, x: float, radius: float = 0.3) -> PipeSolid:
    return make_pipe_solid(pipe_id, Segment3(start=(x, -2.0, 0.0), end=(x, -2.0, 5.0), radius=radius))


def test_measure_specified_and_closest() -> None:
    a = _pipe("a", 0.0)
    b = _pipe("b", 2.0)
    result = measure_pipes(a, b, (0.3, -2.0, 1.0), (1.7, -2.0, 4.0))
    assert result.pipe_a == "a"
    assert result.pipe_b == "b"
    assert result.specified is not None
    assert result.specified.distance == pytest.approx((1.4 ** 2 + 3.0 ** 2) ** 0.5)
    assert result.closest is not None
    assert result.closest.distance == pytest.approx(1.4)
    assert result.closest.distance <= result.specified.distance


def test_measure_without_clicked_points() -> None:
    result = measure_pipes(_pipe("a", 0.0), _pipe("b", 3.0))
    assert result.specified is None
    assert result.closest is not None


def test_same_pipe_is_rejected() -> None:
    a = _pipe("a", 0.0)
    with pytest.raises(ValueError):
        measure_pipes(a, a)


def test_missing_mesh_gives_no_closest() -> None:
    a = _pipe("a", 0.0)
    b = PipeSolid(pipe_id="b", segment=a.segment, mesh=None)
    assert measure_pipes(a, b).closest is None


def test_preview_level_point() -> None:
    point = preview_level_point((0.0, -2.0, 0.0), (0.0, 10.0, 0.0), (0.6, -0.8, 0.0))
    assert point == pytest.approx((9.0, -2.0, 0.0))


@pytest.mark.parametrize(
    "origin, direction",
    [
        ((0.0, 10.0, 0.0), (1.0, 0.0, 0.0)),  # horizontal ray
        ((0.0, 10.0, 0.0), (0.0, 1.0, 0.0)),  # pointing away
        ((0.0, 10.0, 0.0), (1.0, -0.001, 0.0)),  # hits 12 km away
    ],
)
def test_preview_level_point_rejections(origin, direction) -> None:
    assert preview_level_point((0.0, -2.0, 0.0), origin, direction) is None


def test_preview_centerline_distance() -> None:
    a = Segment3(start=(0.0, -2.0, 0.0), end=(0.0, -2.0, 5.0), radius=0.3)
    b = Segment3(start=(2.0, -2.0, 0.0), end=(2.0, -2.0, 5.0), radius=0.2)
    preview = preview_centerline_distance(a, b)
    assert preview.centerline.distance == pytest.approx(2.0)
    assert preview.surface_gap == pytest.approx(1.5)


def test_preview_overlapping_pipes_gap_is_zero() -> None:
    a = Segment3(start=(0.0, -2.0, 0.0), end=(0.0, -2.0, 5.0), radius=0.3)
    b = Segment3(start=(0.4, -2.0, 0.0), end=(0.4, -2.0, 5.0), radius=0.3)
    assert preview_centerline_distance(a, b).surface_gap == 0.0


def test_format_distance_label() -> None:
    assert format_distance_label(1.4) == "1.400m"
    assert format_distance_label(12.34567) == "12.346m"
