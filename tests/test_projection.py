import math

import pytest
from shapely.geometry import LineString

from core.spatial import geodesic_distance_meters
from tracks.projection import ProjectionInput, assign_order, project

# Straight meridian line, ~1.1 km long
LINE = LineString([(37.5, 55.70), (37.5, 55.71)])


def test_project_start_and_end():
    start = project(LINE, 37.5, 55.70)
    end = project(LINE, 37.5, 55.71)
    assert start.fraction == 0.0
    assert start.distance_m == 0.0
    assert end.fraction == pytest.approx(1.0)
    assert end.distance_m == pytest.approx(
        geodesic_distance_meters(37.5, 55.70, 37.5, 55.71),
        rel=1e-6,
    )


def test_project_uses_geodesic_meters():
    mid = project(LINE, 37.5005, 55.705)
    assert mid.fraction == pytest.approx(0.5)
    assert mid.distance_m == pytest.approx(556.7, abs=2.0)


def test_points_beyond_the_ends_clamp():
    before = project(LINE, 37.5, 55.60)
    after = project(LINE, 37.5, 55.80)
    assert before.fraction == 0.0
    assert after.fraction == 1.0


def test_degenerate_inputs_return_none():
    assert project(None, 37.5, 55.7) is None
    assert project(LineString(), 37.5, 55.7) is None
    assert project(LINE, math.nan, 55.7) is None


def test_assign_order_is_monotonic_in_distance():
    points = [
        ProjectionInput("c", 37.5, 55.708),
        ProjectionInput("a", 37.5, 55.701),
        ProjectionInput("b", 37.5, 55.704),
        ProjectionInput("d", 37.5, 55.709),
    ]
    ordered = assign_order(LINE, points)
    by_order = sorted(ordered, key=lambda item: item.sequence_order)
    assert [item.point_id for item in by_order] == ["a", "b", "c", "d"]
    distances = [item.distance_m for item in by_order]
    assert distances == sorted(distances)
    assert [item.sequence_order for item in by_order] == [0, 1, 2, 3]


def test_assign_order_breaks_ties_by_input_order():
    points = [
        ProjectionInput("west", 37.499, 55.705),
        ProjectionInput("east", 37.501, 55.705),
        ProjectionInput("first", 37.5, 55.7),
    ]
    ordered = {item.point_id: item for item in assign_order(LINE, points)}
    assert ordered["west"].distance_m == ordered["east"].distance_m
    assert ordered["first"].sequence_order == 0
    assert ordered["west"].sequence_order == 1
    assert ordered["east"].sequence_order == 2


def test_assign_order_without_line_keeps_input_order():
    points = [ProjectionInput(i, 37.5, 55.7 + i / 1000) for i in (3, 1, 2)]
    ordered = assign_order(None, points)
    assert [item.point_id for item in ordered] == [3, 1, 2]
    assert [item.sequence_order for item in ordered] == [0, 1, 2]
    assert all(item.distance_m is None for item in ordered)


def test_unprojectable_points_sort_last():
    points = [
        ProjectionInput("missing", math.nan, math.nan),
        ProjectionInput("end", 37.5, 55.71),
        ProjectionInput("start", 37.5, 55.70),
    ]
    ordered = {item.point_id: item for item in assign_order(LINE, points)}
    assert ordered["start"].sequence_order == 0
    assert ordered["end"].sequence_order == 1
    assert ordered["missing"].sequence_order == 2
    assert ordered["missing"].distance_m is None
