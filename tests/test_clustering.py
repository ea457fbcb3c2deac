import math

import pytest

from core.spatial import BoundingBox
from pois.clustering import (
    CLICK_EXPAND,
    CLICK_ZOOM_TO_BOUNDS,
    Cluster,
    ClusterConfig,
    ClusterPoint,
    SinglePoint,
    cluster_points,
)

VIEWPORT = BoundingBox(37.0, 55.0, 38.0, 56.0)
ZOOM = 10


def _config(**overrides) -> ClusterConfig:
    values = {
        "max_cluster_radius_px": 50,
        "expand_threshold": 3,
        "max_zoom": 18,
        "disable_clustering_at_zoom": None,
    }
    values.update(overrides)
    return ClusterConfig(**values)


def _dense(prefix: str, n: int, category: str | None = "water") -> list[ClusterPoint]:
    # All inside the first grid cell of the viewport at zoom 10
    return [
        ClusterPoint(f"{prefix}{i}", 55.980 + i * 0.0002, 37.030 + i * 0.0002, category)
        for i in range(n)
    ]


def _member_ids(items) -> list:
    ids = []
    for item in items:
        ids.extend(item.member_ids)
    return ids


def test_nearby_points_form_one_cluster_and_far_points_stay_single():
    points = [*_dense("w", 2), ClusterPoint("far", 55.5, 37.5, "peak")]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())

    assert len(items) == 2
    cluster, single = items
    assert isinstance(cluster, Cluster)
    assert cluster.count == 2
    assert cluster.member_ids == ["w0", "w1"]
    assert isinstance(single, SinglePoint)
    assert single.id == "far"


def test_every_point_appears_exactly_once():
    points = [
        *_dense("w", 5),
        ClusterPoint("a", 55.2, 37.2),
        ClusterPoint("b", 55.6, 37.9),
        ClusterPoint("c", 55.6001, 37.9001),
    ]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())
    ids = _member_ids(items)
    assert sorted(ids) == sorted(p.id for p in points)
    assert len(ids) == len(set(ids))


def test_clustering_is_deterministic():
    points = [*_dense("w", 4), *_dense("x", 3, "food"), ClusterPoint("z", 55.1, 37.1)]
    first = [item.to_dict() for item in cluster_points(points, VIEWPORT, ZOOM, _config())]
    second = [item.to_dict() for item in cluster_points(points, VIEWPORT, ZOOM, _config())]
    assert first == second


def test_centroid_lies_within_member_bounds():
    cluster = cluster_points(_dense("w", 4), VIEWPORT, ZOOM, _config())[0]
    min_lon, min_lat, max_lon, max_lat = cluster.bounds
    assert min_lon <= cluster.lon <= max_lon
    assert min_lat <= cluster.lat <= max_lat
    assert cluster.lon == pytest.approx(37.0303)
    assert cluster.lat == pytest.approx(55.9803)


def test_shared_category_is_carried():
    cluster = cluster_points(_dense("w", 3), VIEWPORT, ZOOM, _config())[0]
    assert cluster.category == "water"
    assert cluster.categories == ["water"]


def test_mixed_categories_make_a_generic_cluster():
    points = _dense("w", 2, "water") + [
        ClusterPoint("f", 55.9801, 37.0301, "food"),
        ClusterPoint("n", 55.9802, 37.0302, None),
    ]
    cluster = cluster_points(points, VIEWPORT, ZOOM, _config())[0]
    assert cluster.category is None
    assert cluster.categories == ["food", "water"]


def test_missing_category_on_one_member_makes_cluster_generic():
    points = [*_dense("w", 2, "water"), ClusterPoint("n", 55.9801, 37.0301, None)]
    cluster = cluster_points(points, VIEWPORT, ZOOM, _config())[0]
    assert cluster.category is None
    assert cluster.categories == ["water"]


def test_expand_threshold_selects_click_action():
    small = cluster_points(_dense("s", 2), VIEWPORT, ZOOM, _config())[0]
    large = cluster_points(_dense("l", 5), VIEWPORT, ZOOM, _config())[0]
    assert small.expandable is True
    assert small.click_action == CLICK_EXPAND
    assert large.expandable is False
    assert large.click_action == CLICK_ZOOM_TO_BOUNDS


def test_clusters_at_max_zoom_always_expand():
    cluster = cluster_points(_dense("l", 5), VIEWPORT, ZOOM, _config(max_zoom=ZOOM))[0]
    assert cluster.expandable is True
    assert cluster.click_action == CLICK_EXPAND


def test_clustering_can_be_disabled_by_zoom():
    items = cluster_points(
        _dense("w", 4),
        VIEWPORT,
        ZOOM,
        _config(disable_clustering_at_zoom=ZOOM),
    )
    assert len(items) == 4
    assert all(isinstance(item, SinglePoint) for item in items)


def test_non_finite_points_are_dropped():
    points = [
        *_dense("w", 2),
        ClusterPoint("bad-lat", math.nan, 37.03),
        ClusterPoint("bad-lon", 55.98, math.inf),
        ClusterPoint("none", None, None),
    ]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())
    assert sorted(_member_ids(items)) == ["w0", "w1"]


def test_out_of_range_points_are_dropped():
    points = [
        ClusterPoint("ok", 55.7, 37.5),
        ClusterPoint("huge-lon", 55.7, 1e308),
        ClusterPoint("lat-over", 95.0, 37.5),
        ClusterPoint("lon-text", 55.7, "east"),
    ]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())
    assert _member_ids(items) == ["ok"]


def test_mapping_points_are_accepted():
    points = [
        {"id": 1, "lat": 55.98, "lon": 37.03, "category": "water"},
        {"id": 2, "lat": 55.9801, "lon": 37.0301, "category": "water"},
    ]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())
    assert len(items) == 1
    assert items[0].to_dict()["member_ids"] == ["1", "2"]


def test_empty_input_returns_empty_list():
    assert cluster_points([], VIEWPORT, ZOOM, _config()) == []


def test_larger_clusters_come_first():
    points = [
        ClusterPoint("solo", 55.1, 37.1),
        *_dense("w", 2),
        ClusterPoint("p0", 55.52, 37.50),
        ClusterPoint("p1", 55.5201, 37.5001),
        ClusterPoint("p2", 55.5202, 37.5002),
    ]
    items = cluster_points(points, VIEWPORT, ZOOM, _config())
    counts = [len(item.member_ids) for item in items]
    assert counts == sorted(counts, reverse=True)


def test_config_rejects_invalid_values():
    with pytest.raises(ValueError):
        ClusterConfig(max_cluster_radius_px=0)
    with pytest.raises(ValueError):
        ClusterConfig(min_cluster_size=1)
