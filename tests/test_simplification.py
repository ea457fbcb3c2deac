import pytest

from core.spatial import geodesic_distance_meters
from tracks.simplification import compute_segment_gaps, simplify_segments
from tracks.tolerance import tolerance_for_zoom


def _zigzag(points: int) -> list[list[float]]:
    return [[20.0 + i * 0.0001, 50.0 + (0.00001 if i % 2 else 0.0)] for i in range(points)]


def test_small_track_is_returned_as_stored() -> None:
    segments = [[[0.0, 0.0], [0.0, 0.0], [0.001, 0.001], [0.002, 0.0]]]
    display = simplify_segments(segments, 3)
    assert display["simplified"] is False
    # Consecutive duplicates are still collapsed
    assert display["segments"] == [[[0.0, 0.0], [0.001, 0.001], [0.002, 0.0]]]
    assert display["segment_gaps"] == []


def test_min_points_threshold_controls_simplification() -> None:
    segments = [_zigzag(50)]
    assert simplify_segments(segments, 5, min_points=50)["simplified"] is False
    display = simplify_segments(segments, 5, min_points=49)
    assert display["simplified"] is True
    assert display["segments"] == [[segments[0][0], segments[0][-1]]]
    assert display["tolerance"] == tolerance_for_zoom(5).to_dict()


def test_each_segment_is_simplified_separately() -> None:
    first = _zigzag(30)
    second = [[21.0 + pt[0] - 20.0, pt[1]] for pt in _zigzag(30)]
    display = simplify_segments([first, second], 6, min_points=10)

    assert len(display["segments"]) == 2
    assert display["point_count"] == 60
    assert display["display_point_count"] == 4
    (gap,) = display["segment_gaps"]
    assert gap["from"]["segment_index"] == 0
    assert gap["to"]["segment_index"] == 1
    assert gap["distance_m"] > 50_000


def test_gaps_skip_empty_segments() -> None:
    gaps = compute_segment_gaps([[[0.0, 0.0], [0.0, 1.0]], [], [[1.0, 1.0], [2.0, 2.0]]])
    assert len(gaps) == 1
    assert gaps[0]["kind"] == "segment"
    assert gaps[0]["from"] == {"lon": 0.0, "lat": 1.0, "segment_index": 0, "point_index": 1}
    assert gaps[0]["to"] == {"lon": 1.0, "lat": 1.0, "segment_index": 2, "point_index": 0}
    assert gaps[0]["distance_m"] == pytest.approx(geodesic_distance_meters(0.0, 1.0, 1.0, 1.0))
