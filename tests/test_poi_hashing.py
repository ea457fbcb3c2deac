import hashlib
import math

import pytest

from core.exceptions import InvalidPoiError
from pois.hashing import (
    compute_dedup_hash,
    dedup_key_material,
    pad10,
    quantize_coordinate,
    waypoint_batch_key,
)


def test_key_material_layout():
    assert dedup_key_material("Summit", 55.75580, 37.61730) == (
        "0005575580" "0003761730" "summit"
    )


def test_hash_is_md5_of_key_material():
    material = "0005575580" "0003761730" "summit"
    expected = hashlib.md5(material.encode("utf-8")).hexdigest()  # noqa: S324
    assert compute_dedup_hash("Summit", 55.75580, 37.61730) == expected


def test_same_bucket_and_normalized_name_share_hash():
    assert compute_dedup_hash("Summit", 55.75580, 37.61730) == compute_dedup_hash(
        "summit",
        55.755804,
        37.617304,
    )
    assert compute_dedup_hash("  SUMMIT ", 55.7558, 37.6173) == compute_dedup_hash(
        "summit",
        55.7558,
        37.6173,
    )


def test_crossing_a_rounding_boundary_changes_hash():
    assert compute_dedup_hash("Summit", 55.75581, 37.61730) != compute_dedup_hash(
        "Summit",
        55.75580,
        37.61730,
    )


def test_name_is_part_of_identity():
    assert compute_dedup_hash("Water", 55.7, 37.5) != compute_dedup_hash(
        "Spring",
        55.7,
        37.5,
    )


def test_negative_coordinates_keep_sign_in_band():
    assert pad10(quantize_coordinate(-33.8688)) == "00-3386880"
    assert dedup_key_material("Opera", -33.8688, -151.2093) == (
        "00-3386880" "0-15120930" "opera"
    )


def test_sign_distinguishes_hemispheres():
    north = compute_dedup_hash("Marker", 10.0, 20.0)
    south = compute_dedup_hash("Marker", -10.0, 20.0)
    west = compute_dedup_hash("Marker", 10.0, -20.0)
    assert len({north, south, west}) == 3


def test_extreme_coordinates_fit_the_padding():
    assert len(pad10(quantize_coordinate(-180.0))) == 10
    assert len(pad10(quantize_coordinate(180.0))) == 10
    assert len(pad10(quantize_coordinate(-90.0))) == 10


@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
def test_empty_name_is_rejected(name):
    with pytest.raises(InvalidPoiError):
        compute_dedup_hash(name, 55.7, 37.5)


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_non_finite_coordinate_is_rejected(value):
    with pytest.raises(InvalidPoiError):
        compute_dedup_hash("Water", value, 37.5)


def test_batch_key_collapses_nearby_repeats():
    first = waypoint_batch_key("Water", 55.70000, 37.50000)
    second = waypoint_batch_key(" water", 55.70001, 37.50000)
    third = waypoint_batch_key("Water", 55.70100, 37.50000)
    assert first == second
    assert first != third


def test_batch_key_rounds_half_away_from_zero():
    assert waypoint_batch_key("a", -0.00005, 0.0)[1] == -1
    assert waypoint_batch_key("a", 0.00005, 0.0)[1] == 1
