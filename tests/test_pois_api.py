import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from db.models import Poi, Track, TrackPoi
from pois import routes as pois_routes
from pois.services import PoiCandidate, PoiLinkService, PoiService


def _build_app() -> FastAPI:
    app = FastAPI()
    app.include_router(pois_routes.router)
    return app


async def _track_with_pois(names_and_lons) -> tuple[Track, list]:
    track = Track(
        name="Ridge",
        segments=[[[37.49, 55.70], [37.51, 55.70], [37.53, 55.70]]],
        content_hash="ridge",
    )
    await track.insert()
    summary = await PoiLinkService.link_waypoints(
        track,
        [{"name": name, "lat": 55.7, "lon": lon} for name, lon in names_and_lons],
    )
    return track, summary.poi_ids


@pytest.mark.asyncio
async def test_create_manual_poi_requires_owner(beanie_db) -> None:
    client = TestClient(_build_app())
    payload = {"name": "Picnic spot", "lat": 55.75, "lon": 37.61}

    resp = client.post("/api/pois", json=payload)
    assert resp.status_code == 403
    assert await Poi.find_all().count() == 0

    resp = client.post("/api/pois", json=payload, headers={"X-Owner-Id": "alice"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["created"] is True
    assert body["poi"]["owner_id"] == "alice"
    assert body["poi"]["name"] == "Picnic spot"

    again = client.post("/api/pois", json=payload, headers={"X-Owner-Id": "bob"})
    assert again.status_code == 200
    assert again.json()["created"] is False
    assert again.json()["poi"]["id"] == body["poi"]["id"]
    # First owner is kept
    assert again.json()["poi"]["owner_id"] == "alice"


@pytest.mark.asyncio
async def test_create_poi_with_empty_name_is_bad_request(beanie_db) -> None:
    client = TestClient(_build_app())
    resp = client.post(
        "/api/pois",
        json={"name": "  ", "lat": 55.75, "lon": 37.61},
        headers={"X-Owner-Id": "alice"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_poi_and_not_found(beanie_db) -> None:
    poi, _ = await PoiService.find_or_create(PoiCandidate(name="Cafe", lat=1.0, lon=2.0))
    client = TestClient(_build_app())

    resp = client.get(f"/api/pois/{poi.id}")
    assert resp.status_code == 200
    assert resp.json()["dedup_hash"] == poi.dedup_hash

    assert client.get("/api/pois/0123456789abcdef01234567").status_code == 404
    assert client.get("/api/pois/nope").status_code == 400


@pytest.mark.asyncio
async def test_list_pois_with_bbox_and_paging(beanie_db) -> None:
    for name, lon in (("B", 37.51), ("A", 37.52), ("C", 37.53)):
        await PoiService.find_or_create(PoiCandidate(name=name, lat=55.7, lon=lon))
    await PoiService.find_or_create(PoiCandidate(name="Elsewhere", lat=0.0, lon=0.0))
    client = TestClient(_build_app())

    resp = client.get("/api/pois", params={"bbox": "37,55,38,56", "limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 3
    assert [p["name"] for p in body["pois"]] == ["A", "B"]

    assert client.get("/api/pois", params={"bbox": "37,55,38"}).status_code == 400


@pytest.mark.asyncio
async def test_clusters_endpoint_groups_dense_points(beanie_db) -> None:
    for i in range(5):
        await PoiService.find_or_create(
            PoiCandidate(name=f"Stall {i}", lat=55.6000 + i * 0.0001, lon=37.5000, category="food"),
        )
    await PoiService.find_or_create(PoiCandidate(name="Lonely", lat=55.9, lon=37.9))
    client = TestClient(_build_app())

    resp = client.get(
        "/api/pois/clusters",
        params={"bbox": "37.0,55.0,38.0,56.0", "zoom": 8},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["point_count"] == 6

    clusters = [item for item in body["items"] if item["kind"] == "cluster"]
    singles = [item for item in body["items"] if item["kind"] == "point"]
    assert len(clusters) == 1
    assert clusters[0]["count"] == 5
    assert clusters[0]["category"] == "food"
    assert clusters[0]["expandable"] is True
    assert [s["lon"] for s in singles] == [37.9]

    tight = client.get(
        "/api/pois/clusters",
        params={"bbox": "37.0,55.0,38.0,56.0", "zoom": 8, "expand_threshold": 3},
    ).json()
    (cluster,) = [item for item in tight["items"] if item["kind"] == "cluster"]
    assert cluster["expandable"] is False
    assert cluster["click_action"] == "zoom_to_bounds"


@pytest.mark.asyncio
async def test_delete_poi_policy(beanie_db) -> None:
    track, (linked_id,) = await _track_with_pois([("Hut", 37.50)])
    owned, _ = await PoiService.find_or_create(
        PoiCandidate(name="Mine", lat=10.0, lon=10.0),
        owner_id="alice",
    )
    client = TestClient(_build_app())

    resp = client.delete(f"/api/pois/{linked_id}")
    assert resp.status_code == 409
    assert resp.json()["detail"]["track_count"] == 1

    link_state = client.get(f"/api/pois/{linked_id}/linked").json()
    assert link_state["linked"] is True

    assert client.delete(f"/api/pois/{owned.id}", headers={"X-Owner-Id": "bob"}).status_code == 403
    assert client.delete(f"/api/pois/{owned.id}", headers={"X-Owner-Id": "alice"}).status_code == 200
    assert await Poi.get(owned.id) is None
    assert await TrackPoi.find(TrackPoi.track_id == track.id).count() == 1


@pytest.mark.asyncio
async def test_track_poi_endpoints(beanie_db) -> None:
    track, poi_ids = await _track_with_pois([("Start", 37.495), ("End", 37.525)])
    extra, _ = await PoiService.find_or_create(PoiCandidate(name="Middle", lat=55.7, lon=37.51))
    client = TestClient(_build_app())

    resp = client.put(
        f"/api/tracks/{track.id}/pois/{extra.id}",
        json={"waypoint_index": 7},
    )
    assert resp.status_code == 200
    assert resp.json()["sequence_order"] == 1
    assert resp.json()["distance_from_start_m"] > 0

    listing = client.get(f"/api/tracks/{track.id}/pois").json()
    assert listing["count"] == 3
    assert [p["name"] for p in listing["pois"]] == ["Start", "Middle", "End"]

    resp = client.delete(f"/api/tracks/{track.id}/pois/{poi_ids[0]}")
    assert resp.status_code == 200
    listing = client.get(f"/api/tracks/{track.id}/pois").json()
    assert [(p["name"], p["sequence_order"]) for p in listing["pois"]] == [
        ("Middle", 0),
        ("End", 1),
    ]

    assert client.delete(f"/api/tracks/{track.id}/pois/{poi_ids[0]}").status_code == 404
    assert client.get("/api/tracks/0123456789abcdef01234567/pois").status_code == 404
