"""
Tests for the location endpoints and distance search.
"""

import pytest

from volunteer_tracker.locations import find_nearby, haversine_meters
from volunteer_tracker.models import LocationDTO


class TestHaversine:
    """Great-circle distance."""

    def test_zero_distance(self):
        assert haversine_meters(174.76, -36.85, 174.76, -36.85) == 0

    def test_one_degree_of_latitude(self):
        assert haversine_meters(0, 0, 0, 1) == pytest.approx(111195, rel=1e-3)

    def test_find_nearby_sorts_and_skips_missing_coordinates(self):
        locations = [
            LocationDTO(id=1, user_id=1, name="Far", longitude=174.80, latitude=-36.85),
            LocationDTO(id=2, user_id=1, name="Near", longitude=174.7634, latitude=-36.8485),
            LocationDTO(id=3, user_id=1, name="Nowhere"),
            LocationDTO(id=4, user_id=1, name="Other city", longitude=172.63, latitude=-43.53),
        ]
        nearby = find_nearby(locations, 174.7633, -36.8485, 10000)

        assert [loc.name for loc in nearby] == ["Near", "Far"]


class TestLocationCrud:
    """CRUD under /api/locations."""

    def test_create_returns_geojson(self, location):
        assert location["coordinates"] == {"type": "Point", "coordinates": [174.7633, -36.8485]}
        assert location["photos"] == []

    def test_create_without_coordinates(self, client, auth_headers):
        res = client.post("/api/locations", json={"name": "Somewhere"}, headers=auth_headers)

        assert res.status_code == 201
        assert res.get_json()["data"]["coordinates"] is None

    def test_create_requires_name(self, client, auth_headers):
        res = client.post("/api/locations", json={"address": "x"}, headers=auth_headers)
        assert res.status_code == 400

    def test_rejects_non_object_body(self, client, auth_headers, location):
        res = client.post("/api/locations", json=["Somewhere"], headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Invalid request body"

        res = client.put(f"/api/locations/{location['id']}", json="Renamed", headers=auth_headers)
        assert res.status_code == 400

    def test_rejects_bad_coordinates(self, client, auth_headers):
        res = client.post(
            "/api/locations",
            json={"name": "Bad", "coordinates": {"type": "Point", "coordinates": [500, 10]}},
            headers=auth_headers,
        )
        assert res.status_code == 400

    def test_list_only_own(self, client, auth_headers, other_headers, location):
        assert client.get("/api/locations", headers=auth_headers).get_json()["count"] == 1
        assert client.get("/api/locations", headers=other_headers).get_json()["count"] == 0

    def test_update_keeps_unchanged_fields(self, client, auth_headers, location):
        res = client.put(f"/api/locations/{location['id']}", json={"notes": "Muddy"}, headers=auth_headers)

        data = res.get_json()["data"]
        assert data["notes"] == "Muddy"
        assert data["name"] == "Riverside Park"
        assert data["coordinates"] == location["coordinates"]

    def test_foreign_access(self, client, other_headers, location):
        assert client.get(f"/api/locations/{location['id']}", headers=other_headers).status_code == 401
        assert client.delete(f"/api/locations/{location['id']}", headers=other_headers).status_code == 401

    def test_delete(self, client, auth_headers, location):
        assert client.delete(f"/api/locations/{location['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/locations/{location['id']}", headers=auth_headers).status_code == 404


class TestNearbyEndpoint:
    """GET /api/locations/nearby"""

    def test_requires_lat_lng(self, client, auth_headers):
        res = client.get("/api/locations/nearby?lat=-36.8", headers=auth_headers)

        assert res.status_code == 400
        assert res.get_json()["error"] == "Please provide latitude and longitude"

    def test_finds_within_distance(self, client, auth_headers, location):
        res = client.get("/api/locations/nearby?lat=-36.85&lng=174.77", headers=auth_headers)
        assert res.get_json()["count"] == 1

        res = client.get("/api/locations/nearby?lat=-36.85&lng=174.77&distance=10", headers=auth_headers)
        assert res.get_json()["count"] == 0


class TestLocationPhotos:
    """Photo records attached to locations."""

    def test_add_photo_defaults_taken_at(self, client, auth_headers, location):
        res = client.post(
            f"/api/locations/{location['id']}/photos",
            json={"url": "https://img.example.com/site.jpg"},
            headers=auth_headers,
        )

        assert res.status_code == 200
        photo = res.get_json()["data"]
        assert photo["caption"] == ""
        assert photo["takenAt"].endswith("Z")
        assert res.get_json()["location"]["photos"] == [photo]

    def test_delete_photo(self, client, auth_headers, location):
        photo = client.post(
            f"/api/locations/{location['id']}/photos",
            json={"url": "https://img.example.com/site.jpg"},
            headers=auth_headers,
        ).get_json()["data"]

        res = client.delete(f"/api/locations/{location['id']}/photos/{photo['id']}", headers=auth_headers)
        assert res.status_code == 200
        assert client.get(f"/api/locations/{location['id']}", headers=auth_headers).get_json()["data"]["photos"] == []
