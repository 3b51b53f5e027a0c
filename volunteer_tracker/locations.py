import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import Flask, g, jsonify, request

from .auth import login_required, require_owned
from .errors import ApiError, request_json
from .models import (
    LocationDTO,
    build_photo,
    delete_location,
    fetch_location,
    insert_location,
    list_locations,
    set_location_photos,
    update_location,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371008.8
DEFAULT_NEARBY_DISTANCE = 10000


def haversine_meters(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def _parse_coordinates(raw: Any) -> Tuple[Optional[float], Optional[float]]:
    """Read a GeoJSON point (``[lng, lat]``) into ``(longitude, latitude)``."""
    if raw is None:
        return None, None
    points = raw.get("coordinates") if isinstance(raw, Mapping) else raw
    if points in (None, []):
        return None, None
    if not isinstance(points, (list, tuple)):
        raise ApiError("Coordinates must be [longitude, latitude].", 400)
    try:
        longitude, latitude = (float(value) for value in points)
    except (TypeError, ValueError):
        raise ApiError("Coordinates must be [longitude, latitude].", 400)
    if not (-180 <= longitude <= 180 and -90 <= latitude <= 90):
        raise ApiError("Coordinates are out of range.", 400)
    return longitude, latitude


def prepare_location_payload(payload: Mapping[str, Any], existing: Optional[LocationDTO] = None) -> Dict[str, Any]:
    def _text(key: str, default: str = "") -> str:
        value = payload.get(key)
        if value is None:
            return default
        return str(value).strip()

    name = _text("name", existing.name if existing else "")
    if not name:
        raise ApiError("Please add a location name", 400)

    if "coordinates" in payload:
        longitude, latitude = _parse_coordinates(payload["coordinates"])
    elif existing is not None:
        longitude, latitude = existing.longitude, existing.latitude
    else:
        longitude = latitude = None

    return {
        "name": name,
        "address": _text("address", existing.address if existing else ""),
        "notes": _text("notes", existing.notes if existing else ""),
        "longitude": longitude,
        "latitude": latitude,
    }


def find_nearby(locations: List[LocationDTO], lng: float, lat: float, max_distance: float) -> List[LocationDTO]:
    in_range = []
    for location in locations:
        if not location.has_coordinates:
            continue
        distance = haversine_meters(lng, lat, location.longitude, location.latitude)
        if distance <= max_distance:
            in_range.append((distance, location))
    in_range.sort(key=lambda pair: pair[0])
    return [location for _, location in in_range]


def register_location_routes(app: Flask) -> None:
    @app.route("/api/locations", methods=["GET"])
    @login_required
    def get_locations():
        locations = list_locations(g.user["id"])
        return jsonify({"success": True, "count": len(locations), "data": [loc.to_json() for loc in locations]})

    @app.route("/api/locations/nearby", methods=["GET"])
    @login_required
    def get_nearby_locations():
        lat = request.args.get("lat")
        lng = request.args.get("lng")
        if not lat or not lng:
            raise ApiError("Please provide latitude and longitude", 400)
        try:
            lat_value = float(lat)
            lng_value = float(lng)
            distance = float(request.args.get("distance", DEFAULT_NEARBY_DISTANCE))
        except ValueError:
            raise ApiError("Latitude, longitude and distance must be numbers", 400)

        nearby = find_nearby(list_locations(g.user["id"]), lng_value, lat_value, distance)
        return jsonify({"success": True, "count": len(nearby), "data": [loc.to_json() for loc in nearby]})

    @app.route("/api/locations", methods=["POST"])
    @login_required
    def create_location():
        cleaned = prepare_location_payload(request_json())
        location_id = insert_location(g.user["id"], cleaned)
        logger.info("Location %s created for user %s", location_id, g.user["id"])
        return jsonify({"success": True, "data": fetch_location(location_id).to_json()}), 201

    @app.route("/api/locations/<int:location_id>", methods=["GET"])
    @login_required
    def get_location(location_id: int):
        location = require_owned(fetch_location(location_id), "Location", location_id)
        return jsonify({"success": True, "data": location.to_json()})

    @app.route("/api/locations/<int:location_id>", methods=["PUT"])
    @login_required
    def update_location_route(location_id: int):
        existing = require_owned(fetch_location(location_id), "Location", location_id, "update")
        cleaned = prepare_location_payload(request_json(), existing)
        update_location(location_id, g.user["id"], cleaned)
        return jsonify({"success": True, "data": fetch_location(location_id).to_json()})

    @app.route("/api/locations/<int:location_id>", methods=["DELETE"])
    @login_required
    def delete_location_route(location_id: int):
        require_owned(fetch_location(location_id), "Location", location_id, "delete")
        # Jobs at this location are left in place and show up without a location.
        delete_location(location_id, g.user["id"])
        logger.info("Location %s deleted", location_id)
        return jsonify({"success": True, "data": {}})

    @app.route("/api/locations/<int:location_id>/photos", methods=["POST"])
    @login_required
    def add_location_photo(location_id: int):
        location = require_owned(fetch_location(location_id), "Location", location_id, "update")
        photo = build_photo(request_json())
        if photo is None:
            raise ApiError("Please provide a photo url", 400)
        set_location_photos(location_id, location.photos + [photo])
        return jsonify({"success": True, "data": photo, "location": fetch_location(location_id).to_json()})

    @app.route("/api/locations/<int:location_id>/photos/<photo_id>", methods=["DELETE"])
    @login_required
    def delete_location_photo(location_id: int, photo_id: str):
        location = require_owned(fetch_location(location_id), "Location", location_id, "update")
        remaining = [photo for photo in location.photos if photo.get("id") != photo_id]
        if len(remaining) == len(location.photos):
            raise ApiError(f"Photo not found with id of {photo_id}", 404)
        set_location_photos(location_id, remaining)
        return jsonify({"success": True, "data": {}})
