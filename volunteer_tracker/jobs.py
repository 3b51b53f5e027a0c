import logging
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from flask import Flask, Response, current_app, g, jsonify, request

from .auth import login_required, require_owned
from .errors import ApiError, request_json
from .export import EXPORT_FILENAME, build_jobs_csv
from .models import (
    JobDTO,
    build_photo,
    delete_job,
    fetch_job,
    fetch_location,
    fetch_organization,
    filter_jobs,
    insert_job,
    list_jobs,
    set_job_photos,
    update_job,
)
from .stats import compute_job_statistics
from .timeutils import (
    LOCAL_UTC_OFFSET_HOURS,
    duration_minutes,
    format_instant,
    local_to_utc,
    parse_instant,
    utc_now,
)

logger = logging.getLogger(__name__)


def _offset_hours() -> float:
    return float(current_app.config["LOCAL_UTC_OFFSET_HOURS"])


def _parse_id(raw: Any, label: str) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise ApiError(f"Invalid {label} ID: {raw}", 400)


def _clean_tags(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        raise ApiError("Tags must be a list of strings.", 400)
    return [str(tag).strip() for tag in raw if tag is not None and str(tag).strip()]


def prepare_job_payload(
    user_id: int,
    payload: Mapping[str, Any],
    existing: Optional[JobDTO] = None,
    offset_hours: float = LOCAL_UTC_OFFSET_HOURS,
) -> Dict[str, Any]:
    """
    Validate a create/update body and return the columns to store.

    Submitted ``date``/``startTime``/``endTime`` are local wall-clock values and are
    shifted to UTC; fields left out of an update keep their stored values. The
    duration is always derived from the final start and end times.
    """

    def _value(key: str, default: Any = None) -> Any:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return default
        return value.strip() if isinstance(value, str) else value

    def _instant(key: str, stored: Optional[str]) -> Optional[str]:
        raw = _value(key)
        if raw is None:
            return stored
        shifted = local_to_utc(raw, offset_hours)
        if shifted is None:
            raise ApiError(f"Invalid {key}: {raw}", 400)
        return format_instant(shifted)

    title = _value("title", existing.title if existing else None)
    if not title:
        raise ApiError("Please add a job title", 400)

    date = _instant("date", existing.date if existing else None) or format_instant(utc_now())
    start_time = _instant("startTime", existing.start_time if existing else None)
    end_time = _instant("endTime", existing.end_time if existing else None)
    if start_time is None or end_time is None:
        raise ApiError("Start time and end time are required.", 400)

    start = parse_instant(start_time)
    end = parse_instant(end_time)
    if start >= end:
        raise ApiError("Start time must be before end time.", 400)

    if "tags" in payload and payload["tags"] is not None:
        tags = _clean_tags(payload["tags"])
    else:
        tags = list(existing.tags) if existing else []

    location_id = _reference_id(payload, "location", existing.location_id if existing else None)
    organization_id = _reference_id(payload, "organization", existing.organization_id if existing else None)

    if existing is None or location_id != existing.location_id:
        require_owned(fetch_location(location_id), "Location", location_id, "use")
    if existing is None or organization_id != existing.organization_id:
        require_owned(fetch_organization(organization_id), "Organization", organization_id, "use")

    return {
        "title": str(title),
        "description": str(_value("description", existing.description if existing else "")),
        "notes": str(_value("notes", existing.notes if existing else "")),
        "date": date,
        "start_time": start_time,
        "end_time": end_time,
        "duration": duration_minutes(start, end),
        "tags": tags,
        "location_id": location_id,
        "organization_id": organization_id,
    }


def _reference_id(payload: Mapping[str, Any], key: str, stored: Optional[int]) -> int:
    raw = payload.get(key)
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if stored is None:
            raise ApiError(f"{key.capitalize()} is required.", 400)
        return stored
    return _parse_id(raw, key)


def _jobs_response(jobs: List[JobDTO]):
    return jsonify({"success": True, "count": len(jobs), "data": [job.to_json() for job in jobs]})


def register_job_routes(app: Flask) -> None:
    @app.route("/api/jobs", methods=["GET"])
    @login_required
    def get_jobs():
        return _jobs_response(list_jobs(g.user["id"]))

    @app.route("/api/jobs", methods=["POST"])
    @login_required
    def create_job():
        data = request_json()
        cleaned = prepare_job_payload(g.user["id"], data, offset_hours=_offset_hours())
        job_id = insert_job(g.user["id"], cleaned)
        logger.info("Job %s created for user %s", job_id, g.user["id"])
        return jsonify({"success": True, "data": fetch_job(job_id).to_json()}), 201

    @app.route("/api/jobs/statistics", methods=["GET"])
    @login_required
    def get_job_statistics():
        jobs = list_jobs(g.user["id"], newest_first=False)
        stats = compute_job_statistics(
            jobs,
            offset_hours=_offset_hours(),
            recent_limit=int(current_app.config["RECENT_JOBS_LIMIT"]),
        )
        return jsonify({"success": True, "data": stats})

    @app.route("/api/jobs/export", methods=["GET"])
    @login_required
    def export_jobs():
        start_raw = request.args.get("startDate")
        end_raw = request.args.get("endDate")
        start = end_before = None
        if start_raw:
            parsed = parse_instant(start_raw)
            if parsed is None:
                raise ApiError(f"Invalid startDate: {start_raw}", 400)
            start = format_instant(parsed)
        if end_raw:
            parsed = parse_instant(end_raw)
            if parsed is None:
                raise ApiError(f"Invalid endDate: {end_raw}", 400)
            # Include the whole end day.
            try:
                end_before = format_instant(parsed + timedelta(days=1))
            except OverflowError:
                raise ApiError(f"endDate is out of range: {end_raw}", 400)

        location_raw = request.args.get("locationId")
        location_id = _parse_id(location_raw, "location") if location_raw else None
        tags_raw = request.args.get("tags")
        tags = _clean_tags(tags_raw) if tags_raw else None

        jobs = filter_jobs(g.user["id"], start, end_before, location_id, tags)
        if not jobs:
            return jsonify({"success": False, "error": "No jobs found matching the criteria"}), 404

        body = build_jobs_csv(jobs, _offset_hours())
        return Response(
            body,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
        )

    @app.route("/api/jobs/location/<int:location_id>", methods=["GET"])
    @login_required
    def get_jobs_by_location(location_id: int):
        require_owned(fetch_location(location_id), "Location", location_id)
        return _jobs_response(list_jobs(g.user["id"], location_id=location_id))

    @app.route("/api/jobs/organization/<int:organization_id>", methods=["GET"])
    @login_required
    def get_jobs_by_organization(organization_id: int):
        require_owned(fetch_organization(organization_id), "Organization", organization_id)
        return _jobs_response(list_jobs(g.user["id"], organization_id=organization_id))

    @app.route("/api/jobs/<int:job_id>", methods=["GET"])
    @login_required
    def get_job(job_id: int):
        job = require_owned(fetch_job(job_id), "Job", job_id)
        return jsonify({"success": True, "data": job.to_json()})

    @app.route("/api/jobs/<int:job_id>", methods=["PUT"])
    @login_required
    def update_job_route(job_id: int):
        existing = require_owned(fetch_job(job_id), "Job", job_id, "update")
        data = request_json()
        cleaned = prepare_job_payload(g.user["id"], data, existing, offset_hours=_offset_hours())
        update_job(job_id, g.user["id"], cleaned)
        logger.info("Job %s updated", job_id)
        return jsonify({"success": True, "data": fetch_job(job_id).to_json()})

    @app.route("/api/jobs/<int:job_id>", methods=["DELETE"])
    @login_required
    def delete_job_route(job_id: int):
        require_owned(fetch_job(job_id), "Job", job_id, "delete")
        delete_job(job_id, g.user["id"])
        logger.info("Job %s deleted", job_id)
        return jsonify({"success": True, "data": {}})

    @app.route("/api/jobs/<int:job_id>/photos", methods=["POST"])
    @login_required
    def add_job_photo(job_id: int):
        job = require_owned(fetch_job(job_id), "Job", job_id, "update")
        photo = build_photo(request_json())
        if photo is None:
            raise ApiError("Please provide a photo url", 400)
        set_job_photos(job_id, job.photos + [photo])
        return jsonify({"success": True, "data": photo, "job": fetch_job(job_id).to_json()})

    @app.route("/api/jobs/<int:job_id>/photos/<photo_id>", methods=["DELETE"])
    @login_required
    def delete_job_photo(job_id: int, photo_id: str):
        job = require_owned(fetch_job(job_id), "Job", job_id, "update")
        remaining = [photo for photo in job.photos if photo.get("id") != photo_id]
        if len(remaining) == len(job.photos):
            raise ApiError(f"Photo not found with id of {photo_id}", 404)
        set_job_photos(job_id, remaining)
        return jsonify({"success": True, "data": {}})
