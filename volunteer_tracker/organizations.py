import logging
import re
from typing import Any, Dict, Mapping, Optional

from flask import Flask, g, jsonify, request

from .auth import login_required, require_owned
from .errors import ApiError, request_json
from .models import (
    OrganizationDTO,
    delete_organization,
    fetch_organization,
    insert_organization,
    list_organizations,
    update_organization,
)

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def prepare_organization_payload(
    payload: Mapping[str, Any], existing: Optional[OrganizationDTO] = None
) -> Dict[str, Any]:
    contact = payload.get("contact")
    if contact is not None and not isinstance(contact, Mapping):
        raise ApiError("Contact must be an object.", 400)
    contact = contact or {}

    def _text(source: Mapping[str, Any], key: str, default: str) -> str:
        value = source.get(key)
        if value is None:
            return default
        return str(value).strip()

    name = _text(payload, "name", existing.name if existing else "")
    if not name:
        raise ApiError("Please add an organization name", 400)
    if len(name) > NAME_MAX_LENGTH:
        raise ApiError(f"Name cannot be more than {NAME_MAX_LENGTH} characters", 400)

    contact_email = _text(contact, "email", existing.contact_email if existing else "")
    if contact_email and not EMAIL_PATTERN.match(contact_email):
        raise ApiError("Please add a valid email", 400)

    return {
        "name": name,
        "description": _text(payload, "description", existing.description if existing else ""),
        "contact_name": _text(contact, "name", existing.contact_name if existing else ""),
        "contact_email": contact_email,
        "contact_phone": _text(contact, "phone", existing.contact_phone if existing else ""),
    }


def register_organization_routes(app: Flask) -> None:
    @app.route("/api/organizations", methods=["GET"])
    @login_required
    def get_organizations():
        organizations = list_organizations(g.user["id"])
        return jsonify(
            {"success": True, "count": len(organizations), "data": [org.to_json() for org in organizations]}
        )

    @app.route("/api/organizations", methods=["POST"])
    @login_required
    def create_organization():
        cleaned = prepare_organization_payload(request_json())
        organization_id = insert_organization(g.user["id"], cleaned)
        logger.info("Organization %s created for user %s", organization_id, g.user["id"])
        return jsonify({"success": True, "data": fetch_organization(organization_id).to_json()}), 201

    @app.route("/api/organizations/<int:organization_id>", methods=["GET"])
    @login_required
    def get_organization(organization_id: int):
        organization = require_owned(fetch_organization(organization_id), "Organization", organization_id)
        return jsonify({"success": True, "data": organization.to_json()})

    @app.route("/api/organizations/<int:organization_id>", methods=["PUT"])
    @login_required
    def update_organization_route(organization_id: int):
        existing = require_owned(fetch_organization(organization_id), "Organization", organization_id, "update")
        cleaned = prepare_organization_payload(request_json(), existing)
        update_organization(organization_id, g.user["id"], cleaned)
        return jsonify({"success": True, "data": fetch_organization(organization_id).to_json()})

    @app.route("/api/organizations/<int:organization_id>", methods=["DELETE"])
    @login_required
    def delete_organization_route(organization_id: int):
        require_owned(fetch_organization(organization_id), "Organization", organization_id, "delete")
        delete_organization(organization_id, g.user["id"])
        return jsonify({"success": True, "data": {}})
