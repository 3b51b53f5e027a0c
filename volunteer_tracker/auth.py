import functools
import logging
from typing import Optional

from flask import Flask, current_app, g, jsonify, request, session
from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import ApiError, request_json
from .models import create_user, get_user_by_email, get_user_by_id, update_user, user_exists, user_to_json

logger = logging.getLogger(__name__)

TOKEN_SALT = "volunteer-tracker-auth"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def generate_token(user_id: int) -> str:
    return _serializer().dumps({"id": user_id})


def verify_token(token: str) -> Optional[int]:
    max_age = int(current_app.config["TOKEN_MAX_AGE_DAYS"]) * 24 * 60 * 60
    try:
        data = _serializer().loads(token, max_age=max_age)
    except BadSignature:
        return None
    user_id = data.get("id") if isinstance(data, dict) else None
    return user_id if isinstance(user_id, int) else None


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        return token or None
    return None


def load_logged_in_user() -> None:
    """Resolve the caller from a bearer token first, then from the cookie session."""
    g.user = None
    token = _bearer_token()
    if token is not None:
        user_id = verify_token(token)
        if user_id is None:
            logger.warning("Rejected invalid or expired bearer token")
            return
    else:
        user_id = session.get("user_id")
    if user_id is not None:
        g.user = get_user_by_id(user_id)


def login_required(view):
    @functools.wraps(view)
    def wrapped_view(*args, **kwargs):
        if g.user is None:
            raise ApiError("Not authorized to access this route", 401)
        return view(*args, **kwargs)

    return wrapped_view


def require_owned(record, kind: str, record_id: int, action: str = "access"):
    """Return ``record`` if the current user owns it; 404 when missing, 401 when foreign."""
    if record is None:
        raise ApiError(f"{kind} not found with id of {record_id}", 404)
    if record.user_id != g.user["id"]:
        logger.warning("User %s not authorized to %s %s %s", g.user["id"], action, kind.lower(), record_id)
        raise ApiError(f"User not authorized to {action} this {kind.lower()}", 401)
    return record


def _token_response(user_id: int, status_code: int):
    session.clear()
    session["user_id"] = user_id
    session.permanent = True
    return jsonify({"success": True, "token": generate_token(user_id)}), status_code


def register_auth_routes(app: Flask) -> None:
    @app.route("/api/auth/register", methods=["POST"])
    def register():
        data = request_json()
        email = str(data.get("email", "")).strip().lower()
        name = str(data.get("name", "")).strip()
        password = data.get("password") or ""

        error = None
        if not email:
            error = "Email is required."
        elif not name:
            error = "Name is required."
        elif not password:
            error = "Password is required."
        elif user_exists(email):
            error = "Email already registered."
        if error:
            raise ApiError(error, 400)

        user_id = create_user(name, email, generate_password_hash(str(password)))
        logger.info("Registered user %s", user_id)
        return _token_response(user_id, 201)

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        data = request_json()
        email = str(data.get("email", "")).strip().lower()
        password = data.get("password") or ""
        if not email or not password:
            raise ApiError("Please provide an email and password", 400)

        user = get_user_by_email(email)
        if user is None or not check_password_hash(user["password_hash"], str(password)):
            logger.warning("Failed login attempt for %s", email)
            raise ApiError("Invalid credentials", 401)
        return _token_response(user["id"], 200)

    @app.route("/api/auth/logout", methods=["GET"])
    def logout():
        session.clear()
        return jsonify({"success": True, "data": {}})

    @app.route("/api/auth/me", methods=["GET"])
    @login_required
    def me():
        return jsonify({"success": True, "data": user_to_json(g.user)})

    @app.route("/api/auth/profile", methods=["PUT"])
    @login_required
    def update_profile():
        data = request_json()
        name = str(data.get("name") or g.user["name"]).strip()
        email = str(data.get("email") or g.user["email"]).strip().lower()
        if not name:
            raise ApiError("Name is required.", 400)
        if user_exists(email, exclude_id=g.user["id"]):
            raise ApiError("Email already registered.", 400)

        update_user(g.user["id"], name, email)
        return jsonify({"success": True, "data": user_to_json(get_user_by_id(g.user["id"]))})
