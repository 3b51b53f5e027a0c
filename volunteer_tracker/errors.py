import logging
from typing import Any, Dict

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, InternalServerError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error with an HTTP status, rendered as ``{"success": false, "error": ...}``."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_response(message: str, status_code: int):
    return jsonify({"success": False, "error": message}), status_code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        if error.status_code >= 500:
            logger.error("API error %s: %s", error.status_code, error.message)
        return _error_response(error.message, error.status_code)

    @app.errorhandler(InternalServerError)
    def handle_server_error(error: InternalServerError):
        original = getattr(error, "original_exception", None)
        logger.exception("Unhandled server error: %s", original or error)
        return _error_response("Server Error", 500)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return _error_response(error.description or error.name, error.code or 500)


def request_json() -> Dict[str, Any]:
    """The request body as a JSON object; an empty dict when there is no JSON body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError("Invalid request body", 400)
    return data
