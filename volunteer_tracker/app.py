from __future__ import annotations

import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from . import db
from .auth import load_logged_in_user, register_auth_routes
from .errors import register_error_handlers
from .jobs import register_job_routes
from .locations import register_location_routes
from .organizations import register_organization_routes
from .stats import RECENT_JOBS_LIMIT
from .timeutils import LOCAL_UTC_OFFSET_HOURS

BASE_DIR = Path(__file__).resolve().parent.parent
DATABASE_PATH = BASE_DIR / "instance" / "volunteer_tracker.db"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logger = logging.getLogger("volunteer_tracker")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)


def load_config(app: Flask, overrides: Optional[Mapping[str, Any]] = None) -> None:
    load_dotenv()
    app.config.update(
        SECRET_KEY=os.getenv("SECRET_KEY", "change-me"),
        DATABASE=os.getenv("DATABASE_PATH", str(DATABASE_PATH)),
        TOKEN_MAX_AGE_DAYS=int(os.getenv("TOKEN_MAX_AGE_DAYS", "30")),
        LOCAL_UTC_OFFSET_HOURS=float(os.getenv("LOCAL_UTC_OFFSET_HOURS", str(LOCAL_UTC_OFFSET_HOURS))),
        RECENT_JOBS_LIMIT=int(os.getenv("RECENT_JOBS_LIMIT", str(RECENT_JOBS_LIMIT))),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes"),
    )
    if overrides:
        app.config.update(overrides)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=int(app.config["TOKEN_MAX_AGE_DAYS"]))


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    load_config(app, test_config)
    configure_logging(app.config["LOG_LEVEL"])

    db.init_app(app)
    app.before_request(load_logged_in_user)
    register_error_handlers(app)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    register_auth_routes(app)
    register_job_routes(app)
    register_location_routes(app)
    register_organization_routes(app)
    return app


if __name__ == "__main__":
    application = create_app()
    application.run(debug=True, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
