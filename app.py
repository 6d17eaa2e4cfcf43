"""
IT Streak — Flask Web Application

JSON API for daily study streaks, progress tracking and scheduled push
reminders.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, jsonify

import database
import dates
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from errors import StreakAppError
from extensions import limiter

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", "dev-key-change-in-production")

    # Streak days follow the configured local calendar
    dates.set_timezone(app.config.get("APP_TIMEZONE") or None)

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Register auth blueprint and login manager
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    @app.errorhandler(StreakAppError)
    def handle_app_error(e: StreakAppError):
        if e.status_code >= 500:
            logger.error("%s: %s", type(e).__name__, e)
        return jsonify({"error": str(e), "type": type(e).__name__}), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if not app.debug and not app.config.get("TESTING"):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Start the reminder scheduler (cron endpoints cover hosts without a long-lived process)
    if not app.config.get("TESTING") and app.config.get("SCHEDULER_ENABLED", True):
        from scheduler import init_scheduler
        try:
            init_scheduler(app)
        except Exception as e:
            logger.error("Scheduler failed to start: %s", e, exc_info=True)

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
