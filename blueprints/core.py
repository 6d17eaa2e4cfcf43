"""Core routes — health checks and the reminder cron endpoint."""

from __future__ import annotations

import hmac
import logging
import sqlite3
import time

from flask import Blueprint, current_app, jsonify, request

from errors import InvalidSlot
from messages import is_valid_slot

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

_start_time = time.time()


@bp.route("/health")
def health():
    uptime = int(time.time() - _start_time)
    return jsonify({"status": "ok", "uptime_seconds": uptime})


@bp.route("/ready")
def ready():
    try:
        from database import get_db
        db = get_db()
        db.execute("SELECT 1").fetchone()
        return jsonify({"status": "ready"}), 200
    except sqlite3.Error as exc:
        logger.error("Readiness check failed: %s", exc, exc_info=True)
        return jsonify({
            "status": "not_ready",
        }), 503


@bp.route("/live")
def live():
    return jsonify({"status": "alive"}), 200


# ── Cron Endpoints ─────────────────────────────────────────
# For hosts without a long-lived scheduler. Authenticated via CRON_SECRET header.

def _verify_cron_secret() -> bool:
    """Verify the request carries a valid CRON_SECRET header."""
    expected = current_app.config.get("CRON_SECRET", "")
    if not expected:
        return False
    supplied = request.headers.get("Authorization", "")
    return hmac.compare_digest(supplied, f"Bearer {expected}")


@bp.route("/api/cron/reminders/<slot>", methods=["GET", "POST"])
def cron_reminders(slot):
    if not _verify_cron_secret():
        return jsonify({"error": "Unauthorized"}), 401
    if not is_valid_slot(slot):
        raise InvalidSlot(slot)

    from reminders import run_for_app
    try:
        result = run_for_app(current_app._get_current_object(), slot)
    except Exception as e:
        logger.error("Cron reminders/%s failed: %s", slot, e, exc_info=True)
        return jsonify({"error": "Cron job failed."}), 500
    return jsonify({"status": "ok", "job": f"reminders-{slot}", "result": result.to_dict()})
