"""Settings and push-token registration routes."""

from __future__ import annotations

from datetime import datetime

from flask import Blueprint, jsonify
from flask_login import login_required

from audit import log_event
from helpers import current_user_id, json_body, parse_bool
from row_store import RowStore

bp = Blueprint("settings", __name__)

MAX_DAILY_GOAL = 100


def _settings_payload(row: dict) -> dict:
    return {
        "daily_goal": row["daily_goal"],
        "notification_enabled": bool(row["notification_enabled"]),
        "push_registered": bool(row.get("push_token")),
    }


@bp.route("/api/settings")
@login_required
def get_settings():
    row = RowStore().get_by_id("users", current_user_id())
    return jsonify(_settings_payload(row))


@bp.route("/api/settings", methods=["POST"])
@login_required
def update_settings():
    uid = current_user_id()
    data = json_body()
    values: dict = {}

    if "daily_goal" in data:
        try:
            goal = int(data["daily_goal"])
        except (TypeError, ValueError):
            return jsonify({"error": "daily_goal must be an integer"}), 400
        if not 1 <= goal <= MAX_DAILY_GOAL:
            return jsonify({"error": f"daily_goal must be between 1 and {MAX_DAILY_GOAL}"}), 400
        values["daily_goal"] = goal

    if "notification_enabled" in data:
        values["notification_enabled"] = 1 if parse_bool(data["notification_enabled"]) else 0

    store = RowStore()
    if values:
        values["updated_at"] = datetime.now().isoformat()
        store.update("users", values, id=uid)
    return jsonify({"success": True, **_settings_payload(store.get_by_id("users", uid))})


@bp.route("/api/push/token", methods=["POST"])
@login_required
def register_push_token():
    uid = current_user_id()
    token = (json_body().get("token") or "").strip()
    if not token:
        return jsonify({"error": "token is required"}), 400

    store = RowStore()
    now = datetime.now().isoformat()
    # A device token belongs to one account at a time
    store.update("users", {"push_token": None, "push_token_registered_at": None},
                 push_token=token, id__ne=uid)
    store.update("users", {"push_token": token, "push_token_registered_at": now,
                           "updated_at": now}, id=uid)
    log_event("push_token_registered", uid)
    return jsonify({"success": True})


@bp.route("/api/push/unregister", methods=["POST"])
@login_required
def unregister_push_token():
    uid = current_user_id()
    RowStore().update("users", {"push_token": None, "push_token_registered_at": None,
                                "updated_at": datetime.now().isoformat()}, id=uid)
    log_event("push_token_removed", uid)
    return jsonify({"success": True})
