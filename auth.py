"""
User Authentication — Flask-Login blueprint.

JSON register, login, logout, session and account-deletion routes.
Uses werkzeug.security for password hashing.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from errors import NotAuthenticated
from extensions import limiter
from helpers import json_body
from row_store import RowStore

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, email: str, display_name: str = ""):
        self.id = id
        self.email = email
        self.display_name = display_name

    @staticmethod
    def get(user_id: int):
        row = RowStore().get_by_id("users", user_id)
        if row:
            return User(row["id"], row["email"], row["display_name"])
        return None

    @staticmethod
    def get_by_email(email: str) -> dict | None:
        rows = RowStore().get_by_filter("users", email=email)
        return rows[0] if rows else None

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "display_name": self.display_name}


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.unauthorized_handler
def _unauthorized():
    raise NotAuthenticated()


def _validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters."
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter."
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter."
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit."
    return None


def _locked_minutes(row: dict) -> int:
    """Minutes left on an account lock, 0 when unlocked."""
    locked_until = row.get("locked_until") or ""
    if not locked_until:
        return 0
    try:
        remaining = (datetime.fromisoformat(locked_until) - datetime.now()).total_seconds()
    except (ValueError, TypeError):
        return 0
    return math.ceil(remaining / 60) if remaining > 0 else 0


@auth_bp.route("/api/auth/register", methods=["POST"])
@limiter.limit("3 per hour")
def register():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    display_name = (data.get("display_name") or "").strip()

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    pw_error = _validate_password(password)
    if pw_error:
        return jsonify({"error": pw_error}), 400

    if User.get_by_email(email):
        return jsonify({"error": "An account with this email already exists."}), 409

    now = datetime.now().isoformat()
    row = RowStore().insert("users", {
        "email": email,
        "display_name": display_name,
        "password_hash": generate_password_hash(password),
        "daily_goal": int(current_app.config.get("DEFAULT_DAILY_GOAL", 5)),
        "created_at": now,
        "updated_at": now,
    })

    log_event("register", row["id"], f"email={email}")
    user = User(row["id"], email, display_name)
    login_user(user, remember=True)
    return jsonify({"success": True, "user": user.to_dict()}), 201


@auth_bp.route("/api/auth/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    row = User.get_by_email(email)
    if not row:
        return jsonify({"error": "Invalid email or password."}), 401

    store = RowStore()
    mins = _locked_minutes(row)
    if mins:
        log_event("login_locked", row["id"], f"email={email}")
        return jsonify({"error": f"Account temporarily locked. Try again in {mins} minute(s)."}), 423

    if not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        attempts = (row.get("login_attempts") or 0) + 1
        values = {"login_attempts": attempts}
        if attempts >= LOCKOUT_THRESHOLD:
            values["locked_until"] = (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat()
        store.update("users", values, id=row["id"])
        log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
        return jsonify({"error": "Invalid email or password."}), 401

    # Success: reset lockout fields
    store.update("users", {"login_attempts": 0, "locked_until": ""}, id=row["id"])

    user = User(row["id"], row["email"], row["display_name"])
    login_user(user, remember=True)
    log_event("login_success", row["id"])
    return jsonify({"success": True, "user": user.to_dict()})


@auth_bp.route("/api/auth/logout", methods=["POST"])
def logout():
    uid = current_user.id if current_user.is_authenticated else None
    log_event("logout", uid)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/api/auth/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})


@auth_bp.route("/api/account/delete", methods=["POST"])
@login_required
def account_delete():
    """Delete the account and all of its study data after password confirmation."""
    uid = current_user.id
    password = json_body().get("password") or ""

    if not password:
        return jsonify({"error": "Password is required to confirm account deletion."}), 400

    row = RowStore().get_by_id("users", uid)
    if not row or not check_password_hash(row["password_hash"], password):
        return jsonify({"error": "Incorrect password."}), 403

    log_event("account_delete", uid)
    db = get_db()
    with db:
        for table in ("push_notification_log", "daily_progress", "streaks"):
            db.execute(f"DELETE FROM {table} WHERE user_id = ?", (uid,))
        db.execute("DELETE FROM users WHERE id = ?", (uid,))
    logout_user()
    return jsonify({"success": True, "message": "Account deleted."})
