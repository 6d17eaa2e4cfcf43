"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from typing import Any

from flask import request
from flask_login import current_user

from errors import NotAuthenticated


def current_user_id() -> int:
    """Return the current authenticated user's ID."""
    if current_user.is_authenticated:
        return current_user.id
    raise NotAuthenticated()


def json_body() -> dict[str, Any]:
    """Request JSON as a dict; form data and empty bodies become {}."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict() if request.form else {}


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "on")
