"""Streak routes — current state, daily completion and revival."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from helpers import current_user_id
from streaks import StreakEngine

bp = Blueprint("streak", __name__)


@bp.route("/api/streak")
@login_required
def streak_state():
    engine = StreakEngine(current_user_id())
    engine.reconcile()
    return jsonify(engine.state())


@bp.route("/api/streak/complete", methods=["POST"])
@login_required
def streak_complete():
    """Called once when a quiz session is finished."""
    engine = StreakEngine(current_user_id())
    engine.reconcile()
    engine.record_completion()
    return jsonify({"success": True, **engine.state()})


@bp.route("/api/streak/revive", methods=["POST"])
@login_required
def streak_revive():
    """Called once per granted revival reward."""
    engine = StreakEngine(current_user_id())
    before = engine.reconcile()
    after = engine.revive()
    return jsonify({"success": True, "revived": after != before, **engine.state()})
