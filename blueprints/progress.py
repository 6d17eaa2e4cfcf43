"""Daily progress routes — answers, study time, today/week/month views."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

import dates
from daily_progress import DailyProgressTracker
from helpers import current_user_id, json_body, parse_bool

bp = Blueprint("progress", __name__)


@bp.route("/api/progress/answer", methods=["POST"])
@login_required
def record_answer():
    data = json_body()
    if "is_correct" not in data:
        return jsonify({"error": "is_correct is required"}), 400

    tracker = DailyProgressTracker(current_user_id())
    tracker.record_answer(parse_bool(data.get("is_correct")))
    return jsonify({"success": True, **tracker.summary()})


@bp.route("/api/progress/study-time", methods=["POST"])
@login_required
def record_study_time():
    try:
        seconds = int(json_body().get("seconds", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "seconds must be an integer"}), 400
    if seconds < 0:
        return jsonify({"error": "seconds must be non-negative"}), 400

    tracker = DailyProgressTracker(current_user_id())
    progress = tracker.record_study_time(seconds)
    return jsonify({"success": True, "date": progress.date,
                    "study_time_seconds": progress.study_time_seconds})


@bp.route("/api/progress/today")
@login_required
def progress_today():
    return jsonify(DailyProgressTracker(current_user_id()).summary())


@bp.route("/api/progress/week")
@login_required
def progress_week():
    return jsonify({"days": DailyProgressTracker(current_user_id()).last_n_days(7)})


@bp.route("/api/progress/calendar")
@login_required
def progress_calendar():
    month = request.args.get("month") or dates.today()[:7]
    try:
        year_s, month_s = month.split("-")
        year, mon = int(year_s), int(month_s)
        if not 1 <= mon <= 12:
            raise ValueError(month)
    except ValueError:
        return jsonify({"error": "month must be YYYY-MM"}), 400

    return jsonify(DailyProgressTracker(current_user_id()).month_calendar(year, mon))
