"""Tests for daily_progress.py — counters, goal checks and calendar views."""

import pytest

import dates
from daily_progress import DailyProgressTracker, ensure_day_row, progress_percentage

D = "2026-03-10"


class TestProgressPercentage:
    @pytest.mark.parametrize("answered,goal,expected", [
        (0, 5, 0),
        (3, 5, 60),
        (5, 5, 100),
        (12, 5, 100),
        (1, 3, 33),
        (4, 0, 0),
    ])
    def test_bounded(self, answered, goal, expected):
        assert progress_percentage(answered, goal) == expected


class TestTracker:
    def test_goal_walkthrough(self, store, frozen_today):
        frozen_today(D)
        tracker = DailyProgressTracker(1, store)
        assert tracker.daily_goal == 5

        for correct in (True, False, True):
            tracker.record_answer(correct)
        assert tracker.progress_percentage() == 60
        assert tracker.is_goal_completed() is False

        tracker.record_answer(True)
        assert tracker.today().questions_answered == 4
        assert tracker.is_goal_completed() is False

        tracker.record_answer(True)
        assert tracker.is_goal_completed() is True

        progress = tracker.today()
        assert progress.questions_correct == 4
        assert progress.accuracy_pct == 80

    def test_no_row_means_zero(self, store, frozen_today):
        frozen_today(D)
        tracker = DailyProgressTracker(1, store)
        assert tracker.today().questions_answered == 0
        assert tracker.progress_percentage() == 0
        assert tracker.is_goal_completed() is False

    def test_answers_land_on_the_local_day(self, store, frozen_today):
        tracker = DailyProgressTracker(1, store)
        frozen_today(D, hour=23)
        tracker.record_answer(True)
        frozen_today(dates.add_days(D, 1), hour=0)
        tracker.record_answer(True)
        rows = store.get_by_filter("daily_progress", order_by="date", user_id=1)
        assert [(r["date"], r["questions_answered"]) for r in rows] == [
            (D, 1), (dates.add_days(D, 1), 1),
        ]

    def test_study_time_accumulates(self, store, frozen_today):
        frozen_today(D)
        tracker = DailyProgressTracker(1, store)
        tracker.record_study_time(90)
        assert tracker.record_study_time(30).study_time_seconds == 120

    def test_negative_study_time_rejected(self, store):
        with pytest.raises(ValueError):
            DailyProgressTracker(1, store).record_study_time(-1)

    def test_summary(self, store, frozen_today):
        frozen_today(D)
        store.update("users", {"daily_goal": 4}, id=1)
        tracker = DailyProgressTracker(1, store)
        tracker.record_answer(True)
        s = tracker.summary()
        assert s["daily_goal"] == 4
        assert s["remaining"] == 3
        assert s["progress_percentage"] == 25
        assert s["goal_completed"] is False

    def test_missing_user_uses_default_goal(self, store):
        assert DailyProgressTracker(999, store).daily_goal == 5

    def test_default_goal_follows_config(self, app, store):
        app.config["DEFAULT_DAILY_GOAL"] = 8
        assert DailyProgressTracker(999, store).daily_goal == 8


class TestEnsureDayRow:
    def test_idempotent(self, store):
        assert ensure_day_row(store, 1, D) is True
        assert ensure_day_row(store, 1, D) is False
        assert len(store.get_by_filter("daily_progress", user_id=1, date=D)) == 1


class TestCalendarViews:
    def test_last_n_days_fills_gaps(self, store, frozen_today):
        frozen_today(D)
        ensure_day_row(store, 1, dates.add_days(D, -2))
        days = DailyProgressTracker(1, store).last_n_days(7)
        assert len(days) == 7
        assert days[0]["date"] == dates.add_days(D, -6)
        assert days[-1]["date"] == D
        studied = [d["date"] for d in days if d["studied"]]
        assert studied == [dates.add_days(D, -2)]

    def test_month_calendar_counts_revival_stubs(self, store):
        ensure_day_row(store, 1, "2026-02-27")
        store.insert("daily_progress", {"user_id": 1, "date": "2026-02-28",
                                        "questions_answered": 6, "questions_correct": 5})
        store.insert("daily_progress", {"user_id": 1, "date": "2026-03-01",
                                        "questions_answered": 1})

        cal = DailyProgressTracker(1, store).month_calendar(2026, 2)
        assert cal["days_in_month"] == 28
        assert cal["studied_dates"] == ["2026-02-27", "2026-02-28"]
        assert cal["total_answered"] == 6
        assert cal["total_correct"] == 5
