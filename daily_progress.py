"""
Daily progress tracker — per-user, per-day answered/correct counters.

Rows are created lazily (insert-or-ignore on the (user_id, date) unique key)
and only ever changed through atomic SQL increments, so repeated or
interleaved answer submissions never lose a count.
"""

from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass
from datetime import datetime

from flask import current_app

import dates
from row_store import RowStore


@dataclass
class DailyProgress:
    date: str
    questions_answered: int = 0
    questions_correct: int = 0
    study_time_seconds: int = 0

    @property
    def accuracy_pct(self) -> int:
        if self.questions_answered <= 0:
            return 0
        return round(self.questions_correct / self.questions_answered * 100)

    @classmethod
    def from_row(cls, row: dict) -> DailyProgress:
        return cls(
            date=row["date"],
            questions_answered=row["questions_answered"],
            questions_correct=row["questions_correct"],
            study_time_seconds=row.get("study_time_seconds", 0) or 0,
        )


def ensure_day_row(store: RowStore, user_id: int, date_key: str) -> bool:
    """Create an empty progress row for ``date_key`` if none exists.

    Never touches an existing row. Returns True when a row was created.
    """
    return store.upsert_ignoring_conflict("daily_progress", {
        "user_id": user_id,
        "date": date_key,
        "questions_answered": 0,
        "questions_correct": 0,
        "study_time_seconds": 0,
        "created_at": datetime.now().isoformat(),
    })


def progress_percentage(answered: int, daily_goal: int) -> int:
    if daily_goal <= 0:
        return 0
    return min(100, int(answered / daily_goal * 100))


class DailyProgressTracker:
    """Today's counters and goal for one user."""

    def __init__(self, user_id: int, store: RowStore | None = None):
        self.user_id = user_id
        self.store = store or RowStore()

    @property
    def daily_goal(self) -> int:
        row = self.store.get_by_id("users", self.user_id)
        if not row or not row.get("daily_goal"):
            return int(current_app.config.get("DEFAULT_DAILY_GOAL", 5))
        return row["daily_goal"]

    def get(self, date_key: str) -> DailyProgress | None:
        rows = self.store.get_by_filter("daily_progress", user_id=self.user_id, date=date_key)
        return DailyProgress.from_row(rows[0]) if rows else None

    def today(self) -> DailyProgress:
        today = dates.today()
        return self.get(today) or DailyProgress(date=today)

    def record_answer(self, is_correct: bool) -> DailyProgress:
        today = dates.today()
        ensure_day_row(self.store, self.user_id, today)
        self.store.increment(
            "daily_progress",
            {"questions_answered": 1, "questions_correct": 1 if is_correct else 0},
            user_id=self.user_id, date=today,
        )
        return self.get(today) or DailyProgress(date=today)

    def record_study_time(self, seconds: int) -> DailyProgress:
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        today = dates.today()
        ensure_day_row(self.store, self.user_id, today)
        self.store.increment(
            "daily_progress", {"study_time_seconds": seconds},
            user_id=self.user_id, date=today,
        )
        return self.get(today) or DailyProgress(date=today)

    def is_goal_completed(self) -> bool:
        return self.today().questions_answered >= self.daily_goal

    def progress_percentage(self) -> int:
        return progress_percentage(self.today().questions_answered, self.daily_goal)

    def summary(self) -> dict:
        progress = self.today()
        goal = self.daily_goal
        return {
            "date": progress.date,
            "answered": progress.questions_answered,
            "correct": progress.questions_correct,
            "accuracy_pct": progress.accuracy_pct,
            "study_time_seconds": progress.study_time_seconds,
            "daily_goal": goal,
            "remaining": max(0, goal - progress.questions_answered),
            "progress_percentage": progress_percentage(progress.questions_answered, goal),
            "goal_completed": progress.questions_answered >= goal,
        }

    # --- calendar views ----------------------------------------------

    def range(self, start: str, end: str) -> list[DailyProgress]:
        rows = self.store.get_by_filter(
            "daily_progress", order_by="date",
            user_id=self.user_id, date__gte=start, date__lte=end,
        )
        return [DailyProgress.from_row(r) for r in rows]

    def last_n_days(self, n: int = 7) -> list[dict]:
        """One entry per day, oldest first, including days without a row."""
        end = dates.today()
        start = dates.add_days(end, -(n - 1))
        by_date = {p.date: p for p in self.range(start, end)}
        goal = self.daily_goal
        days = []
        for i in range(n):
            key = dates.add_days(start, i)
            p = by_date.get(key)
            answered = p.questions_answered if p else 0
            days.append({
                "date": key,
                "studied": p is not None,
                "answered": answered,
                "correct": p.questions_correct if p else 0,
                "goal_completed": answered >= goal,
            })
        return days

    def month_calendar(self, year: int, month: int) -> dict:
        """Studied days for a month. Revival stubs count as studied."""
        last_day = calendar.monthrange(year, month)[1]
        start = f"{year:04d}-{month:02d}-01"
        end = f"{year:04d}-{month:02d}-{last_day:02d}"
        entries = self.range(start, end)
        return {
            "month": f"{year:04d}-{month:02d}",
            "days_in_month": last_day,
            "studied_dates": [p.date for p in entries],
            "total_answered": sum(p.questions_answered for p in entries),
            "total_correct": sum(p.questions_correct for p in entries),
            "days": [asdict(p) for p in entries],
        }
