"""
Streak engine — consecutive-day study streaks with a bounded revival window.

The transition rules are pure functions over immutable ``StreakRecord``
values; ``StreakEngine`` loads a user's record through a row store, applies a
transition and only adopts the new record once the write has succeeded.

States:
  active     current_streak > 0 (last completed today or yesterday)
  revivable  current_streak == 0, previous_streak > 0, gap within MAX_REVIVE_DAYS
  none       nothing to continue or revive
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Literal, Optional

import dates
from daily_progress import ensure_day_row
from row_store import RowStore

logger = logging.getLogger(__name__)

MAX_REVIVE_DAYS = 3

StreakStatus = Literal["active", "revivable", "none"]


@dataclass(frozen=True)
class StreakRecord:
    user_id: int
    current_streak: int = 0
    longest_streak: int = 0
    previous_streak: int = 0
    last_completed_date: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> StreakRecord:
        return cls(
            user_id=row["user_id"],
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            previous_streak=row["previous_streak"],
            last_completed_date=row["last_completed_date"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ── Pure transitions ─────────────────────────────────────────────────


def missed_days(record: StreakRecord, today: str) -> int | None:
    """Days between the last completed day and yesterday, or None if never active."""
    if not record.last_completed_date:
        return None
    return dates.days_between(record.last_completed_date, dates.add_days(today, -1))


def apply_lapse(record: StreakRecord, today: str) -> StreakRecord:
    """Break a stale streak and expire an out-of-window revival. Idempotent."""
    yesterday = dates.add_days(today, -1)

    if record.current_streak > 0 and record.last_completed_date not in (today, yesterday):
        missed = missed_days(record, today)
        if missed is not None and missed <= MAX_REVIVE_DAYS:
            return replace(record, previous_streak=record.current_streak, current_streak=0)
        return replace(record, previous_streak=0, current_streak=0)

    if record.current_streak == 0 and record.previous_streak > 0:
        missed = missed_days(record, today)
        if missed is None or missed > MAX_REVIVE_DAYS:
            return replace(record, previous_streak=0)

    return record


def apply_completion(record: StreakRecord, today: str) -> StreakRecord:
    """Count ``today`` as studied. A second call on the same day changes nothing."""
    if record.last_completed_date == today:
        return record

    if record.last_completed_date == dates.add_days(today, -1):
        current = record.current_streak + 1
    else:
        current = 1

    return replace(
        record,
        current_streak=current,
        longest_streak=max(record.longest_streak, current),
        previous_streak=0,
        last_completed_date=today,
    )


def apply_revive(record: StreakRecord, today: str) -> tuple[StreakRecord, str | None]:
    """Fill one missed day. Returns the new record and the filled date key.

    When only yesterday is left to fill the previous streak is restored in
    full; otherwise ``last_completed_date`` moves forward by one day.
    """
    if record.previous_streak <= 0:
        return record, None
    missed = missed_days(record, today)
    if missed is None or not 0 < missed <= MAX_REVIVE_DAYS:
        return record, None

    if missed == 1:
        filled = dates.add_days(today, -1)
        restored = replace(
            record,
            current_streak=record.previous_streak,
            longest_streak=max(record.longest_streak, record.previous_streak),
            previous_streak=0,
            last_completed_date=filled,
        )
        return restored, filled

    filled = dates.next_day(record.last_completed_date)
    return replace(record, last_completed_date=filled), filled


def revive_days_remaining(record: StreakRecord, today: str) -> int:
    """How many ``revive()`` calls are still needed (0 when not revivable)."""
    if record.current_streak != 0 or record.previous_streak <= 0:
        return 0
    missed = missed_days(record, today)
    if missed is None or not 0 < missed <= MAX_REVIVE_DAYS:
        return 0
    return missed


def streak_status(record: StreakRecord, today: str) -> StreakStatus:
    view = apply_lapse(record, today)
    if view.current_streak > 0:
        return "active"
    if revive_days_remaining(view, today) > 0:
        return "revivable"
    return "none"


# ── Engine ───────────────────────────────────────────────────────────


class StreakEngine:
    """Per-user streak operations against a row store."""

    def __init__(self, user_id: int, store: RowStore | None = None):
        self.user_id = user_id
        self.store = store or RowStore()
        self._record: StreakRecord | None = None
        self._exists = False

    @property
    def snapshot(self) -> StreakRecord:
        """Last record read or successfully written."""
        if self._record is None:
            return StreakRecord(user_id=self.user_id)
        return self._record

    def load(self) -> StreakRecord:
        """Plain read. Never writes."""
        row = self.store.get_by_id("streaks", self.user_id)
        self._exists = row is not None
        self._record = StreakRecord.from_row(row) if row else StreakRecord(user_id=self.user_id)
        return self._record

    def reconcile(self) -> StreakRecord:
        """Read, then persist any lapse that happened since the last write."""
        record = self.load()
        today = dates.today()
        updated = apply_lapse(record, today)
        if updated != record:
            self._persist(updated)
            if updated.current_streak == 0 and record.current_streak > 0:
                if updated.previous_streak > 0:
                    logger.info("Streak lapsed (revivable) user=%s streak=%d missed=%s",
                                self.user_id, record.current_streak, missed_days(record, today))
                else:
                    logger.info("Streak lapsed (expired) user=%s streak=%d",
                                self.user_id, record.current_streak)
            else:
                logger.info("Revival window expired user=%s previous=%d",
                            self.user_id, record.previous_streak)
        return self.snapshot

    check_lapse = reconcile

    def record_completion(self) -> StreakRecord:
        record = self.load()
        updated = apply_completion(record, dates.today())
        if updated == record and self._exists:
            return record
        if not self._persist(updated):
            # A concurrent first completion created the row; apply on top of it
            record = self.load()
            updated = apply_completion(record, dates.today())
            if updated == record:
                return record
            self._persist(updated)
        return self.snapshot

    def revive(self) -> StreakRecord:
        """Apply one granted revival. No-op outside the revival window."""
        record = self.reconcile()
        updated, filled = apply_revive(record, dates.today())
        if filled is None:
            logger.info("Revive ignored user=%s previous=%d", self.user_id, record.previous_streak)
            return record

        # Stub first: it is idempotent, so a failed streak write can be retried safely.
        ensure_day_row(self.store, self.user_id, filled)
        self._persist(updated)
        if updated.current_streak > 0:
            logger.info("Streak restored user=%s streak=%d", self.user_id, updated.current_streak)
        else:
            logger.info("Streak partially revived user=%s filled=%s remaining=%d",
                        self.user_id, filled, revive_days_remaining(updated, dates.today()))
        return self.snapshot

    def revive_days_remaining(self) -> int:
        record = self._record if self._record is not None else self.load()
        today = dates.today()
        return revive_days_remaining(apply_lapse(record, today), today)

    def completed_today(self) -> bool:
        record = self._record if self._record is not None else self.load()
        return record.last_completed_date == dates.today()

    def state(self) -> dict:
        today = dates.today()
        record = self.snapshot
        return {
            **record.to_dict(),
            "status": streak_status(record, today),
            "completed_today": record.last_completed_date == today,
            "revive_days_remaining": revive_days_remaining(apply_lapse(record, today), today),
            "max_revive_days": MAX_REVIVE_DAYS,
        }

    def _persist(self, record: StreakRecord) -> bool:
        """Write ``record``. False when a first insert lost the race to another writer."""
        now = datetime.now().isoformat()
        values = {
            "current_streak": record.current_streak,
            "longest_streak": record.longest_streak,
            "previous_streak": record.previous_streak,
            "last_completed_date": record.last_completed_date,
            "updated_at": now,
        }
        if self._exists:
            self.store.update("streaks", values, user_id=self.user_id)
        else:
            inserted = self.store.upsert_ignoring_conflict(
                "streaks", {"user_id": self.user_id, "created_at": now, **values})
            if not inserted:
                return False
            self._exists = True
        self._record = record
        return True
