"""
Daily reminder run for one notification slot.

Loads every user with notifications on and a push token, decides who is
eligible for the slot, picks a message per user, dispatches in fixed-size
batches and records what was sent so later runs can avoid repeats.

Streak and progress rows are read-only here; a stale streak is lapse-evaluated
in memory only.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Iterator, Sequence

import dates
from errors import InvalidSlot, PersistenceFailure
from message_selection import build_message
from messages import is_valid_slot
from push import MAX_BATCH_SIZE, ExpoPushTransport, OutboundMessage, unregistered_tokens
from row_store import RowStore
from streaks import StreakRecord, apply_lapse

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
RECENT_WINDOW_DAYS = 3
_READ_CHUNK = 500


@dataclass
class ReminderRunResult:
    slot: str
    candidates: int = 0
    eligible: int = 0
    sent: int = 0
    failed_batches: int = 0
    logged: int = 0
    tokens_pruned: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _Pending:
    user_id: int
    message_id: str
    outbound: OutboundMessage


@dataclass
class UserSnapshot:
    user_id: int
    push_token: str
    daily_goal: int
    streak: int = 0
    last_completed_date: str | None = None
    answered_today: int = 0
    recent_message_ids: list[str] = field(default_factory=list)
    sent_final_today: bool = False


def _chunks(items: Sequence, size: int) -> Iterator[Sequence]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def is_eligible(slot: str, user: UserSnapshot) -> bool:
    unanswered = user.answered_today == 0
    if not unanswered:
        return False
    if slot == "recovery":
        return user.streak == 0 and user.last_completed_date is not None
    if slot == "morning":
        return user.streak > 0 or user.last_completed_date is None
    if slot == "deadline":
        # Still unanswered (checked above) after today's final reminder
        return user.sent_final_today
    return True


def load_snapshots(store: RowStore, today: str) -> list[UserSnapshot]:
    """Batch-read everything the eligibility and selection steps need."""
    users = store.get_by_filter("users", notification_enabled=1, push_token__isnull=False)
    users = [u for u in users if (u.get("push_token") or "").strip()]
    if not users:
        return []

    user_ids = [u["id"] for u in users]
    window_start = dates.add_days(today, -(RECENT_WINDOW_DAYS - 1))
    progress: dict[int, dict] = {}
    streaks: dict[int, StreakRecord] = {}
    logs: list[dict] = []
    for chunk in _chunks(user_ids, _READ_CHUNK):
        for row in store.get_by_filter("daily_progress", user_id__in=list(chunk), date=today):
            progress[row["user_id"]] = row
        for row in store.get_by_filter("streaks", user_id__in=list(chunk)):
            streaks[row["user_id"]] = StreakRecord.from_row(row)
        logs.extend(store.get_by_filter(
            "push_notification_log", order_by="date",
            user_id__in=list(chunk), date__gte=window_start,
        ))

    recent: dict[int, list[str]] = {}
    final_today: set[int] = set()
    for row in logs:
        recent.setdefault(row["user_id"], []).append(row["message_id"])
        if row["date"] == today and row["slot"] == "final":
            final_today.add(row["user_id"])

    snapshots = []
    for u in users:
        uid = u["id"]
        record = streaks.get(uid)
        view = apply_lapse(record, today) if record else None
        row = progress.get(uid)
        snapshots.append(UserSnapshot(
            user_id=uid,
            push_token=u["push_token"],
            daily_goal=u.get("daily_goal") or 0,
            streak=view.current_streak if view else 0,
            last_completed_date=record.last_completed_date if record else None,
            answered_today=row["questions_answered"] if row else 0,
            recent_message_ids=recent.get(uid, []),
            sent_final_today=uid in final_today,
        ))
    return snapshots


def send_daily_reminders(slot: str, store: RowStore | None = None,
                         transport: ExpoPushTransport | None = None,
                         batch_size: int = DEFAULT_BATCH_SIZE,
                         rng: random.Random | None = None) -> ReminderRunResult:
    """Run one slot. Transport failures are logged per batch and never abort the run."""
    if not is_valid_slot(slot):
        raise InvalidSlot(slot)
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if batch_size > MAX_BATCH_SIZE:
        logger.warning("batch_size %d exceeds the push limit, using %d", batch_size, MAX_BATCH_SIZE)
        batch_size = MAX_BATCH_SIZE

    store = store or RowStore()
    transport = transport or ExpoPushTransport()
    today = dates.today()

    snapshots = load_snapshots(store, today)
    result = ReminderRunResult(slot=slot, candidates=len(snapshots))

    pending: list[_Pending] = []
    for user in snapshots:
        if not is_eligible(slot, user):
            continue
        rendered = build_message(
            slot, user.streak, user.daily_goal, user.answered_today,
            user.recent_message_ids, rng,
        )
        pending.append(_Pending(
            user_id=user.user_id,
            message_id=rendered.id,
            outbound=OutboundMessage(
                to=user.push_token,
                title=rendered.title,
                body=rendered.body,
                data={"type": "daily_reminder", "slot": slot, "messageId": rendered.id},
            ),
        ))
    result.eligible = len(pending)

    delivered: list[_Pending] = []
    dead_tokens: list[str] = []
    for index, batch in enumerate(_chunks(pending, batch_size)):
        outbound = [p.outbound for p in batch]
        try:
            tickets = transport.send_batch(outbound)
        except Exception as e:
            result.failed_batches += 1
            logger.error("Push batch %d for slot %s failed (%d messages): %s",
                         index, slot, len(batch), e, exc_info=True)
            continue
        delivered.extend(batch)
        dead_tokens.extend(unregistered_tokens(outbound, tickets))
    result.sent = len(delivered)

    for token in dead_tokens:
        try:
            result.tokens_pruned += store.update("users", {"push_token": None}, push_token=token)
        except PersistenceFailure as e:
            logger.warning("Could not clear unregistered push token: %s", e)

    if delivered:
        now = datetime.now().isoformat()
        entries = [
            {"user_id": p.user_id, "date": today, "slot": slot,
             "message_id": p.message_id, "created_at": now}
            for p in delivered
        ]
        try:
            result.logged = store.insert_many("push_notification_log", entries)
        except PersistenceFailure as e:
            logger.error("Push log write failed for slot %s (%d entries lost): %s",
                         slot, len(entries), e)

    logger.info(
        "Reminder run slot=%s candidates=%d eligible=%d sent=%d failed_batches=%d logged=%d",
        slot, result.candidates, result.eligible, result.sent, result.failed_batches, result.logged,
    )
    return result


def run_for_app(app, slot: str) -> ReminderRunResult:
    """Entry point for the scheduler and the cron endpoint."""
    with app.app_context():
        return send_daily_reminders(
            slot,
            transport=ExpoPushTransport.from_config(app.config),
            batch_size=int(app.config.get("PUSH_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
        )
