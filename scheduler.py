"""
Reminder Scheduler — registers one cron job per notification slot.

Jobs (defaults, overridable via REMINDER_SCHEDULE / REMINDER_TIME_<SLOT>):
  - morning   08:00
  - lunch     12:15
  - evening   19:00
  - recovery  20:00
  - night     21:30
  - final     23:15
  - deadline  23:50
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from messages import SLOTS
from reminders import run_for_app

logger = logging.getLogger(__name__)


def parse_time(value: str) -> tuple[int, int]:
    """'HH:MM' -> (hour, minute)."""
    hour, _, minute = value.strip().partition(":")
    h, m = int(hour), int(minute or 0)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Invalid reminder time: {value!r}")
    return h, m


def _run_slot(app, slot: str) -> None:
    try:
        run_for_app(app, slot)
    except Exception as e:
        logger.error("Reminder job %s failed: %s", slot, e, exc_info=True)


def build_scheduler(app) -> BackgroundScheduler:
    """Create a scheduler with a job per configured slot (not started)."""
    timezone = app.config.get("APP_TIMEZONE") or None
    scheduler = BackgroundScheduler(daemon=True, timezone=timezone) if timezone \
        else BackgroundScheduler(daemon=True)

    schedule = app.config.get("REMINDER_SCHEDULE") or {}
    for slot in SLOTS:
        at = schedule.get(slot)
        if not at:
            continue
        hour, minute = parse_time(at)
        scheduler.add_job(
            func=_run_slot,
            args=[app, slot],
            trigger="cron",
            hour=hour,
            minute=minute,
            id=f"reminder_{slot}",
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=300,
        )
    return scheduler


def init_scheduler(app) -> BackgroundScheduler:
    """Start the background scheduler for all reminder slots."""
    scheduler = build_scheduler(app)
    scheduler.start()
    logger.info("Reminder scheduler started (%d slots)", len(scheduler.get_jobs()))
    return scheduler
