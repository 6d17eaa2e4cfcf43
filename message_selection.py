"""
Pick one reminder message for a user and slot.

Filtering is deterministic given the inputs; only the final pick is random.
Every narrowing step falls back to its input when it would leave nothing, so
a selection always returns an entry from the slot's catalog.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from errors import InvalidSlot
from messages import (
    DEADLINE_RULES,
    PRIORITY_RULES,
    PushMessage,
    StreakPriority,
    is_valid_slot,
    messages_for,
)

_PLACEHOLDER = re.compile(r"\{(streak|remaining)\}")


@dataclass(frozen=True)
class RenderedMessage:
    id: str
    slot: str
    title: str
    body: str


def priority_for_slot(slot: str, streak: int) -> Optional[StreakPriority]:
    for min_streak, priority in PRIORITY_RULES.get(slot, ()):
        if streak >= min_streak:
            return priority
    return None


def deadline_ids_for_streak(streak: int) -> frozenset[str]:
    for min_streak, ids in DEADLINE_RULES:
        if streak >= min_streak:
            return ids
    return frozenset()


def _non_empty(filtered: list[PushMessage], fallback: list[PushMessage]) -> list[PushMessage]:
    return filtered if filtered else fallback


def narrow_candidates(slot: str, streak: int, daily_goal: int) -> list[PushMessage]:
    """Slot-specific narrowing (everything except the recency filter)."""
    if not is_valid_slot(slot):
        raise InvalidSlot(slot)
    candidates = list(messages_for(slot))

    if slot == "deadline":
        allowed = deadline_ids_for_streak(streak)
        return _non_empty([m for m in candidates if m.id in allowed], candidates)

    if slot == "lunch":
        if daily_goal > 0:
            # Goal messages first; ordering only, the rest stay eligible.
            with_goal = [m for m in candidates if m.requires_goal]
            without_goal = [m for m in candidates if not m.requires_goal]
            return with_goal + without_goal
        return _non_empty([m for m in candidates if not m.requires_goal], candidates)

    if slot == "recovery":
        return candidates

    priority = priority_for_slot(slot, streak)
    if priority is None:
        return candidates
    return _non_empty([m for m in candidates if m.streak_priority == priority], candidates)


def filter_recent(candidates: list[PushMessage], recent_message_ids: Iterable[str]) -> list[PushMessage]:
    sent = set(recent_message_ids or ())
    if not sent:
        return candidates
    return _non_empty([m for m in candidates if m.id not in sent], candidates)


def select_message(slot: str, streak: int, daily_goal: int, today_answered: int,
                   recent_message_ids: Iterable[str] = (),
                   rng: random.Random | None = None) -> PushMessage:
    """Return one catalog entry for ``slot``. Never raises for a valid slot."""
    candidates = filter_recent(narrow_candidates(slot, streak, daily_goal), recent_message_ids)
    return (rng or random).choice(candidates)


def substitute_variables(title: str, body: str, streak: int, remaining: int) -> tuple[str, str]:
    values = {"streak": str(streak), "remaining": str(remaining)}

    def _replace(text: str) -> str:
        return _PLACEHOLDER.sub(lambda m: values[m.group(1)], text)

    return _replace(title), _replace(body)


def build_message(slot: str, streak: int, daily_goal: int, today_answered: int,
                  recent_message_ids: Iterable[str] = (),
                  rng: random.Random | None = None) -> RenderedMessage:
    """Select a message and fill in its placeholders."""
    message = select_message(slot, streak, daily_goal, today_answered, recent_message_ids, rng)
    remaining = max(0, daily_goal - today_answered)
    title, body = substitute_variables(message.title, message.body, streak, remaining)
    return RenderedMessage(id=message.id, slot=slot, title=title, body=body)
