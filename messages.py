"""
Push reminder message catalog.

Each slot is a successively later checkpoint in the day; ``deadline`` is the
last-chance slot and ``recovery`` re-engages users whose streak has ended.
Bodies and titles may use ``{streak}`` and ``{remaining}`` placeholders.

The selection rules live here as data so message_selection.py stays generic:
  PRIORITY_RULES  slot -> ordered (min_streak, priority) bands
  DEADLINE_RULES  ordered (min_streak, allowed message ids) bands
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

SlotType = Literal["morning", "lunch", "evening", "night", "final", "deadline", "recovery"]
StreakPriority = Literal["veryHigh", "high", "medium", "low"]

SLOTS: tuple[str, ...] = ("morning", "lunch", "evening", "night", "final", "deadline", "recovery")


@dataclass(frozen=True)
class PushMessage:
    id: str
    title: str
    body: str
    streak_priority: Optional[StreakPriority] = None
    requires_goal: bool = False


MESSAGES: dict[str, tuple[PushMessage, ...]] = {
    "morning": (
        PushMessage("M01", "🌅 Good morning!", "Let's stack up day {streak} today!", "high"),
        PushMessage("M02", "☀️ A brand new day!", "Five minutes in the morning is the shortcut to passing", "low"),
        PushMessage("M03", "🐱 From Streaky", "Morning! Let's do our best together today", "low"),
        PushMessage("M04", "📚 Morning study time", "How about one quick question before you head out?", "low"),
        PushMessage("M05", "🔥 {streak} days in a row!", "Keep it going today too!", "high"),
        PushMessage("M06", "💪 Good Morning!", "One more step toward your IT certification today", "low"),
    ),
    "lunch": (
        PushMessage("L01", "🍱 Lunch time!", "Got 3 minutes after lunch for one question?"),
        PushMessage("L02", "☕ On a break?", "Squeeze in a little IT Streak!"),
        PushMessage("L03", "🐱 It's Streaky", "Want to study together over lunch?"),
        PushMessage("L04", "📱 Spare moment?", "There's still time for today's study!"),
        PushMessage("L05", "🎯 Today's goal", "Only {remaining} more to go!", requires_goal=True),
    ),
    "evening": (
        PushMessage("E01", "🏠 Welcome home!", "You haven't studied today yet", "low"),
        PushMessage("E02", "📱 Forgetting something?", "Protect your {streak}-day streak!", "high"),
        PushMessage("E03", "🐱 From Streaky", "We haven't seen each other today...?", "low"),
        PushMessage("E04", "⏰ Before it gets late", "Just do 5 questions now!", "low"),
        PushMessage("E05", "🔥 Streak in progress", "5 hours left, do it while you can!", "high"),
        PushMessage("E06", "💼 Long day?", "Tired days are the best days for just one question!", "low"),
    ),
    "night": (
        PushMessage("N01", "⚠️ 2.5 hours left!", "Your {streak}-day streak is...!", "veryHigh"),
        PushMessage("N02", "😿 Streaky is worried", "Did you forget today's study...?", "medium"),
        PushMessage("N03", "🔥 Streak in danger", "There's still time! Tap now!", "low"),
        PushMessage("N04", "⏰ Running out of time", "Don't waste {streak} days of effort", "veryHigh"),
        PushMessage("N05", "📉 At this rate...", "Your streak is going to reset", "veryHigh"),
        PushMessage("N06", "🐱 From Streaky", "Hey, I want to say we did our best today too...", "low"),
    ),
    "final": (
        PushMessage("F01", "🚨 45 minutes left!", "Your {streak}-day streak is about to vanish!", "high"),
        PushMessage("F02", "😭 From Streaky", "Please... today is almost over...", "medium"),
        PushMessage("F03", "⏰ Last chance!", "Just one question, tap here!", "low"),
        PushMessage("F04", "💔 {streak} days...", "It's all about to disappear", "high"),
        PushMessage("F05", "🆘 Emergency!", "Open now! You can still make it!", "low"),
        PushMessage("F06", "🐱 Streaky is crying", "I wanted to do our best together today too...", "medium"),
    ),
    "deadline": (
        PushMessage("D01", "🚨 10 minutes left!!", "Open it right now!!", "low"),
        PushMessage("D02", "😭 Please...!", "{streak} days are about to vanish...!", "high"),
        PushMessage("D03", "⏰ Done in 10 minutes", "Just one question! Right now!", "low"),
        PushMessage("D04", "💔 From Streaky", "One last favour... please open...", "medium"),
        PushMessage("D05", "🆘 {streak} days!", "Before it all disappears...!", "high"),
        PushMessage("D06", "😿 Make it in time...!", "Only 10 minutes left...!", "low"),
    ),
    "recovery": (
        PushMessage("R01", "🐱 From Streaky", "Let's start again together! I'm waiting"),
        PushMessage("R02", "🌱 A fresh start!", "Build a new streak starting today"),
        PushMessage("R03", "💪 It's okay!", "You can always start over. Pick it back up today"),
    ),
}

PRIORITY_RULES: dict[str, tuple[tuple[int, StreakPriority], ...]] = {
    "morning": ((5, "high"), (0, "low")),
    "evening": ((7, "high"), (0, "low")),
    "night": ((10, "veryHigh"), (3, "medium"), (0, "low")),
    "final": ((7, "high"), (3, "medium"), (0, "low")),
}

DEADLINE_RULES: tuple[tuple[int, frozenset[str]], ...] = (
    (30, frozenset({"D02", "D05"})),
    (7, frozenset({"D02", "D04", "D05"})),
    (0, frozenset({"D01", "D03", "D06"})),
)


def is_valid_slot(slot) -> bool:
    return isinstance(slot, str) and slot in MESSAGES


def messages_for(slot: str) -> tuple[PushMessage, ...]:
    return MESSAGES[slot]


def message_ids(slot: str) -> list[str]:
    return [m.id for m in MESSAGES[slot]]
