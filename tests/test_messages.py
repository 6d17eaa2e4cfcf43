"""Tests for messages.py — catalog shape and rule tables."""

import re

from messages import DEADLINE_RULES, MESSAGES, PRIORITY_RULES, SLOTS, is_valid_slot, message_ids


def test_every_slot_has_messages():
    assert set(MESSAGES) == set(SLOTS)
    for slot in SLOTS:
        assert len(MESSAGES[slot]) >= 3, slot


def test_ids_unique_and_prefixed_by_slot():
    all_ids = [m.id for slot in SLOTS for m in MESSAGES[slot]]
    assert len(all_ids) == len(set(all_ids))
    for slot in SLOTS:
        prefix = slot[0].upper()
        assert all(i.startswith(prefix) for i in message_ids(slot)), slot


def test_only_known_placeholders():
    for slot in SLOTS:
        for m in MESSAGES[slot]:
            for text in (m.title, m.body):
                assert set(re.findall(r"\{(\w+)\}", text)) <= {"streak", "remaining"}, m.id


def test_only_lunch_uses_goal_flag():
    flagged = [m.id for slot in SLOTS for m in MESSAGES[slot] if m.requires_goal]
    assert flagged == ["L05"]


def test_priority_rules_reference_existing_buckets():
    for slot, bands in PRIORITY_RULES.items():
        priorities = {m.streak_priority for m in MESSAGES[slot]}
        thresholds = [t for t, _ in bands]
        assert thresholds == sorted(thresholds, reverse=True)
        assert thresholds[-1] == 0
        for _, priority in bands:
            assert priority in priorities, (slot, priority)


def test_deadline_rules_cover_all_streaks():
    deadline_ids = set(message_ids("deadline"))
    assert DEADLINE_RULES[-1][0] == 0
    for _, ids in DEADLINE_RULES:
        assert ids and ids <= deadline_ids


def test_is_valid_slot():
    assert is_valid_slot("final")
    assert not is_valid_slot("noon")
    assert not is_valid_slot(None)
    assert not is_valid_slot(["morning"])
