"""Tests for reminders.py — eligibility, batching, send log and token pruning."""

import json
import random
from unittest.mock import MagicMock, patch

import httpx
import pytest

import dates
from errors import InvalidSlot, PersistenceFailure, TransportBatchFailure
from messages import message_ids
from push import MAX_BATCH_SIZE, ExpoPushTransport
from reminders import UserSnapshot, is_eligible, load_snapshots, send_daily_reminders

D = "2026-03-10"


class FakeTransport:
    """Records batches; fails the batch indexes in ``fail``."""

    def __init__(self, fail=(), dead=()):
        self.fail = set(fail)
        self.dead = set(dead)
        self.batches = []

    def send_batch(self, messages):
        index = len(self.batches)
        self.batches.append(list(messages))
        if index in self.fail:
            raise TransportBatchFailure("service unavailable", status=503)
        tickets = []
        for m in messages:
            if m.to in self.dead:
                tickets.append({"status": "error", "details": {"error": "DeviceNotRegistered"}})
            else:
                tickets.append({"status": "ok", "id": f"ticket-{m.to}"})
        return tickets

    @property
    def sent(self):
        return [m for batch in self.batches for m in batch]


def add_user(store, n, token=True, enabled=1, goal=5):
    return store.insert("users", {
        "email": f"user{n}@example.com",
        "daily_goal": goal,
        "notification_enabled": enabled,
        "push_token": f"ExponentPushToken[{n}]" if token else None,
    })["id"]


def set_streak(store, user_id, current, last, previous=0):
    store.insert("streaks", {"user_id": user_id, "current_streak": current,
                             "longest_streak": max(current, previous),
                             "previous_streak": previous, "last_completed_date": last})


def answered(store, user_id, n, day=D):
    store.insert("daily_progress", {"user_id": user_id, "date": day, "questions_answered": n})


class TestEligibility:
    def snap(self, **kw):
        base = dict(user_id=1, push_token="t", daily_goal=5)
        base.update(kw)
        return UserSnapshot(**base)

    def test_answered_users_never_eligible(self):
        for slot in ("morning", "lunch", "night", "recovery", "deadline"):
            assert not is_eligible(slot, self.snap(answered_today=1, sent_final_today=True,
                                                   last_completed_date=D))

    def test_recovery_requires_history_and_zero_streak(self):
        assert is_eligible("recovery", self.snap(streak=0, last_completed_date="2026-03-01"))
        assert not is_eligible("recovery", self.snap(streak=0, last_completed_date=None))
        assert not is_eligible("recovery", self.snap(streak=3, last_completed_date=D))

    def test_morning_skips_lapsed_users(self):
        assert is_eligible("morning", self.snap(streak=2, last_completed_date=D))
        assert is_eligible("morning", self.snap(streak=0, last_completed_date=None))
        assert not is_eligible("morning", self.snap(streak=0, last_completed_date="2026-03-01"))

    def test_deadline_only_after_final(self):
        assert not is_eligible("deadline", self.snap())
        assert is_eligible("deadline", self.snap(sent_final_today=True))

    def test_other_slots_only_need_unanswered(self):
        for slot in ("lunch", "evening", "night", "final"):
            assert is_eligible(slot, self.snap())


class TestSnapshots:
    def test_filters_disabled_and_tokenless_users(self, store, frozen_today):
        frozen_today(D)
        add_user(store, 2, enabled=0)
        add_user(store, 3, token=False)
        blank = add_user(store, 4)
        store.update("users", {"push_token": "  "}, id=blank)
        assert [s.user_id for s in load_snapshots(store, D)] == [1]

    def test_streak_lapse_evaluated_in_memory_only(self, store):
        set_streak(store, 1, current=6, last=dates.add_days(D, -3))
        snap = load_snapshots(store, D)[0]
        assert snap.streak == 0
        assert store.get_by_id("streaks", 1)["current_streak"] == 6

    def test_recent_window_is_three_days(self, store):
        store.insert_many("push_notification_log", [
            {"user_id": 1, "date": dates.add_days(D, -3), "slot": "night", "message_id": "N01"},
            {"user_id": 1, "date": dates.add_days(D, -2), "slot": "night", "message_id": "N02"},
            {"user_id": 1, "date": D, "slot": "final", "message_id": "F03"},
        ])
        snap = load_snapshots(store, D)[0]
        assert snap.recent_message_ids == ["N02", "F03"]
        assert snap.sent_final_today is True


class TestRun:
    def test_invalid_slot_raises_before_any_read(self):
        store = MagicMock()
        with pytest.raises(InvalidSlot):
            send_daily_reminders("noon", store=store, transport=FakeTransport())
        store.get_by_filter.assert_not_called()

    def test_batch_size_must_be_positive(self, store):
        with pytest.raises(ValueError):
            send_daily_reminders("night", store=store, transport=FakeTransport(), batch_size=0)

    def test_sends_and_logs(self, store, frozen_today):
        frozen_today(D)
        set_streak(store, 1, current=12, last=dates.add_days(D, -1))
        transport = FakeTransport()

        result = send_daily_reminders("night", store=store, transport=transport,
                                      rng=random.Random(3))

        assert (result.candidates, result.eligible, result.sent, result.logged) == (1, 1, 1, 1)
        [message] = transport.sent
        assert message.to == "ExponentPushToken[test-1]"
        assert message.data["slot"] == "night"
        assert message.data["messageId"] in {"N01", "N04", "N05"}
        assert "{" not in message.title + message.body

        [log] = store.get_by_filter("push_notification_log", user_id=1)
        assert (log["date"], log["slot"], log["message_id"]) == (D, "night", message.data["messageId"])

    def test_answered_user_gets_nothing(self, store, frozen_today):
        frozen_today(D)
        answered(store, 1, 2)
        transport = FakeTransport()
        result = send_daily_reminders("evening", store=store, transport=transport)
        assert result.eligible == 0
        assert transport.batches == []
        assert store.get_by_filter("push_notification_log") == []

    def test_recovery_never_targets_new_users(self, store, frozen_today):
        frozen_today(D)
        lapsed = add_user(store, 2)
        set_streak(store, lapsed, current=4, last=dates.add_days(D, -8))
        transport = FakeTransport()

        send_daily_reminders("recovery", store=store, transport=transport)

        assert [m.to for m in transport.sent] == ["ExponentPushToken[2]"]

    def test_deadline_escalates_only_after_final(self, store, frozen_today):
        frozen_today(D)
        other = add_user(store, 2)
        store.insert("push_notification_log",
                     {"user_id": other, "date": D, "slot": "final", "message_id": "F01"})
        transport = FakeTransport()

        send_daily_reminders("deadline", store=store, transport=transport)

        assert [m.to for m in transport.sent] == ["ExponentPushToken[2]"]

    def test_recent_messages_avoided(self, store, frozen_today):
        frozen_today(D)
        set_streak(store, 1, current=40, last=dates.add_days(D, -1))
        store.insert_many("push_notification_log", [
            {"user_id": 1, "date": D, "slot": "final", "message_id": "F01"},
            {"user_id": 1, "date": dates.add_days(D, -1), "slot": "deadline", "message_id": "D02"},
        ])
        transport = FakeTransport()
        send_daily_reminders("deadline", store=store, transport=transport, rng=random.Random(5))
        assert transport.sent[0].data["messageId"] == "D05"

    def test_batches_respect_size(self, store, frozen_today):
        frozen_today(D)
        for n in range(2, 8):
            add_user(store, n)
        transport = FakeTransport()

        result = send_daily_reminders("lunch", store=store, transport=transport, batch_size=3)

        assert [len(b) for b in transport.batches] == [3, 3, 1]
        assert result.sent == 7

    def test_failed_batch_does_not_abort_run(self, store, frozen_today):
        frozen_today(D)
        for n in range(2, 8):
            add_user(store, n)
        transport = FakeTransport(fail={1})

        result = send_daily_reminders("lunch", store=store, transport=transport, batch_size=3)

        assert len(transport.batches) == 3
        assert result.failed_batches == 1
        assert result.sent == 4
        assert result.logged == 4
        failed_ids = {m.to for m in transport.batches[1]}
        logged_users = {r["user_id"] for r in store.get_by_filter("push_notification_log")}
        assert len(logged_users) == 4
        for uid in logged_users:
            token = store.get_by_id("users", uid)["push_token"]
            assert token not in failed_ids

    def test_log_write_failure_still_completes(self, store, frozen_today):
        frozen_today(D)
        transport = FakeTransport()
        with patch.object(store, "insert_many", side_effect=PersistenceFailure("read-only")):
            result = send_daily_reminders("lunch", store=store, transport=transport)
        assert result.sent == 1
        assert result.logged == 0

    def test_unregistered_tokens_cleared(self, store, frozen_today):
        frozen_today(D)
        gone = add_user(store, 2)
        transport = FakeTransport(dead={"ExponentPushToken[2]"})

        result = send_daily_reminders("lunch", store=store, transport=transport)

        assert result.tokens_pruned == 1
        assert store.get_by_id("users", gone)["push_token"] is None
        assert store.get_by_id("users", 1)["push_token"] == "ExponentPushToken[test-1]"

    def test_no_candidates_is_an_empty_summary(self, store, frozen_today):
        frozen_today(D)
        store.update("users", {"notification_enabled": 0}, id=1)
        result = send_daily_reminders("final", store=store, transport=FakeTransport())
        assert result.to_dict() == {
            "slot": "final", "candidates": 0, "eligible": 0, "sent": 0,
            "failed_batches": 0, "logged": 0, "tokens_pruned": 0,
        }

    def test_every_slot_message_comes_from_its_catalog(self, store, frozen_today):
        frozen_today(D)
        set_streak(store, 1, current=3, last=dates.add_days(D, -1))
        store.insert("push_notification_log",
                     {"user_id": 1, "date": D, "slot": "final", "message_id": "F02"})
        for slot in ("morning", "lunch", "evening", "night", "deadline"):
            transport = FakeTransport()
            send_daily_reminders(slot, store=store, transport=transport)
            assert transport.sent[0].data["messageId"] in message_ids(slot)

    def test_oversize_batch_size_capped_to_push_limit(self, store, frozen_today):
        frozen_today(D)
        for n in range(2, 131):
            add_user(store, n)
        requests = []

        def handler(request):
            body = json.loads(request.content)
            requests.append(body)
            return httpx.Response(200, json={"data": [{"status": "ok", "id": f"t{i}"}
                                                      for i in range(len(body))]})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        transport = ExpoPushTransport(url="https://push.test/send", client=client)

        result = send_daily_reminders("lunch", store=store, transport=transport, batch_size=150)

        assert [len(body) for body in requests] == [MAX_BATCH_SIZE, 30]
        assert (result.eligible, result.sent, result.failed_batches, result.logged) == (130, 130, 0, 130)
