"""Tests for XP, levels, unlocks and their persistence."""

from __future__ import annotations

import asyncio
import json
import threading

import pytest

from grump_engine.core.scheduler import AsyncioScheduler, ManualScheduler
from grump_engine.core.states import EmotionalState
from grump_engine.personality.context import MessageAnalysis
from grump_engine.personality.progression import (
    SAVE_DEBOUNCE_MS,
    STORE_KEY,
    ProgressionState,
    ProgressionTracker,
    Unlockable,
    level_for,
)
from grump_engine.personality.store import MemoryStore

_S = EmotionalState


class BrokenStore:
    def get(self, key: str) -> str | None:
        raise OSError("disk on fire")

    def put(self, key: str, value: str) -> None:
        raise OSError("disk on fire")


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(sched, store):
    return ProgressionTracker(sched, store)


def _saved(store: MemoryStore) -> dict:
    return json.loads(store.data[STORE_KEY])


# ── XP and level ─────────────────────────────────────────────────


class TestXp:
    def test_level_formula(self):
        assert level_for(0) == 1
        assert level_for(99) == 1
        assert level_for(100) == 2
        assert level_for(250) == 3

    def test_plain_interaction(self, tracker):
        tracker.record_interaction(MessageAnalysis())
        assert tracker.xp == 10
        assert tracker.level == 1

    def test_bonus_for_grumpy_messages(self, tracker):
        tracker.record_interaction(MessageAnalysis(emotional_state=_S.ANNOYED))
        assert tracker.xp == 15
        tracker.record_interaction(MessageAnalysis(emotional_state=_S.MAXIMUM_GRUMP))
        assert tracker.xp == 45

    def test_level_up(self, tracker):
        for _ in range(10):
            tracker.record_interaction(MessageAnalysis())
        assert tracker.xp == 100
        assert tracker.level == 2


# ── Unlocks ──────────────────────────────────────────────────────


class TestUnlocks:
    def test_nothing_at_zero_annoyance(self, tracker):
        assert tracker.on_state_change(_S.IDLE, _S.LISTENING) == []
        assert tracker.unlocked == []

    def test_skeptical_unlocks_full_roll(self, tracker):
        new = tracker.on_state_change(_S.IDLE, _S.SKEPTICAL)
        assert [u.id for u in new] == ["eyeRoll_full"]

    def test_max_grump_unlocks_everything_in_one_pass(self, tracker):
        tracker.on_state_change(_S.IDLE, _S.MAXIMUM_GRUMP)
        assert set(tracker.unlocked) == {
            "eyeRoll_full",
            "messageSlam_enhanced",
            "eyeRoll_double",
            "screenShake_intense",
            "rage_glow",
        }
        assert tracker.unlocked.index("eyeRoll_full") < tracker.unlocked.index("eyeRoll_double")

    def test_prerequisite_listed_later_still_resolves(self, sched, store):
        items = (
            Unlockable("b", "B", 10, ("a",)),
            Unlockable("a", "A", 10),
        )
        t = ProgressionTracker(sched, store, unlockables=items)
        t.on_state_change(_S.IDLE, _S.SKEPTICAL)
        assert t.unlocked == ["a", "b"]

    def test_unlocks_are_monotonic(self, tracker):
        tracker.on_state_change(_S.IDLE, _S.ANNOYED)
        before = set(tracker.unlocked)
        tracker.on_state_change(_S.ANNOYED, _S.IDLE)
        tracker.on_state_change(_S.IDLE, _S.SOFT_MODE)
        assert set(tracker.unlocked) == before

    def test_no_duplicates(self, tracker):
        tracker.on_state_change(_S.IDLE, _S.ERROR)
        tracker.on_state_change(_S.ERROR, _S.ERROR)
        assert len(tracker.unlocked) == len(set(tracker.unlocked))

    def test_interaction_checks_current_annoyance(self, tracker):
        tracker.on_state_change(_S.IDLE, _S.SUSPICIOUS)
        assert "messageSlam_enhanced" in tracker.unlocked
        assert "screenShake_intense" not in tracker.unlocked


# ── Persistence ──────────────────────────────────────────────────


class TestPersistence:
    def test_saves_are_debounced(self, tracker, store, sched):
        for _ in range(5):
            tracker.record_interaction(MessageAnalysis())
            sched.advance(50)
        assert store.puts == 0
        sched.advance(SAVE_DEBOUNCE_MS)
        assert store.puts == 1
        assert _saved(store) == {"unlocked": [], "xp": 50, "level": 1}

    def test_round_trip_through_store(self, tracker, store, sched):
        tracker.on_state_change(_S.IDLE, _S.ANNOYED)
        tracker.record_interaction(MessageAnalysis(emotional_state=_S.ANNOYED))
        tracker.flush()
        again = ProgressionTracker(sched, store)
        assert again.xp == 15
        assert again.unlocked == tracker.unlocked

    def test_malformed_record_yields_defaults(self, sched):
        for raw in ("{not json", "[1, 2]", json.dumps({"unlocked": "x"}), json.dumps({"xp": -5})):
            t = ProgressionTracker(sched, MemoryStore({STORE_KEY: raw}))
            assert t.state == ProgressionState()

    def test_stored_level_is_recomputed(self, sched):
        raw = json.dumps({"unlocked": ["a", "a"], "xp": 230, "level": 99})
        t = ProgressionTracker(sched, MemoryStore({STORE_KEY: raw}))
        assert t.level == 3
        assert t.unlocked == ["a"]

    def test_store_failures_are_swallowed(self, sched):
        t = ProgressionTracker(sched, BrokenStore())
        assert t.xp == 0
        t.record_interaction(MessageAnalysis())
        sched.advance(SAVE_DEBOUNCE_MS)
        assert t.xp == 10

    def test_stop_flushes_pending_save(self, tracker, store):
        tracker.record_interaction(MessageAnalysis())
        tracker.stop()
        assert _saved(store)["xp"] == 10

    @pytest.mark.asyncio
    async def test_writes_happen_off_the_loop_thread(self):
        class ThreadStore(MemoryStore):
            def put(self, key: str, value: str) -> None:
                self.thread = threading.get_ident()
                super().put(key, value)

        s = AsyncioScheduler()
        store = ThreadStore()
        t = ProgressionTracker(s, store, save_debounce_ms=1)
        t.record_interaction(MessageAnalysis())
        for _ in range(100):
            if store.puts:
                break
            await asyncio.sleep(0.01)
        s.close()
        assert _saved(store)["xp"] == 10
        assert store.thread != threading.get_ident()


class TestReset:
    def test_reset_clears_and_notifies(self, sched, store):
        calls = []
        t = ProgressionTracker(sched, store, on_reset=lambda: calls.append(1))
        t.on_state_change(_S.IDLE, _S.MAXIMUM_GRUMP)
        t.record_interaction(MessageAnalysis())
        t.reset()
        assert t.unlocked == []
        assert t.xp == 0
        assert t.level == 1
        assert calls == [1]
        sched.advance(SAVE_DEBOUNCE_MS)
        assert _saved(store) == {"unlocked": [], "xp": 0, "level": 1}
