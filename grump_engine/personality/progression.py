"""ProgressionTracker: XP, levels and cosmetic unlocks.

XP grows with every analysed message; unlocks are gated on the annoyance
level of the current emotional state.  Unlocks are append-only and only
``reset()`` clears them.  Every mutation schedules a debounced save of
``{unlocked, xp, level}`` to the key-value store.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Final

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.states import EmotionalState, annoyance_for
from grump_engine.personality.context import MessageAnalysis
from grump_engine.personality.store import KeyValueStore

log = logging.getLogger(__name__)

STORE_KEY = "grump_achievements_v2"
SAVE_DEBOUNCE_MS = 150.0

XP_PER_INTERACTION = 10
XP_BONUS: Final[dict[EmotionalState, int]] = {
    EmotionalState.ANNOYED: 5,
    EmotionalState.MAXIMUM_GRUMP: 20,
}
XP_PER_LEVEL = 100


@dataclass(slots=True, frozen=True)
class Unlockable:
    id: str
    name: str
    min_annoyance: int
    prerequisites: tuple[str, ...] = ()


UNLOCKABLES: Final[tuple[Unlockable, ...]] = (
    Unlockable("eyeRoll_full", "Eye Roll (Full)", 20),
    Unlockable("messageSlam_enhanced", "Message Slam (Enhanced)", 40),
    Unlockable("eyeRoll_double", "Eye Roll (Double)", 50, ("eyeRoll_full",)),
    Unlockable("screenShake_intense", "Screen Shake (Intense)", 60),
    Unlockable("rage_glow", "Rage Glow", 80),
)


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


@dataclass(slots=True)
class ProgressionState:
    unlocked: list[str] = field(default_factory=list)
    xp: int = 0
    level: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"unlocked": list(self.unlocked), "xp": self.xp, "level": self.level}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ProgressionState:
        unlocked = d.get("unlocked", [])
        if not isinstance(unlocked, list) or not all(isinstance(u, str) for u in unlocked):
            raise ValueError("unlocked must be a list of strings")
        xp = int(d.get("xp", 0))
        if xp < 0:
            raise ValueError("xp must be non-negative")
        # Level is derived; a stored value that disagrees is ignored.
        return cls(unlocked=list(dict.fromkeys(unlocked)), xp=xp, level=level_for(xp))


class ProgressionTracker:
    def __init__(
        self,
        scheduler: Scheduler,
        store: KeyValueStore,
        on_reset: Callable[[], None] | None = None,
        unlockables: tuple[Unlockable, ...] = UNLOCKABLES,
        save_debounce_ms: float = SAVE_DEBOUNCE_MS,
    ) -> None:
        self._scheduler = scheduler
        self._store = store
        self._on_reset = on_reset
        self._unlockables = unlockables
        self._debounce_ms = save_debounce_ms
        self._save_token: CancelToken | None = None
        self._annoyance = 0
        self.state = self._load()

    @property
    def unlocked(self) -> list[str]:
        return list(self.state.unlocked)

    @property
    def xp(self) -> int:
        return self.state.xp

    @property
    def level(self) -> int:
        return self.state.level

    # -- Persistence --------------------------------------------------------

    def _load(self) -> ProgressionState:
        try:
            raw = self._store.get(STORE_KEY)
        except Exception as e:
            log.warning("progression: store read failed: %s", e)
            return ProgressionState()
        if raw is None:
            return ProgressionState()
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("record is not an object")
            state = ProgressionState.from_dict(data)
        except Exception as e:
            log.warning("progression: malformed record under %s, using defaults: %s", STORE_KEY, e)
            return ProgressionState()
        log.info(
            "progression: loaded xp=%d level=%d unlocked=%s",
            state.xp, state.level, state.unlocked,
        )
        return state

    def _schedule_save(self) -> None:
        if self._save_token is not None:
            self._save_token.cancel()
        self._save_token = self._scheduler.schedule(self._debounce_ms, self._save)

    def _save(self) -> None:
        self._save_token = None
        payload = json.dumps(self.state.to_dict())
        self._scheduler.run_blocking(lambda: self._write(payload))

    def _write(self, payload: str) -> None:
        try:
            self._store.put(STORE_KEY, payload)
        except Exception as e:
            log.warning("progression: store write failed: %s", e)

    def flush(self) -> None:
        """Write any pending save immediately."""
        if self._save_token is not None:
            self._save_token.cancel()
            self._save()

    # -- Updates ------------------------------------------------------------

    def record_interaction(self, analysis: MessageAnalysis) -> list[Unlockable]:
        gain = XP_PER_INTERACTION + XP_BONUS.get(analysis.emotional_state, 0)
        self.state.xp += gain
        self.state.level = level_for(self.state.xp)
        unlocked = self._evaluate_unlocks()
        self._schedule_save()
        return unlocked

    def on_state_change(self, prev: EmotionalState, new: EmotionalState) -> list[Unlockable]:
        self._annoyance = annoyance_for(new)
        unlocked = self._evaluate_unlocks()
        if unlocked:
            self._schedule_save()
        return unlocked

    def _evaluate_unlocks(self) -> list[Unlockable]:
        have = set(self.state.unlocked)
        newly: list[Unlockable] = []
        changed = True
        while changed:
            changed = False
            for item in self._unlockables:
                if item.id in have or self._annoyance < item.min_annoyance:
                    continue
                if all(p in have for p in item.prerequisites):
                    have.add(item.id)
                    self.state.unlocked.append(item.id)
                    newly.append(item)
                    changed = True
        for item in newly:
            log.info("progression: unlocked %s (annoyance %d)", item.id, self._annoyance)
        return newly

    def reset(self) -> None:
        self.state = ProgressionState()
        self._annoyance = 0
        self._schedule_save()
        log.info("progression: reset")
        if self._on_reset is not None:
            self._on_reset()

    def stop(self) -> None:
        self.flush()
