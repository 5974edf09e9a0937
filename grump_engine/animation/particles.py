"""ParticleSpawner: six particle kinds with spawn and lifecycle rules.

Positions are percentages of the face container.  ``set_particle_type``
replaces whatever was running: old particles are dropped and old timers
cancelled before the new burst spawns.  ``update(now)`` advances every
live particle and drops the expired ones.

  sleepZ          burst 3, +1 / 1500 ms, 2 s, drifts up with a sway
  confetti        burst 20, 2-3 s, falls and spins, no respawn
  coffeeSteam     burst 5, +1 / 800 ms (max 10 live), 3 s, rises with a sway
  angerParticle   burst 8 at 45 deg steps, 0.5 s, bursts outward
  sparkle         burst 3 near centre, 0.4 s
  glitchRectangle burst 5, jumps every 50 ms, gone at 500 ms
"""

from __future__ import annotations

import itertools
import logging
import math
import random
from typing import Final, Sequence

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import Particle, ParticleState
from grump_engine.core.states import ParticleType

log = logging.getLogger(__name__)

_P = ParticleType

CONFETTI_COLORS: Final = ("#ff6b6b", "#4ecdc4", "#ffe66d", "#95e1d3", "#f38181")

BURST_SIZES: Final[dict[ParticleType, int]] = {
    _P.SLEEP_Z: 3,
    _P.CONFETTI: 20,
    _P.COFFEE_STEAM: 5,
    _P.ANGER: 8,
    _P.SPARKLE: 3,
    _P.GLITCH_RECTANGLE: 5,
}

SLEEP_Z_RESPAWN_MS = 1500.0
SLEEP_Z_LIFETIME_MS = 2000.0
SLEEP_Z_RISE = 30.0

CONFETTI_FALL = 100.0

STEAM_RESPAWN_MS = 800.0
STEAM_LIFETIME_MS = 3000.0
STEAM_MAX_LIVE = 10
STEAM_RISE = 40.0

ANGER_LIFETIME_MS = 500.0
ANGER_REACH = 30.0

SPARKLE_LIFETIME_MS = 400.0

GLITCH_JUMP_MS = 50.0
GLITCH_CLEAR_MS = 500.0


def keyframes(values: Sequence[float], frac: float) -> float:
    """Piecewise-linear interpolation over evenly spaced keyframes."""
    if frac <= 0.0:
        return values[0]
    if frac >= 1.0:
        return values[-1]
    pos = frac * (len(values) - 1)
    i = int(pos)
    return values[i] + (values[i + 1] - values[i]) * (pos - i)


class ParticleSpawner:
    """Writes only ``snapshot.particles``."""

    def __init__(
        self,
        scheduler: Scheduler,
        state: ParticleState,
        rng: random.Random | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._state = state
        self._rng = rng or random.Random()
        self._tokens: list[CancelToken] = []
        self._ids = itertools.count()

    @property
    def particle_type(self) -> ParticleType | None:
        return self._state.particle_type

    @property
    def particles(self) -> list[Particle]:
        return self._state.particles

    # -- Type switching -----------------------------------------------------

    def set_particle_type(self, kind: ParticleType | str | None) -> None:
        self._cancel_timers()
        self._state.particles.clear()
        if kind is None:
            self._state.particle_type = None
            return
        kind = ParticleType(kind)
        self._state.particle_type = kind
        log.debug("particles: %s", kind.value)

        spawn = self._SPAWNERS[kind]
        for i in range(BURST_SIZES[kind]):
            spawn(self, i, True)

        if kind == _P.SLEEP_Z:
            self._every(SLEEP_Z_RESPAWN_MS, lambda: self._spawn_sleep_z(0, False))
        elif kind == _P.COFFEE_STEAM:
            self._every(STEAM_RESPAWN_MS, self._respawn_steam)
        elif kind == _P.GLITCH_RECTANGLE:
            self._every(GLITCH_JUMP_MS, self._jumble_glitch)
            self._tokens.append(self._scheduler.schedule(GLITCH_CLEAR_MS, self._clear_glitch))

    def stop(self) -> None:
        self._cancel_timers()
        self._state.particles.clear()
        self._state.particle_type = None

    def _every(self, period_ms: float, cb) -> None:
        self._tokens.append(self._scheduler.schedule_interval(period_ms, cb))

    def _cancel_timers(self) -> None:
        for token in self._tokens:
            token.cancel()
        self._tokens.clear()

    # -- Spawners -----------------------------------------------------------

    def _new(self, kind: ParticleType, x: float, y: float, rotation: float,
             scale: float, lifetime_ms: float, **extra) -> Particle:
        p = Particle(
            id=f"{kind.value}-{next(self._ids)}",
            kind=kind,
            x=x,
            y=y,
            rotation=rotation,
            scale=scale,
            born_ms=self._scheduler.now_ms(),
            lifetime_ms=lifetime_ms,
            origin_x=x,
            origin_y=y,
            base_rotation=rotation,
            base_scale=scale,
            **extra,
        )
        self._state.particles.append(p)
        return p

    def _spawn_sleep_z(self, i: int, burst: bool) -> None:
        r = self._rng
        self._new(
            _P.SLEEP_Z,
            x=50 + (r.random() * 20 - 10),
            y=50 + (r.random() * 20 - 10),
            rotation=r.random() * 360,
            scale=0.8 + r.random() * 0.4,
            lifetime_ms=SLEEP_Z_LIFETIME_MS,
            opacity=0.0,
        )

    def _spawn_confetti(self, i: int, burst: bool) -> None:
        r = self._rng
        self._new(
            _P.CONFETTI,
            x=50 + (r.random() * 40 - 20),
            y=50 + (r.random() * 40 - 20),
            rotation=r.random() * 360,
            scale=0.5 + r.random() * 0.5,
            lifetime_ms=2000.0 + r.random() * 1000.0,
            color=r.choice(CONFETTI_COLORS),
            drift=(r.random() - 0.5) * 50,
        )

    def _spawn_steam(self, i: int, burst: bool) -> None:
        r = self._rng
        self._new(
            _P.COFFEE_STEAM,
            x=50 + (r.random() * 10 - 5),
            y=70 + (r.random() * 10 if burst else 0.0),
            rotation=r.random() * 20 - 10,
            scale=0.3 + r.random() * 0.3,
            lifetime_ms=STEAM_LIFETIME_MS,
            opacity=0.0,
            drift=r.random() * 2 * math.pi,
        )

    def _spawn_anger(self, i: int, burst: bool) -> None:
        self._new(
            _P.ANGER,
            x=50.0,
            y=50.0,
            rotation=(360 / BURST_SIZES[_P.ANGER]) * i,
            scale=0.0,
            lifetime_ms=ANGER_LIFETIME_MS,
        )

    def _spawn_sparkle(self, i: int, burst: bool) -> None:
        r = self._rng
        self._new(
            _P.SPARKLE,
            x=50 + (r.random() * 30 - 15),
            y=50 + (r.random() * 30 - 15),
            rotation=r.random() * 360,
            scale=0.0,
            lifetime_ms=SPARKLE_LIFETIME_MS,
            opacity=0.0,
        )

    def _spawn_glitch(self, i: int, burst: bool) -> None:
        r = self._rng
        self._new(
            _P.GLITCH_RECTANGLE,
            x=r.random() * 100,
            y=r.random() * 100,
            rotation=r.random() * 90,
            scale=0.5 + r.random() * 0.5,
            lifetime_ms=GLITCH_CLEAR_MS,
        )

    _SPAWNERS = {
        _P.SLEEP_Z: _spawn_sleep_z,
        _P.CONFETTI: _spawn_confetti,
        _P.COFFEE_STEAM: _spawn_steam,
        _P.ANGER: _spawn_anger,
        _P.SPARKLE: _spawn_sparkle,
        _P.GLITCH_RECTANGLE: _spawn_glitch,
    }

    # -- Timed behaviour ----------------------------------------------------

    def _respawn_steam(self) -> None:
        self._spawn_steam(0, False)
        live = self._state.particles
        if len(live) > STEAM_MAX_LIVE:
            del live[: len(live) - STEAM_MAX_LIVE]

    def _jumble_glitch(self) -> None:
        r = self._rng
        for p in self._state.particles:
            p.x = p.origin_x = r.random() * 100
            p.y = p.origin_y = r.random() * 100
            p.rotation = r.random() * 90

    def _clear_glitch(self) -> None:
        self._cancel_timers()
        self._state.particles.clear()

    # -- Per-frame ----------------------------------------------------------

    def update(self, now_ms: float | None = None) -> list[Particle]:
        """Advance age/position/opacity and drop expired particles."""
        now = self._scheduler.now_ms() if now_ms is None else now_ms
        alive: list[Particle] = []
        for p in self._state.particles:
            frac = (now - p.born_ms) / p.lifetime_ms if p.lifetime_ms > 0 else 1.0
            if frac >= 1.0:
                continue
            _advance(p, max(0.0, frac), now)
            alive.append(p)
        self._state.particles[:] = alive
        return alive


def _advance(p: Particle, frac: float, now: float) -> None:
    kind = p.kind
    if kind == _P.SLEEP_Z:
        p.y = p.origin_y - SLEEP_Z_RISE * frac
        p.x = p.origin_x + math.sin(now / 1000.0) * 5
        p.opacity = keyframes((0.0, 1.0, 1.0, 0.0), frac)
        p.scale = p.base_scale * keyframes((0.8, 1.4, 1.4, 0.8), frac)
    elif kind == _P.CONFETTI:
        eased = frac * frac
        p.y = p.origin_y + CONFETTI_FALL * eased
        p.x = p.origin_x + p.drift * eased
        p.rotation = p.base_rotation + 360.0 * eased
        p.opacity = keyframes((1.0, 1.0, 0.0), frac)
    elif kind == _P.COFFEE_STEAM:
        p.y = p.origin_y - STEAM_RISE * frac
        p.x = p.origin_x + math.sin(now / 500.0 + p.drift) * 3
        p.opacity = keyframes((0.0, 0.6, 0.6, 0.0), frac)
        p.scale = p.base_scale * keyframes((1.0, 2.0, 2.0, 1.0), frac)
    elif kind == _P.ANGER:
        rad = math.radians(p.base_rotation)
        p.x = p.origin_x + math.cos(rad) * ANGER_REACH * frac
        p.y = p.origin_y + math.sin(rad) * ANGER_REACH * frac
        p.scale = keyframes((0.0, 1.5, 2.0), frac)
        p.opacity = keyframes((1.0, 1.0, 0.0), frac)
    elif kind == _P.SPARKLE:
        p.scale = keyframes((0.0, 1.2, 1.2, 0.0), frac)
        p.opacity = keyframes((0.0, 1.0, 1.0, 0.0), frac)
        p.rotation = p.base_rotation + 180.0 * frac
    elif kind == _P.GLITCH_RECTANGLE:
        p.opacity = keyframes((1.0, 0.5, 1.0, 0.5, 1.0, 0.0), frac)
