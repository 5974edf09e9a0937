"""Tests for ParticleSpawner."""

from __future__ import annotations

import random

import pytest

from grump_engine.animation.particles import (
    BURST_SIZES,
    CONFETTI_COLORS,
    GLITCH_CLEAR_MS,
    GLITCH_JUMP_MS,
    SLEEP_Z_RESPAWN_MS,
    STEAM_MAX_LIVE,
    ParticleSpawner,
    keyframes,
)
from grump_engine.core.scheduler import ManualScheduler
from grump_engine.core.snapshot import ParticleState
from grump_engine.core.states import ParticleType


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def spawner(sched):
    return ParticleSpawner(sched, ParticleState(), rng=random.Random(11))


class TestKeyframes:
    def test_endpoints_and_midpoints(self):
        assert keyframes((0.0, 1.0, 0.0), 0.0) == 0.0
        assert keyframes((0.0, 1.0, 0.0), 0.25) == pytest.approx(0.5)
        assert keyframes((0.0, 1.0, 0.0), 0.5) == pytest.approx(1.0)
        assert keyframes((0.0, 1.0, 0.0), 1.0) == 0.0
        assert keyframes((2.0, 4.0), 1.5) == 4.0


# ── Bursts ───────────────────────────────────────────────────────


class TestBursts:
    @pytest.mark.parametrize("kind", list(ParticleType))
    def test_burst_size(self, spawner, kind):
        spawner.set_particle_type(kind)
        assert spawner.particle_type == kind
        assert len(spawner.particles) == BURST_SIZES[kind]
        assert all(p.kind == kind for p in spawner.particles)

    def test_ids_are_unique(self, spawner):
        spawner.set_particle_type(ParticleType.CONFETTI)
        spawner.set_particle_type(ParticleType.CONFETTI)
        ids = [p.id for p in spawner.particles]
        assert len(ids) == len(set(ids))
        assert ids[0].startswith("confetti-")

    def test_confetti_colors(self, spawner):
        spawner.set_particle_type("confetti")
        assert {p.color for p in spawner.particles} <= set(CONFETTI_COLORS)
        assert all(2000 <= p.lifetime_ms < 3000 for p in spawner.particles)

    def test_anger_fans_out_at_45_degrees(self, spawner):
        spawner.set_particle_type(ParticleType.ANGER)
        assert [p.rotation for p in spawner.particles] == [45.0 * i for i in range(8)]

    def test_replace_clears_old_particles(self, spawner, sched):
        spawner.set_particle_type(ParticleType.SLEEP_Z)
        spawner.set_particle_type(ParticleType.SPARKLE)
        assert {p.kind for p in spawner.particles} == {ParticleType.SPARKLE}
        sched.advance(SLEEP_Z_RESPAWN_MS * 3)
        assert all(p.kind == ParticleType.SPARKLE for p in spawner.particles)

    def test_none_clears(self, spawner, sched):
        spawner.set_particle_type(ParticleType.COFFEE_STEAM)
        spawner.set_particle_type(None)
        assert spawner.particle_type is None
        assert spawner.particles == []
        assert sched.pending == 0

    def test_unknown_kind_raises(self, spawner):
        with pytest.raises(ValueError):
            spawner.set_particle_type("fireworks")


# ── Timed behaviour ──────────────────────────────────────────────


class TestTimed:
    def test_sleep_z_respawns(self, spawner, sched):
        spawner.set_particle_type(ParticleType.SLEEP_Z)
        sched.advance(SLEEP_Z_RESPAWN_MS * 2)
        assert len(spawner.particles) == BURST_SIZES[ParticleType.SLEEP_Z] + 2

    def test_steam_capped(self, spawner, sched):
        spawner.set_particle_type(ParticleType.COFFEE_STEAM)
        sched.advance(20_000)
        assert len(spawner.particles) == STEAM_MAX_LIVE

    def test_confetti_does_not_respawn(self, spawner, sched):
        spawner.set_particle_type(ParticleType.CONFETTI)
        assert sched.pending == 0

    def test_glitch_jumps_then_clears(self, spawner, sched):
        spawner.set_particle_type(ParticleType.GLITCH_RECTANGLE)
        before = [(p.x, p.y) for p in spawner.particles]
        sched.advance(GLITCH_JUMP_MS)
        after = [(p.x, p.y) for p in spawner.particles]
        assert before != after
        sched.advance(GLITCH_CLEAR_MS - GLITCH_JUMP_MS)
        assert spawner.particles == []
        assert sched.pending == 0

    def test_update_drops_expired(self, spawner, sched):
        spawner.set_particle_type(ParticleType.SPARKLE)
        sched.advance(200)
        assert len(spawner.update()) == 3
        sched.advance(200)
        assert spawner.update() == []

    def test_update_moves_particles(self, spawner, sched):
        spawner.set_particle_type(ParticleType.ANGER)
        sched.advance(250)
        spawner.update()
        first = spawner.particles[0]
        assert first.x == pytest.approx(65.0)
        assert first.y == pytest.approx(50.0)
        assert first.scale == pytest.approx(1.5)

    def test_confetti_falls(self, spawner, sched):
        spawner.set_particle_type(ParticleType.CONFETTI)
        origins = {p.id: p.origin_y for p in spawner.particles}
        sched.advance(1000)
        for p in spawner.update():
            assert p.y > origins[p.id]

    def test_stop(self, spawner, sched):
        spawner.set_particle_type(ParticleType.SLEEP_Z)
        spawner.stop()
        assert spawner.particles == []
        assert spawner.particle_type is None
        assert sched.pending == 0
