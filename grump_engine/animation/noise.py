"""Seeded gradient noise for organic micro-movement.

Improved Perlin noise evaluated on the z=0 plane.  Each channel owns an
independent field so pupil, eyebrow, head and mouth never move in step.
Vectorised with numpy: scalars return floats, arrays return arrays.
"""

from __future__ import annotations

from typing import Final

import numpy as np

PUPIL_SEED: Final = 100
EYEBROW_SEED: Final = 200
HEAD_SEED: Final = 300
MOUTH_SEED: Final = 400


def _fade(t):
    return t * t * t * (t * (t * 6 - 15) + 10)


def _lerp(t, a, b):
    return a + t * (b - a)


def _grad(h, x, y, z):
    h = h & 15
    u = np.where(h < 8, x, y)
    v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
    return np.where((h & 1) == 0, u, -u) + np.where((h & 2) == 0, v, -v)


class NoiseField:
    """Deterministic noise for a fixed seed; never seeded from the clock."""

    def __init__(self, seed: int) -> None:
        self.seed = seed
        perm = np.random.default_rng(seed).permutation(256).astype(np.int64)
        self._p = np.concatenate([perm, perm])

    def noise_2d(self, x, y):
        scalar = np.isscalar(x) and np.isscalar(y)
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.zeros(np.broadcast(x, y).shape)
        p = self._p

        xf, yf = np.floor(x), np.floor(y)
        xi = xf.astype(np.int64) & 255
        yi = yf.astype(np.int64) & 255
        zi = 0
        x = x - xf
        y = y - yf

        u, v, w = _fade(x), _fade(y), _fade(z)

        a = p[xi] + yi
        aa = p[a] + zi
        ab = p[a + 1] + zi
        b = p[xi + 1] + yi
        ba = p[b] + zi
        bb = p[b + 1] + zi

        out = _lerp(
            w,
            _lerp(
                v,
                _lerp(u, _grad(p[aa], x, y, z), _grad(p[ba], x - 1, y, z)),
                _lerp(u, _grad(p[ab], x, y - 1, z), _grad(p[bb], x - 1, y - 1, z)),
            ),
            _lerp(
                v,
                _lerp(u, _grad(p[aa + 1], x, y, z - 1), _grad(p[ba + 1], x - 1, y, z - 1)),
                _lerp(
                    u,
                    _grad(p[ab + 1], x, y - 1, z - 1),
                    _grad(p[bb + 1], x - 1, y - 1, z - 1),
                ),
            ),
        )
        out = np.clip(out, -1.0, 1.0)
        return float(out) if scalar else out

    def noise_1d(self, x):
        return self.noise_2d(x, 0.0)


def sample(field: NoiseField, t: float, frequency: float, amplitude: float) -> float:
    return field.noise_1d(t * frequency) * amplitude


def sample_2d(
    field: NoiseField, t: float, frequency: float, amplitude: float
) -> tuple[float, float]:
    return (
        field.noise_2d(t * frequency, 0.0) * amplitude,
        field.noise_2d(0.0, t * frequency) * amplitude,
    )


class NoiseChannels:
    """The four independent fields used by the micro-movement driver."""

    def __init__(
        self,
        pupil_seed: int = PUPIL_SEED,
        eyebrow_seed: int = EYEBROW_SEED,
        head_seed: int = HEAD_SEED,
        mouth_seed: int = MOUTH_SEED,
    ) -> None:
        self.pupil = NoiseField(pupil_seed)
        self.eyebrow = NoiseField(eyebrow_seed)
        self.head = NoiseField(head_seed)
        self.mouth = NoiseField(mouth_seed)
