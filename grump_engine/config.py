"""Engine configuration with defaults, loadable from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass
class AnimationConfig:
    frame_hz: int = 60
    context_poll_ms: int = 1000
    responding_hold_ms: int = 2000
    telemetry_hz: int = 10


@dataclass
class NoiseConfig:
    pupil_seed: int = 100
    eyebrow_seed: int = 200
    head_seed: int = 300
    mouth_seed: int = 400


@dataclass
class PersistenceConfig:
    store_path: str = "~/.config/grump/store.json"
    save_debounce_ms: int = 150
    enabled: bool = True


@dataclass
class NetworkConfig:
    http_port: int = 8090
    host: str = "127.0.0.1"


@dataclass
class EngineConfig:
    animation: AnimationConfig = field(default_factory=AnimationConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    seed: int | None = None  # random source for blinks/particles/easter eggs


_SECTIONS = ("animation", "noise", "persistence", "network")


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        return EngineConfig()

    path = Path(path)
    if not path.exists():
        log.warning("config file not found: %s, using defaults", path)
        return EngineConfig()

    try:
        import yaml  # type: ignore[import-untyped]

        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        cfg = EngineConfig()
        for section_name in _SECTIONS:
            if section_name in raw:
                section = getattr(cfg, section_name)
                for k, v in raw[section_name].items():
                    if not hasattr(section, k):
                        log.warning("config: unknown key %s.%s ignored", section_name, k)
                        continue
                    setattr(section, k, v)
        cfg.seed = raw.get("seed")

        log.info("config loaded from %s", path)
        return cfg
    except Exception as e:
        log.warning("config load error: %s, using defaults", e)
        return EngineConfig()
