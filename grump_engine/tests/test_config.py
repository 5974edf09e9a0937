"""Tests for YAML config loading."""

from __future__ import annotations

import yaml

from grump_engine.config import EngineConfig, load_config


class TestLoadConfig:
    def test_defaults_without_path(self):
        cfg = load_config(None)
        assert cfg == EngineConfig()
        assert cfg.animation.frame_hz == 60
        assert cfg.network.http_port == 8090
        assert cfg.noise.pupil_seed == 100

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(tmp_path / "absent.yaml") == EngineConfig()

    def test_overrides_known_keys(self, tmp_path):
        path = tmp_path / "grump.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "animation": {"frame_hz": 30, "responding_hold_ms": 1500},
                    "network": {"http_port": 9000},
                    "persistence": {"enabled": False},
                    "seed": 1234,
                }
            )
        )
        cfg = load_config(path)
        assert cfg.animation.frame_hz == 30
        assert cfg.animation.responding_hold_ms == 1500
        assert cfg.animation.context_poll_ms == 1000
        assert cfg.network.http_port == 9000
        assert cfg.persistence.enabled is False
        assert cfg.seed == 1234

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "grump.yaml"
        path.write_text(yaml.safe_dump({"animation": {"warp_speed": 9}, "bogus": {"x": 1}}))
        cfg = load_config(path)
        assert not hasattr(cfg.animation, "warp_speed")
        assert cfg.animation == EngineConfig().animation

    def test_bad_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "grump.yaml"
        path.write_text("animation: [unclosed")
        assert load_config(path) == EngineConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "grump.yaml"
        path.write_text("")
        assert load_config(path) == EngineConfig()
