"""Tests for the entry-point helpers."""

from __future__ import annotations

import asyncio

import pytest

from grump_engine.main import TelemetryLoop, parse_args


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert args.log_level == "INFO"
        assert args.http_port is None
        assert not args.no_http

    def test_overrides(self):
        args = parse_args(["--http-port", "9100", "--store", "/tmp/s.json", "--no-http"])
        assert args.http_port == 9100
        assert args.store == "/tmp/s.json"
        assert args.no_http


class FakeEngine:
    def __init__(self) -> None:
        self.calls = 0

    def snapshot_dict(self) -> dict:
        self.calls += 1
        return {"current_state": "idle"}


class FakeHub:
    def __init__(self, clients: int) -> None:
        self.client_count = clients
        self.sent: list[dict] = []

    def broadcast_snapshot(self, snapshot: dict) -> None:
        self.sent.append(snapshot)


class TestTelemetryLoop:
    @pytest.mark.asyncio
    async def test_pushes_while_clients_connected(self):
        hub = FakeHub(clients=1)
        loop = TelemetryLoop(FakeEngine(), hub, hz=100)
        task = asyncio.ensure_future(loop.run())
        await asyncio.sleep(0.05)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert len(hub.sent) >= 2

    @pytest.mark.asyncio
    async def test_idle_without_clients(self):
        engine = FakeEngine()
        loop = TelemetryLoop(engine, FakeHub(clients=0), hz=100)
        task = asyncio.ensure_future(loop.run())
        await asyncio.sleep(0.03)
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert engine.calls == 0
