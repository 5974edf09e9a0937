"""WebSocket hub for broadcasting snapshots to connected renderers."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from fastapi import WebSocket

log = logging.getLogger(__name__)

WS_SCHEMA = "grump_ws_v1"


def envelope(kind: str, payload: dict[str, Any]) -> str:
    return json.dumps(
        {
            "schema": WS_SCHEMA,
            "type": kind,
            "ts_ms": int(time.monotonic() * 1000),
            "payload": payload,
        }
    )


class WsHub:
    """Manages WebSocket clients and broadcasts snapshot telemetry."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._sends: set[asyncio.Future] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def add(self, ws: WebSocket) -> None:
        self._clients.add(ws)
        log.info("ws: client connected (%d total)", len(self._clients))

    def remove(self, ws: WebSocket) -> None:
        self._clients.discard(ws)
        log.info("ws: client disconnected (%d total)", len(self._clients))

    def broadcast(self, kind: str, payload: dict[str, Any]) -> None:
        """Non-blocking broadcast; slow clients simply miss frames."""
        if not self._clients:
            return

        text = envelope(kind, payload)
        for ws in list(self._clients):
            fut = asyncio.ensure_future(ws.send_text(text))
            self._sends.add(fut)
            fut.add_done_callback(lambda f, ws=ws: self._on_sent(ws, f))

    def _on_sent(self, ws: WebSocket, fut: asyncio.Future) -> None:
        self._sends.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None and ws in self._clients:
            self._clients.discard(ws)
            log.warning("ws: send failed, dropping client (%d left): %s", len(self._clients), exc)

    def broadcast_snapshot(self, snapshot: dict[str, Any]) -> None:
        self.broadcast("snapshot", snapshot)
