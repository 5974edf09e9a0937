"""FastAPI HTTP + WebSocket bridge between the engine and a renderer/chat shell.

Read side:  GET /snapshot, /progression, /context
Chat side:  POST /messages, /replies, /typing
Manual:     POST /actions {action, ...}
Stream:     WS /ws (snapshot telemetry out, chat events in)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from grump_engine.core.states import (
    AccessoryType,
    BlinkType,
    EyeRollVariation,
    ParticleType,
)

if TYPE_CHECKING:
    from grump_engine.api.ws_hub import WsHub
    from grump_engine.core.engine import GrumpEngine

log = logging.getLogger(__name__)


def _analysis_dict(analysis) -> dict[str, Any]:
    return {
        "emotional_state": analysis.emotional_state.value if analysis.emotional_state else None,
        "sentiment_score": analysis.sentiment_score,
        "keyword_matches": analysis.keyword_matches,
        "is_repeat_question": analysis.is_repeat_question,
        "requires_soft_mode": analysis.requires_soft_mode,
    }


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _bad_request(reason: str) -> JSONResponse:
    return JSONResponse({"ok": False, "reason": reason}, status_code=400)


def create_app(engine: GrumpEngine, ws_hub: WsHub) -> FastAPI:
    app = FastAPI(title="Grump Engine", version="1.0.0")

    # -- Read side -----------------------------------------------------------

    @app.get("/snapshot")
    async def get_snapshot():
        return JSONResponse(engine.snapshot_dict())

    @app.get("/progression")
    async def get_progression():
        return JSONResponse(engine.progression_dict())

    @app.get("/context")
    async def get_context():
        return JSONResponse(engine.context_dict())

    # -- Chat events ---------------------------------------------------------

    @app.post("/messages")
    async def post_message(body: dict):
        text = body.get("text")
        if not isinstance(text, str) or not text.strip():
            return _bad_request("text required")
        analysis = engine.on_user_message(text.strip())
        return JSONResponse(
            {
                "ok": True,
                "analysis": _analysis_dict(analysis),
                "state": engine.current_state.value,
            }
        )

    @app.post("/replies")
    async def post_reply(body: dict):
        text = body.get("text")
        if not isinstance(text, str):
            return _bad_request("text required")
        engine.on_assistant_reply(text)
        return JSONResponse({"ok": True, "state": engine.current_state.value})

    @app.post("/typing")
    async def post_typing(body: dict):
        try:
            cursor = _opt_int(body.get("cursor"))
            length = _opt_int(body.get("length"))
        except (TypeError, ValueError):
            return _bad_request("cursor and length must be integers")
        engine.on_typing(bool(body.get("active", False)), cursor=cursor, length=length)
        return JSONResponse({"ok": True, "state": engine.current_state.value})

    # -- Manual actions ------------------------------------------------------

    @app.post("/actions")
    async def post_action(body: dict):
        ok, reason = handle_action(engine, body)
        if ok is None:
            return _bad_request(reason)
        return JSONResponse({"ok": ok, "reason": reason})

    # -- WebSocket -----------------------------------------------------------

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        ws_hub.add(ws)
        try:
            while True:
                raw = await ws.receive_text()
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict):
                    _handle_ws_cmd(engine, msg)
        except WebSocketDisconnect:
            pass
        finally:
            ws_hub.remove(ws)

    return app


def handle_action(engine: GrumpEngine, body: dict) -> tuple[bool | None, str]:
    """Apply one manual action.  Returns (None, reason) for a bad request."""
    action = body.get("action")
    try:
        if action == "eye_roll":
            variation = EyeRollVariation(body.get("variation", "full"))
            ok = engine.trigger_eye_roll(variation)
            return ok, "started" if ok else "eye roll already running"
        elif action == "blink":
            blink_type = BlinkType(body.get("type", "standard"))
            ok = engine.trigger_blink(blink_type)
            return ok, "blinked" if ok else "blink in progress"
        elif action == "screen_shake":
            engine.trigger_screen_shake(float(body.get("intensity", 0.5)))
            return True, "shaking"
        elif action == "particles":
            kind = body.get("type")
            engine.set_particle_type(ParticleType(kind) if kind is not None else None)
            return True, f"particles: {kind}"
        elif action == "accessory":
            kind = body.get("type")
            engine.set_accessory(AccessoryType(kind) if kind is not None else None)
            return True, f"accessory: {kind}"
        elif action == "state":
            state = engine.transition_to(body.get("state"))
            return True, f"state: {state.value}"
        elif action == "reset_progression":
            engine.reset_progression()
            return True, "progression reset"
        elif action == "reset_session":
            engine.reset_session()
            return True, "session reset"
        elif action == "chat_error":
            engine.on_chat_error()
            return True, "error shown"
    except (ValueError, TypeError) as e:
        return None, f"invalid {action} request: {e}"
    return None, f"unknown action: {action}"


def _handle_ws_cmd(engine: GrumpEngine, msg: dict) -> None:
    """Process incoming WebSocket chat events and actions."""
    msg_type = msg.get("type")
    if msg_type == "message":
        text = msg.get("text")
        if isinstance(text, str) and text.strip():
            engine.on_user_message(text.strip())
    elif msg_type == "reply":
        text = msg.get("text")
        if isinstance(text, str):
            engine.on_assistant_reply(text)
    elif msg_type == "typing":
        try:
            cursor = _opt_int(msg.get("cursor"))
            length = _opt_int(msg.get("length"))
        except (TypeError, ValueError):
            cursor = length = None
        engine.on_typing(bool(msg.get("active", False)), cursor=cursor, length=length)
    elif msg_type == "interaction":
        engine.on_interaction()
    elif msg_type == "action":
        body = msg.get("body")
        ok, reason = handle_action(engine, body if isinstance(body, dict) else {})
        if not ok:
            log.debug("ws: action not applied: %s", reason)
