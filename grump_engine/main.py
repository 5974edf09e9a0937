"""Grump engine entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Grump emotional animation engine")
    p.add_argument("--config", default=None, help="YAML config file path")
    p.add_argument("--log-level", default="INFO", help="Log level")
    p.add_argument("--host", default=None, help="HTTP bind address (default: 127.0.0.1)")
    p.add_argument("--http-port", type=int, default=None, help="HTTP server port")
    p.add_argument("--store", default=None, help="Progression store JSON path")
    p.add_argument("--no-http", action="store_true", help="Run the engine without the HTTP bridge")
    return p.parse_args(argv)


class TelemetryLoop:
    """Pushes the current snapshot to WebSocket clients at a fixed rate."""

    def __init__(self, engine, ws_hub, hz: int) -> None:
        self._engine = engine
        self._hub = ws_hub
        self._period_s = 1.0 / max(1, hz)
        self._running = False

    async def run(self) -> None:
        self._running = True
        while self._running:
            if self._hub.client_count:
                self._hub.broadcast_snapshot(self._engine.snapshot_dict())
            await asyncio.sleep(self._period_s)

    def stop(self) -> None:
        self._running = False


async def async_main(args: argparse.Namespace) -> None:
    import uvicorn

    from grump_engine.api.http_server import create_app
    from grump_engine.api.ws_hub import WsHub
    from grump_engine.config import load_config
    from grump_engine.core.engine import GrumpEngine
    from grump_engine.core.scheduler import AsyncioScheduler
    from grump_engine.personality.store import JsonFileStore, MemoryStore

    cfg = load_config(args.config)
    if args.host:
        cfg.network.host = args.host
    if args.http_port:
        cfg.network.http_port = args.http_port
    if args.store:
        cfg.persistence.store_path = args.store

    store = JsonFileStore(cfg.persistence.store_path) if cfg.persistence.enabled else MemoryStore()
    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    engine = GrumpEngine(cfg, scheduler=scheduler, store=store)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # not available on this platform

    http_server = None
    telemetry = None
    tasks: list[asyncio.Future] = []
    try:
        engine.start()
        tasks.append(asyncio.ensure_future(stop_event.wait()))

        if not args.no_http:
            ws_hub = WsHub()
            app = create_app(engine, ws_hub)
            http_config = uvicorn.Config(
                app,
                host=cfg.network.host,
                port=cfg.network.http_port,
                log_level="warning",
            )
            http_server = uvicorn.Server(http_config)
            telemetry = TelemetryLoop(engine, ws_hub, cfg.animation.telemetry_hz)
            tasks.append(asyncio.ensure_future(http_server.serve()))
            tasks.append(asyncio.ensure_future(telemetry.run()))

        log.info(
            "grump engine running (http=%s, store=%s)",
            "off" if args.no_http else f"{cfg.network.host}:{cfg.network.http_port}",
            cfg.persistence.store_path if cfg.persistence.enabled else "memory",
        )
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        log.info("shutting down...")
        if telemetry:
            telemetry.stop()
        if http_server:
            http_server.should_exit = True
        for task in tasks:
            if not task.done():
                task.cancel()
        engine.stop()
        scheduler.close()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
