"""
LAN Sweep Service - control API around the scan engine.

Accepts scan start/cancel commands over HTTP and pushes scan events to
WebSocket subscribers as they happen. Can also run a single scan from
the command line and print its events as JSON lines.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from aiohttp import WSMsgType, web

from . import __version__
from ._types import ScanEvent, ScanEventType
from .config import SweepConfig
from .engine import ScanEngine
from .registry import InMemoryDeviceRegistry

logger = logging.getLogger(__name__)

# Events buffered per WebSocket subscriber before it is dropped
SUBSCRIBER_QUEUE_SIZE = 1024


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure logging for the service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives a copy of every log line
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


class SweepService:
    """
    HTTP/WebSocket front end for a ScanEngine.

    Routes:
        POST /api/scans          start (or supersede) a scan
        POST /api/scans/cancel   cancel the running scan
        GET  /api/scans/status   engine state and last scan summary
        GET  /api/events         WebSocket stream of scan events
        GET  /api/health         liveness
    """

    def __init__(
        self,
        config: SweepConfig,
        engine: Optional[ScanEngine] = None,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
    ):
        """
        Initialize the service.

        Args:
            config: Service configuration
            engine: Scan engine (built from config if None)
            queue_size: Events buffered per subscriber; a subscriber
                that falls further behind is disconnected
        """
        self.config = config
        self.queue_size = queue_size
        if engine is None:
            engine = ScanEngine(
                config,
                registry=InMemoryDeviceRegistry(config.known_devices),
            )
        self.engine = engine
        self.engine.add_listener(self._on_event)

        self._subscribers: set[asyncio.Queue] = set()
        self._scan_tasks: set[asyncio.Task] = set()
        self._last_summary: Optional[dict] = None

        self._runner: Optional[web.AppRunner] = None
        self._shutdown_event = asyncio.Event()

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/scans", self._handle_start_scan)
        app.router.add_post("/api/scans/cancel", self._handle_cancel_scan)
        app.router.add_get("/api/scans/status", self._handle_scan_status)
        app.router.add_get("/api/events", self._handle_events)
        app.router.add_get("/api/health", self._handle_health)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def start(self) -> None:
        """Start the API server and block until stop() is called."""
        logger.info("Starting LAN Sweep Service")

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server started on {self.config.api_host}:{self.config.api_port}")

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the service."""
        logger.info("Stopping LAN Sweep Service")
        self.engine.cancel()
        self._shutdown_event.set()

        for task in list(self._scan_tasks):
            task.cancel()
        if self._scan_tasks:
            await asyncio.gather(*self._scan_tasks, return_exceptions=True)

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    def launch_scan(self, expression: Optional[str], end: Optional[str] = None) -> asyncio.Task:
        """Run a scan in the background; a running scan is superseded."""
        task = asyncio.create_task(self.engine.start_scan(expression, end))
        self._scan_tasks.add(task)
        task.add_done_callback(self._scan_tasks.discard)
        return task

    def _on_event(self, event: ScanEvent) -> None:
        if event.type == ScanEventType.COMPLETE:
            self._last_summary = {
                "scan_id": event.scan_id,
                "completed_at": event.timestamp.isoformat(),
                "scanned": len(event.results),
                "active": sum(1 for r in event.results if r.is_active),
            }

        payload = event.to_dict()
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning(
                    f"Event subscriber fell {queue.qsize()} events behind, disconnecting"
                )
                self._close_subscriber(queue)

    def _close_subscriber(self, queue: asyncio.Queue) -> None:
        """Drop a subscriber's backlog and wake its handler so it closes."""
        self._subscribers.discard(queue)
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(None)

    async def _on_shutdown(self, app: web.Application) -> None:
        for queue in list(self._subscribers):
            self._close_subscriber(queue)

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    async def _handle_start_scan(self, request: web.Request) -> web.Response:
        """Handle POST /api/scans."""
        try:
            data = await request.json() if request.body_exists else {}
        except json.JSONDecodeError:
            return web.json_response(
                {"status": "error", "message": "Request body must be JSON"},
                status=400,
            )

        if not isinstance(data, dict):
            return web.json_response(
                {"status": "error", "message": "Request body must be an object"},
                status=400,
            )

        not_text = [
            key for key in ("range", "start_ip", "end_ip")
            if data.get(key) is not None and not isinstance(data[key], str)
        ]
        if not_text:
            return web.json_response(
                {"status": "error", "message": f"Fields must be strings: {', '.join(not_text)}"},
                status=400,
            )

        start_ip = data.get("start_ip")
        end_ip = data.get("end_ip")
        expression = data.get("range") or self.config.default_range

        if start_ip and end_ip:
            self.launch_scan(start_ip, end_ip)
        elif expression:
            self.launch_scan(expression)
        else:
            return web.json_response(
                {"status": "error", "message": "Provide 'range' or 'start_ip' and 'end_ip'"},
                status=400,
            )

        return web.json_response({"status": "started"}, status=202)

    async def _handle_cancel_scan(self, request: web.Request) -> web.Response:
        """Handle POST /api/scans/cancel."""
        if not self.engine.is_scanning:
            return web.json_response({"status": "idle"})

        self.engine.cancel()
        return web.json_response({"status": "cancelled"})

    async def _handle_scan_status(self, request: web.Request) -> web.Response:
        """Handle GET /api/scans/status."""
        task = self.engine.current_task
        return web.json_response({
            "state": self.engine.state.value,
            "scanning": self.engine.is_scanning,
            "current": {
                "scan_id": task.scan_id,
                "total": len(task.addresses),
                "scanned": len(task.results),
            } if task else None,
            "last_completed": self._last_summary,
        })

    async def _handle_events(self, request: web.Request) -> web.WebSocketResponse:
        """Handle GET /api/events (WebSocket)."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.info(f"Event subscriber connected ({len(self._subscribers)} total)")

        async def drain_incoming() -> None:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning(f"WebSocket error: {ws.exception()}")
            self._close_subscriber(queue)

        reader = asyncio.create_task(drain_incoming())
        try:
            while True:
                payload = await queue.get()
                if payload is None or ws.closed:
                    break
                await ws.send_json(payload)
        finally:
            self._subscribers.discard(queue)
            reader.cancel()
            await ws.close()
            logger.info(f"Event subscriber disconnected ({len(self._subscribers)} total)")

        return ws

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /api/health."""
        return web.json_response({
            "status": "ok",
            "service": "lan-sweep",
            "version": __version__,
            "scanning": self.engine.is_scanning,
            "known_devices": len(self.config.known_devices),
        })


async def run_once(engine: ScanEngine, expression: str, out=None) -> int:
    """Run one scan, writing every event as a JSON line. Returns exit code."""
    out = out or sys.stdout
    failed = False

    def write_event(event: ScanEvent) -> None:
        nonlocal failed
        if event.type == ScanEventType.ERROR:
            failed = True
        out.write(json.dumps(event.to_dict()) + "\n")
        out.flush()

    engine.add_listener(write_event)
    try:
        await engine.start_scan(expression)
    finally:
        engine.remove_listener(write_event)

    return 1 if failed else 0


def main():
    """Entry point for lan-sweep."""
    import argparse

    parser = argparse.ArgumentParser(description="LAN host discovery sweep")
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument("--host", type=str, help="API host")
    parser.add_argument("--port", type=int, help="API port")
    parser.add_argument("--log-level", type=str, help="Log level")
    parser.add_argument(
        "--scan",
        type=str,
        metavar="RANGE",
        help="Run one scan of RANGE, print events as JSON lines and exit",
    )
    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = SweepConfig.from_yaml(Path(args.config))
    else:
        config = SweepConfig.from_env()

    # Override with CLI args
    overrides = {}
    if args.host:
        overrides["api_host"] = args.host
    if args.port:
        overrides["api_port"] = args.port
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        config = SweepConfig(**{**config.model_dump(), **overrides})

    setup_logging(config.log_level, config.log_file)

    # Validate
    errors = config.validate_settings()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    if args.scan:
        registry = InMemoryDeviceRegistry(config.known_devices)
        engine = ScanEngine(config, registry=registry)
        sys.exit(asyncio.run(run_once(engine, args.scan)))

    service = SweepService(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        if config.default_range:
            loop.call_soon(service.launch_scan, config.default_range)
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()


if __name__ == "__main__":
    main()
