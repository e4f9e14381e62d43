"""HTTP + SSE server for the AutoDev simulation engine.

Exposes the engine's commands and projections as a small REST API,
with Server-Sent Events streaming every engine event as it is committed.

Usage:
    autodev --server [--host HOST] [--port PORT]
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import time
import uuid
from typing import Any

from aiohttp import web

from autodev.engine.engine import SimulationEngine
from autodev.engine.registry import AGENT_ORDER, AGENTS
from autodev.engine.yaml_config import ServerConfig
from autodev.shared.examples import EXAMPLE_STORIES
from autodev.shared.export import to_sandbox_tree, zip_bytes
from autodev.shared.preview import generate_preview_html

logger = logging.getLogger(__name__)


class AutodevServer:
    """aiohttp application wrapping one SimulationEngine."""

    def __init__(
        self,
        engine: SimulationEngine | None = None,
        server_config: ServerConfig | None = None,
    ) -> None:
        self._engine = engine or SimulationEngine()
        self._config = server_config or ServerConfig()
        self._host = self._config.host
        self._port = self._config.port
        self._sse_queues: list[asyncio.Queue[dict[str, Any] | None]] = []
        self._started_at = time.time()
        self._runner: web.AppRunner | None = None
        self._app = web.Application(middlewares=[self._request_logging_middleware])
        self._app.on_shutdown.append(self._close_sse_clients)
        self._unsubscribe = self._engine.subscribe(self._broadcast)
        self._setup_routes()
        logger.info(
            "AutodevServer init host=%s port=%s pid=%s",
            self._host, self._port, os.getpid(),
        )

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def engine(self) -> SimulationEngine:
        return self._engine

    # ── Middleware ──

    @web.middleware
    async def _request_logging_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        req_id = request.headers.get("x-autodev-request-id", str(uuid.uuid4())[:8])
        request["req_id"] = req_id
        start = time.monotonic()
        logger.info("HTTP %s %s req=%s from=%s", request.method, request.path_qs, req_id, request.remote)
        try:
            response = await handler(request)
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.info(
                "HTTP %s %s req=%s status=%s duration_ms=%.1f",
                request.method, request.path_qs, req_id,
                getattr(response, "status", "?"), elapsed_ms,
            )
            return response
        except Exception:
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.exception("HTTP %s %s req=%s failed duration_ms=%.1f", request.method, request.path_qs, req_id, elapsed_ms)
            raise

    # ── Route setup ──

    def _setup_routes(self) -> None:
        r = self._app.router
        r.add_get("/health", self._handle_health)
        r.add_get("/events", self._handle_sse)
        r.add_get("/agents", self._handle_agents)
        r.add_get("/examples", self._handle_examples)
        # Engine projections
        r.add_get("/state", self._handle_state)
        r.add_get("/logs", self._handle_logs)
        r.add_get("/files", self._handle_files)
        r.add_get("/files/sandbox", self._handle_files_sandbox)
        r.add_get("/preview", self._handle_preview)
        r.add_get("/export", self._handle_export)
        # Engine commands
        r.add_post("/start", self._handle_start)
        r.add_post("/reset", self._handle_reset)

    # ── Lifecycle ──

    async def start(self) -> None:
        """Start listening and print the port to stdout."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

        actual_port = self._resolve_port(site)
        if actual_port is None:
            raise RuntimeError("AutoDev server started but no listening socket was reported.")
        self._port = actual_port
        sys.stdout.write(json.dumps({"port": actual_port}) + "\n")
        sys.stdout.flush()
        logger.info("AutoDev server listening on %s:%d", self._host, actual_port)

    async def serve_forever(self) -> None:
        await self.start()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await self.stop()

    async def stop(self) -> None:
        self._engine.reset()
        self._unsubscribe()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        logger.info("AutoDev server stopped")

    def _resolve_port(self, site: web.TCPSite) -> int | None:
        server = getattr(site, "_server", None)
        sockets = getattr(server, "sockets", None) or []
        for sock in sockets:
            try:
                return int(sock.getsockname()[1])
            except (OSError, IndexError, TypeError, ValueError):
                continue
        return self._port or None

    # ── SSE fan-out ──

    def _broadcast(self, event: dict[str, Any]) -> None:
        """Engine listener: copy each event to every connected SSE client."""
        msg = {"event": event.get("event", "message"), "data": event}
        for queue in list(self._sse_queues):
            try:
                queue.put_nowait(msg)
            except asyncio.QueueFull:
                logger.warning("SSE client queue full; dropping %s", msg["event"])

    async def _close_sse_clients(self, _app: web.Application) -> None:
        """Wake every SSE stream so it can finish before shutdown."""
        for queue in list(self._sse_queues):
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                logger.warning("SSE client queue full at shutdown")

    # ── HTTP handlers ──

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "pid": os.getpid(),
            "uptime_seconds": round(max(0.0, time.time() - self._started_at), 3),
            "is_running": self._engine.is_running,
            "generation": self._engine.generation,
        })

    async def _handle_sse(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
            },
        )
        await response.prepare(request)

        queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=5000)
        self._sse_queues.append(queue)
        logger.info("SSE client connected req=%s active_clients=%d", request.get("req_id", "unknown"), len(self._sse_queues))

        try:
            snapshot = {"generation": self._engine.generation, **self._engine.state.to_dict()}
            await response.write(f"event: connected\ndata: {json.dumps(snapshot)}\n\n".encode())
            while True:
                try:
                    msg = await asyncio.wait_for(queue.get(), timeout=30.0)
                    if msg is None:
                        break
                    data = json.dumps(msg["data"])
                    await response.write(f"event: {msg['event']}\ndata: {data}\n\n".encode())
                except asyncio.TimeoutError:
                    await response.write(b": keepalive\n\n")
                except ConnectionResetError:
                    break
        except asyncio.CancelledError:
            pass
        finally:
            self._sse_queues.remove(queue)
            logger.info("SSE client disconnected req=%s active_clients=%d", request.get("req_id", "unknown"), len(self._sse_queues))
        return response

    async def _handle_agents(self, request: web.Request) -> web.Response:
        statuses = self._engine.agent_statuses
        active = self._engine.active_agent
        return web.json_response({
            "agents": [
                {
                    "id": agent_id.value,
                    "name": AGENTS[agent_id].name,
                    "description": AGENTS[agent_id].description,
                    "status": statuses[agent_id].value,
                    "active": agent_id == active,
                }
                for agent_id in AGENT_ORDER
            ],
        })

    async def _handle_examples(self, request: web.Request) -> web.Response:
        return web.json_response({"examples": list(EXAMPLE_STORIES)})

    async def _handle_state(self, request: web.Request) -> web.Response:
        return web.json_response({
            "generation": self._engine.generation,
            "project_name": self._engine.project_name,
            **self._engine.state.to_dict(),
        })

    async def _handle_logs(self, request: web.Request) -> web.Response:
        logs = self._engine.logs
        since_raw = request.query.get("since")
        if since_raw is not None:
            try:
                since = int(since_raw)
            except ValueError:
                return web.json_response({"error": "since must be an integer"}, status=400)
            if since < 0:
                return web.json_response({"error": "since must be >= 0"}, status=400)
            logs = logs[since:]
        return web.json_response({
            "logs": [entry.to_dict() for entry in logs],
            "total": len(self._engine.logs),
        })

    async def _handle_files(self, request: web.Request) -> web.Response:
        return web.json_response({"files": [node.to_dict() for node in self._engine.files]})

    async def _handle_files_sandbox(self, request: web.Request) -> web.Response:
        return web.json_response({"tree": to_sandbox_tree(self._engine.files)})

    async def _handle_preview(self, request: web.Request) -> web.Response:
        files = self._engine.files
        if not files:
            return web.json_response({"error": "No files generated yet"}, status=404)
        return web.Response(text=generate_preview_html(files), content_type="text/html")

    async def _handle_export(self, request: web.Request) -> web.Response:
        files = self._engine.files
        if not files:
            return web.json_response({"error": "No files generated yet"}, status=404)
        filename = f"{files[0].name}.zip"
        return web.Response(
            body=zip_bytes(files),
            content_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    async def _handle_start(self, request: web.Request) -> web.Response:
        if not request.can_read_body:
            return web.json_response({"error": "JSON body with name and story is required"}, status=400)
        try:
            body = await request.json()
        except (json.JSONDecodeError, ValueError):
            return web.json_response({"error": "Invalid JSON body"}, status=400)
        if not isinstance(body, dict):
            return web.json_response({"error": "JSON body must be an object"}, status=400)

        name = body.get("name")
        story = body.get("story")
        if self._engine.is_running:
            self._engine.start(str(name or ""), str(story or ""))
            return web.json_response(
                {"error": "A run is already in progress", "generation": self._engine.generation},
                status=409,
            )
        started = self._engine.start(
            name if isinstance(name, str) else "",
            story if isinstance(story, str) else "",
        )
        if not started:
            return web.json_response({"error": "name and story must not be empty"}, status=422)
        return web.json_response(
            {"status": "started", "generation": self._engine.generation},
            status=202,
        )

    async def _handle_reset(self, request: web.Request) -> web.Response:
        self._engine.reset()
        return web.json_response({"status": "reset", "generation": self._engine.generation})
