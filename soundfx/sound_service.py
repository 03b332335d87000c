#!/usr/bin/env python3
# SoundFX
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SoundFX playback service (soundfx-service)

Plays short notification sounds for the desktop shell.  Clients write one
request line to a Unix socket and get one response line back:

    echo 'warning' | socat - UNIX-CONNECT:/tmp/play-sound.sock
    echo 'warning:3' | socat - UNIX-CONNECT:/tmp/play-sound.sock
    echo 'warning::default:true:0.5:300' | socat - UNIX-CONNECT:/tmp/play-sound.sock

See lib/protocol.py for the message format.  A small HTTP API mirrors the
socket for status and debugging.

Socket: /tmp/play-sound.sock
Port:   8779 (HTTP, localhost)
"""

import asyncio
import logging
import os
import signal

from aiohttp import web

from .lib.config import cfg
from .lib.playback import PlaybackOrchestrator
from .lib.protocol import OK, INVALID_FORMAT, RequestRejected, parse_request
from .lib.settings import RuntimeSettings, load_settings, load_sounds
from .lib.watchdog import notify_ready, notify_stopping, watchdog_loop

logger = logging.getLogger("soundfx")

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
DEFAULT_SOCKET_PATH = "/tmp/play-sound.sock"
DEFAULT_SOCKET_MODE = 0o777   # any local user may request a sound
DEFAULT_HTTP_PORT = 8779
READ_LIMIT = 1024             # one request line, one read


def _socket_mode(value) -> int:
    """Config socket_mode as octal digits: "0777", "777" and 777 all mean 0o777."""
    try:
        return int(str(value), 8)
    except ValueError:
        logger.warning("Invalid socket_mode %r — using %o", value, DEFAULT_SOCKET_MODE)
        return DEFAULT_SOCKET_MODE


# ---------------------------------------------------------------------------
# Socket service
# ---------------------------------------------------------------------------
class SoundService:
    """Unix socket front end: one connection, one request, one response."""

    def __init__(self, orchestrator: PlaybackOrchestrator | None = None,
                 settings: RuntimeSettings | None = None,
                 socket_path: str | None = None, socket_mode=None):
        self.socket_path = socket_path or cfg("sound_service", "socket_path",
                                              default=DEFAULT_SOCKET_PATH)
        if socket_mode is None:
            socket_mode = _socket_mode(cfg("sound_service", "socket_mode", default="0777"))
        self.socket_mode = socket_mode
        self.settings = settings or load_settings()
        self.orchestrator = orchestrator or PlaybackOrchestrator(load_sounds())
        self._server: asyncio.AbstractServer | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    def _remove_socket_file(self):
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Error removing socket file %s: %s", self.socket_path, e)

    async def start(self):
        self._remove_socket_file()
        self._server = await asyncio.start_unix_server(
            self._handle_connection, path=self.socket_path,
        )
        try:
            os.chmod(self.socket_path, self.socket_mode)
        except OSError as e:
            logger.warning("Failed to set socket permissions: %s", e)
        logger.info("Sound service listening on %s (defaults: %s)",
                    self.socket_path, self.settings.to_dict())

    async def stop(self):
        if self._server:
            self._server.close()
            try:
                # Idle clients can hold their connection open indefinitely
                await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning("Closing with client connections still open")
            self._server = None
        await self.orchestrator.close()
        self._remove_socket_file()
        logger.info("Sound service stopped")

    async def dispatch(self, message: str) -> None:
        """Parse and launch one request.  Raises RequestRejected for bad input."""
        request = parse_request(message, self.settings, self.orchestrator.sounds)
        logger.info("Request: %s", message)
        await self.orchestrator.play(request.sound, request.settings)

    async def handle_message(self, message: str) -> str:
        """Wire-level wrapper around dispatch(): returns the response line."""
        try:
            await self.dispatch(message)
        except RequestRejected as e:
            logger.info("Rejected %r: %s", message, e.reason)
            return e.response
        except Exception as e:
            logger.error("Error processing message %r: %s", message, e)
            return RequestRejected(INVALID_FORMAT).response
        return OK

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        try:
            data = await reader.read(READ_LIMIT)
            message = data.decode(errors="replace").strip()
            if not message:
                return
            response = await self.handle_message(message.splitlines()[0])
            writer.write(f"{response}\n".encode())
            await writer.drain()
        except Exception as e:
            logger.error("Error handling socket connection: %s", e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except Exception as e:
                logger.debug("Error closing connection: %s", e)

    def status(self) -> dict:
        guard = self.orchestrator.guard
        return {
            "socket": self.socket_path,
            "listening": self.running,
            "normalising": guard.busy,
            "pending_restores": guard.pending_restores,
            "defaults": self.settings.to_dict(),
            "sounds": sorted(self.orchestrator.sounds),
        }


# ---------------------------------------------------------------------------
# HTTP handlers
# ---------------------------------------------------------------------------
SERVICE = web.AppKey("service", SoundService)


async def handle_status(request: web.Request) -> web.Response:
    """GET /sound/status — socket, lock and defaults."""
    return web.json_response(request.app[SERVICE].status())


async def handle_sinks(request: web.Request) -> web.Response:
    """GET /sound/sinks — sinks PipeWire currently reports."""
    sinks = await request.app[SERVICE].orchestrator.inventory.list_sinks()
    return web.json_response({"sinks": [s.to_dict() for s in sinks]})


async def handle_play(request: web.Request) -> web.Response:
    """POST /sound/play — {"message": "warning:1.2"}, same format as the socket."""
    try:
        data = await request.json()
    except Exception:
        return web.json_response({"error": "invalid json"}, status=400)

    message = data.get("message") if isinstance(data, dict) else None
    if not isinstance(message, str):
        return web.json_response({"error": "missing or invalid 'message'"}, status=400)

    try:
        await request.app[SERVICE].dispatch(message.strip())
    except RequestRejected as e:
        return web.json_response({"error": e.reason}, status=400)
    return web.json_response({"status": "ok"})


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------
async def service_context(app: web.Application):
    """Socket server + watchdog live exactly as long as the aiohttp app."""
    service = app[SERVICE]
    await service.start()
    notify_ready(f"Listening on {service.socket_path}")
    watchdog = asyncio.create_task(watchdog_loop())
    yield
    notify_stopping()
    watchdog.cancel()
    await asyncio.gather(watchdog, return_exceptions=True)
    await service.stop()


def create_app(service: SoundService | None = None) -> web.Application:
    app = web.Application()
    app[SERVICE] = service or SoundService()
    app.router.add_get("/sound/status", handle_status)
    app.router.add_get("/sound/sinks", handle_sinks)
    app.router.add_post("/sound/play", handle_play)
    app.cleanup_ctx.append(service_context)
    return app


async def _run_socket_only(app: web.Application):
    """Drive the app lifecycle without an HTTP listener (http_port = 0)."""
    runner = web.AppRunner(app)
    await runner.setup()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await stop.wait()
    finally:
        await runner.cleanup()


def main():
    logging.basicConfig(
        level=str(cfg("sound_service", "log_level", default="INFO")).upper(),
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    app = create_app()
    port = int(cfg("sound_service", "http_port", default=DEFAULT_HTTP_PORT))
    if port:
        host = cfg("sound_service", "http_host", default="127.0.0.1")
        web.run_app(app, host=host, port=port, print=lambda msg: logger.info(msg))
    else:
        asyncio.run(_run_socket_only(app))


if __name__ == "__main__":
    main()
