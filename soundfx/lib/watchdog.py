"""systemd notify/watchdog integration for the sound service.

Sends READY/STATUS/STOPPING/WATCHDOG messages to the systemd notify socket.
Silently no-ops when NOTIFY_SOCKET is unset (dev mode, tests).

Usage:
    from .lib.watchdog import notify_ready, watchdog_loop
    notify_ready("Listening on /tmp/play-sound.sock")
    asyncio.create_task(watchdog_loop())
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger("soundfx.watchdog")

DEFAULT_INTERVAL = 20


def sd_notify(msg: str) -> bool:
    """Send a notification message to the systemd notify socket."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
        return True
    except OSError as e:
        logger.warning("sd_notify(%s) failed: %s", msg.split("=", 1)[0], e)
        return False
    finally:
        sock.close()


def notify_ready(status: str = "") -> None:
    sd_notify(f"READY=1\nSTATUS={status}" if status else "READY=1")


def notify_stopping() -> None:
    sd_notify("STOPPING=1")


def watchdog_interval() -> float:
    """Half of WATCHDOG_USEC when systemd sets it, else DEFAULT_INTERVAL seconds."""
    usec = os.environ.get("WATCHDOG_USEC")
    try:
        return max(1.0, int(usec) / 1_000_000 / 2) if usec else DEFAULT_INTERVAL
    except ValueError:
        return DEFAULT_INTERVAL


async def watchdog_loop(interval: float | None = None):
    """Send WATCHDOG=1 every *interval* seconds.  Call as asyncio.create_task()."""
    interval = interval or watchdog_interval()
    logger.info("Watchdog started (interval=%.0fs)", interval)
    while True:
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
