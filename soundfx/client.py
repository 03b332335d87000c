#!/usr/bin/env python3
"""
Send a sound request to a running soundfx-service.

Usage:
    soundfx-play warning
    soundfx-play warning --duration 1.2 --speaker default --no-normalise
    soundfx-play --raw 'warning::all:true:0.6:250'

Prints the service response and exits 1 on ``ERROR ...`` or when the
service is unreachable.
"""

import argparse
import logging
import socket
import sys

from .lib.config import cfg

log = logging.getLogger("soundfx.client")

DEFAULT_SOCKET_PATH = "/tmp/play-sound.sock"


def build_message(sound, duration=None, speaker=None, normalise=None,
                  level=None, restore_delay_ms=None) -> str:
    """Build a request line; None leaves the field empty (service default)."""
    fields = [
        "" if duration is None else f"{duration:g}",
        speaker or "",
        "" if normalise is None else ("true" if normalise else "false"),
        "" if level is None else f"{level:g}",
        "" if restore_delay_ms is None else str(int(restore_delay_ms)),
    ]
    # Trailing empty fields are optional on the wire
    while fields and fields[-1] == "":
        fields.pop()
    return ":".join([sound] + fields)


def send_sound_request(message: str, socket_path: str | None = None,
                       timeout: float = 5.0) -> str | None:
    """Send one request line and return the response, or None if unreachable."""
    path = socket_path or cfg("sound_service", "socket_path", default=DEFAULT_SOCKET_PATH)
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(path)
        sock.sendall(f"{message}\n".encode())
        chunks = []
        while True:
            chunk = sock.recv(1024)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks).decode(errors="replace").strip()
    except OSError as e:
        log.error("Error sending sound request to %s: %s", path, e)
        return None
    finally:
        sock.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="soundfx-play", description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("sound", nargs="?", help="Sound name from the service's sound table")
    parser.add_argument("--raw", help="Send this request line verbatim")
    parser.add_argument("--duration", type=float, help="Play at most this many seconds (0-30)")
    parser.add_argument("--speaker", choices=["all", "default"], help="Which sinks to play on")
    parser.add_argument("--normalise", dest="normalise", action="store_true", default=None,
                        help="Temporarily force the sink volume")
    parser.add_argument("--no-normalise", dest="normalise", action="store_false")
    parser.set_defaults(normalise=None)
    parser.add_argument("--level", type=float, help="Normalised volume level (0.0-1.0)")
    parser.add_argument("--restore-delay", type=int, metavar="MS",
                        help="Restore volumes this many ms after launch (0-10000)")
    parser.add_argument("--socket", help="Service socket path")
    args = parser.parse_args(argv)

    if args.raw:
        message = args.raw
    elif args.sound:
        message = build_message(args.sound, args.duration, args.speaker, args.normalise,
                                args.level, args.restore_delay)
    else:
        parser.error("a sound name or --raw is required")

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")
    response = send_sound_request(message, args.socket)
    if response is None:
        return 1
    print(response)
    return 1 if response.startswith("ERROR") else 0


if __name__ == "__main__":
    sys.exit(main())
