"""
External command helpers for the PipeWire tools the service drives.

Every call returns a value instead of raising, so callers can log the
outcome at the call site and carry on with the next sink:

    result = await run_command("wpctl", "get-volume", "42")
    if result.ok:
        ...

    proc = await spawn("pw-play", "--target", name, path)   # None on failure
"""

import asyncio
import logging
import os
from dataclasses import dataclass

log = logging.getLogger("soundfx.process")

# Exit code reported when the binary itself could not be started
LAUNCH_FAILED = 127


def command_env() -> dict:
    """Environment for PipeWire clients — they need XDG_RUNTIME_DIR to find the daemon."""
    env = os.environ.copy()
    env.setdefault("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    return env


@dataclass(frozen=True)
class CommandResult:
    args: tuple
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"{' '.join(self.args)} (rc={self.returncode}){': ' + detail if detail else ''}"


async def run_command(*args: str) -> CommandResult:
    """Run a command to completion and capture its output."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=command_env(),
        )
        stdout, stderr = await proc.communicate()
    except OSError as e:
        # FileNotFoundError for a missing tool, PermissionError etc.
        log.debug("Could not start %s: %s", args[0], e)
        return CommandResult(tuple(args), LAUNCH_FAILED, "", str(e))
    return CommandResult(
        tuple(args),
        proc.returncode,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


async def spawn(*args: str) -> asyncio.subprocess.Process | None:
    """Start a command without waiting for it.  Returns None if it could not start."""
    try:
        return await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            env=command_env(),
        )
    except OSError as e:
        log.error("Failed to launch %s: %s", args[0], e)
        return None
