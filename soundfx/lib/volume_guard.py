# SoundFX
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Temporary volume normalisation with guaranteed restore.

Before a notification sound plays, the target sinks can be forced to a fixed
level so the sound is audible regardless of what the user had set.  The
previous levels are snapshotted and put back a short delay after playback
starts.

Only one normalise → restore cycle may be in flight.  A second request that
arrives in the meantime must not snapshot the already-normalised levels (it
would "restore" them to the forced value), so it simply plays at whatever
volume is current.

Usage:
    guard = VolumeGuard()
    async with guard.hold(wanted=True) as lease:
        if lease:
            lease.snapshot = await guard.snapshot(sinks)
            await guard.apply(sinks, 0.8)
        ...launch players...
        if lease:
            lease.restore_later(delay_ms=150)
    # lock released here unless the restore task now owns it
"""

import asyncio
import contextlib
import logging
import re

from .process import run_command

logger = logging.getLogger("soundfx.volume")

WPCTL = "wpctl"

# wpctl get-volume prints e.g. "Volume: 0.53" or "Volume: 0.53 [MUTED]"
_VOLUME_RE = re.compile(r"(\d+(?:\.\d+)?)")


def parse_volume(reading: str) -> str | None:
    """Numeric part of a wpctl get-volume reading, as text."""
    m = _VOLUME_RE.search(reading)
    return m.group(1) if m else None


def format_level(level: float) -> str:
    return f"{level:g}"


class Lease:
    """Proof that the holder owns the normalisation lock."""

    def __init__(self, guard: "VolumeGuard"):
        self._guard = guard
        self.snapshot: dict[str, str] | None = None
        self.handed_off = False

    def restore_later(self, delay_ms: int) -> asyncio.Task:
        """Pass the lock to a detached restore task."""
        task = self._guard.schedule_restore(self.snapshot or {}, delay_ms)
        self.handed_off = True
        return task


class VolumeGuard:
    """Mutual-exclusion gate plus snapshot/restore for sink volumes."""

    def __init__(self, runner=run_command):
        self._run = runner
        self._busy = False
        self._restores: set[asyncio.Task] = set()

    # -- lock --

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_restores(self) -> int:
        return len(self._restores)

    def try_enter(self) -> bool:
        # No await between test and set: atomic with respect to other tasks
        if self._busy:
            return False
        self._busy = True
        return True

    def exit(self) -> None:
        if not self._busy:
            logger.warning("Normalisation lock released twice")
        self._busy = False

    @contextlib.asynccontextmanager
    async def hold(self, wanted: bool = True):
        """Yield a Lease if normalisation is wanted and the lock is free, else None.

        Unless the lease was handed to restore_later(), leaving the block
        restores any snapshot taken so far and releases the lock, also when
        the block raised.
        """
        if not wanted or not self.try_enter():
            yield None
            return
        lease = Lease(self)
        try:
            yield lease
        finally:
            if not lease.handed_off:
                try:
                    if lease.snapshot:
                        logger.warning("Playback failed after normalising — restoring volumes now")
                        await self.restore(lease.snapshot)
                except Exception as e:
                    logger.error("Volume restore failed: %s", e)
                finally:
                    self.exit()

    # -- volume operations --

    async def snapshot(self, sinks) -> dict[str, str]:
        """Current raw volume reading per sink.  Failed reads are left out."""
        saved = {}
        for sink in sinks:
            result = await self._run(WPCTL, "get-volume", sink.id)
            if not result.ok or not result.stdout.strip():
                logger.warning("Could not read volume of %s: %s", sink.name, result.describe())
                continue
            saved[sink.id] = result.stdout.strip()
        return saved

    async def apply(self, sinks, level: float) -> None:
        """Set every sink to *level*, one after another."""
        value = format_level(level)
        for sink in sinks:
            result = await self._run(WPCTL, "set-volume", sink.id, value)
            if result.ok:
                logger.info("-> %s volume: %s", sink.name, value)
            else:
                logger.warning("Could not set volume of %s: %s", sink.name, result.describe())

    async def restore(self, snapshot: dict[str, str]) -> None:
        for sink_id, reading in snapshot.items():
            value = parse_volume(reading)
            if value is None:
                logger.warning("Unrecognised volume reading for sink %s: %r", sink_id, reading)
                continue
            result = await self._run(WPCTL, "set-volume", sink_id, value)
            if result.ok:
                logger.info("Restored sink %s volume: %s", sink_id, value)
            else:
                logger.warning("Could not restore sink %s: %s", sink_id, result.describe())

    def schedule_restore(self, snapshot: dict[str, str], delay_ms: int) -> asyncio.Task:
        """Restore *snapshot* after *delay_ms*, then release the lock.

        The task is detached from the request that created it.
        """
        task = asyncio.create_task(self._restore_after(snapshot, delay_ms))
        self._restores.add(task)
        task.add_done_callback(self._restores.discard)
        return task

    async def _restore_after(self, snapshot: dict[str, str], delay_ms: int) -> None:
        try:
            await asyncio.sleep(delay_ms / 1000)
            await self.restore(snapshot)
        except asyncio.CancelledError:
            logger.warning("Volume restore cancelled — restoring immediately")
            await self.restore(snapshot)
            raise
        except Exception as e:
            logger.error("Volume restore failed: %s", e)
        finally:
            self.exit()

    async def close(self) -> None:
        """Wait for pending restores so no sink is left normalised."""
        if self._restores:
            logger.info("Waiting for %d pending volume restore(s)", len(self._restores))
            await asyncio.gather(*self._restores, return_exceptions=True)
