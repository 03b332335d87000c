# SoundFX
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Playback orchestration — sink selection, normalisation, player launch.

``play()`` returns as soon as the ``pw-play`` processes are running; the
returned task finishes when they exit.  Volume restoration is scheduled
relative to the *launch*, so with a short restore delay and a long sound the
levels go back while the sound is still playing.  That is intended: the
delay is a knob for "how long the notification should be forced loud".
"""

import asyncio
import logging
import os

from .process import spawn
from .settings import EmittingSpeaker, RuntimeSettings
from .sinks import Sink, SinkInventory
from .volume_guard import VolumeGuard

logger = logging.getLogger("soundfx.playback")

PW_PLAY = "pw-play"
TIMEOUT = "timeout"

# Exit status of timeout(1) when it had to stop the player
TIMED_OUT = 124


def player_command(path: str, sink: Sink | None, duration: float) -> list[str]:
    """pw-play invocation, wrapped in timeout(1) when a duration cap is set."""
    cmd = [PW_PLAY]
    if sink is not None:
        cmd += ["--target", sink.name]
    cmd.append(path)
    if duration and duration > 0:
        cmd = [TIMEOUT, f"{duration:g}s"] + cmd
    return cmd


def select_targets(sinks: list[Sink], speaker: EmittingSpeaker) -> list[Sink]:
    """DEFAULT narrows to the first sink; ALL keeps them all."""
    if speaker == EmittingSpeaker.DEFAULT and sinks:
        return sinks[:1]
    return list(sinks)


class PlaybackOrchestrator:
    """Plays named sounds on one or more PipeWire sinks."""

    def __init__(self, sounds: dict[str, str], inventory: SinkInventory | None = None,
                 guard: VolumeGuard | None = None, spawner=spawn):
        self.sounds = sounds
        self.inventory = inventory or SinkInventory()
        self.guard = guard or VolumeGuard()
        self._spawn = spawner
        self._players: set[asyncio.Task] = set()

    async def play(self, sound: str, settings: RuntimeSettings) -> asyncio.Task | None:
        """Launch playback of *sound*.  Returns a task tracking the players, or None.

        Never raises: operational failures are logged and playback degrades
        (fewer sinks, no normalisation, or nothing at all).
        """
        path = self.sounds.get(sound)
        if not path or not os.path.isfile(path):
            logger.warning("Sound file not found: %s", path or sound)
            return None

        try:
            sinks = await self.inventory.list_sinks()
            if not sinks:
                logger.warning("No sinks found, falling back to default pw-play")
            targets = select_targets(sinks, settings.emitting_speaker)

            wanted = settings.normalise_volume and bool(targets)
            async with self.guard.hold(wanted) as lease:
                if wanted and lease is None:
                    logger.info("Normalisation already in progress — playing %s at current volume", sound)
                if lease:
                    lease.snapshot = await self.guard.snapshot(targets)
                    await self.guard.apply(targets, settings.normalise_volume_level)

                procs = await self._launch(path, targets, settings)

                if lease:
                    lease.restore_later(settings.volume_restore_delay_ms)
        except Exception as e:
            logger.error("Error playing sound %s: %s", sound, e)
            return None

        logger.info("Playing %s (%d player(s), %s)", sound, len(procs),
                    ", ".join(s.name for s in targets) if targets else "default sink")
        task = asyncio.create_task(self._wait(sound, procs))
        self._players.add(task)
        task.add_done_callback(self._players.discard)
        return task

    async def _launch(self, path: str, targets: list[Sink],
                      settings: RuntimeSettings) -> list[asyncio.subprocess.Process]:
        if settings.emitting_speaker == EmittingSpeaker.ALL and len(targets) > 1:
            commands = [player_command(path, sink, settings.duration) for sink in targets]
        else:
            single = targets[0] if targets else None
            commands = [player_command(path, single, settings.duration)]

        results = await asyncio.gather(
            *(self._spawn(*cmd) for cmd in commands), return_exceptions=True,
        )
        procs = []
        for cmd, result in zip(commands, results):
            if isinstance(result, BaseException):
                logger.error("Player launch failed (%s): %s", " ".join(cmd), result)
            elif result is not None:
                procs.append(result)
        return procs

    async def _wait(self, sound: str, procs: list[asyncio.subprocess.Process]) -> None:
        results = await asyncio.gather(*(p.wait() for p in procs), return_exceptions=True)
        for proc, rc in zip(procs, results):
            if isinstance(rc, BaseException):
                logger.error("Player for %s failed: %s", sound, rc)
            elif rc == TIMED_OUT:
                logger.debug("Player for %s stopped at duration cap (pid %s)", sound, proc.pid)
            elif rc != 0:
                logger.warning("Player for %s exited with %s", sound, rc)

    async def close(self) -> None:
        # Players keep running on their own; only stop watching them
        watchers = list(self._players)
        for task in watchers:
            task.cancel()
        await asyncio.gather(*watchers, return_exceptions=True)
        await self.guard.close()
