"""Shared fakes for the PipeWire command-line tools.

Nothing here talks to a real audio server: the service components accept an
injected ``runner`` (pw-dump / wpctl) and ``spawner`` (pw-play), and these
fakes stand in for them.
"""

import asyncio
import json
import shutil
import tempfile

import pytest

from soundfx.lib import config
from soundfx.lib.process import CommandResult, LAUNCH_FAILED


def pw_dump_json(*sinks, extra=()):
    """pw-dump style output for (serial, node.name) pairs plus some non-sink noise."""
    objects = [
        {"id": 0, "type": "PipeWire:Interface:Core", "info": {"props": {"core.name": "pipewire-0"}}},
        {"id": 55, "type": "PipeWire:Interface:Node",
         "info": {"props": {"media.class": "Audio/Source", "node.name": "alsa_input.mic",
                            "object.serial": 55}}},
    ]
    for i, (serial, name) in enumerate(sinks):
        objects.append({
            "id": 40 + i,
            "type": "PipeWire:Interface:Node",
            "info": {"props": {
                "media.class": "Audio/Sink",
                "node.name": name,
                "node.description": name.replace("_", " ").title(),
                "object.serial": serial,
            }},
        })
    objects.extend(extra)
    return json.dumps(objects)


class FakePipeWire:
    """Answers pw-dump and wpctl get/set-volume from in-memory state."""

    def __init__(self, sinks=(), volumes=None):
        self.sinks = list(sinks)
        self.volumes = dict(volumes or {})
        self.calls = []
        self.unreachable = set()     # sink ids whose wpctl calls fail
        self.dump_output = None      # override pw-dump stdout
        self.dump_returncode = 0

    def count(self, *prefix):
        return sum(1 for c in self.calls if c[:len(prefix)] == prefix)

    async def run(self, *args):
        self.calls.append(args)
        await asyncio.sleep(0)  # real subprocesses always suspend
        if args[0] == "pw-dump":
            out = self.dump_output if self.dump_output is not None else pw_dump_json(*self.sinks)
            return CommandResult(args, self.dump_returncode, out if self.dump_returncode == 0 else "")
        if args[:2] == ("wpctl", "get-volume"):
            sink_id = args[2]
            if sink_id in self.unreachable or sink_id not in self.volumes:
                return CommandResult(args, 1, "", f"Object '{sink_id}' not found")
            return CommandResult(args, 0, f"Volume: {self.volumes[sink_id]:.2f}\n")
        if args[:2] == ("wpctl", "set-volume"):
            sink_id, value = args[2], args[3]
            if sink_id in self.unreachable:
                return CommandResult(args, 1, "", f"Object '{sink_id}' not found")
            self.volumes[sink_id] = float(value)
            return CommandResult(args, 0)
        return CommandResult(args, LAUNCH_FAILED, "", "unknown command")


class FakeProcess:
    _next_pid = 1000

    def __init__(self, args, returncode=0, finished=None):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.args = args
        self._returncode = returncode
        self._finished = finished

    async def wait(self):
        if self._finished is not None:
            await self._finished.wait()
        return self._returncode


class FakeSpawner:
    """Records player launches.  Targets in ``fail_targets`` fail to start."""

    def __init__(self):
        self.launched = []
        self.fail_targets = set()
        self.raise_targets = set()
        self.returncode = 0
        self.finished = None   # asyncio.Event to hold players "playing"

    async def __call__(self, *args):
        await asyncio.sleep(0)
        target = args[args.index("--target") + 1] if "--target" in args else None
        if target in self.raise_targets:
            raise RuntimeError(f"player crashed for {target}")
        if target in self.fail_targets:
            return None
        self.launched.append(args)
        return FakeProcess(args, self.returncode, self.finished)


@pytest.fixture
def pipewire():
    return FakePipeWire(
        sinks=[("31", "alsa_output.speakers"), ("32", "bluez_output.headphones")],
        volumes={"31": 0.53, "32": 0.25},
    )


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def sound_file(tmp_path):
    path = tmp_path / "warning.wav"
    path.write_bytes(b"RIFF\x00\x00\x00\x00WAVE")
    return str(path)


@pytest.fixture
def short_tmpdir():
    """AF_UNIX paths are limited to ~108 bytes, pytest's tmp_path can exceed that."""
    path = tempfile.mkdtemp(prefix="sfx")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point cfg() at a temporary config.json; returns a writer."""
    path = tmp_path / "config.json"
    monkeypatch.setenv("SOUNDFX_CONFIG", str(path))
    monkeypatch.setattr(config, "_config", None)

    def write(data):
        path.write_text(json.dumps(data))
        config.reload_config()
        return path

    yield write
    config._config = None
