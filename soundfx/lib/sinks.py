"""
Sink discovery via PipeWire.

Asks ``pw-dump`` for the current object graph and picks out the audio
output nodes.  The list is fetched fresh on every call — speakers come and
go (Bluetooth, HDMI hot-plug), so nothing is cached between requests.

Usage:
    inventory = SinkInventory()
    sinks = await inventory.list_sinks()   # [] when PipeWire is unavailable
"""

import json
import logging
from dataclasses import dataclass

from .process import run_command

log = logging.getLogger("soundfx.sinks")

PW_DUMP = "pw-dump"
SINK_MEDIA_CLASS = "Audio/Sink"


@dataclass(frozen=True)
class Sink:
    id: str       # what wpctl addresses (object serial / node id)
    name: str     # node.name, what pw-play --target takes
    label: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "label": self.label or self.name}


def _sink_id(obj: dict, props: dict) -> str:
    for candidate in (props.get("object.serial"), obj.get("id"), props.get("node.id")):
        if candidate is not None and candidate != "":
            return str(candidate)
    return props["node.name"]


def parse_pw_dump(raw: str) -> list[Sink]:
    """Extract audio sinks from pw-dump JSON output, in dump order.

    Raises ValueError (json.JSONDecodeError) for unparsable output.
    """
    objects = json.loads(raw)
    if not isinstance(objects, list):
        raise ValueError("pw-dump did not return a JSON array")
    sinks = []
    for obj in objects:
        if not isinstance(obj, dict):
            continue
        props = (obj.get("info") or {}).get("props") or {}
        if props.get("media.class") != SINK_MEDIA_CLASS or not props.get("node.name"):
            continue
        name = props["node.name"]
        sinks.append(Sink(_sink_id(obj, props), name, props.get("node.description") or name))
    return sinks


class SinkInventory:
    """One-shot queries for the currently active output sinks."""

    def __init__(self, runner=run_command):
        self._run = runner

    async def list_sinks(self) -> list[Sink]:
        result = await self._run(PW_DUMP)
        if not result.ok:
            log.error("Sink discovery failed: %s", result.describe())
            return []
        if not result.stdout.strip():
            return []
        try:
            sinks = parse_pw_dump(result.stdout)
        except ValueError as e:
            log.error("Failed to parse pw-dump JSON: %s", e)
            return []
        log.debug("Sinks: %s", ", ".join(s.name for s in sinks) or "(none)")
        return sinks
