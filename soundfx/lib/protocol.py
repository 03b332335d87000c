"""
Wire codec for sound requests.

A request is one line of colon-delimited fields:

    <soundName>[:<durationSec>][:<emittingSpeaker>][:<normaliseVolume>][:<normaliseVolumeLevel>][:<volumeRestoreDelayMs>]

Empty or missing fields inherit the service defaults.  Examples:

    warning                      -> all defaults
    warning:1.2                  -> duration 1.2s
    warning::all                 -> play on every sink
    warning:::false              -> no volume normalisation
    warning::::0.5               -> normalise to 50%
    warning:::::300              -> restore volumes 300ms after launch
    warning:2:all:true:0.6:250   -> fully specified

Responses are ``OK`` or ``ERROR <reason>`` where reason is one of
``unknown_sound``, ``invalid_format`` or ``bad_value_<field>``.  Only the
first invalid field is reported.
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Callable, Container

from .settings import EmittingSpeaker, RuntimeSettings

OK = "OK"

UNKNOWN_SOUND = "unknown_sound"
INVALID_FORMAT = "invalid_format"

FIELD_SEPARATOR = ":"

# Plain decimal with optional exponent; no "_" digit groups or padding
NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class RequestRejected(Exception):
    """A request the client got wrong.  ``reason`` goes back on the wire."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    @property
    def response(self) -> str:
        return f"ERROR {self.reason}"


@dataclass(frozen=True)
class EffectiveRequest:
    sound: str
    settings: RuntimeSettings


def _number(text: str, reason: str) -> float:
    if not NUMBER_RE.fullmatch(text):
        raise RequestRejected(reason)
    value = float(text)
    if not math.isfinite(value):   # 1e999
        raise RequestRejected(reason)
    return value


def parse_duration(text: str) -> float:
    value = _number(text, "bad_value_duration")
    if not 0 <= value <= 30:
        raise RequestRejected("bad_value_duration")
    return value


def parse_emitting_speaker(text: str) -> EmittingSpeaker:
    try:
        return EmittingSpeaker(text)
    except ValueError:
        raise RequestRejected("bad_value_emittingSpeaker") from None


def parse_normalise_volume(text: str) -> bool:
    if text in ("true", "1"):
        return True
    if text in ("false", "0"):
        return False
    raise RequestRejected("bad_value_normaliseVolume")


def parse_normalise_volume_level(text: str) -> float:
    value = _number(text, "bad_value_normaliseVolumeLevel")
    if not 0 <= value <= 1:
        raise RequestRejected("bad_value_normaliseVolumeLevel")
    return value


def parse_volume_restore_delay_ms(text: str) -> int:
    # "300.0" and "3e2" are accepted as long as they are whole numbers
    value = _number(text, "bad_value_volumeRestoreDelayMs")
    if not value.is_integer() or not 0 <= value <= 10000:
        raise RequestRejected("bad_value_volumeRestoreDelayMs")
    return int(value)


# Positional override fields 1..5, in wire order
OVERRIDE_FIELDS: list[tuple[str, Callable[[str], object]]] = [
    ("duration", parse_duration),
    ("emitting_speaker", parse_emitting_speaker),
    ("normalise_volume", parse_normalise_volume),
    ("normalise_volume_level", parse_normalise_volume_level),
    ("volume_restore_delay_ms", parse_volume_restore_delay_ms),
]

FIELD_PARSERS = dict(OVERRIDE_FIELDS)


def parse_request(message: str, defaults: RuntimeSettings,
                  sounds: Container[str]) -> EffectiveRequest:
    """Turn one request line into a fully-defaulted request.

    Raises RequestRejected for the first field that fails validation.
    Fields past the sixth are ignored.
    """
    if not message:
        raise RequestRejected(INVALID_FORMAT)
    parts = message.split(FIELD_SEPARATOR)
    sound = parts[0]
    if not sound:
        raise RequestRejected(INVALID_FORMAT)
    if sound not in sounds:
        raise RequestRejected(UNKNOWN_SOUND)

    overrides = {}
    for (attr, parser), text in zip(OVERRIDE_FIELDS, parts[1:]):
        if text == "":
            continue
        overrides[attr] = parser(text)

    return EffectiveRequest(sound, replace(defaults, **overrides))
