"""
Process-wide defaults and the static sound table.

Both are read once at startup from config.json and treated as read-only
afterwards.  Per-request overrides never mutate them; the protocol codec
builds a modified copy instead (see ``dataclasses.replace``).

config.json layout:

    "sound_service": {
        "sounds_dir": "/usr/share/soundfx/sounds",
        "defaults": {
            "emitting_speaker": "all",
            "normalise_volume": true,
            "normalise_volume_level": 1.0,
            "volume_restore_delay_ms": 150,
            "duration": 2
        }
    },
    "sounds": {
        "warning": "mixkit-software-interface-back-2575.wav"
    }
"""

import enum
import logging
import os
from dataclasses import dataclass, replace

from .config import cfg

logger = logging.getLogger("soundfx.settings")


class EmittingSpeaker(str, enum.Enum):
    """Which sinks a sound is played on."""
    ALL = "all"            # fan out to every active sink
    DEFAULT = "default"    # first sink only


@dataclass(frozen=True)
class RuntimeSettings:
    emitting_speaker: EmittingSpeaker = EmittingSpeaker.ALL
    normalise_volume: bool = True
    normalise_volume_level: float = 1.0   # 0.0 - 1.0
    volume_restore_delay_ms: int = 150    # 0 - 10000
    duration: float = 2.0                 # seconds, 0 = play to the end

    def to_dict(self) -> dict:
        return {
            "emitting_speaker": self.emitting_speaker.value,
            "normalise_volume": self.normalise_volume,
            "normalise_volume_level": self.normalise_volume_level,
            "volume_restore_delay_ms": self.volume_restore_delay_ms,
            "duration": self.duration,
        }


# Built-in table used when config.json has no "sounds" section
DEFAULT_SOUNDS = {
    "warning": "mixkit-software-interface-back-2575.wav",
}


def sounds_dir() -> str:
    """Directory that relative sound paths are resolved against."""
    configured = cfg("sound_service", "sounds_dir")
    if configured:
        return os.path.expanduser(configured)
    proj_root = os.environ.get("PROJ_ROOT") or os.getcwd()
    return os.path.join(proj_root, "assets", "sounds")


def load_sounds() -> dict[str, str]:
    """Build the name → absolute path table."""
    table = cfg("sounds")
    if not isinstance(table, dict):
        table = DEFAULT_SOUNDS
    base = sounds_dir()
    sounds = {}
    for name, path in table.items():
        if not isinstance(path, str) or not path:
            logger.warning("Sound %r has no file configured — skipped", name)
            continue
        path = os.path.expanduser(path)
        sounds[str(name)] = os.path.abspath(path if os.path.isabs(path) else os.path.join(base, path))
    logger.info("Sound table: %s", ", ".join(sorted(sounds)) or "(empty)")
    return sounds


def load_settings() -> RuntimeSettings:
    """Built-in defaults overlaid with sound_service.defaults from config.json.

    Configured values go through the same validators as wire overrides; a bad
    value is reported and the built-in default kept.
    """
    # Imported here to avoid a cycle: the codec depends on RuntimeSettings
    from .protocol import FIELD_PARSERS, RequestRejected

    settings = RuntimeSettings()
    configured = cfg("sound_service", "defaults") or {}
    if not isinstance(configured, dict):
        return settings

    overrides = {}
    for key, raw in configured.items():
        parser = FIELD_PARSERS.get(key)
        if parser is None:
            logger.warning("Unknown default %r in config — ignored", key)
            continue
        # Config values may be JSON numbers/bools; the validators take wire text
        text = str(raw).lower() if isinstance(raw, bool) else str(raw)
        try:
            overrides[key] = parser(text)
        except RequestRejected as e:
            logger.warning("Invalid default %s=%r (%s) — keeping %r",
                           key, raw, e.reason, getattr(settings, key))
    return replace(settings, **overrides)
