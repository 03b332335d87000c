"""
Shared configuration loader for the SoundFX service.

Loads a single JSON config file per machine.  Search order:
  1. $SOUNDFX_CONFIG                (explicit override, e.g. from a systemd unit)
  2. /etc/soundfx/config.json       (system-wide install)
  3. config.json                    (CWD — handy for local dev)
  4. ../../config/default.json      (repo fallback)

Usage:
    from .config import cfg

    socket_path = cfg("sound_service", "socket_path", default="/tmp/play-sound.sock")
    http_port   = cfg("sound_service", "http_port", default=8779)
    sounds      = cfg("sounds")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger("soundfx.config")

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/soundfx/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]


def _search_paths() -> list[str]:
    override = os.environ.get("SOUNDFX_CONFIG")
    if override:
        return [override] + _SEARCH_PATHS
    return list(_SEARCH_PATHS)


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    service = config.get("sound_service") or {}
    if not isinstance(service, dict):
        logger.warning("Config %s: 'sound_service' must be an object — ignoring it", path)
        return
    sounds = config.get("sounds")
    if sounds is not None and not isinstance(sounds, dict):
        logger.warning("Config %s: 'sounds' must map names to files — using built-in table", path)
    elif sounds == {}:
        logger.warning("Config %s: empty 'sounds' table — every request will be unknown_sound", path)
    port = service.get("http_port")
    if port is not None and (not isinstance(port, int) or not 0 <= port <= 65535):
        logger.warning("Config %s: invalid sound_service.http_port %r", path, port)
    mode = service.get("socket_mode")
    if mode is not None and (isinstance(mode, bool) or not isinstance(mode, (int, str))):
        logger.warning("Config %s: sound_service.socket_mode should be an octal string like \"0777\"", path)
    defaults = service.get("defaults")
    if defaults is not None and not isinstance(defaults, dict):
        logger.warning("Config %s: sound_service.defaults must be an object", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using built-in defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("sounds")                                  → config["sounds"]
    cfg("sound_service", "socket_path")            → config["sound_service"]["socket_path"]
    cfg("sound_service", "http_port", default=0)   → config["sound_service"]["http_port"] or 0
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
