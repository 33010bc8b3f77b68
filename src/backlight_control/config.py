from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

DEFAULTS: dict[str, Any] = {
    "shell": {
        "su_binary": "su",
        "command_timeout_seconds": 10,
        "session_grace_seconds": 0.5,
        "mirror_to_session": True,
    },
    "backlight": {
        "base_dir": "/sys/class/backlight",
        "min_brightness": 1,
        "verify_writes": False,
    },
    "idle": {
        "dim_after_seconds": 30,
        "reassert_seconds": 30,
    },
    "plugins": {
        "input_activity": {"enabled": False, "device_hint": None},
    },
    "logging": {"level": "INFO"},
}


class ConfigError(ValueError):
    pass


def _require(cfg: dict[str, Any], key: str) -> Any:
    if key not in cfg:
        raise ConfigError(f"Missing required config key: {key}")
    return cfg[key]


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return {k: _strip(v) for k, v in value.items()}
    return value


def load(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be a mapping")
    normalize(data)
    validate(data)
    return data


def load_or_default(path: str | Path | None) -> dict[str, Any]:
    """Load ``path`` if it exists, otherwise return the defaults."""

    if path is not None and Path(path).exists():
        return load(path)
    cfg: dict[str, Any] = {}
    normalize(cfg)
    validate(cfg)
    return cfg


def normalize(cfg: dict[str, Any]) -> None:
    """Fill in defaults and strip stray whitespace from string values, in place."""

    merged = _merge(DEFAULTS, _strip(cfg))
    cfg.clear()
    cfg.update(merged)

    shell = cfg["shell"]
    if shell.get("command_timeout_seconds") in (None, 0):
        shell["command_timeout_seconds"] = None


def validate(cfg: dict[str, Any]) -> None:
    shell = _require(cfg, "shell")
    if not str(_require(shell, "su_binary")):
        raise ConfigError("shell.su_binary must not be empty")
    timeout = shell.get("command_timeout_seconds")
    if timeout is not None and float(timeout) < 0:
        raise ConfigError("shell.command_timeout_seconds must be >= 0 (or null for no timeout)")
    if float(shell.get("session_grace_seconds", 0)) < 0:
        raise ConfigError("shell.session_grace_seconds must be >= 0")

    backlight = _require(cfg, "backlight")
    if not str(_require(backlight, "base_dir")).startswith("/"):
        raise ConfigError("backlight.base_dir must be an absolute path")
    if int(_require(backlight, "min_brightness")) <= 0:
        raise ConfigError("backlight.min_brightness must be > 0")

    idle = _require(cfg, "idle")
    if float(_require(idle, "dim_after_seconds")) <= 0:
        raise ConfigError("idle.dim_after_seconds must be > 0")
    if float(_require(idle, "reassert_seconds")) <= 0:
        raise ConfigError("idle.reassert_seconds must be > 0")

    level = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"logging.level is not a known level: {level}")
