from __future__ import annotations

import logging
import posixpath
import shlex
from dataclasses import dataclass
from typing import Protocol

from backlight_control.shell import CommandResult

_logger = logging.getLogger(__name__)

DEFAULT_BASE_DIR = "/sys/class/backlight"
DEFAULT_MAX_BRIGHTNESS = 255


class Runner(Protocol):
    def run(self, command: str) -> CommandResult: ...


@dataclass(frozen=True)
class BacklightDevice:
    brightness_path: str
    max_brightness: int = DEFAULT_MAX_BRIGHTNESS

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.brightness_path)

    @property
    def name(self) -> str:
        return posixpath.basename(self.directory)

    @property
    def max_brightness_path(self) -> str:
        return posixpath.join(self.directory, "max_brightness")


def parse_brightness(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def read_brightness(channel: Runner, device: BacklightDevice) -> int | None:
    result = channel.run(f"cat {shlex.quote(device.brightness_path)}")
    if not result.ok:
        return None
    return parse_brightness(result.stdout)


def _has_brightness_file(channel: Runner, path: str) -> bool:
    result = channel.run(f"[ -f {shlex.quote(path)} ] && echo exists || echo 'not found'")
    return result.executed and result.stdout.strip() == "exists"


def _read_max_brightness(channel: Runner, path: str) -> int:
    result = channel.run(f"cat {shlex.quote(path)}")
    value = parse_brightness(result.stdout) if result.ok else None
    if value is None or value <= 0:
        _logger.warning(
            "Failed to parse max brightness from %s (%r), using default: %d",
            path,
            result.error or result.stdout.strip(),
            DEFAULT_MAX_BRIGHTNESS,
        )
        return DEFAULT_MAX_BRIGHTNESS
    return value


def discover(channel: Runner, base_dir: str = DEFAULT_BASE_DIR) -> BacklightDevice | None:
    """Return the first entry under ``base_dir`` that has a ``brightness`` file.

    Entries are tried in ``ls`` order and the first hit wins; several
    backlight-capable devices are not disambiguated.
    """

    _logger.debug("Searching for backlight paths in %s", base_dir)
    listing = channel.run(f"ls {shlex.quote(base_dir)}")
    if not listing.ok or not listing.lines:
        _logger.error("Failed to list backlight directory %s", base_dir)
        return None

    for entry in listing.lines:
        brightness_path = posixpath.join(base_dir, entry, "brightness")
        if not _has_brightness_file(channel, brightness_path):
            continue

        _logger.info("Found backlight path: %s", brightness_path)
        device = BacklightDevice(
            brightness_path=brightness_path,
            max_brightness=_read_max_brightness(
                channel, posixpath.join(base_dir, entry, "max_brightness")
            ),
        )
        _logger.info(
            "  max brightness: %d, current brightness: %s",
            device.max_brightness,
            read_brightness(channel, device),
        )
        return device

    _logger.warning("No backlight paths found in %s", base_dir)
    return None
