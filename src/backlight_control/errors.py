from __future__ import annotations


def format_exc(e: BaseException) -> str:
    return f"{type(e).__name__}: {e}"


class BacklightControlError(Exception):
    """Base class for errors raised inside backlight_control."""


class ElevationError(BacklightControlError):
    """The elevated shell could not be started (device not rooted, su missing...)."""
