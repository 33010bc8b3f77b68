from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from backlight_control.plugins.base import Plugin, PluginContext

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputActivityConfig:
    device_hint: str | None


def is_press(event: Any, ev_key: int) -> bool:
    # Key, mouse button and touch-down events; ignore repeats and releases.
    return event.type == ev_key and event.value == 1


class InputActivityPlugin(Plugin):
    name = "input_activity"

    def __init__(self, cfg: InputActivityConfig):
        self._cfg = cfg
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    async def start(self, ctx: PluginContext) -> None:
        try:
            import evdev  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError("evdev is required for input_activity plugin") from e

        def match(dev: Any) -> bool:
            if not self._cfg.device_hint:
                return True
            ident = f"{dev.name} {dev.phys} {dev.path}".lower()
            return self._cfg.device_hint.lower() in ident

        devices = [evdev.InputDevice(p) for p in evdev.list_devices()]
        chosen = next((d for d in devices if match(d)), None)
        if not chosen:
            raise RuntimeError("No input device matched device_hint")
        _logger.info("Watching input device %s (%s)", chosen.path, chosen.name)
        ev_key = evdev.ecodes.EV_KEY

        async def loop() -> None:
            async for event in chosen.async_read_loop():
                if self._stop.is_set():
                    break
                if is_press(event, ev_key):
                    ctx.user_activity()

        self._task = asyncio.create_task(loop())

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
