from __future__ import annotations

import asyncio
import logging
import signal
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from dbus_next.aio import MessageBus

from backlight_control.dbus_service import BacklightInterface, Callbacks, serve
from backlight_control.errors import format_exc
from backlight_control.idle import IdleActivityScheduler, IdleConfig
from backlight_control.plugins.base import Plugin, PluginContext
from backlight_control.plugins.input_activity import InputActivityConfig, InputActivityPlugin
from backlight_control.plugins.manager import PluginManager
from backlight_control.shell import CommandChannel
from backlight_control.system.backlight import discover
from backlight_control.system.power import PowerStateController

_logger = logging.getLogger(__name__)


def build_channel(shell_cfg: dict[str, Any]) -> CommandChannel:
    timeout = shell_cfg.get("command_timeout_seconds")
    return CommandChannel(
        su_binary=str(shell_cfg["su_binary"]),
        timeout_seconds=float(timeout) if timeout else None,
        grace_seconds=float(shell_cfg.get("session_grace_seconds", 0.5)),
        mirror_to_session=bool(shell_cfg.get("mirror_to_session", True)),
    )


@dataclass
class Controller:
    cfg: dict[str, Any]
    channel: CommandChannel | None = None

    def __post_init__(self) -> None:
        if self.channel is None:
            self.channel = build_channel(self.cfg["shell"])

        backlight = self.cfg["backlight"]
        self._base_dir = str(backlight["base_dir"])
        self._power = PowerStateController(
            self.channel,
            min_brightness=int(backlight["min_brightness"]),
            verify_writes=bool(backlight.get("verify_writes", False)),
        )

        idle = self.cfg["idle"]
        self._idle_cfg = IdleConfig(
            dim_after_seconds=float(idle["dim_after_seconds"]),
            reassert_seconds=float(idle["reassert_seconds"]),
        )

        # One worker: device writes are serialized and never race.
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="backlight")
        self._scheduler: IdleActivityScheduler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        self._plugins = self._build_plugins(self.cfg.get("plugins", {}))
        self._pm = PluginManager(self._plugins)

        self._iface: BacklightInterface | None = None
        self._bus: MessageBus | None = None
        self._stopping: asyncio.Event | None = None

    def _build_plugins(self, plugins_cfg: dict[str, Any]) -> list[Plugin]:
        out: list[Plugin] = []

        ia = plugins_cfg.get("input_activity", {})
        if ia.get("enabled"):
            out.append(InputActivityPlugin(InputActivityConfig(device_hint=ia.get("device_hint"))))

        return out

    @property
    def power(self) -> PowerStateController:
        return self._power

    @property
    def scheduler(self) -> IdleActivityScheduler:
        if self._scheduler is None:
            raise RuntimeError("Controller not started")
        return self._scheduler

    def backlight_path(self) -> str | None:
        device = self._power.backlight_device()
        return device.brightness_path if device else None

    def is_screen_on(self) -> bool:
        return self._power.is_on()

    def status(self, line: str) -> None:
        """Status-line sink. Must be called on the event loop."""
        _logger.info("status: %s", line)
        if self._iface is not None:
            self._iface.StatusLine(line)

    def _status_threadsafe(self, line: str) -> None:
        if self._loop is None:
            _logger.info("status: %s", line)
            return
        self._loop.call_soon_threadsafe(self.status, line)

    def bootstrap(self) -> bool:
        """Acquire root and resolve the backlight device. Blocks; run on the worker."""

        assert self.channel
        self._status_threadsafe("Requesting root access...")
        if not self.channel.ensure_session():
            self._status_threadsafe("Root access failed, make sure the device is rooted")
            self._power.init(None)
            return False

        self._status_threadsafe("Root access granted, looking for backlight...")
        device = discover(self.channel, self._base_dir)
        self._power.init(device)
        if device is None:
            self._status_threadsafe("No backlight path found")
            return False

        self._status_threadsafe(
            f"Backlight path: {device.brightness_path} (max {device.max_brightness})"
        )
        return True

    def rediscover(self) -> None:
        if self._loop is None:
            raise RuntimeError("Controller not started")
        fut = self._loop.run_in_executor(self._executor, self.bootstrap)
        fut.add_done_callback(self._bootstrap_done)

    def _bootstrap_done(self, fut: asyncio.Future) -> None:
        if not fut.cancelled() and fut.exception() is not None:
            exc = fut.exception()
            _logger.error("Backlight discovery crashed", exc_info=exc)
            self.status(f"Backlight discovery failed: {format_exc(exc)}")

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stopping = asyncio.Event()
        self._scheduler = IdleActivityScheduler(
            self._power, self._idle_cfg, self._loop, self._executor, status=self.status
        )

        cb = Callbacks(
            user_activity=self._scheduler.on_user_activity,
            screen_on=self._scheduler.force_on,
            screen_off=self._scheduler.force_off,
            hold=self._scheduler.hold,
            rediscover=self.rediscover,
            is_screen_on=self.is_screen_on,
            backlight_path=self.backlight_path,
        )
        self._iface = BacklightInterface(cb)
        try:
            self._bus = await serve(self._iface)
        except Exception as e:
            # Screen control still works without the bus.
            _logger.error("D-Bus export failed: %s", format_exc(e))

        try:
            await self._loop.run_in_executor(self._executor, self.bootstrap)
        except Exception as e:
            _logger.exception("Backlight discovery crashed")
            self.status(f"Backlight discovery failed: {format_exc(e)}")

        self._scheduler.start()
        await self._pm.start_all(
            PluginContext(activity=self._scheduler.notify_activity, status=self.status)
        )
        self.status("Backlight controller started")

    async def stop(self) -> None:
        await self._pm.stop_all()
        if self._scheduler:
            self._scheduler.stop()
        if self._bus:
            self._bus.disconnect()
            self._bus = None
        self._executor.shutdown(wait=False, cancel_futures=True)
        # close() waits for an in-flight command; keep that off the loop.
        assert self.channel
        await asyncio.get_running_loop().run_in_executor(None, self.channel.close)

    def request_stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    async def run(self) -> None:
        await self.start()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)
        try:
            assert self._stopping
            await self._stopping.wait()
        finally:
            await self.stop()
