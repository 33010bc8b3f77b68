from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal

# dbus-next uses signature strings ("s", "b") in annotations.
# Ruff tries to treat these as Python types.


BUS_NAME = "io.github.backlight_control"
OBJ_PATH = "/io/github/backlight_control"


@dataclass(frozen=True)
class Callbacks:
    user_activity: Callable[[], None]
    screen_on: Callable[[], None]
    screen_off: Callable[[], None]
    hold: Callable[[], None]
    rediscover: Callable[[], None]
    is_screen_on: Callable[[], bool]
    backlight_path: Callable[[], str | None]


class BacklightInterface(ServiceInterface):
    def __init__(self, cb: Callbacks):
        super().__init__(BUS_NAME)
        self._cb = cb

    @method()
    def UserActivity(self) -> "b":  # noqa: N802
        self._cb.user_activity()
        return True

    @method()
    def ScreenOn(self) -> "b":  # noqa: N802
        self._cb.screen_on()
        return True

    @method()
    def ScreenOff(self) -> "b":  # noqa: N802
        self._cb.screen_off()
        return True

    @method()
    def Hold(self) -> "b":  # noqa: N802
        self._cb.hold()
        return True

    @method()
    def Rediscover(self) -> "b":  # noqa: N802
        self._cb.rediscover()
        return True

    @method()
    def IsScreenOn(self) -> "b":  # noqa: N802
        return bool(self._cb.is_screen_on())

    @method()
    def GetBacklightPath(self) -> "s":  # noqa: N802
        return self._cb.backlight_path() or ""

    @signal()
    def StatusLine(self, line: str) -> "s":  # noqa: N802
        return line


async def serve(iface: BacklightInterface) -> MessageBus:
    bus = await MessageBus().connect()
    bus.export(OBJ_PATH, iface)
    await bus.request_name(BUS_NAME)
    return bus
