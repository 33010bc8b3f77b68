from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from dbus_next.aio import MessageBus

from backlight_control.dbus_service import BUS_NAME as BUS
from backlight_control.dbus_service import OBJ_PATH as OBJ


@dataclass
class BacklightDbusClient:
    bus: MessageBus
    iface: object

    @classmethod
    async def connect(cls) -> BacklightDbusClient:
        bus = await MessageBus().connect()
        introspection = await bus.introspect(BUS, OBJ)
        obj = bus.get_proxy_object(BUS, OBJ, introspection)
        iface = obj.get_interface(BUS)
        return cls(bus=bus, iface=iface)

    async def user_activity(self) -> None:
        await self.iface.call_user_activity()

    async def screen_on(self) -> None:
        await self.iface.call_screen_on()

    async def screen_off(self) -> None:
        await self.iface.call_screen_off()

    async def hold(self) -> None:
        await self.iface.call_hold()

    async def rediscover(self) -> None:
        await self.iface.call_rediscover()

    async def is_screen_on(self) -> bool:
        return bool(await self.iface.call_is_screen_on())

    async def backlight_path(self) -> str | None:
        return (await self.iface.call_get_backlight_path()) or None

    def on_status_line(self, handler: Callable[[str], None]) -> None:
        self.iface.on_status_line(handler)

    async def close(self) -> None:
        self.bus.disconnect()
