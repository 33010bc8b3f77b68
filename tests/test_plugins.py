from __future__ import annotations

import asyncio
from types import SimpleNamespace

from backlight_control.plugins.base import Plugin, PluginContext
from backlight_control.plugins.input_activity import is_press
from backlight_control.plugins.manager import PluginManager

EV_KEY = 1
EV_ABS = 3


class Ticker(Plugin):
    name = "ticker"

    def __init__(self) -> None:
        self.stopped = False

    async def start(self, ctx: PluginContext) -> None:
        ctx.user_activity()

    async def stop(self) -> None:
        self.stopped = True


class Broken(Plugin):
    name = "broken"

    async def start(self, ctx: PluginContext) -> None:
        raise RuntimeError("No input device matched device_hint")


def test_manager_isolates_failing_plugins() -> None:
    activity: list[int] = []
    lines: list[str] = []
    ctx = PluginContext(activity=lambda: activity.append(1), status=lines.append)
    ticker = Ticker()
    pm = PluginManager([ticker, Broken()])

    failed = asyncio.run(pm.start_all(ctx))
    asyncio.run(pm.stop_all())

    assert failed == ["broken"]
    assert activity == [1]
    assert lines == ["Plugin broken failed to start: No input device matched device_hint"]
    assert ticker.stopped


def test_only_presses_count_as_activity() -> None:
    assert is_press(SimpleNamespace(type=EV_KEY, value=1), EV_KEY)
    assert not is_press(SimpleNamespace(type=EV_KEY, value=0), EV_KEY)
    assert not is_press(SimpleNamespace(type=EV_KEY, value=2), EV_KEY)
    assert not is_press(SimpleNamespace(type=EV_ABS, value=1), EV_KEY)
