from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from backlight_control.plugins.base import Plugin, PluginContext

_logger = logging.getLogger(__name__)


@dataclass
class PluginManager:
    plugins: list[Plugin]

    async def start_all(self, ctx: PluginContext) -> list[str]:
        """Start every plugin; return the names of those that failed.

        A broken activity source must not take down screen control.
        """

        results = await asyncio.gather(
            *(p.start(ctx) for p in self.plugins), return_exceptions=True
        )
        failed: list[str] = []
        for plugin, res in zip(self.plugins, results):
            if isinstance(res, Exception):
                _logger.error("Plugin %s failed to start: %s", plugin.name, res)
                ctx.status(f"Plugin {plugin.name} failed to start: {res}")
                failed.append(plugin.name)
        return failed

    async def stop_all(self) -> None:
        await asyncio.gather(*(p.stop() for p in self.plugins), return_exceptions=True)
