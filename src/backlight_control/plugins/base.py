from __future__ import annotations

import abc
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class PluginContext:
    activity: Callable[[], None]
    status: Callable[[str], None]

    def user_activity(self) -> None:
        self.activity()


class Plugin(abc.ABC):
    """A plugin watches some source of user activity and reports it."""

    name: str

    @abc.abstractmethod
    async def start(self, ctx: PluginContext) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        return None
