from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any

from backlight_control.errors import format_exc
from backlight_control.system.power import Outcome, PowerStateController

_logger = logging.getLogger(__name__)

StatusSink = Callable[[str], None]


@dataclass(frozen=True)
class IdleConfig:
    dim_after_seconds: float = 30.0
    reassert_seconds: float = 30.0


class Phase(enum.Enum):
    ACTIVE = "active"
    DIMMED = "dimmed"


@dataclass
class ActivityState:
    phase: Phase = Phase.ACTIVE
    last_activity_ts: float = 0.0
    idle_timer: asyncio.TimerHandle | None = None
    reassert_timer: asyncio.TimerHandle | None = None

    def cancel_idle(self) -> None:
        if self.idle_timer is not None:
            self.idle_timer.cancel()
            self.idle_timer = None

    def cancel_reassert(self) -> None:
        if self.reassert_timer is not None:
            self.reassert_timer.cancel()
            self.reassert_timer = None

    def cancel_all(self) -> None:
        self.cancel_idle()
        self.cancel_reassert()


def _log_status(line: str) -> None:
    _logger.info(line)


class IdleActivityScheduler:
    """Dims the backlight after inactivity and keeps it dimmed.

    All timer bookkeeping happens on ``loop``. Device writes block on a
    subprocess, so they are handed to ``executor`` (a single worker keeps
    writes in order) and their results come back to the loop as status lines.

    While DIMMED the OFF intent is re-applied every ``reassert_seconds``
    without reading the hardware back, because the OS may restore brightness
    behind our back.
    """

    def __init__(
        self,
        power: PowerStateController,
        cfg: IdleConfig,
        loop: asyncio.AbstractEventLoop,
        executor: Executor | None,
        status: StatusSink | None = None,
    ):
        self._power = power
        self._cfg = cfg
        self._loop = loop
        self._executor = executor
        self._status = status or _log_status
        self.state = ActivityState()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def start(self) -> None:
        self.state.last_activity_ts = self._loop.time()
        self._arm_idle()

    def stop(self) -> None:
        self.state.cancel_all()

    def notify_activity(self) -> None:
        """Thread-safe ``on_user_activity``."""
        self._loop.call_soon_threadsafe(self.on_user_activity)

    def on_user_activity(self) -> None:
        self.state.cancel_all()
        self.state.last_activity_ts = self._loop.time()
        self._dispatch(lambda: self._power.assert_on(force=True), "Screen on")
        self._arm_idle()
        self.state.phase = Phase.ACTIVE

    def force_on(self) -> None:
        self.on_user_activity()

    def force_off(self) -> None:
        self.state.cancel_all()
        self._dispatch(lambda: self._power.assert_off(force=True), "Screen forced off")
        self.state.phase = Phase.DIMMED
        self._arm_reassert()

    def hold(self) -> None:
        """Keep the screen as it is until the next activity."""
        self.state.cancel_idle()

    def _arm_idle(self) -> None:
        self.state.cancel_idle()
        self.state.idle_timer = self._loop.call_later(
            self._cfg.dim_after_seconds, self._on_idle_timeout
        )

    def _arm_reassert(self) -> None:
        self.state.cancel_reassert()
        self.state.reassert_timer = self._loop.call_later(
            self._cfg.reassert_seconds, self._on_reassert
        )

    def _on_idle_timeout(self) -> None:
        self.state.idle_timer = None
        self._dispatch(
            lambda: self._power.assert_off(force=False),
            f"Screen dimmed to minimum ({self._cfg.dim_after_seconds:g}s without activity)",
        )
        self.state.phase = Phase.DIMMED
        self._arm_reassert()

    def _on_reassert(self) -> None:
        self.state.reassert_timer = None
        if self.state.phase is not Phase.DIMMED:
            return
        self._dispatch(lambda: self._power.assert_off(force=True), "Periodic dim (fault tolerance)")
        self._arm_reassert()

    def _dispatch(self, work: Callable[[], Outcome], label: str) -> None:
        fut = self._loop.run_in_executor(self._executor, work)
        fut.add_done_callback(lambda f: self._report(label, f))

    def _report(self, label: str, fut: Any) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            _logger.error("%s failed", label, exc_info=exc)
            self._status(f"{label} failed: {format_exc(exc)}")
            return

        outcome = fut.result()
        if outcome is Outcome.WRITTEN:
            self._status(label)
        elif outcome is Outcome.FAILED:
            self._status(f"{label} (write reported an error)")
        elif outcome is Outcome.NO_DEVICE:
            self._status(f"{label} skipped: backlight path not initialized")
