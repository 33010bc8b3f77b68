from __future__ import annotations

import enum
import logging
import shlex

from backlight_control.system.backlight import BacklightDevice, Runner, read_brightness

_logger = logging.getLogger(__name__)

# Never write 0: some panels do not come back from a fully black backlight.
MIN_BRIGHTNESS = 1


class PowerState(enum.Enum):
    ON = "on"
    OFF = "off"


class Outcome(enum.Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    NO_DEVICE = "no_device"
    FAILED = "failed"


class PowerStateController:
    """Believed ON/OFF state of the backlight plus the writes that enforce it.

    The believed state starts as ON on every start-up; the first write
    reconciles it with the hardware. A ``force`` write ignores the belief,
    which is how out-of-band brightness changes get corrected.

    Not thread-safe: callers serialize access (one command worker).
    """

    def __init__(
        self,
        channel: Runner,
        min_brightness: int = MIN_BRIGHTNESS,
        verify_writes: bool = False,
    ):
        if min_brightness <= 0:
            raise ValueError("min_brightness must be > 0")
        self._channel = channel
        self._min_brightness = min_brightness
        self._verify_writes = verify_writes
        self._device: BacklightDevice | None = None
        self._state = PowerState.ON
        self.verified: bool | None = None

    def init(self, device: BacklightDevice | None) -> None:
        self._device = device
        self.verified = None
        if device is None:
            _logger.error("No backlight path found, screen control disabled")
        else:
            _logger.info("Using backlight path: %s", device.brightness_path)

    @property
    def state(self) -> PowerState:
        return self._state

    def is_on(self) -> bool:
        return self._state is PowerState.ON

    def backlight_device(self) -> BacklightDevice | None:
        return self._device

    @property
    def max_brightness(self) -> int | None:
        return self._device.max_brightness if self._device else None

    @property
    def min_brightness(self) -> int:
        if self._device:
            return max(MIN_BRIGHTNESS, min(self._min_brightness, self._device.max_brightness))
        return self._min_brightness

    def assert_on(self, force: bool = False) -> Outcome:
        return self._assert(PowerState.ON, force)

    def assert_off(self, force: bool = False) -> Outcome:
        return self._assert(PowerState.OFF, force)

    def _assert(self, target: PowerState, force: bool) -> Outcome:
        if self._device is None:
            _logger.error("Backlight path not initialized, cannot turn screen %s", target.value)
            return Outcome.NO_DEVICE

        if self._state is target and not force:
            _logger.debug("Screen already %s, skipped", target.value.upper())
            return Outcome.SKIPPED

        value = self._device.max_brightness if target is PowerState.ON else self.min_brightness
        result = self._channel.run(f"echo {value} > {shlex.quote(self._device.brightness_path)}")
        self._state = target
        _logger.info("Screen %s at brightness %d (force=%s)", target.value.upper(), value, force)

        if self._verify_writes and result.executed:
            self._verify(value)

        if not result.ok:
            _logger.warning(
                "Brightness write may not have applied: %s",
                result.error or result.stderr.strip() or f"exit {result.exit_code}",
            )
            return Outcome.FAILED
        return Outcome.WRITTEN

    def _verify(self, expected: int) -> None:
        assert self._device
        actual = read_brightness(self._channel, self._device)
        self.verified = actual == expected
        if not self.verified:
            _logger.warning("Brightness read back as %s, expected %d", actual, expected)
