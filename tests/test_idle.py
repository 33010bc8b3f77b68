from __future__ import annotations

from backlight_control.idle import IdleActivityScheduler, IdleConfig, Phase
from backlight_control.system.backlight import BacklightDevice
from backlight_control.system.power import Outcome, PowerStateController

from .fakes import BASE, FakeLoop, FakeSysfs, panel


class RecordingPower:
    def __init__(self, outcome: Outcome = Outcome.WRITTEN):
        self.calls: list[tuple[str, bool]] = []
        self.outcome = outcome

    def assert_on(self, force: bool = False) -> Outcome:
        self.calls.append(("on", force))
        return self.outcome

    def assert_off(self, force: bool = False) -> Outcome:
        self.calls.append(("off", force))
        return self.outcome

    def offs(self) -> list[tuple[str, bool]]:
        return [c for c in self.calls if c[0] == "off"]


def _scheduler(loop: FakeLoop, power=None, status=None) -> IdleActivityScheduler:
    sched = IdleActivityScheduler(
        power or RecordingPower(), IdleConfig(30, 30), loop, None, status=status
    )
    sched.start()
    return sched


def test_activity_within_timeout_never_dims(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    for _ in range(20):
        loop.advance(29.9)
        sched.on_user_activity()
    assert power.offs() == []
    assert sched.phase is Phase.ACTIVE


def test_activity_forces_screen_on(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.on_user_activity()
    assert power.calls == [("on", True)]


def test_idle_timeout_dims_once(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.on_user_activity()
    loop.advance(29.9)
    assert power.offs() == []
    loop.advance(0.1)
    assert power.offs() == [("off", False)]
    assert sched.phase is Phase.DIMMED


def test_start_arms_idle_timer_without_writing(loop: FakeLoop) -> None:
    power = RecordingPower()
    _scheduler(loop, power)
    assert power.calls == []
    loop.advance(30)
    assert power.calls == [("off", False)]


def test_dimmed_reasserts_off_periodically(loop: FakeLoop) -> None:
    power = RecordingPower()
    _scheduler(loop, power)
    loop.advance(30)
    loop.advance(30 * 3)
    assert power.offs() == [("off", False), ("off", True), ("off", True), ("off", True)]
    loop.advance(30)
    assert power.offs()[-1] == ("off", True)
    assert len(power.offs()) == 5


def test_activity_cancels_reassert_loop(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    loop.advance(95)
    assert len(power.offs()) == 3

    sched.on_user_activity()
    power.calls.clear()
    loop.advance(29)
    assert power.calls == []
    assert sched.phase is Phase.ACTIVE

    loop.advance(1)
    assert power.calls == [("off", False)]


def test_only_one_timer_of_each_kind(loop: FakeLoop) -> None:
    sched = _scheduler(loop)
    loop.advance(45)
    sched.on_user_activity()
    sched.on_user_activity()
    assert len(loop.pending()) == 1
    assert sched.state.reassert_timer is None


def test_force_off_dims_and_starts_reassert(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.force_off()
    assert power.calls == [("off", True)]
    assert sched.phase is Phase.DIMMED
    loop.advance(30)
    assert power.calls == [("off", True), ("off", True)]


def test_force_on_behaves_like_activity(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.force_off()
    sched.force_on()
    assert power.calls[-1] == ("on", True)
    assert sched.phase is Phase.ACTIVE
    loop.advance(30)
    assert power.calls[-1] == ("off", False)


def test_hold_pauses_idle_timer(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.hold()
    loop.advance(300)
    assert power.calls == []
    sched.on_user_activity()
    loop.advance(30)
    assert power.offs() == [("off", False)]


def test_stop_cancels_everything(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    loop.advance(30)
    sched.stop()
    loop.advance(300)
    assert power.offs() == [("off", False)]
    assert loop.pending() == []


def test_notify_activity_goes_through_loop(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = _scheduler(loop, power)
    sched.notify_activity()
    assert power.calls == [("on", True)]


def test_status_lines_reported(loop: FakeLoop) -> None:
    lines: list[str] = []
    sched = _scheduler(loop, status=lines.append)
    loop.advance(60)
    sched.on_user_activity()
    assert lines[0].startswith("Screen dimmed to minimum")
    assert lines[1] == "Periodic dim (fault tolerance)"
    assert lines[2] == "Screen on"


def test_unresolved_device_reported(loop: FakeLoop) -> None:
    lines: list[str] = []
    _scheduler(loop, RecordingPower(Outcome.NO_DEVICE), status=lines.append)
    loop.advance(30)
    assert lines == [
        "Screen dimmed to minimum (30s without activity) skipped: backlight path not initialized"
    ]


def test_worker_exception_becomes_status(loop: FakeLoop) -> None:
    class Broken(RecordingPower):
        def assert_off(self, force: bool = False) -> Outcome:
            raise OSError("boom")

    lines: list[str] = []
    sched = _scheduler(loop, Broken(), status=lines.append)
    loop.advance(30)
    assert lines == [
        "Screen dimmed to minimum (30s without activity) failed: OSError: boom"
    ]
    assert sched.phase is Phase.DIMMED


def test_end_to_end_with_real_controller(loop: FakeLoop) -> None:
    ch = FakeSysfs(entries=["panel0"], files=panel("panel0", "4095\n"))
    power = PowerStateController(ch)
    power.init(BacklightDevice(f"{BASE}/panel0/brightness", 4095))
    sched = _scheduler(loop, power)

    loop.advance(30)
    loop.advance(30)
    sched.on_user_activity()

    path = f"{BASE}/panel0/brightness"
    assert ch.writes == [(path, "1"), (path, "1"), (path, "4095")]
    assert power.is_on()


def test_activity_before_start_leaves_one_idle_timer(loop: FakeLoop) -> None:
    power = RecordingPower()
    sched = IdleActivityScheduler(power, IdleConfig(30, 30), loop, None)
    sched.on_user_activity()
    loop.advance(5)
    sched.start()
    assert len(loop.pending()) == 1

    loop.advance(20)
    sched.on_user_activity()
    loop.advance(20)
    sched.on_user_activity()
    assert power.offs() == []
    assert sched.phase is Phase.ACTIVE
    assert len(loop.pending()) == 1
