from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass

from backlight_control.errors import ElevationError, format_exc

_logger = logging.getLogger(__name__)

NO_ROOT = "Failed to get root access"


@dataclass(frozen=True)
class CommandResult:
    """Captured output of one privileged command.

    ``error`` is set when the command was never executed (no elevation, spawn
    failure, timeout). Callers must not interpret stdout in that case.
    """

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    error: str | None = None

    @property
    def executed(self) -> bool:
        return self.error is None

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_code == 0

    @property
    def lines(self) -> list[str]:
        return [ln.strip() for ln in self.stdout.splitlines() if ln.strip()]


class PrivilegedSession:
    """A long-lived elevated shell kept open alongside the one-shot commands.

    Its output is never read. It only receives a copy of each command.
    """

    def __init__(self, argv: list[str], grace_seconds: float = 0.5):
        self._argv = argv
        self._grace_seconds = grace_seconds
        self._proc: subprocess.Popen | None = None
        self._broken = False

    @property
    def alive(self) -> bool:
        return self._proc is not None and not self._broken and self._proc.poll() is None

    def start(self) -> None:
        try:
            proc = subprocess.Popen(  # noqa: S603
                self._argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                text=True,
            )
        except OSError as e:
            raise ElevationError(f"Cannot start {self._argv[0]}: {format_exc(e)}") from e

        # su on a device without root usually exits right away.
        if self._grace_seconds > 0:
            try:
                rc = proc.wait(timeout=self._grace_seconds)
            except subprocess.TimeoutExpired:
                pass
            else:
                raise ElevationError(f"{self._argv[0]} exited with status {rc}")

        self._proc = proc
        self._broken = False

    def send(self, line: str) -> bool:
        if not self.alive:
            return False
        assert self._proc and self._proc.stdin
        try:
            self._proc.stdin.write(line + "\n")
            self._proc.stdin.flush()
        except (OSError, ValueError) as e:
            _logger.warning("Root shell stdin closed: %s", format_exc(e))
            self._broken = True
            return False
        return True

    def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return

        if proc.stdin and not proc.stdin.closed:
            try:
                proc.stdin.write("exit\n")
                proc.stdin.flush()
                proc.stdin.close()
            except (OSError, ValueError) as e:
                _logger.debug("Root shell already gone: %s", format_exc(e))

        if proc.poll() is None:
            try:
                proc.terminate()
                proc.wait(timeout=2)
            except (ProcessLookupError, PermissionError, subprocess.TimeoutExpired) as e:
                _logger.warning("Could not terminate root shell: %s", format_exc(e))
        _logger.info("Root shell closed")


class CommandChannel:
    """Runs shell commands with superuser privilege.

    A persistent ``su`` session is kept for liveness, but every command runs
    in its own ``su -c`` process so stdout and stderr belong unambiguously to
    that command. Failures never raise: they come back as a ``CommandResult``
    whose ``error`` is set.
    """

    def __init__(
        self,
        su_binary: str = "su",
        timeout_seconds: float | None = 10.0,
        grace_seconds: float = 0.5,
        mirror_to_session: bool = True,
    ):
        self._su = su_binary
        self._timeout = timeout_seconds or None
        self._grace_seconds = grace_seconds
        self._mirror = mirror_to_session
        self._session: PrivilegedSession | None = None
        self._lock = threading.Lock()

    @property
    def has_session(self) -> bool:
        return self._session is not None and self._session.alive

    def ensure_session(self) -> bool:
        with self._lock:
            return self._ensure_session()

    def _ensure_session(self) -> bool:
        if self._session is not None and self._session.alive:
            return True

        session = PrivilegedSession([self._su], grace_seconds=self._grace_seconds)
        try:
            session.start()
        except ElevationError as e:
            _logger.error("Failed to initialize root shell: %s", e)
            self._session = None
            return False

        self._session = session
        _logger.info("Root shell initialized")
        return True

    def run(self, command: str) -> CommandResult:
        with self._lock:
            if not self._ensure_session():
                _logger.error("Not executed (%s): %s", NO_ROOT, command)
                return CommandResult(command, error=NO_ROOT)

            if self._mirror:
                assert self._session
                self._session.send(command)

            return self._execute(command)

    def _execute(self, command: str) -> CommandResult:
        _logger.debug("Executing command: %s", command)
        try:
            proc = subprocess.Popen(  # noqa: S603
                [self._su, "-c", command],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            _logger.error("Error executing command %r: %s", command, format_exc(e))
            return CommandResult(command, error=format_exc(e))

        try:
            stdout, stderr = proc.communicate(timeout=self._timeout)
        except subprocess.TimeoutExpired:
            self._kill(proc)
            _logger.error("Command timed out after %gs: %s", self._timeout, command)
            return CommandResult(command, error=f"Timed out after {self._timeout:g}s")

        if stderr:
            _logger.error("Command error output for %r: %s", command, stderr.rstrip())
        _logger.info("%s -> exit %s: %s", command, proc.returncode, stdout.rstrip())
        return CommandResult(command, stdout=stdout, stderr=stderr, exit_code=proc.returncode)

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        try:
            proc.kill()
            proc.communicate(timeout=1)
        except (ProcessLookupError, PermissionError, subprocess.TimeoutExpired) as e:
            _logger.warning("Could not reap timed out command: %s", format_exc(e))

    def close(self) -> None:
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None
