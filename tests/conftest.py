"""Shared fixtures: an in-memory device session and fast engine settings."""
import asyncio
import logging

import pytest

from setconf.config import EngineSettings
from setconf.devices import DeviceSession
from setconf.errors import DeviceBusyError
from setconf.utils.audit_log import audit_logger


class FakeSession(DeviceSession):
    """Device session backed by a flat list of committed statements.

    Records every call in ``calls`` and lets tests inject failures.
    """

    def __init__(self, device_id: str = "srx-test", lines=None):
        super().__init__(device_id)
        self.lines: list[str] = list(lines or [])
        self.pending: list[str] = []
        self.calls: list[tuple] = []
        self.locked = False

        # Failure injection
        self.busy_count = 0
        self.lock_error = None
        self.set_error = None
        self.hang_set = False
        self.commit_error = None
        self.commit_warnings: list[str] = []
        self.drop_commits = False
        self.clear_error = None
        self.command_delay = 0.0

        self.in_flight = 0
        self.max_in_flight = 0

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def count(self, name: str) -> int:
        return self.call_names().count(name)

    def _under(self, path: str) -> list[str]:
        return [
            line for line in self.lines
            if line == path or line.startswith(path + " ")
        ]

    async def command(self, text: str) -> str:
        self.calls.append(("command", text))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.command_delay:
                await asyncio.sleep(self.command_delay)
            query, _, display = text.partition(" | ")
            path = query[len("show configuration "):]
            body = []
            for line in self._under(path):
                if display == "display set relative":
                    rel = line[len(path):].strip()
                    body.append(f"set {rel}" if rel else "set")
                else:
                    body.append(f"set {line}")
            return "\n".join(
                ["<configuration-output>"] + body + ["</configuration-output>"]
            )
        finally:
            self.in_flight -= 1

    async def config_lock(self) -> None:
        self.calls.append(("config_lock",))
        if self.busy_count > 0:
            self.busy_count -= 1
            raise DeviceBusyError("configuration database locked by another user")
        if self.lock_error is not None:
            raise self.lock_error
        self.locked = True

    async def config_set(self, lines: list[str]) -> None:
        self.calls.append(("config_set", list(lines)))
        if self.hang_set:
            await asyncio.Event().wait()
        if self.set_error is not None:
            raise self.set_error
        self.pending.extend(lines)

    async def commit_conf(self, description: str) -> list[str]:
        self.calls.append(("commit_conf", description))
        if self.commit_error is not None:
            raise self.commit_error
        if not self.drop_commits:
            for line in self.pending:
                action, _, path = line.partition(" ")
                if action == "delete":
                    for old in self._under(path):
                        self.lines.remove(old)
                elif path not in self.lines:
                    self.lines.append(path)
        self.pending = []
        return list(self.commit_warnings)

    async def config_clear(self) -> None:
        self.calls.append(("config_clear",))
        if self.clear_error is not None:
            raise self.clear_error
        self.pending = []
        self.locked = False


@pytest.fixture
def session():
    """Empty fake device session."""
    return FakeSession()


@pytest.fixture
def settings():
    """Settings with short timeouts and no lock back-off."""
    return EngineSettings(
        command_timeout=1.0,
        rollback_timeout=1.0,
        lock_attempts=3,
        lock_sleep=0,
    )


@pytest.fixture
def clean_audit_logger():
    """Restore the audit logger after a test configured it."""
    yield audit_logger
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()
    audit_logger.propagate = True
    audit_logger.setLevel(logging.NOTSET)
