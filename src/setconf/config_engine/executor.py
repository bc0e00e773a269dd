"""Executor for applying statement batches to devices.

One apply is a small state machine:

    IDLE -> LOCKED -> REPLACED -> COMMITTED -> VERIFIED -> DONE

and from any state between LOCKED and VERIFIED to ROLLED_BACK.

Any failure once the lock is held ends in exactly one config_clear()
(discard + unlock) before the original error propagates. On success the
same single config_clear() releases the lock.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..config.settings import EngineSettings
from ..devices.base import DeviceSession
from ..errors import (
    AlreadyExistsError,
    CommitError,
    ConsistencyError,
    DeviceBusyError,
    InternalError,
    LockError,
    SendError,
    SetconfError,
    TransportError,
)
from ..utils.audit_log import ChangeTracker
from ..utils.connection import call_with_timeout, retry_async
from ..utils.logging_config import timed_section
from .parser import compute_checksum
from .resolver import ConfigResolver
from .schema import ApplyResult, Block, Operation
from .setfile import append_lines

logger = logging.getLogger(__name__)


class ApplyState(str, Enum):
    """States of one apply."""
    IDLE = "idle"
    LOCKED = "locked"
    REPLACED = "replaced"
    COMMITTED = "committed"
    VERIFIED = "verified"
    DONE = "done"
    ROLLED_BACK = "rolled_back"


TRANSITIONS: dict[ApplyState, frozenset] = {
    ApplyState.IDLE: frozenset({ApplyState.LOCKED}),
    ApplyState.LOCKED: frozenset({ApplyState.REPLACED, ApplyState.ROLLED_BACK}),
    ApplyState.REPLACED: frozenset({ApplyState.COMMITTED, ApplyState.ROLLED_BACK}),
    ApplyState.COMMITTED: frozenset({ApplyState.VERIFIED, ApplyState.ROLLED_BACK}),
    ApplyState.VERIFIED: frozenset({ApplyState.DONE, ApplyState.ROLLED_BACK}),
    ApplyState.DONE: frozenset(),
    ApplyState.ROLLED_BACK: frozenset(),
}


class ApplyStateMachine:
    """Tracks the state of one apply and rejects illegal transitions."""

    def __init__(self):
        self.state = ApplyState.IDLE
        self.history: list[ApplyState] = [ApplyState.IDLE]

    def move(self, new_state: ApplyState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InternalError(
                f"illegal apply state transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


@dataclass
class ApplyPlan:
    """Everything one apply sends, in order."""
    operation: Operation
    feature: str
    identity: str
    base_path: str
    description: str
    delete_lines: list[str] = field(default_factory=list)
    set_lines: list[str] = field(default_factory=list)
    # create only: base_path must be absent before and present after
    check_exists: bool = False
    # compile warnings, reported with the commit warnings
    warnings: list[str] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        return self.delete_lines + self.set_lines


class ConfigExecutor:
    """Apply plans on one device session."""

    def __init__(
        self,
        session: DeviceSession,
        settings: EngineSettings,
        resolver: Optional[ConfigResolver] = None,
        tracker: Optional[ChangeTracker] = None,
    ):
        self.session = session
        self.settings = settings
        self.resolver = resolver or ConfigResolver(session, settings.command_timeout)
        self.tracker = tracker or ChangeTracker(session.device_id)

    @property
    def device_id(self) -> str:
        return self.session.device_id

    async def execute(
        self,
        plan: ApplyPlan,
        read_back: Optional[Callable[[], Awaitable[Block]]] = None,
    ) -> ApplyResult:
        """
        Apply a plan transactionally.

        Args:
            plan: Statements and checks to run
            read_back: Coroutine factory returning the tree as stored on the
                device, called once the lock is released

        Returns:
            ApplyResult with commit warnings and the read-back tree

        Raises:
            LockError: Lock not acquired (nothing sent, nothing discarded)
            AlreadyExistsError, SendError, CommitError, ConsistencyError:
                After the candidate configuration was discarded
        """
        result = ApplyResult(
            feature=plan.feature,
            identity=plan.identity,
            operation=plan.operation,
            statements=plan.lines,
            warnings=list(plan.warnings),
        )
        state = ApplyStateMachine()

        try:
            async with timed_section(
                "apply", device_id=self.device_id,
                feature=plan.feature, action=plan.operation.value,
            ):
                await self._lock(state)
                try:
                    await self._run_locked(plan, state, result)
                except BaseException as err:
                    await self._rollback(state, err, result)
                    raise
                await self._release(state, result)

            if read_back is not None:
                result.tree = await read_back()
            result.success = True
            return result

        except asyncio.CancelledError:
            result.error = "cancelled"
            raise
        except Exception as e:
            logger.error(f"Apply {plan.operation.value} {plan.feature} {plan.identity} failed: {e}")
            result.error = str(e)
            raise

        finally:
            self._audit(plan, result)

    def write_offline(self, plan: ApplyPlan, tree: Optional[Block] = None) -> ApplyResult:
        """Append the plan to the offline set file instead of the device."""
        result = ApplyResult(
            feature=plan.feature,
            identity=plan.identity,
            operation=plan.operation,
            statements=plan.lines,
            warnings=list(plan.warnings),
            offline=True,
        )
        if not self.settings.offline_set_file:
            raise InternalError("offline apply without offline_set_file")

        try:
            append_lines(
                self.settings.offline_set_file,
                plan.lines,
                self.settings.file_permission,
            )
            result.tree = tree
            result.success = True
            return result
        except (OSError, SetconfError) as e:
            result.error = str(e)
            raise
        finally:
            self._audit(plan, result)

    async def _lock(self, state: ApplyStateMachine) -> None:
        try:
            await retry_async(
                lambda: call_with_timeout(
                    self.session.config_lock(), self.settings.command_timeout, "config_lock"
                ),
                attempts=self.settings.lock_attempts,
                sleep=self.settings.lock_sleep,
                exceptions=(DeviceBusyError,),
            )
        except Exception as e:
            raise LockError(
                f"failed to lock candidate configuration: {e}",
                {"device_id": self.device_id},
            ) from e
        state.move(ApplyState.LOCKED)
        logger.debug(f"Candidate configuration locked on {self.device_id}")

    async def _run_locked(
        self,
        plan: ApplyPlan,
        state: ApplyStateMachine,
        result: ApplyResult
    ) -> None:
        timeout = self.settings.command_timeout

        if plan.check_exists and await self._exists(plan.base_path):
            raise AlreadyExistsError(plan.feature, plan.identity)

        # Replace: deletes first, then sets, in one load
        if plan.lines:
            try:
                await call_with_timeout(self.session.config_set(plan.lines), timeout, "config_set")
            except Exception as e:
                raise SendError(
                    f"failed to load {len(plan.lines)} line(s): {e}",
                    {"device_id": self.device_id, "feature": plan.feature},
                ) from e
        state.move(ApplyState.REPLACED)

        try:
            warnings = await call_with_timeout(
                self.session.commit_conf(plan.description), timeout, "commit_conf"
            )
        except Exception as e:
            raise CommitError(
                f"commit failed: {e}",
                {"device_id": self.device_id, "description": plan.description},
            ) from e
        state.move(ApplyState.COMMITTED)
        for warning in warnings or []:
            logger.warning(f"Commit warning on {self.device_id}: {warning}")
            result.warnings.append(warning)

        if plan.check_exists and not await self._exists(plan.base_path):
            raise ConsistencyError(plan.feature, plan.identity, plan.base_path)
        state.move(ApplyState.VERIFIED)

    async def _exists(self, path: str) -> bool:
        try:
            return await self.resolver.exists(path)
        except Exception as e:
            raise TransportError(
                f"existence check of {path} failed: {e}",
                {"device_id": self.device_id},
            ) from e

    async def _rollback(
        self,
        state: ApplyStateMachine,
        err: BaseException,
        result: ApplyResult
    ) -> None:
        """Discard the candidate configuration after err. Never raises."""
        state.move(ApplyState.ROLLED_BACK)
        logger.warning(f"Discarding candidate configuration on {self.device_id} after: {err!r}")
        try:
            await call_with_timeout(
                self.session.config_clear(), self.settings.rollback_timeout, "config_clear"
            )
            result.rollback_performed = True
        except Exception as clear_err:
            logger.error(f"Discard failed on {self.device_id}: {clear_err}")
            result.rollback_error = str(clear_err)
            if isinstance(err, SetconfError):
                err.rollback_error = clear_err

    async def _release(self, state: ApplyStateMachine, result: ApplyResult) -> None:
        """Release the lock after a successful commit."""
        try:
            await call_with_timeout(
                self.session.config_clear(), self.settings.rollback_timeout, "config_clear"
            )
        except Exception as e:
            logger.warning(f"Failed to release configuration lock on {self.device_id}: {e}")
            result.warnings.append(f"failed to release configuration lock: {e}")
        state.move(ApplyState.DONE)

    def _audit(
        self,
        plan: ApplyPlan,
        result: ApplyResult
    ) -> None:
        self.tracker.log_change(
            operation=plan.operation.value,
            feature=plan.feature,
            identity=plan.identity,
            success=result.success,
            statements=plan.lines,
            warnings=result.warnings,
            checksum=compute_checksum(plan.lines),
            offline=result.offline,
            after_state=result.tree.to_dict() if result.tree is not None else None,
            error=result.error,
            rollback_error=result.rollback_error,
        )
