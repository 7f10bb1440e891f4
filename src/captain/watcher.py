"""Waiting for a deployment request to converge.

The remote controller retries transient failures on its own, so a single
``Failed`` observation is not final. The watcher tolerates a budget of
failed observations before giving up. The budget is cumulative for the
whole session: observations of other phases in between do not reset it.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from loguru import logger

from src.infra.constants import DEFAULT_CONSTANTS

from .errors import ReconciliationFailedError, WatchError, WatchTimeoutError
from .interfaces import EventKind, EventSink, StatusAccessor
from .models import Phase, RequestIdentity


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall-clock implementation of Clock."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class WatchState(str, Enum):
    POLLING = "Polling"
    SYNCED = "Synced"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class RetryBudget:
    """Failed observations seen so far in one watch session."""

    limit: int
    failures: int = 0

    def record_failure(self) -> RetryBudget:
        return replace(self, failures=self.failures + 1)

    @property
    def exhausted(self) -> bool:
        return self.failures >= self.limit


@dataclass(frozen=True)
class WatchResult:
    """Outcome of a successful watch session."""

    identity: RequestIdentity
    state: WatchState
    polls: int
    failures: int
    elapsed: float


@dataclass(frozen=True)
class _Session:
    identity: RequestIdentity
    started: float
    deadline: float | None
    budget: RetryBudget
    polls: int = 0
    last_phase: Phase | None = None
    state: WatchState = WatchState.POLLING


class ReconciliationWatcher:
    """Polls a request's status until it is synced, failed or out of time.

    Example:
        watcher = ReconciliationWatcher(cluster, events=cluster, timeout=300)
        watcher.watch(request.identity, version="1.5.0", overrides=["a=b"])
    """

    def __init__(
        self,
        accessor: StatusAccessor,
        *,
        events: EventSink | None = None,
        clock: Clock | None = None,
        poll_interval: float = DEFAULT_CONSTANTS.DEFAULT_POLL_INTERVAL,
        timeout: float | None = None,
        failure_tolerance: int = DEFAULT_CONSTANTS.DEFAULT_FAILURE_TOLERANCE,
    ) -> None:
        """Initialize the watcher.

        Args:
            accessor: Source of request status and diagnostics
            events: Optional sink for the terminal outcome event
            clock: Time source, defaults to the system clock
            poll_interval: Seconds to sleep before each status fetch
            timeout: Overall deadline in seconds, or None to wait indefinitely
            failure_tolerance: Failed observations tolerated before giving up
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if failure_tolerance < 1:
            raise ValueError(
                f"failure_tolerance must be at least 1, got {failure_tolerance}"
            )
        self.accessor = accessor
        self.events = events
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.failure_tolerance = failure_tolerance

    def watch(
        self,
        identity: RequestIdentity,
        *,
        version: str = "",
        overrides: Sequence[str] = (),
    ) -> WatchResult:
        """Block until the request converges.

        Args:
            identity: Request to watch
            version: Requested chart version, used in messages and events
            overrides: Requested value overrides, used in messages and events

        Returns:
            WatchResult for a synced request

        Raises:
            ReconciliationFailedError: If the failure budget is exhausted
            WatchTimeoutError: If the deadline passes first
            Exception: Any error raised by the status accessor, unchanged
        """
        logger.info(f"Waiting for deployment request {identity} to be synced")
        try:
            result = self._run(identity, version, overrides)
        except Exception as e:
            message = (
                f"Updated helmrequest {identity.name} error with version: "
                f"{version} values: {list(overrides)}, err: {e}"
            )
            self._emit(
                EventKind.WARNING,
                DEFAULT_CONSTANTS.EVENT_REASON_FAILED,
                message,
                identity,
            )
            raise

        message = (
            f"Updated helmrequest {identity.name} with version: "
            f"{version} values: {list(overrides)}"
        )
        self._emit(
            EventKind.NORMAL,
            DEFAULT_CONSTANTS.EVENT_REASON_SYNCED,
            message,
            identity,
        )
        return result

    def _run(
        self,
        identity: RequestIdentity,
        version: str,
        overrides: Sequence[str],
    ) -> WatchResult:
        started = self.clock.monotonic()
        session = _Session(
            identity=identity,
            started=started,
            deadline=None if self.timeout is None else started + self.timeout,
            budget=RetryBudget(self.failure_tolerance),
        )

        while session.state is WatchState.POLLING:
            session = self._poll(session)

        return self._finish(session, version, overrides)

    def _poll(self, session: _Session) -> _Session:
        """Sleep, fetch once and return the advanced session."""
        self._sleep_until_next_poll(session)
        if session.deadline is not None and self.clock.monotonic() >= session.deadline:
            return replace(session, state=WatchState.TIMED_OUT)

        status = self.accessor.fetch_status(session.identity)
        session = replace(session, polls=session.polls + 1, last_phase=status.phase)
        logger.debug(
            f"Poll {session.polls}: deployment request {session.identity} "
            f"is {status.phase.value}"
        )

        if status.phase is Phase.SYNCED:
            return replace(session, state=WatchState.SYNCED)
        if status.phase is not Phase.FAILED:
            return session

        budget = session.budget.record_failure()
        if budget.exhausted:
            return replace(session, budget=budget, state=WatchState.FAILED)

        logger.warning(
            f"Deployment request {session.identity} reported failure "
            f"({budget.failures}/{budget.limit}), "
            "waiting for the controller to retry"
        )
        return replace(session, budget=budget)

    def _finish(
        self,
        session: _Session,
        version: str,
        overrides: Sequence[str],
    ) -> WatchResult:
        """Turn a terminal session into a result, or raise its error."""
        if session.state is WatchState.TIMED_OUT:
            raise WatchTimeoutError(
                session.identity,
                self.timeout or 0.0,
                version=version,
                overrides=overrides,
                last_phase=session.last_phase.value if session.last_phase else None,
            )
        if session.state is WatchState.FAILED:
            raise ReconciliationFailedError(
                session.identity,
                session.budget.failures,
                version=version,
                overrides=overrides,
                diagnostics=self._diagnostics(session.identity),
            )

        if session.budget.failures:
            logger.warning(
                f"Deployment request {session.identity} synced after "
                f"{session.budget.failures} failed observation(s)"
            )
        return WatchResult(
            identity=session.identity,
            state=session.state,
            polls=session.polls,
            failures=session.budget.failures,
            elapsed=self.clock.monotonic() - session.started,
        )

    def _sleep_until_next_poll(self, session: _Session) -> None:
        interval = self.poll_interval
        if session.deadline is not None:
            remaining = session.deadline - self.clock.monotonic()
            interval = max(0.0, min(interval, remaining))
        if interval:
            self.clock.sleep(interval)

    def _diagnostics(self, identity: RequestIdentity) -> list[str]:
        try:
            messages = self.accessor.fetch_diagnostics(identity)
        except Exception as e:
            logger.error(f"Get events for deployment request {identity} error: {e}")
            return []
        logger.info(f"Deployment request {identity} failed, events are: {messages}")
        return messages

    def _emit(
        self,
        kind: EventKind,
        reason: str,
        message: str,
        identity: RequestIdentity,
    ) -> None:
        if self.events is None:
            return
        try:
            self.events.emit(kind, reason, message, identity)
        except Exception as e:
            logger.error(f"Create event for deployment request {identity} error: {e}")


__all__ = [
    "Clock",
    "ReconciliationWatcher",
    "RetryBudget",
    "SystemClock",
    "WatchError",
    "WatchResult",
    "WatchState",
]
