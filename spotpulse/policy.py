"""Extraction policy for the market results table.

The retry loop is an explicit finite-state machine::

    START -> NAVIGATE -> CHECK_ACCESS -> READY -> VALIDATE -> SUCCESS
                 |             |           |         |
                 v             v           v         v
               FATAL         FATAL     RETRY_WAIT <--+
                                           |
                                           +--> CHECK_ACCESS | FATAL

Each state handler returns an ``Event``; ``TRANSITIONS`` maps
``(state, event)`` onto the next state. Which failures consume an attempt
is therefore decided by the table alone:

- access denial and unreachable hosts end the run immediately
- ready timeouts, missing selectors, unreadable rows and empty tables
  go through RETRY_WAIT, which either sleeps a constant backoff or gives up

Every suspension point is raced against an optional cancel token and the
overall deadline.
"""

import asyncio
import time
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from config.settings import GlobalConfig, get_config
from spotpulse.exceptions import (
    AccessDeniedError,
    DocumentReadError,
    ExtractionCancelledError,
    ExtractionFailure,
    NavigationError,
    RetryExhaustedError,
    UnreachableError,
)
from spotpulse.extractor import ExtractionResult, extract_records, resolve_selector
from spotpulse.logger import get_logger
from spotpulse.session import DocumentSession
from spotpulse.validator import MarketRecord

log = get_logger(__name__)

T = TypeVar("T")


class State(StrEnum):
    START = "start"
    NAVIGATE = "navigate"
    CHECK_ACCESS = "check_access"
    READY = "ready"
    VALIDATE = "validate"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    FATAL = "fatal"


class Event(StrEnum):
    BEGIN = "begin"
    NAVIGATED = "navigated"
    UNREACHABLE = "unreachable"
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"
    ROWS_EXTRACTED = "rows_extracted"
    RETRYABLE_FAILURE = "retryable_failure"
    RECORDS_VALID = "records_valid"
    BACKOFF_ELAPSED = "backoff_elapsed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CANCELLED = "cancelled"


class RetryCause(StrEnum):
    """Failures that consume an attempt but allow another one."""

    READY_TIMEOUT = "ready_timeout"
    SELECTOR_NOT_FOUND = "selector_not_found"
    ROWS_UNAVAILABLE = "rows_unavailable"
    EMPTY_RESULT = "empty_result"


TRANSITIONS: dict[tuple[State, Event], State] = {
    (State.START, Event.BEGIN): State.NAVIGATE,
    (State.NAVIGATE, Event.NAVIGATED): State.CHECK_ACCESS,
    (State.NAVIGATE, Event.UNREACHABLE): State.FATAL,
    (State.CHECK_ACCESS, Event.ACCESS_GRANTED): State.READY,
    (State.CHECK_ACCESS, Event.ACCESS_DENIED): State.FATAL,
    (State.READY, Event.ROWS_EXTRACTED): State.VALIDATE,
    (State.READY, Event.RETRYABLE_FAILURE): State.RETRY_WAIT,
    (State.VALIDATE, Event.RECORDS_VALID): State.SUCCESS,
    (State.VALIDATE, Event.RETRYABLE_FAILURE): State.RETRY_WAIT,
    (State.RETRY_WAIT, Event.BACKOFF_ELAPSED): State.CHECK_ACCESS,
    (State.RETRY_WAIT, Event.RETRIES_EXHAUSTED): State.FATAL,
}

TERMINAL_STATES = frozenset({State.SUCCESS, State.FATAL})


def next_state(state: State, event: Event) -> State:
    """Look up the transition for ``event`` in ``state``.

    Cancellation is accepted in every non-terminal state.

    Raises:
        RuntimeError: If the transition is not defined.
    """
    if event is Event.CANCELLED and state not in TERMINAL_STATES:
        return State.FATAL
    try:
        return TRANSITIONS[(state, event)]
    except KeyError as exc:
        raise RuntimeError(f"Illegal transition: {state.value} on {event.value}") from exc


@dataclass(frozen=True)
class AccessDenialSignal:
    """Blocked/not-blocked classification of the loaded document."""

    blocked: bool
    reason: str | None = None


def detect_access_denial(
    status_code: int | None,
    content: str,
    markers: Sequence[str],
    denied_status_codes: Sequence[int] = (403,),
) -> AccessDenialSignal:
    """Classify the loaded document as blocked or not.

    Args:
        status_code: Status of the main-document response, if known.
        content: Serialized document.
        markers: Substrings that only appear on denial or challenge pages.
        denied_status_codes: Statuses that mean the request was refused.

    Returns:
        The classification with a short reason when blocked.
    """
    if status_code is not None and status_code in denied_status_codes:
        return AccessDenialSignal(blocked=True, reason=f"HTTP {status_code}")

    for marker in markers:
        if marker and marker in content:
            return AccessDenialSignal(blocked=True, reason=f"denial marker '{marker}'")

    return AccessDenialSignal(blocked=False)


@dataclass
class ExtractionAttempt:
    """Mutable state of one policy run. Discarded when ``run`` returns."""

    url: str
    number: int = 0
    status_code: int | None = None
    selector: str | None = None
    rows_seen: int = 0
    records: list[MarketRecord] = field(default_factory=list)
    last_cause: RetryCause | None = None
    failure: ExtractionFailure | None = None


class ExtractionPolicy:
    """Drives a DocumentSession until the market table yields records.

    Attributes:
        session: Document session owned by the caller. Only read from.
        config: GlobalConfig with timeouts, retry limits and table layout.
        cancel_event: Optional token; once set, the run stops at the next
            suspension point with ExtractionCancelledError.

    Example:
        policy = ExtractionPolicy(session, config)
        result = await policy.run(url)
        sink.write(result.records)
    """

    def __init__(
        self,
        session: DocumentSession,
        config: GlobalConfig | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.session = session
        self.config = config or get_config()
        self.cancel_event = cancel_event
        self._deadline: float | None = None
        self._handlers = {
            State.START: self._start,
            State.NAVIGATE: self._navigate,
            State.CHECK_ACCESS: self._check_access,
            State.READY: self._ready,
            State.VALIDATE: self._validate,
            State.RETRY_WAIT: self._retry_wait,
        }

    async def run(self, url: str) -> ExtractionResult:
        """Extract market records from ``url``.

        Returns:
            ExtractionResult with at least one record.

        Raises:
            AccessDeniedError: The source blocked the request.
            UnreachableError: No connection could be established.
            RetryExhaustedError: Every attempt ended in a retryable failure.
            ExtractionCancelledError: Cancel token set or deadline passed.
        """
        attempt = ExtractionAttempt(url=url)
        deadline_sec = self.config.extraction_deadline_sec
        self._deadline = time.monotonic() + deadline_sec if deadline_sec > 0 else None

        log.info(
            "Starting extraction",
            url=url,
            max_attempts=self.config.retry_max_attempts,
            backoff_ms=self.config.retry_backoff_ms,
        )

        state = State.START
        while state not in TERMINAL_STATES:
            try:
                event = await self._handlers[state](attempt)
            except ExtractionCancelledError as exc:
                attempt.failure = exc
                event = Event.CANCELLED

            new_state = next_state(state, event)
            log.debug(
                "Policy transition",
                from_state=state.value,
                policy_event=event.value,
                to_state=new_state.value,
                attempt=attempt.number,
            )
            state = new_state

        if state is State.FATAL:
            failure = attempt.failure
            log.error(
                "Extraction failed",
                error_type=type(failure).__name__,
                **failure.context,
            )
            raise failure

        result = ExtractionResult(
            records=tuple(attempt.records),
            attempts=attempt.number,
            selector=attempt.selector,
            source_url=url,
            rows_seen=attempt.rows_seen,
        )
        log.info(
            "Extraction complete",
            url=url,
            records=len(result.records),
            rows_dropped=result.rows_dropped,
            attempts=result.attempts,
            selector=result.selector,
        )
        return result

    async def _start(self, attempt: ExtractionAttempt) -> Event:
        return Event.BEGIN

    async def _navigate(self, attempt: ExtractionAttempt) -> Event:
        timeout_ms = self.config.navigation_timeout_ms

        try:
            response = await self._suspend(
                self.session.navigate(attempt.url, "networkidle", timeout_ms),
                attempt,
                State.NAVIGATE,
            )
        except UnreachableError as exc:
            attempt.failure = exc
            return Event.UNREACHABLE
        except NavigationError as exc:
            log.warning(
                "Navigation failed, retrying with simpler wait strategy",
                url=attempt.url,
                reason=exc.reason,
            )
            try:
                response = await self._suspend(
                    self.session.navigate(attempt.url, "domcontentloaded", timeout_ms),
                    attempt,
                    State.NAVIGATE,
                )
            except UnreachableError as retry_exc:
                attempt.failure = retry_exc
                return Event.UNREACHABLE
            except NavigationError as retry_exc:
                attempt.failure = UnreachableError(url=attempt.url, reason=retry_exc.reason)
                return Event.UNREACHABLE

        attempt.status_code = response.status
        return Event.NAVIGATED

    async def _check_access(self, attempt: ExtractionAttempt) -> Event:
        attempt.number += 1
        log.info(
            "Extraction attempt started",
            attempt=attempt.number,
            max_attempts=self.config.retry_max_attempts,
        )

        try:
            content = await self._suspend(self.session.content(), attempt, State.CHECK_ACCESS)
        except DocumentReadError as exc:
            log.warning("Document content unavailable for denial check", error=str(exc))
            content = ""

        signal = detect_access_denial(
            attempt.status_code,
            content,
            self.config.access_denial_markers,
            self.config.access_denied_status_codes,
        )
        if signal.blocked:
            attempt.failure = AccessDeniedError(
                url=attempt.url,
                reason=signal.reason,
                attempts=attempt.number,
                status_code=attempt.status_code,
            )
            return Event.ACCESS_DENIED

        return Event.ACCESS_GRANTED

    async def _ready(self, attempt: ExtractionAttempt) -> Event:
        attempt.selector = None
        attempt.records = []
        attempt.rows_seen = 0

        try:
            await self._suspend(
                self.session.wait_for_quiescence(self.config.ready_timeout_ms),
                attempt,
                State.READY,
            )
        except TimeoutError as exc:
            return self._retryable(attempt, RetryCause.READY_TIMEOUT, error=str(exc))
        except DocumentReadError as exc:
            return self._retryable(attempt, RetryCause.ROWS_UNAVAILABLE, error=str(exc))

        try:
            selector = await self._suspend(
                resolve_selector(self.session, self.config.row_selectors),
                attempt,
                State.READY,
            )
            if selector is None:
                return self._retryable(attempt, RetryCause.SELECTOR_NOT_FOUND)

            rows = await self._suspend(
                self.session.row_cells(selector, self.config.cell_selector),
                attempt,
                State.READY,
            )
        except DocumentReadError as exc:
            return self._retryable(attempt, RetryCause.ROWS_UNAVAILABLE, error=str(exc))

        attempt.selector = selector
        attempt.rows_seen = len(rows)
        attempt.records = extract_records(rows, self.config.column_map)
        return Event.ROWS_EXTRACTED

    async def _validate(self, attempt: ExtractionAttempt) -> Event:
        if not attempt.records:
            return self._retryable(
                attempt,
                RetryCause.EMPTY_RESULT,
                selector=attempt.selector,
                rows_seen=attempt.rows_seen,
            )
        return Event.RECORDS_VALID

    async def _retry_wait(self, attempt: ExtractionAttempt) -> Event:
        if attempt.number >= self.config.retry_max_attempts:
            attempt.failure = RetryExhaustedError(
                url=attempt.url,
                attempts=attempt.number,
                last_cause=attempt.last_cause.value if attempt.last_cause else None,
            )
            return Event.RETRIES_EXHAUSTED

        log.info(
            "Retrying after backoff",
            backoff_ms=self.config.retry_backoff_ms,
            next_attempt=attempt.number + 1,
        )
        try:
            await self._suspend(
                self.session.sleep(self.config.retry_backoff_ms),
                attempt,
                State.RETRY_WAIT,
            )
        except DocumentReadError as exc:
            # The next attempt records the broken session as its retry cause.
            log.warning("Backoff sleep interrupted", error=str(exc))
        return Event.BACKOFF_ELAPSED

    def _retryable(self, attempt: ExtractionAttempt, cause: RetryCause, **details: Any) -> Event:
        attempt.last_cause = cause
        log.warning(
            "Extraction attempt failed",
            attempt=attempt.number,
            cause=cause.value,
            **details,
        )
        return Event.RETRYABLE_FAILURE

    def _cancellation_reason(self) -> str | None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return "cancel token set"
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return "deadline exceeded"
        return None

    async def _suspend(
        self,
        operation: Coroutine[Any, Any, T],
        attempt: ExtractionAttempt,
        state: State,
    ) -> T:
        """Await ``operation`` unless the cancel token or deadline fires first.

        Raises:
            ExtractionCancelledError: If cancelled before ``operation`` finished.
        """
        reason = self._cancellation_reason()
        if reason is not None:
            operation.close()
            raise ExtractionCancelledError(
                url=attempt.url, state=state.value, attempts=attempt.number, reason=reason
            )

        task = asyncio.ensure_future(operation)
        waiters: set[asyncio.Future] = {task}
        if self.cancel_event is not None:
            waiters.add(asyncio.ensure_future(self.cancel_event.wait()))

        timeout = None
        if self._deadline is not None:
            timeout = max(0.0, self._deadline - time.monotonic())

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if task in done:
            return task.result()

        await asyncio.gather(task, return_exceptions=True)
        raise ExtractionCancelledError(
            url=attempt.url,
            state=state.value,
            attempts=attempt.number,
            reason=self._cancellation_reason() or "deadline exceeded",
        )
