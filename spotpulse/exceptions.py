"""Custom exception hierarchy for SpotPulse.

This module defines domain-specific exceptions that provide semantic clarity
and enable targeted error handling throughout the application. Each exception
includes contextual information to aid debugging and observability.

The extraction policy surfaces exactly one of the ``ExtractionFailure``
subclasses when it cannot produce records, so callers can decide between
skipping and hard-failing the enclosing job.
"""

from datetime import UTC, datetime
from typing import Any


class SpotPulseError(Exception):
    """Base exception for all SpotPulse errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class BrowserInitializationError(SpotPulseError):
    """Raised when browser instance fails to initialize.

    Common causes include missing Playwright browsers, resource constraints,
    or conflicting browser processes.
    """

    def __init__(self, reason: str, browser_type: str = "chromium") -> None:
        super().__init__(
            message=f"Failed to initialize {browser_type} browser: {reason}",
            context={"browser_type": browser_type, "reason": reason},
        )


class NavigationError(SpotPulseError):
    """Raised when a navigation attempt fails for a recoverable reason.

    The extraction policy retries such failures once with a simpler
    wait policy before giving up.
    """

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(
            message=f"Navigation to '{url}' failed: {reason}",
            context={"url": url, "reason": reason, "status_code": status_code},
        )
        self.url = url
        self.reason = reason


class DocumentReadError(SpotPulseError):
    """Raised when the row collection of the loaded document cannot be read."""

    def __init__(self, selector: str, reason: str) -> None:
        super().__init__(
            message=f"Could not read rows for selector '{selector}': {reason}",
            context={"selector": selector, "reason": reason},
        )


class ExtractionFailure(SpotPulseError):
    """Base class for the terminal failures of the extraction policy.

    Attributes:
        url: Target URL of the extraction.
        state: Policy state in which the failure was decided.
        attempts: Number of attempts started before the failure.
    """

    def __init__(
        self,
        message: str,
        url: str,
        state: str,
        attempts: int,
        **context: Any,
    ) -> None:
        super().__init__(
            message=message,
            context={"url": url, "state": state, "attempts": attempts, **context},
        )
        self.url = url
        self.state = state
        self.attempts = attempts


class AccessDeniedError(ExtractionFailure):
    """Raised when the source actively blocks the request.

    Derived from an HTTP 403 response or a denial marker in the page
    content. Never retried: a server-side block does not lift within
    the retry window.
    """

    def __init__(
        self,
        url: str,
        reason: str,
        attempts: int = 1,
        status_code: int | None = None,
        state: str = "check_access",
    ) -> None:
        super().__init__(
            message=f"Access to '{url}' denied: {reason}",
            url=url,
            state=state,
            attempts=attempts,
            reason=reason,
            status_code=status_code,
        )
        self.reason = reason
        self.status_code = status_code


class UnreachableError(ExtractionFailure):
    """Raised when navigation cannot establish a connection.

    Name resolution and connection failures land here; the remediation
    (network or DNS) differs from an access denial.
    """

    def __init__(
        self,
        url: str,
        reason: str,
        attempts: int = 0,
        state: str = "navigate",
    ) -> None:
        super().__init__(
            message=f"Cannot reach '{url}': {reason}",
            url=url,
            state=state,
            attempts=attempts,
            reason=reason,
        )
        self.reason = reason


class RetryExhaustedError(ExtractionFailure):
    """Raised when every attempt ended in a retryable failure.

    Attributes:
        last_cause: The retryable cause observed on the final attempt.
    """

    def __init__(self, url: str, attempts: int, last_cause: str | None) -> None:
        super().__init__(
            message=f"Failed to extract market data after {attempts} attempts (last cause: {last_cause})",
            url=url,
            state="retry_wait",
            attempts=attempts,
            last_cause=last_cause,
        )
        self.last_cause = last_cause


class ExtractionCancelledError(ExtractionFailure):
    """Raised when the cancel token fires or the overall deadline passes."""

    def __init__(self, url: str, state: str, attempts: int, reason: str) -> None:
        super().__init__(
            message=f"Extraction cancelled in state '{state}': {reason}",
            url=url,
            state=state,
            attempts=attempts,
            reason=reason,
        )
        self.reason = reason


class RecordSinkError(SpotPulseError):
    """Raised when the record set cannot be written."""

    def __init__(self, reason: str, output_path: str | None = None) -> None:
        super().__init__(
            message=f"Failed to write market records: {reason}",
            context={"reason": reason, "output_path": output_path},
        )


class EmptySinkInputError(RecordSinkError):
    """Raised when the sink is handed zero records; no empty file is written."""

    def __init__(self, output_path: str | None = None) -> None:
        super().__init__(reason="No data to write", output_path=output_path)


class LoggingInitializationError(SpotPulseError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
