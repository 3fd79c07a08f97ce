from __future__ import annotations

from typing import Optional


class ScrapeError(RuntimeError):
    """
    Base class for everything the export pipeline raises on purpose.

    Row-level and page-level subclasses are absorbed by the scraper; session-level ones abort the run.
    """


class FormatError(ScrapeError, ValueError):
    """Raised when a date string (or calendar header) cannot be parsed."""


class InvalidRangeError(ScrapeError, ValueError):
    """Raised when a requested date range ends before it starts."""


class NavigationControlMissingError(ScrapeError):
    """The date-picker prev/next controls (or its inputs) are not on the page."""


class DayUnavailableError(ScrapeError):
    """The target day control is disabled or not rendered in the visible month grid."""


class ConfirmationMismatchError(ScrapeError):
    """
    The picker's displayed from/to values still disagree with the requested range after the corrective pass.

    Retryable: the orchestrator re-runs the chunk preparation a bounded number of times.
    """

    def __init__(self, message: str, *, expected: tuple[str, str] = ("", ""), actual: tuple[str, str] = ("", "")) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DialogTimeoutError(ScrapeError):
    """A reservation detail dialog did not become visible in time (row is skipped)."""


class RetryExhaustedError(ScrapeError):
    def __init__(self, message: str, *, attempts: int = 0, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ExtractionRetryExhaustedError(RetryExhaustedError):
    """Payment fields stayed empty after every attempt (row is kept with N/A placeholders)."""


class PageProcessingError(ScrapeError):
    """A results page could not be processed; recoverable by reloading and resuming."""


class AuthenticationError(ScrapeError):
    """Login, passcode or session establishment failed. Fatal to the run."""


class PropertyNotFoundError(ScrapeError):
    """No property matched the requested name. Fatal to the run."""


class PortalNavigationError(ScrapeError):
    """A required navigation target (e.g. the Reservations link) was not found. Fatal to the run."""


class SessionStateError(ScrapeError):
    """An operation was attempted from the wrong session state."""
