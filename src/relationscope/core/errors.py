"""Exception taxonomy for RelationScope.

Every failure a caller can observe derives from ``RelationScopeError``.
Analysis failures carry a short ``user_message`` that is safe to show in a
UI or terminal; the exception text itself may hold a diagnostic intended for
logs.

Hierarchy:
    RelationScopeError
    ├── AnalysisError
    │   ├── TransportError           (analyzer call could not complete)
    │   ├── ContentError             (analyzer answered with nothing usable)
    │   ├── SchemaValidationError    (answer failed the report schema)
    │   └── AnalysisInProgressError  (second submission while one is running)
    ├── InvalidDateError             (timeline item with an unparsable date)
    └── HistoryWriteError            (history file could not be saved)
"""

from __future__ import annotations

from typing import Any

GENERIC_FAILURE_MESSAGE = (
    "An error occurred during analysis. The AI may be experiencing high demand. "
    "Please try again later."
)

INVALID_FORMAT_MESSAGE = (
    "The AI returned an invalid analysis format. This can happen with very complex "
    "conversations. Please try a shorter or simpler chat excerpt."
)


class RelationScopeError(Exception):
    """Base exception for all RelationScope errors."""

    pass


class AnalysisError(RelationScopeError):
    """Base exception for failures of a transcript analysis.

    Attributes:
        message: Diagnostic text (safe to log, never contains transcript text).
        user_message: Short text suitable for display to the end user.
        original_error: The underlying exception, if any.
    """

    default_user_message: str = GENERIC_FAILURE_MESSAGE

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class TransportError(AnalysisError):
    """The analyzer call could not complete (network, availability, auth, quota)."""

    pass


class ContentError(AnalysisError):
    """The analyzer responded but declined or produced no usable output."""

    pass


class SchemaValidationError(AnalysisError):
    """The analyzer output failed to parse or validate against the report schema.

    A payload that raises this error is never assembled or persisted.

    Attributes:
        errors: Short descriptions of failing fields, e.g. ``"verdict: Field required"``.
    """

    default_user_message = INVALID_FORMAT_MESSAGE

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.errors = errors or []


class AnalysisInProgressError(AnalysisError):
    """An analysis is already running for this session."""

    default_user_message = "An analysis is already running. Please wait for it to finish."


class InvalidDateError(RelationScopeError):
    """A timeline item carries a date that is not ISO-parseable.

    Attributes:
        kind: ``"event"`` or ``"phase"``.
        index: Position of the item within its source list.
        field: Name of the offending field (``date`` or ``startDate``).
        value: The raw value as received.
    """

    def __init__(self, kind: str, index: int, field: str, value: Any) -> None:
        self.kind = kind
        self.index = index
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} on {kind} #{index}: {value!r} is not an ISO date")


class HistoryWriteError(RelationScopeError):
    """The history file could not be written; in-memory history is unchanged.

    Attributes:
        path: The history file that failed to save.
    """

    def __init__(self, path: Any, original_error: Exception | None = None) -> None:
        self.path = path
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Could not write history to {path}{detail}")
