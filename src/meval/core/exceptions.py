"""Exception hierarchy for the evaluation harness.

Every error raised by the library derives from `MevalError` so callers can
catch the whole family at once. Sources and validators are strict and raise
immediately; only the dispatcher turns per-record provider failures into
recorded outcomes.
"""

from __future__ import annotations

from pathlib import Path
import typing

if typing.TYPE_CHECKING:
    from .types import EvaluationOutcome, Record


class MevalError(Exception):
    """Base exception for evaluation harness errors."""


class ConfigurationError(MevalError):
    """Raised when required settings are missing or malformed."""


class ValidationError(MevalError):
    """Raised when a record violates its schema.

    Carries the offending field and, when known, the file and record position
    so that the failure can be diagnosed without re-reading the input.
    """

    def __init__(
        self,
        field: str,
        reason: str,
        *,
        path: str | Path | None = None,
        index: int | None = None,
        line: int | None = None,
    ) -> None:
        """Initialize with the failing field and a precise reason."""
        self.field = field
        self.reason = reason
        self.path = path
        self.index = index
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.path is not None:
            location.append(f"file {self.path}")
        if self.line is not None:
            location.append(f"line {self.line}")
        elif self.index is not None:
            location.append(f"record {self.index}")
        if not location:
            return self.reason
        return f"{', '.join(location)}: {self.reason}"

    def locate(
        self,
        *,
        path: str | Path | None = None,
        index: int | None = None,
        line: int | None = None,
    ) -> ValidationError:
        """Return a copy of this error annotated with a file position."""
        return ValidationError(
            self.field,
            self.reason,
            path=path if path is not None else self.path,
            index=index if index is not None else self.index,
            line=line if line is not None else self.line,
        )


class DiscoveryError(MevalError):
    """Raised when a path pattern resolves to no files."""

    def __init__(self, pattern: str) -> None:  # noqa: D107
        self.pattern = pattern
        super().__init__(f"no files found matching pattern: {pattern}")


class SourceError(MevalError):
    """Raised when a record source cannot read or write its files."""


class RecordDecodeError(SourceError):
    """Raised when a file does not decode into JSON records."""

    def __init__(
        self,
        message: str,
        *,
        path: str | Path,
        index: int | None = None,
        line: int | None = None,
    ) -> None:
        """Initialize with the decode failure and its position."""
        self.path = path
        self.index = index
        self.line = line
        if line is not None:
            where = f"file {path}, line {line}"
        elif index is not None:
            where = f"file {path}, record {index}"
        else:
            where = f"file {path}"
        super().__init__(f"{where}: {message}")


class ReadCancelledError(SourceError):
    """Raised when a read is stopped between files.

    `partial` holds the records of every file read completely before the stop.
    """

    def __init__(self, partial: list[Record]) -> None:  # noqa: D107
        self.partial = partial
        super().__init__(f"read cancelled after {len(partial)} records")


class UnsupportedFormatError(MevalError):
    """Raised when no record source exists for a format name."""


class UnsupportedProviderError(MevalError):
    """Raised when no evaluator exists for a provider name."""


class ProviderError(MevalError):
    """Raised for transport failures, non-success statuses or bad responses."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:  # noqa: D107
        self.status_code = status_code
        super().__init__(message)


class PolicyExhaustionError(MevalError):
    """Recorded when a record still fails after every retry attempt."""

    def __init__(self, attempts: int, cause: BaseException) -> None:  # noqa: D107
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"gave up after {attempts} attempts: {cause}")


class DispatchError(MevalError):
    """Raised when a fail-policy run stops on a record failure."""

    def __init__(self, index: int, cause: BaseException) -> None:  # noqa: D107
        self.index = index
        self.cause = cause
        super().__init__(f"record {index} failed: {cause}")


class DispatchCancelledError(MevalError):
    """Raised when a run is cancelled before every record was evaluated."""

    def __init__(  # noqa: D107
        self, outcomes: tuple[EvaluationOutcome | None, ...] = ()
    ) -> None:
        self.outcomes = outcomes
        finished = sum(1 for o in outcomes if o is not None)
        super().__init__(
            f"dispatch cancelled with {finished} of {len(outcomes)} records finalized"
        )
