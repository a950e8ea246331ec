"""Core data types shared by sources, evaluators and the dispatcher.

Records are plain JSON-shaped mappings. Schemas, policies and outcomes are
immutable dataclasses validated at construction, so an invalid instance can
never flow into the rest of the harness.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
from enum import Enum
from types import MappingProxyType
import typing

# --- JSON value model ---

JSONValue: typing.TypeAlias = (
    "str | int | float | bool | None | list[JSONValue] | dict[str, JSONValue]"
)
Record: typing.TypeAlias = "dict[str, JSONValue]"


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def _freeze_mapping(
    m: typing.Mapping[str, typing.Any] | None,
) -> typing.Mapping[str, typing.Any] | None:
    """Return an immutable mapping view or None."""
    if m is None or isinstance(m, MappingProxyType):
        return m
    return MappingProxyType(dict(m))


# --- Schema ---


class FieldKind(str, Enum):
    """Kinds a schema field may declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"

    @classmethod
    def parse(cls, value: str | FieldKind) -> FieldKind:
        """Parse a kind name, raising ValueError for unknown names."""
        if isinstance(value, FieldKind):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValueError(
                f"unsupported field type {value!r}; expected one of: {allowed}"
            ) from None


def kind_of(value: object) -> FieldKind | str:
    """Classify a decoded value.

    Returns the matching `FieldKind`, or a descriptive name (``"null"`` or the
    Python type name) for values no schema kind accepts. Booleans are matched
    before numbers because ``bool`` is a subclass of ``int``.
    """
    match value:
        case bool():
            return FieldKind.BOOLEAN
        case int() | float():
            return FieldKind.NUMBER
        case str():
            return FieldKind.STRING
        case list() | tuple():
            return FieldKind.ARRAY
        case Mapping():
            return FieldKind.OBJECT
        case None:
            return "null"
        case _:
            return type(value).__name__


@dataclasses.dataclass(frozen=True, slots=True)
class Field:
    """A named, typed schema field."""

    name: str
    kind: FieldKind

    def __post_init__(self) -> None:
        """Validate the field name and normalize the kind."""
        _require(
            condition=isinstance(self.name, str) and bool(self.name),
            message="must be a non-empty string",
            field_name="name",
        )
        object.__setattr__(self, "kind", FieldKind.parse(self.kind))

    def accepts(self, value: object) -> bool:
        """Return True when `value` matches this field's kind."""
        return kind_of(value) is self.kind


@dataclasses.dataclass(frozen=True, slots=True)
class Schema:
    """Ordered set of required fields a record must carry."""

    fields: tuple[Field, ...]

    def __post_init__(self) -> None:
        """Enforce tuple storage and unique field names."""
        object.__setattr__(self, "fields", tuple(self.fields))
        _require(
            condition=all(isinstance(f, Field) for f in self.fields),
            message="must contain Field instances",
            field_name="fields",
            exc=TypeError,
        )
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        _require(
            condition=not duplicates,
            message=f"duplicate field names: {', '.join(duplicates)}",
            field_name="fields",
        )

    @classmethod
    def of(cls, *pairs: tuple[str, str | FieldKind]) -> Schema:
        """Build a schema from ``(name, kind)`` pairs."""
        return cls(tuple(Field(name, FieldKind.parse(kind)) for name, kind in pairs))

    @property
    def names(self) -> tuple[str, ...]:
        """Field names in declared order."""
        return tuple(f.name for f in self.fields)

    def __iter__(self) -> typing.Iterator[Field]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


# --- Dispatch ---


class OnError(str, Enum):
    """Per-record failure handling modes."""

    RETRY = "retry"
    SKIP = "skip"
    FAIL = "fail"


class RunState(str, Enum):
    """Lifecycle of a dispatch run."""

    PENDING = "pending"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclasses.dataclass(frozen=True, slots=True)
class DispatchPolicy:
    """Concurrency bound and error handling for one batch run.

    Retry attempts wait ``min(backoff_max, backoff_base * 2**(n-1))`` seconds
    plus up to 25% jitter before the n-th retry.
    """

    concurrency: int = 1
    on_error: OnError = OnError.FAIL
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 8.0

    def __post_init__(self) -> None:
        """Validate policy invariants."""
        _require(
            condition=isinstance(self.concurrency, int)
            and not isinstance(self.concurrency, bool)
            and self.concurrency >= 1,
            message="must be an integer >= 1",
            field_name="concurrency",
        )
        object.__setattr__(self, "on_error", OnError(self.on_error))
        _require(
            condition=self.max_retries >= 0,
            message="must be >= 0",
            field_name="max_retries",
        )
        _require(
            condition=self.backoff_base >= 0,
            message="must be >= 0",
            field_name="backoff_base",
        )
        _require(
            condition=self.backoff_max >= self.backoff_base,
            message="must be >= backoff_base",
            field_name="backoff_max",
        )

    def backoff_delay(self, attempt: int) -> float:
        """Base delay (without jitter) before retry number `attempt` (1-based)."""
        return min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))


@dataclasses.dataclass(frozen=True, slots=True)
class EvaluationOutcome:
    """Result of evaluating a single record.

    Exactly one of `output` and `error` is set for a completed attempt.
    """

    input: Record
    output: typing.Mapping[str, typing.Any] | None = None
    metadata: typing.Mapping[str, typing.Any] | None = None
    error: BaseException | None = None
    index: int = 0
    attempts: int = 1

    def __post_init__(self) -> None:
        """Freeze payload mappings and check the output/error exclusivity."""
        _require(
            condition=not (self.output is not None and self.error is not None),
            message="an outcome cannot carry both output and error",
        )
        object.__setattr__(self, "output", _freeze_mapping(self.output))
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    @property
    def ok(self) -> bool:
        """True when the record produced a payload."""
        return self.error is None and self.output is not None

    @property
    def failed(self) -> bool:
        """True when the record ended in a failure."""
        return self.error is not None

    @classmethod
    def success(
        cls,
        record: Record,
        output: typing.Mapping[str, typing.Any],
        metadata: typing.Mapping[str, typing.Any] | None = None,
        *,
        index: int = 0,
    ) -> EvaluationOutcome:
        """Build a successful outcome."""
        return cls(input=record, output=output, metadata=metadata or {}, index=index)

    @classmethod
    def failure(
        cls, record: Record, error: BaseException, *, index: int = 0
    ) -> EvaluationOutcome:
        """Build a failed outcome."""
        return cls(input=record, error=error, index=index)

    def placed(self, index: int, attempts: int) -> EvaluationOutcome:
        """Return a copy bound to its original input position."""
        return dataclasses.replace(self, index=index, attempts=attempts)
