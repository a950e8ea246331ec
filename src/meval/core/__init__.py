"""Core types, validation and errors shared across the harness."""

from .exceptions import (
    ConfigurationError,
    DiscoveryError,
    DispatchCancelledError,
    DispatchError,
    MevalError,
    PolicyExhaustionError,
    ProviderError,
    ReadCancelledError,
    RecordDecodeError,
    SourceError,
    UnsupportedFormatError,
    UnsupportedProviderError,
    ValidationError,
)
from .types import (
    DispatchPolicy,
    EvaluationOutcome,
    Field,
    FieldKind,
    OnError,
    Record,
    RunState,
    Schema,
    kind_of,
)
from .validation import check_record, validate_record

__all__ = [  # noqa: RUF022
    # Types
    "Record",
    "Field",
    "FieldKind",
    "Schema",
    "kind_of",
    "DispatchPolicy",
    "OnError",
    "RunState",
    "EvaluationOutcome",
    # Validation
    "check_record",
    "validate_record",
    # Exceptions
    "MevalError",
    "ConfigurationError",
    "ValidationError",
    "DiscoveryError",
    "SourceError",
    "RecordDecodeError",
    "ReadCancelledError",
    "UnsupportedFormatError",
    "UnsupportedProviderError",
    "ProviderError",
    "PolicyExhaustionError",
    "DispatchError",
    "DispatchCancelledError",
]
