"""Name-keyed registry of record source constructors.

Formats are closed over a small registry instead of a construction switch.
Reserved formats are registered with a constructor that always fails, so an
unimplemented format is reported explicitly instead of falling back silently.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from meval.core.exceptions import UnsupportedFormatError

from .json_source import JSONSource

if TYPE_CHECKING:
    from meval.core.types import Schema

    from .base import RecordSource

SourceConstructor: TypeAlias = "Callable[[Mapping[str, Any], Schema], RecordSource]"


def _not_implemented(name: str) -> SourceConstructor:
    def _fail(_config: Mapping[str, Any], _schema: Schema) -> RecordSource:
        raise UnsupportedFormatError(f"{name} source not yet implemented")

    return _fail


_SOURCE_REGISTRY: dict[str, SourceConstructor] = {
    "json": JSONSource.from_config,
    "csv": _not_implemented("CSV"),
    "parquet": _not_implemented("Parquet"),
}


def register_source(name: str, constructor: SourceConstructor) -> None:
    """Register (or replace) the constructor for a format name."""
    if not name:
        raise ValueError("format name must be non-empty")
    _SOURCE_REGISTRY[name.lower()] = constructor


def list_formats() -> tuple[str, ...]:
    """Return every registered format name, implemented or reserved."""
    return tuple(sorted(_SOURCE_REGISTRY))


def create_source(
    config: Mapping[str, Any], fmt: str, schema: Schema
) -> RecordSource:
    """Build the record source registered for `fmt`.

    Raises:
        UnsupportedFormatError: If the format is unknown or not implemented.
        ConfigurationError: If the source rejects its configuration.
    """
    constructor = _SOURCE_REGISTRY.get((fmt or "").lower())
    if constructor is None:
        raise UnsupportedFormatError(f"unsupported format: {fmt}")
    return constructor(config, schema)
