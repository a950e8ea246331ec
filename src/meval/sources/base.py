"""Record source contract."""

from __future__ import annotations

import abc
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Self, TypeAlias

if TYPE_CHECKING:
    from meval.core.types import Record, Schema

StopCheck: TypeAlias = "Callable[[], bool]"


class RecordSource(abc.ABC):
    """Reads and writes schema-validated records.

    A source instance is not safe for concurrent use: callers serialize
    ``read``/``write`` calls over its lifetime and must call ``close`` on every
    exit path (or use the source as a context manager).
    """

    format_name: str = "unknown"

    def __init__(self, schema: Schema) -> None:  # noqa: D107
        self.schema = schema

    @abc.abstractmethod
    def read(self, should_stop: StopCheck | None = None) -> list[Record]:
        """Read every record the source resolves to, in order."""
        ...

    @abc.abstractmethod
    def write(self, records: Sequence[Record]) -> None:
        """Append records to the destination."""
        ...

    @abc.abstractmethod
    def close(self) -> None:
        """Finalize framing and release file handles."""
        ...

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
