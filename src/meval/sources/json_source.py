"""JSON record source supporting whole-array and one-record-per-line files.

Reading resolves a path or glob pattern to a list of files, decodes each file
according to the configured mode and validates every record as soon as it is
decoded. Writing streams records to a single destination, framing them so that
``close`` leaves a syntactically complete document behind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
import json
import logging
import os
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from meval.core.exceptions import (
    ConfigurationError,
    ReadCancelledError,
    RecordDecodeError,
    SourceError,
    ValidationError,
)
from meval.core.validation import validate_record

from .base import RecordSource, StopCheck
from .discovery import resolve_files

if TYPE_CHECKING:
    from meval.core.types import Record, Schema

log = logging.getLogger(__name__)


class JSONMode(str, Enum):
    """Encodings understood by `JSONSource`."""

    ARRAY = "array"  # a single JSON array of objects per file
    LINES = "lines"  # one JSON object per physical line


class JSONSource(RecordSource):
    """Record source backed by JSON or JSON-lines files."""

    format_name = "json"

    def __init__(
        self,
        path: str | os.PathLike[str],
        schema: Schema,
        mode: str | JSONMode = JSONMode.ARRAY,
    ) -> None:
        """Bind a path (or glob pattern), schema and encoding mode.

        Raises:
            ConfigurationError: If the path is empty or the mode is unknown.
        """
        super().__init__(schema)
        text = os.fspath(path) if path is not None else ""
        if not isinstance(text, str) or not text.strip():
            raise ConfigurationError("path is required for JSON source")
        try:
            self.mode = JSONMode(mode or JSONMode.ARRAY)
        except ValueError:
            raise ConfigurationError(
                f"unsupported mode: {mode} (must be 'array' or 'lines')"
            ) from None
        self.path = text
        self._writer: IO[str] | None = None
        self._written = 0
        self._closed = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any], schema: Schema) -> JSONSource:
        """Build a source from a declaration's ``config`` mapping."""
        path = config.get("path")
        if not isinstance(path, str) or not path:
            raise ConfigurationError("path is required for JSON source")
        return cls(path, schema, mode=config.get("mode") or JSONMode.ARRAY)

    # --- Reading ---

    def read(self, should_stop: StopCheck | None = None) -> list[Record]:
        """Read and validate every record from the resolved files.

        Records are returned in file order, then in order within each file.
        Any decode or validation failure aborts the whole read.

        Raises:
            DiscoveryError: If the path resolves to no files.
            RecordDecodeError: If a file or line is not valid JSON records.
            ValidationError: If a record violates the schema.
            ReadCancelledError: If `should_stop` reports true between files;
                carries the records of the files already read.
        """
        files = resolve_files(self.path)
        log.info("Reading %d %s file(s) for %s", len(files), self.mode.value, self.path)

        records: list[Record] = []
        for file_path in files:
            if should_stop is not None and should_stop():
                raise ReadCancelledError(records)
            records.extend(self._read_file(file_path))
        return records

    def _read_file(self, file_path: Path) -> list[Record]:
        try:
            with file_path.open(encoding="utf-8") as f:
                if self.mode is JSONMode.ARRAY:
                    return self._read_array(f, file_path)
                return self._read_lines(f, file_path)
        except OSError as e:
            raise SourceError(f"failed to read file {file_path}: {e}") from e

    def _read_array(self, f: IO[str], file_path: Path) -> list[Record]:
        try:
            document = json.load(f)
        except json.JSONDecodeError as e:
            raise RecordDecodeError(
                f"failed to decode JSON array: {e}", path=file_path
            ) from e
        if not isinstance(document, list):
            raise RecordDecodeError(
                f"expected a JSON array, got {type(document).__name__}",
                path=file_path,
            )

        records: list[Record] = []
        for index, item in enumerate(document):
            records.append(self._accept(item, file_path, index=index))
        return records

    def _read_lines(self, f: IO[str], file_path: Path) -> list[Record]:
        records: list[Record] = []
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                raise RecordDecodeError(
                    f"failed to decode line: {e}", path=file_path, line=line_number
                ) from e
            records.append(self._accept(item, file_path, line=line_number))
        return records

    def _accept(
        self,
        item: Any,
        file_path: Path,
        *,
        index: int | None = None,
        line: int | None = None,
    ) -> Record:
        if not isinstance(item, dict):
            raise RecordDecodeError(
                f"expected a JSON object, got {type(item).__name__}",
                path=file_path,
                index=index,
                line=line,
            )
        try:
            validate_record(item, self.schema)
        except ValidationError as e:
            raise e.locate(path=file_path, index=index, line=line) from None
        return item

    # --- Writing ---

    def write(self, records: Sequence[Record]) -> None:
        """Validate and append records to the destination file.

        The first call creates parent directories and truncates the file.
        Writes are not atomic: when a record fails validation, the records
        before it in the same call are already on disk.

        Raises:
            ValidationError: If a record violates the schema.
            SourceError: If the source is closed or the file cannot be written.
        """
        if self._closed:
            raise SourceError(f"cannot write to closed source: {self.path}")
        writer = self._open_writer()
        try:
            for index, record in enumerate(records):
                try:
                    validate_record(record, self.schema)
                except ValidationError as e:
                    raise e.locate(path=self.path, index=index) from None
                writer.write(self._encode(record))
                self._written += 1
        except OSError as e:
            raise SourceError(f"failed to write file {self.path}: {e}") from e

    def _open_writer(self) -> IO[str]:
        if self._writer is not None:
            return self._writer
        destination = Path(self.path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            writer = destination.open("w", encoding="utf-8", newline="\n")
        except OSError as e:
            raise SourceError(f"failed to create file {self.path}: {e}") from e
        if self.mode is JSONMode.ARRAY:
            writer.write("[\n")
        self._writer = writer
        return writer

    def _encode(self, record: Record) -> str:
        if self.mode is JSONMode.LINES:
            return json.dumps(record, ensure_ascii=False) + "\n"
        body = json.dumps(record, ensure_ascii=False, indent=2)
        return body if self._written == 0 else ",\n" + body

    def close(self) -> None:
        """Write the closing bracket (array mode) and release the file handle."""
        if self._closed:
            return
        self._closed = True
        writer, self._writer = self._writer, None
        if writer is None:
            return
        try:
            if self.mode is JSONMode.ARRAY:
                writer.write("\n]\n" if self._written else "]\n")
        except OSError as e:
            raise SourceError(f"failed to finalize file {self.path}: {e}") from e
        finally:
            writer.close()
        log.debug("Closed %s after writing %d records", self.path, self._written)
