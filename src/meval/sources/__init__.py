"""File-backed record sources."""

from .base import RecordSource
from .discovery import has_wildcard, resolve_files
from .factory import create_source, list_formats, register_source
from .json_source import JSONMode, JSONSource

__all__ = [
    "JSONMode",
    "JSONSource",
    "RecordSource",
    "create_source",
    "has_wildcard",
    "list_formats",
    "register_source",
    "resolve_files",
]
