"""File discovery for record sources."""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path

from meval.core.exceptions import DiscoveryError

log = logging.getLogger(__name__)

_WILDCARD_CHARS = frozenset("*?[")


def has_wildcard(pattern: str) -> bool:
    """Return True when `pattern` contains glob metacharacters."""
    return any(ch in _WILDCARD_CHARS for ch in pattern)


def resolve_files(pattern: str | os.PathLike[str]) -> list[Path]:
    """Resolve a path or glob pattern to an ordered list of regular files.

    A literal path naming an existing file resolves to itself. Anything else
    is glob-expanded (``**`` matches nested directories), directories are
    dropped and the matches are sorted so that resolution order is stable
    across platforms.

    Raises:
        DiscoveryError: If nothing but directories (or nothing at all) matches.
    """
    text = os.fspath(pattern)
    if not has_wildcard(text) and Path(text).is_file():
        return [Path(text)]

    matches = sorted(glob.glob(text, recursive=True))
    files = [Path(m) for m in matches if Path(m).is_file()]
    if not files:
        raise DiscoveryError(text)
    log.debug("Resolved %s to %d files", text, len(files))
    return files
