"""Prompt template rendering.

Placeholders use the ``{{field}}`` syntax. Each placeholder is replaced by the
record's value in its natural text form; placeholders naming fields the record
does not carry stay in the prompt verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import re
from typing import Any

PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")


def format_value(value: Any) -> str:
    """Render a record value as prompt text.

    Strings are inserted as-is, booleans and null use their JSON spelling and
    nested structures are rendered as JSON with sorted keys so the same record
    always yields the same prompt.
    """
    match value:
        case str():
            return value
        case bool() | None:
            return json.dumps(value)
        case int() | float():
            return str(value)
        case _:
            return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


def placeholders(template: str) -> tuple[str, ...]:
    """Return the field names referenced by `template`, in order of appearance."""
    return tuple(m.group(1) for m in PLACEHOLDER.finditer(template))


def render_prompt(template: str, record: Mapping[str, Any]) -> str:
    """Substitute record fields into `template`."""

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in record:
            return match.group(0)
        return format_value(record[name])

    return PLACEHOLDER.sub(_substitute, template)
