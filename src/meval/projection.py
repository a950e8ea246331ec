"""Mapping between records, evaluation outcomes and output records."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from meval.core.types import EvaluationOutcome, Record, Schema

log = logging.getLogger(__name__)

MISSING = object()

_ROOTS = ("input", "output", "metadata")


def apply_input_mappings(record: Record, mappings: Mapping[str, str]) -> Record:
    """Expose record fields under placeholder names.

    Each ``placeholder -> field`` entry copies ``record[field]`` to
    ``placeholder`` in a new record. Entries naming an absent field are
    ignored so the placeholder stays unrendered.
    """
    if not mappings:
        return record
    aliased = dict(record)
    for placeholder, field in mappings.items():
        if field in record:
            aliased[placeholder] = record[field]
    return aliased


def resolve_path(context: Mapping[str, Any], path: str) -> Any:
    """Walk a dotted path through nested mappings.

    Returns `MISSING` when any segment is absent.
    """
    current: Any = context
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def _context(outcome: EvaluationOutcome) -> dict[str, Any]:
    return {
        "input": outcome.input,
        "output": outcome.output or {},
        "metadata": outcome.metadata or {},
    }


def _default_lookup(context: Mapping[str, Any], name: str) -> Any:
    parsed = context["output"].get("parsed")
    if isinstance(parsed, Mapping) and name in parsed:
        return parsed[name]
    for root in _ROOTS:
        if name in context[root]:
            return context[root][name]
    return MISSING


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


def project_outcome(
    outcome: EvaluationOutcome,
    schema: Schema,
    output_mappings: Mapping[str, str] | None = None,
) -> Record:
    """Build an output record holding the fields of `schema`.

    A field listed in `output_mappings` is read from its dotted path, whose
    first segment is ``input``, ``output`` or ``metadata``. Other fields are
    looked up in ``output.parsed``, then ``output``, ``input`` and
    ``metadata``. Values that cannot be found are left out, so the output
    source's validation reports the missing field.
    """
    mappings = output_mappings or {}
    context = _context(outcome)
    projected: Record = {}
    for field in schema:
        if field.name in mappings:
            value = resolve_path(context, mappings[field.name])
        else:
            value = _default_lookup(context, field.name)
        if value is MISSING:
            log.debug("Record %d: no value for output field %s", outcome.index, field.name)
            continue
        projected[field.name] = _plain(value)
    return projected
