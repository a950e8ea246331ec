import pytest

from meval.core.types import EvaluationOutcome, Schema
from meval.projection import (
    MISSING,
    apply_input_mappings,
    project_outcome,
    resolve_path,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def outcome():
    return EvaluationOutcome.success(
        {"id": "r1", "text": "Great", "label": "from-input"},
        {"response": '{"label": "positive"}', "parsed": {"label": "positive", "score": 0.9}},
        {"finishReason": "STOP", "usage": {"totalTokenCount": 16}},
    )


def test_input_mappings_alias_record_fields():
    record = {"body": "hello"}
    aliased = apply_input_mappings(record, {"text": "body", "other": "absent"})
    assert aliased == {"body": "hello", "text": "hello"}
    assert record == {"body": "hello"}


def test_resolve_path():
    context = {"output": {"parsed": {"label": "x"}}}
    assert resolve_path(context, "output.parsed.label") == "x"
    assert resolve_path(context, "output.parsed.missing") is MISSING
    assert resolve_path(context, "output.parsed.label.deeper") is MISSING


def test_default_lookup_prefers_parsed_output(outcome):
    schema = Schema.of(("id", "string"), ("label", "string"), ("score", "number"))
    assert project_outcome(outcome, schema) == {
        "id": "r1",
        "label": "positive",
        "score": 0.9,
    }


def test_default_lookup_falls_back_to_metadata(outcome):
    schema = Schema.of(("finishReason", "string"), ("usage", "object"))
    projected = project_outcome(outcome, schema)
    assert projected == {"finishReason": "STOP", "usage": {"totalTokenCount": 16}}
    assert type(projected["usage"]) is dict


def test_explicit_mappings(outcome):
    schema = Schema.of(("original", "string"), ("raw", "string"), ("tokens", "number"))
    projected = project_outcome(
        outcome,
        schema,
        {
            "original": "input.label",
            "raw": "output.response",
            "tokens": "metadata.usage.totalTokenCount",
        },
    )
    assert projected == {
        "original": "from-input",
        "raw": '{"label": "positive"}',
        "tokens": 16,
    }


def test_missing_values_are_omitted(outcome):
    schema = Schema.of(("id", "string"), ("nowhere", "string"))
    assert project_outcome(outcome, schema, {"id": "input.id"}) == {"id": "r1"}
