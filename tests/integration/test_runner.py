"""End-to-end runs: JSON inputs through an evaluator to JSON outputs."""

from __future__ import annotations

import json

import httpx
import pytest

from meval.config import HarnessSettings, validate_config_dict
from meval.core.exceptions import (
    DispatchCancelledError,
    DispatchError,
    ProviderError,
)
from meval.evaluators.base import Evaluator
from meval.runner import EvaluationRunner

pytestmark = pytest.mark.integration


def _document(tmp_path, *, provider="mock", on_error="skip", **evaluation):
    data = {
        "experiment": {"name": "sentiment", "version": "1"},
        "inputs": [
            {
                "id": "reviews",
                "format": "json",
                "config": {"path": str(tmp_path / "in" / "*.jsonl"), "mode": "lines"},
                "schema": {
                    "fields": [
                        {"name": "id", "type": "string"},
                        {"name": "text", "type": "string"},
                    ]
                },
            }
        ],
        "outputs": [
            {
                "id": "labels",
                "format": "json",
                "config": {"path": str(tmp_path / "out" / "labels.json")},
                "schema": {
                    "fields": [
                        {"name": "id", "type": "string"},
                        {"name": "response", "type": "string"},
                    ]
                },
            },
            {
                "id": "labels-lines",
                "format": "json",
                "config": {
                    "path": str(tmp_path / "out" / "labels.jsonl"),
                    "mode": "lines",
                },
                "schema": {"fields": [{"name": "id", "type": "string"}]},
            },
        ],
        "evaluation": {
            "provider": provider,
            "model": "m",
            "strategy": "classification",
            "prompt": "Classify: {{text}}",
            **evaluation,
        },
        "controls": {"concurrency": 2, "on_error": on_error},
    }
    if provider != "mock":
        data["evaluation"].setdefault("auth", {"api_key_env": "TEST_MEVAL_KEY"})
    return validate_config_dict(data)


@pytest.fixture
def inputs(tmp_path):
    folder = tmp_path / "in"
    folder.mkdir()
    (folder / "b.jsonl").write_text(
        json.dumps({"id": "r3", "text": "meh"}) + "\n", encoding="utf-8"
    )
    (folder / "a.jsonl").write_text(
        json.dumps({"id": "r1", "text": "great"})
        + "\n"
        + json.dumps({"id": "r2", "text": "awful"})
        + "\n",
        encoding="utf-8",
    )


def _settings():
    return HarnessSettings(retry_backoff_seconds=0.0, retry_max_backoff_seconds=0.0)


class FailingOn(Evaluator):
    """Fails any prompt containing `marker`."""

    provider_name = "failing"

    def __init__(self, marker):  # noqa: D107
        super().__init__("failing-1")
        self.marker = marker

    async def generate(self, prompt):
        if self.marker in prompt:
            raise ProviderError(f"rejected: {prompt}")
        return {"response": prompt.upper()}, {}


def _factory(evaluator):
    def _create(provider, evaluation, **_kwargs):
        return evaluator

    return _create


@pytest.mark.asyncio
async def test_completed_run_writes_every_output(tmp_path, inputs):
    summary = await EvaluationRunner(_settings()).execute(_document(tmp_path))

    assert summary.experiment == "sentiment"
    assert (summary.total, summary.succeeded, summary.failed) == (3, 3, 0)
    assert summary.outputs_written == 2
    assert summary.records_written == 3

    labels = json.loads((tmp_path / "out" / "labels.json").read_text(encoding="utf-8"))
    assert labels == [
        {"id": "r1", "response": "echo: Classify: great"},
        {"id": "r2", "response": "echo: Classify: awful"},
        {"id": "r3", "response": "echo: Classify: meh"},
    ]
    lines = (tmp_path / "out" / "labels.jsonl").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [{"id": "r1"}, {"id": "r2"}, {"id": "r3"}]


@pytest.mark.asyncio
async def test_skipped_records_are_excluded_from_output(tmp_path, inputs):
    runner = EvaluationRunner(_settings(), evaluator_factory=_factory(FailingOn("awful")))
    summary = await runner.execute(_document(tmp_path))

    assert (summary.total, summary.succeeded, summary.failed) == (3, 2, 1)
    labels = json.loads((tmp_path / "out" / "labels.json").read_text(encoding="utf-8"))
    assert [row["id"] for row in labels] == ["r1", "r3"]


@pytest.mark.asyncio
async def test_fail_policy_raises_and_writes_nothing(tmp_path, inputs):
    runner = EvaluationRunner(_settings(), evaluator_factory=_factory(FailingOn("great")))
    with pytest.raises(DispatchError, match="record 0 failed"):
        await runner.execute(_document(tmp_path, on_error="fail"))
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_exhausted_retries_are_counted(tmp_path, inputs):
    runner = EvaluationRunner(_settings(), evaluator_factory=_factory(FailingOn("meh")))
    summary = await runner.execute(_document(tmp_path, on_error="retry"))
    assert (summary.succeeded, summary.failed) == (2, 1)


@pytest.mark.asyncio
async def test_stopped_runner_raises_cancelled(tmp_path, inputs):
    runner = EvaluationRunner(_settings())
    runner.stop()
    with pytest.raises(DispatchCancelledError):
        await runner.execute(_document(tmp_path))
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_input_mappings_feed_placeholders(tmp_path, inputs):
    document = _document(
        tmp_path,
        prompt="Review: {{review}}",
        mappings={"input": {"review": "text"}},
    )
    await EvaluationRunner(_settings()).execute(document)
    labels = json.loads((tmp_path / "out" / "labels.json").read_text(encoding="utf-8"))
    assert labels[0]["response"] == "echo: Review: great"


@pytest.mark.asyncio
async def test_gemini_run_with_injected_transport(tmp_path, inputs):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-goog-api-key"] == "injected"
        prompt = json.loads(request.content)["contents"][0]["parts"][0]["text"]
        label = "negative" if "awful" in prompt else "positive"
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {
                        "content": {"parts": [{"text": json.dumps({"label": label})}]},
                        "finishReason": "STOP",
                    }
                ]
            },
        )

    document = _document(
        tmp_path,
        provider="gemini",
        mappings={"output": {"response": "output.parsed.label"}},
    )
    runner = EvaluationRunner(
        _settings(), api_key="injected", transport=httpx.MockTransport(handler)
    )
    summary = await runner.execute(document)

    assert summary.succeeded == 3
    labels = json.loads((tmp_path / "out" / "labels.json").read_text(encoding="utf-8"))
    assert [row["response"] for row in labels] == ["positive", "negative", "positive"]
