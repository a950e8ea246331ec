"""Experiment document loading, validation and harness settings."""

from __future__ import annotations

import textwrap

import pytest

from meval.config import HarnessSettings, load_config, parse_config
from meval.core.exceptions import ConfigurationError
from meval.core.types import FieldKind, OnError

pytestmark = pytest.mark.unit

VALID = textwrap.dedent(
    """
    experiment:
      name: sentiment
      version: 1.0
    inputs:
      - id: reviews
        format: json
        config: {path: data/reviews.jsonl, mode: lines}
        schema:
          fields:
            - {name: id, type: string}
            - {name: text, type: string}
    outputs:
      - id: labels
        format: JSON
        config: {path: out/labels.json}
        schema:
          fields:
            - {name: id, type: string}
            - {name: label, type: string}
    evaluation:
      provider: Gemini
      model: gemini-2.0-flash
      params: {temperature: 0.0}
      auth: {api_key_env: GEMINI_API_KEY}
      strategy: classification
      prompt: "Classify: {{text}}"
    controls:
      concurrency: 4
      on_error: retry
    """
)


def _replace(old: str, new: str) -> str:
    assert old in VALID
    return VALID.replace(old, new)


class TestParseConfig:
    def test_valid_document(self):
        config = parse_config(VALID)
        assert config.experiment.name == "sentiment"
        assert config.experiment.version == "1.0"
        assert config.evaluation.provider == "gemini"
        assert config.outputs[0].format == "json"
        assert config.controls.on_error is OnError.RETRY
        schema = config.inputs[0].schema_.to_schema()
        assert schema.names == ("id", "text")
        assert schema.fields[0].kind is FieldKind.STRING

    @pytest.mark.parametrize(
        "old, new, location",
        [
            ("name: sentiment", "name: ''", "experiment.name"),
            ("format: json", "format: xml", "inputs.0.format"),
            ("config: {path: out/labels.json}", "config: {}", "outputs.0.config"),
            ("- {name: label, type: string}", "- {name: id, type: number}", "outputs.0.schema.fields"),
            ("- {name: text, type: string}", "- {name: text, type: date}", "inputs.0.schema.fields.1.type"),
            ('prompt: "Classify: {{text}}"', "prompt: Classify", "evaluation.prompt"),
            ("auth: {api_key_env: GEMINI_API_KEY}", "auth: {}", "evaluation"),
            ("concurrency: 4", "concurrency: 0", "controls.concurrency"),
            ("on_error: retry", "on_error: ignore", "controls.on_error"),
            ("strategy: classification", "strategy: classification\n  extra: 1", "evaluation.extra"),
        ],
    )
    def test_invalid_documents_name_the_location(self, old, new, location):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config(_replace(old, new))
        assert location in str(exc_info.value)

    def test_inputs_are_required(self):
        document = VALID.split("inputs:")[0] + "inputs: []\n" + "outputs:" + VALID.split(
            "outputs:"
        )[1]
        with pytest.raises(ConfigurationError, match="inputs"):
            parse_config(document)

    def test_mock_provider_needs_no_credential(self):
        config = parse_config(
            _replace("auth: {api_key_env: GEMINI_API_KEY}", "auth: {}").replace(
                "provider: Gemini", "provider: mock"
            )
        )
        assert config.evaluation.provider == "mock"

    def test_malformed_yaml(self):
        with pytest.raises(ConfigurationError, match="failed to decode yaml"):
            parse_config("experiment: [unclosed")

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            parse_config("- just\n- a list\n")


def test_load_config_from_file(tmp_path):
    path = tmp_path / "experiment.yaml"
    path.write_text(VALID, encoding="utf-8")
    assert load_config(path).experiment.name == "sentiment"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to open file"):
        load_config(tmp_path / "missing.yaml")


class TestPolicy:
    def test_retry_fields_fall_back_to_settings(self):
        config = parse_config(VALID)
        settings = HarnessSettings(max_retries=5, retry_backoff_seconds=0.1)
        policy = config.controls.to_policy(settings)
        assert policy.concurrency == 4
        assert policy.on_error is OnError.RETRY
        assert policy.max_retries == 5
        assert policy.backoff_base == 0.1
        assert policy.backoff_max == 8.0

    def test_document_overrides_settings(self):
        config = parse_config(
            _replace(
                "on_error: retry",
                "on_error: retry\n  max_retries: 1\n  retry_backoff_seconds: 2\n"
                "  retry_max_backoff_seconds: 4",
            )
        )
        policy = config.controls.to_policy(HarnessSettings())
        assert (policy.max_retries, policy.backoff_base, policy.backoff_max) == (1, 2.0, 4.0)

    def test_inverted_backoff_bounds_are_rejected(self):
        with pytest.raises(ConfigurationError, match="retry_max_backoff_seconds"):
            parse_config(
                _replace(
                    "on_error: retry",
                    "on_error: retry\n  retry_backoff_seconds: 2\n"
                    "  retry_max_backoff_seconds: 1",
                )
            )


class TestHarnessSettings:
    def test_defaults(self):
        settings = HarnessSettings()
        assert settings.request_timeout == 30.0
        assert settings.max_retries == 3
        assert settings.gemini_base_url.startswith("https://generativelanguage")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MEVAL_REQUEST_TIMEOUT", "5")
        monkeypatch.setenv("MEVAL_MAX_RETRIES", "0")
        settings = HarnessSettings()
        assert settings.request_timeout == 5.0
        assert settings.max_retries == 0

    def test_inverted_bounds_are_rejected(self, monkeypatch):
        monkeypatch.setenv("MEVAL_RETRY_BACKOFF_SECONDS", "10")
        with pytest.raises(ValueError, match="retry_max_backoff_seconds"):
            HarnessSettings()
