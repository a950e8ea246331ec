"""Experiment document schema.

An experiment declares its inputs and outputs (format, location and record
schema), the evaluation to run and the execution controls. Unknown keys are
rejected so that a typo in the document fails loudly instead of being ignored.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from meval.core.types import DispatchPolicy, FieldKind, OnError, Schema
from meval.core.types import Field as SchemaField
from meval.sources.factory import list_formats

from .settings import HarnessSettings


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class ExperimentConfig(_StrictModel):
    """Experiment identity."""

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, v: Any) -> Any:
        """Accept ``version: 1.0`` written without quotes."""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v


class FieldConfig(_StrictModel):
    """One declared record field."""

    name: str = Field(min_length=1)
    type: FieldKind


class SchemaConfig(_StrictModel):
    """Declared record schema."""

    fields: list[FieldConfig] = Field(min_length=1)

    @field_validator("fields")
    @classmethod
    def unique_names(cls, v: list[FieldConfig]) -> list[FieldConfig]:
        """Reject duplicate field names."""
        seen: set[str] = set()
        for field in v:
            if field.name in seen:
                raise ValueError(f"duplicate field name: {field.name}")
            seen.add(field.name)
        return v

    def to_schema(self) -> Schema:
        """Build the immutable runtime schema."""
        return Schema(tuple(SchemaField(f.name, f.type) for f in self.fields))


class SourceDeclaration(_StrictModel):
    """Common shape of input and output declarations."""

    id: str = Field(min_length=1)
    format: str = Field(min_length=1)
    config: dict[str, Any]
    schema_: SchemaConfig = Field(alias="schema")

    @field_validator("config")
    @classmethod
    def require_path(cls, v: dict[str, Any]) -> dict[str, Any]:
        """A source must name where its records live."""
        if "path" not in v:
            raise ValueError("config.path is required")
        return v

    @field_validator("format")
    @classmethod
    def known_format(cls, v: str) -> str:
        """Accept registered format names only, case-insensitively."""
        name = v.strip().lower()
        if name not in list_formats():
            raise ValueError(
                f"unsupported format {v!r}; expected one of: {', '.join(list_formats())}"
            )
        return name


class InputConfig(SourceDeclaration):
    """Where records are read from."""


class OutputConfig(SourceDeclaration):
    """Where results are written to."""


class AuthConfig(_StrictModel):
    """Credential indirection; the secret itself never appears in the document."""

    api_key_env: str = ""


class MappingsConfig(_StrictModel):
    """Field renames applied around evaluation.

    ``input`` maps a placeholder name to the record field that supplies it.
    ``output`` maps an output field to a dotted path such as
    ``output.parsed.label`` or ``input.text``.
    """

    input: dict[str, str] = Field(default_factory=dict)
    output: dict[str, str] = Field(default_factory=dict)


class Strategy(str, Enum):
    """What the evaluation prompt asks the model to do."""

    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    GENERATION = "generation"


class EvaluationConfig(_StrictModel):
    """Provider, model and prompt for the evaluation."""

    provider: str = Field(min_length=1)
    model: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    strategy: Strategy
    prompt: str = Field(min_length=1)
    mappings: MappingsConfig = Field(default_factory=MappingsConfig)

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        """Provider names are case-insensitive."""
        return v.strip().lower()

    @field_validator("prompt")
    @classmethod
    def require_placeholder(cls, v: str) -> str:
        """A prompt without placeholders would ignore every record."""
        if "{{" not in v:
            raise ValueError("prompt must contain at least one template variable")
        return v

    @model_validator(mode="after")
    def require_credential_reference(self) -> EvaluationConfig:
        """Real providers need the name of the variable holding their key."""
        if self.provider != "mock" and not self.auth.api_key_env:
            raise ValueError("auth.api_key_env is required")
        return self


class ControlsConfig(_StrictModel):
    """Execution controls; unset retry fields fall back to harness settings."""

    concurrency: int = Field(ge=1)
    on_error: OnError
    max_retries: int | None = Field(default=None, ge=0)
    retry_backoff_seconds: float | None = Field(default=None, ge=0)
    retry_max_backoff_seconds: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> ControlsConfig:
        """Ensure an explicit backoff ceiling is not below the base delay."""
        if (
            self.retry_backoff_seconds is not None
            and self.retry_max_backoff_seconds is not None
            and self.retry_max_backoff_seconds < self.retry_backoff_seconds
        ):
            raise ValueError(
                "retry_max_backoff_seconds must be >= retry_backoff_seconds"
            )
        return self

    def to_policy(self, settings: HarnessSettings | None = None) -> DispatchPolicy:
        """Build the dispatch policy for this run."""
        s = settings or HarnessSettings()
        base = (
            self.retry_backoff_seconds
            if self.retry_backoff_seconds is not None
            else s.retry_backoff_seconds
        )
        ceiling = (
            self.retry_max_backoff_seconds
            if self.retry_max_backoff_seconds is not None
            else max(s.retry_max_backoff_seconds, base)
        )
        return DispatchPolicy(
            concurrency=self.concurrency,
            on_error=self.on_error,
            max_retries=(
                self.max_retries if self.max_retries is not None else s.max_retries
            ),
            backoff_base=base,
            backoff_max=ceiling,
        )


class MevalConfig(_StrictModel):
    """Root of an experiment document."""

    experiment: ExperimentConfig
    inputs: list[InputConfig] = Field(min_length=1)
    outputs: list[OutputConfig] = Field(min_length=1)
    evaluation: EvaluationConfig
    controls: ControlsConfig
