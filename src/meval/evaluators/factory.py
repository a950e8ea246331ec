"""Provider registry and credential resolution for evaluators.

The factory is the only place that reads the process environment for
secrets. Evaluators receive the resolved key as a constructor argument.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import os
from typing import TYPE_CHECKING, TypeAlias

from meval.core.exceptions import ConfigurationError, UnsupportedProviderError

from .gemini import GeminiEvaluator
from .mock import MockEvaluator

if TYPE_CHECKING:
    import httpx

    from meval.config.models import EvaluationConfig
    from meval.config.settings import HarnessSettings

    from .base import Evaluator

log = logging.getLogger(__name__)


class _BuildContext:
    """Everything a provider constructor may need beyond the document."""

    __slots__ = ("api_key", "config", "settings", "transport")

    def __init__(  # noqa: D107
        self,
        config: EvaluationConfig,
        api_key: str | None,
        settings: HarnessSettings | None,
        transport: httpx.AsyncBaseTransport | None,
    ) -> None:
        self.config = config
        self.api_key = api_key
        self.settings = settings
        self.transport = transport

    def credential(self) -> str:
        if self.api_key:
            return self.api_key
        return resolve_secret(self.config.auth.api_key_env)


EvaluatorConstructor: TypeAlias = "Callable[[_BuildContext], Evaluator]"


def resolve_secret(env_name: str) -> str:
    """Return the value of the environment variable holding a credential.

    Raises:
        ConfigurationError: If the variable name is empty or the variable is
            unset or empty.
    """
    if not env_name:
        raise ConfigurationError("no credential environment variable configured")
    value = os.environ.get(env_name, "")
    if not value:
        raise ConfigurationError(f"environment variable {env_name} is not set")
    return value


def _build_gemini(ctx: _BuildContext) -> Evaluator:
    from meval.config.settings import HarnessSettings

    settings = ctx.settings or HarnessSettings()
    return GeminiEvaluator(
        ctx.credential(),
        ctx.config.model,
        ctx.config.params,
        base_url=settings.gemini_base_url,
        timeout=settings.request_timeout,
        transport=ctx.transport,
    )


def _build_mock(ctx: _BuildContext) -> Evaluator:
    return MockEvaluator(ctx.config.model, ctx.config.params)


def _not_implemented(name: str) -> EvaluatorConstructor:
    def _fail(_ctx: _BuildContext) -> Evaluator:
        raise UnsupportedProviderError(f"{name} evaluator not yet implemented")

    return _fail


_EVALUATOR_REGISTRY: dict[str, EvaluatorConstructor] = {
    "gemini": _build_gemini,
    "mock": _build_mock,
    "openai": _not_implemented("OpenAI"),
    "anthropic": _not_implemented("Anthropic"),
    "bedrock": _not_implemented("Bedrock"),
}


def register_evaluator(name: str, constructor: EvaluatorConstructor) -> None:
    """Register (or replace) the constructor for a provider name."""
    if not name:
        raise ValueError("provider name must be non-empty")
    _EVALUATOR_REGISTRY[name.lower()] = constructor


def list_providers() -> tuple[str, ...]:
    """Return every registered provider name, implemented or reserved."""
    return tuple(sorted(_EVALUATOR_REGISTRY))


def create_evaluator(
    provider: str,
    evaluation_config: EvaluationConfig,
    *,
    api_key: str | None = None,
    settings: HarnessSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Evaluator:
    """Build the evaluator registered for `provider`.

    Args:
        provider: Provider name, matched case-insensitively.
        evaluation_config: The experiment's evaluation section.
        api_key: Explicit credential; skips the environment lookup.
        settings: Harness settings for timeouts and base URLs.
        transport: Optional httpx transport passed to HTTP evaluators.

    Raises:
        UnsupportedProviderError: If the provider is unknown or reserved.
        ConfigurationError: If the credential cannot be resolved.
    """
    name = (provider or "").strip().lower()
    constructor = _EVALUATOR_REGISTRY.get(name)
    if constructor is None:
        raise UnsupportedProviderError(f"unsupported provider: {provider}")
    evaluator = constructor(
        _BuildContext(evaluation_config, api_key, settings, transport)
    )
    log.debug("Created %s evaluator for model %s", name, evaluator.model)
    return evaluator
