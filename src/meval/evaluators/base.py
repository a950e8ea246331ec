"""Evaluator contract shared by every provider adapter."""

from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
import logging
from types import TracebackType
from typing import Any, Self, TypeAlias

from meval.core.exceptions import ProviderError
from meval.core.types import EvaluationOutcome, Record

from .template import render_prompt

log = logging.getLogger(__name__)

Payload: TypeAlias = "tuple[dict[str, Any], dict[str, Any]]"


class Evaluator(abc.ABC):
    """Renders a prompt for one record and performs one provider call.

    Subclasses implement `generate`, which owns request construction and
    response parsing for a single rendered prompt. Instances hold only
    immutable provider configuration, so one evaluator can serve many
    concurrent `evaluate` calls.
    """

    provider_name: str = "unknown"

    def __init__(self, model: str, params: Mapping[str, Any] | None = None):  # noqa: D107
        self.model = model
        self.params: Mapping[str, Any] = dict(params or {})

    @abc.abstractmethod
    async def generate(self, prompt: str) -> Payload:
        """Send a rendered prompt and return ``(output, metadata)``.

        Raises:
            ProviderError: On transport failure, non-success status or a
                response missing its expected structure.
        """
        ...

    async def evaluate(self, record: Record, prompt: str) -> EvaluationOutcome:
        """Evaluate one record against a prompt template.

        Provider failures are returned as failed outcomes; they never produce
        a partial payload.
        """
        rendered = render_prompt(prompt, record)
        try:
            output, metadata = await self.generate(rendered)
        except ProviderError as e:
            log.debug("%s evaluation failed: %s", self.provider_name, e)
            return EvaluationOutcome.failure(record, e)
        return EvaluationOutcome.success(record, output, metadata)

    async def batch_evaluate(
        self, records: Sequence[Record], prompt: str
    ) -> list[EvaluationOutcome]:
        """Evaluate records one after another, continuing past failures."""
        outcomes: list[EvaluationOutcome] = []
        for index, record in enumerate(records):
            outcome = await self.evaluate(record, prompt)
            outcomes.append(outcome.placed(index, outcome.attempts))
        return outcomes

    async def aclose(self) -> None:
        """Release provider resources. The base implementation holds none."""
        return None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
