"""Deterministic evaluator used for dry runs and tests (no network)."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from .base import Evaluator, Payload


class MockEvaluator(Evaluator):
    """Echoes the rendered prompt with a rough token estimate."""

    provider_name = "mock"

    def __init__(
        self,
        model: str | None = None,
        params: Mapping[str, Any] | None = None,
        *,
        latency: float = 0.0,
    ) -> None:
        """Create the mock; `latency` adds an artificial delay per call."""
        super().__init__(model or "mock-eval-1", params)
        self.latency = latency

    async def generate(self, prompt: str) -> Payload:
        """Return ``echo: <prompt>`` with usage metadata."""
        if self.latency:
            await asyncio.sleep(self.latency)
        prompt_tokens = len(prompt) // 4 + 10
        output = {"response": f"echo: {prompt}"}
        metadata = {
            "finishReason": "STOP",
            "usage": {
                "promptTokenCount": prompt_tokens,
                "candidatesTokenCount": prompt_tokens,
                "totalTokenCount": prompt_tokens * 2,
            },
        }
        return output, metadata
