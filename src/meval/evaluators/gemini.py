"""Gemini ``generateContent`` evaluator over HTTP.

Requests carry the rendered prompt as a single text part plus a
``generationConfig`` derived from the evaluation params. The first candidate's
first text part becomes the payload; when that text looks like JSON it is also
parsed and exposed under ``parsed``. Safety ratings, finish reason and token
usage are attached as metadata whenever the response includes them.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import Any

import httpx

from meval.core.exceptions import ConfigurationError, ProviderError

from .base import Evaluator, Payload

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT = 30.0

# Evaluation param name -> generationConfig field
_GENERATION_PARAMS: dict[str, str] = {
    "temperature": "temperature",
    "max_tokens": "maxOutputTokens",
    "max_output_tokens": "maxOutputTokens",
    "top_p": "topP",
    "top_k": "topK",
    "stop": "stopSequences",
    "candidate_count": "candidateCount",
}

# Candidate/response field -> metadata key
_CANDIDATE_METADATA = {"safetyRatings": "safetyRatings", "finishReason": "finishReason"}
_RESPONSE_METADATA = {"usageMetadata": "usage", "modelVersion": "modelVersion"}


def build_request_body(prompt: str, params: Mapping[str, Any]) -> dict[str, Any]:
    """Build a ``generateContent`` request body for one prompt."""
    body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
    generation_config = {
        target: params[name]
        for name, target in _GENERATION_PARAMS.items()
        if name in params
    }
    if generation_config:
        body["generationConfig"] = generation_config
    return body


def parse_response(response: Mapping[str, Any]) -> Payload:
    """Extract ``(output, metadata)`` from a ``generateContent`` response.

    Raises:
        ProviderError: If the candidate/content/parts/text structure is missing.
    """
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ProviderError("no candidates in response")
    candidate = candidates[0]
    if not isinstance(candidate, Mapping):
        raise ProviderError("invalid candidate format")
    content = candidate.get("content")
    if not isinstance(content, Mapping):
        raise ProviderError("no content in candidate")
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts:
        raise ProviderError("no parts in content")
    part = parts[0]
    if not isinstance(part, Mapping):
        raise ProviderError("invalid part format")
    text = part.get("text")
    if not isinstance(text, str):
        raise ProviderError("no text in part")

    output: dict[str, Any] = {"response": text}
    parsed = _maybe_parse_json(text)
    if parsed is not None:
        output["parsed"] = parsed

    metadata: dict[str, Any] = {}
    for source, target in _CANDIDATE_METADATA.items():
        if source in candidate:
            metadata[target] = candidate[source]
    for source, target in _RESPONSE_METADATA.items():
        if source in response:
            metadata[target] = response[source]
    return output, metadata


def _maybe_parse_json(text: str) -> Any | None:
    trimmed = text.strip()
    if not trimmed.startswith(("{", "[")):
        return None
    try:
        return json.loads(trimmed)
    except json.JSONDecodeError:
        log.debug("Response text looked like JSON but did not parse")
        return None


class GeminiEvaluator(Evaluator):
    """Evaluator for Google's Gemini REST API."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        params: Mapping[str, Any] | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create an evaluator bound to one model.

        Args:
            api_key: Resolved credential; never read from the environment here.
            model: Gemini model identifier, e.g. ``gemini-2.0-flash``.
            params: Generation parameters (temperature, max_tokens, ...).
            base_url: API root, overridable for proxies and tests.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, used by tests to fake the API.
        """
        if not api_key:
            raise ConfigurationError("Gemini evaluator requires an API key")
        if not model:
            raise ConfigurationError("Gemini evaluator requires a model")
        super().__init__(model, params)
        self._url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "x-goog-api-key": api_key},
        )

    async def generate(self, prompt: str) -> Payload:
        """Call ``generateContent`` and parse the first candidate."""
        body = build_request_body(prompt, self.params)
        try:
            response = await self._client.post(self._url, json=body)
        except httpx.TimeoutException as e:
            raise ProviderError(f"API request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"API request failed: {e}") from e

        if not response.is_success:
            raise ProviderError(
                f"API returned status {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"failed to decode response: {e}") from e
        if not isinstance(payload, Mapping):
            raise ProviderError("response is not a JSON object")
        return parse_response(payload)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
    return json.dumps(body)[:200]
