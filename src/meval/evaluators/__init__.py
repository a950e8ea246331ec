"""Prompt rendering and provider evaluators."""

from .base import Evaluator, Payload
from .factory import (
    create_evaluator,
    list_providers,
    register_evaluator,
    resolve_secret,
)
from .gemini import GeminiEvaluator, build_request_body, parse_response
from .mock import MockEvaluator
from .template import format_value, placeholders, render_prompt

__all__ = [  # noqa: RUF022
    "Evaluator",
    "Payload",
    "GeminiEvaluator",
    "MockEvaluator",
    "build_request_body",
    "parse_response",
    # Templates
    "render_prompt",
    "placeholders",
    "format_value",
    # Registry
    "create_evaluator",
    "register_evaluator",
    "list_providers",
    "resolve_secret",
]
