"""Evaluation harness for running prompt templates over record datasets."""

import importlib.metadata
import logging

from meval.config import HarnessSettings, MevalConfig, load_config, parse_config
from meval.core.exceptions import (
    ConfigurationError,
    DiscoveryError,
    DispatchCancelledError,
    DispatchError,
    MevalError,
    PolicyExhaustionError,
    ProviderError,
    ReadCancelledError,
    RecordDecodeError,
    SourceError,
    UnsupportedFormatError,
    UnsupportedProviderError,
    ValidationError,
)
from meval.core.types import (
    DispatchPolicy,
    EvaluationOutcome,
    Field,
    FieldKind,
    OnError,
    Record,
    RunState,
    Schema,
)
from meval.dispatch import BatchDispatcher, DispatchReport
from meval.evaluators import (
    Evaluator,
    GeminiEvaluator,
    MockEvaluator,
    create_evaluator,
    register_evaluator,
    render_prompt,
)
from meval.runner import EvaluationRunner, RunSummary
from meval.sources import (
    JSONMode,
    JSONSource,
    RecordSource,
    create_source,
    register_source,
)

# Version handling
try:
    __version__ = importlib.metadata.version("meval")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logging stays silent unless the application configures handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Running experiments
    "EvaluationRunner",
    "RunSummary",
    "load_config",
    "parse_config",
    "MevalConfig",
    "HarnessSettings",
    # Dispatch
    "BatchDispatcher",
    "DispatchReport",
    "DispatchPolicy",
    "OnError",
    "RunState",
    # Records and schemas
    "Record",
    "Schema",
    "Field",
    "FieldKind",
    "EvaluationOutcome",
    # Sources
    "RecordSource",
    "JSONSource",
    "JSONMode",
    "create_source",
    "register_source",
    # Evaluators
    "Evaluator",
    "GeminiEvaluator",
    "MockEvaluator",
    "create_evaluator",
    "register_evaluator",
    "render_prompt",
    # Exceptions
    "MevalError",
    "ConfigurationError",
    "ValidationError",
    "DiscoveryError",
    "SourceError",
    "RecordDecodeError",
    "ReadCancelledError",
    "UnsupportedFormatError",
    "UnsupportedProviderError",
    "ProviderError",
    "PolicyExhaustionError",
    "DispatchError",
    "DispatchCancelledError",
]
