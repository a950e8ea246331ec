"""Experiment configuration and harness settings.

- MevalConfig: validated experiment document (inputs, outputs, evaluation,
  controls)
- HarnessSettings: environment-driven operational defaults (``MEVAL_*``)
"""

from .loader import load_config, parse_config, validate_config_dict
from .models import (
    AuthConfig,
    ControlsConfig,
    EvaluationConfig,
    ExperimentConfig,
    FieldConfig,
    InputConfig,
    MappingsConfig,
    MevalConfig,
    OutputConfig,
    SchemaConfig,
    SourceDeclaration,
    Strategy,
)
from .settings import HarnessSettings

__all__ = [  # noqa: RUF022
    # Loading
    "load_config",
    "parse_config",
    "validate_config_dict",
    # Document models
    "MevalConfig",
    "ExperimentConfig",
    "InputConfig",
    "OutputConfig",
    "SourceDeclaration",
    "SchemaConfig",
    "FieldConfig",
    "EvaluationConfig",
    "AuthConfig",
    "MappingsConfig",
    "Strategy",
    "ControlsConfig",
    # Settings
    "HarnessSettings",
]
