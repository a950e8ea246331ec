"""YAML experiment document loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pydantic
import yaml

from meval.core.exceptions import ConfigurationError

from .models import MevalConfig

log = logging.getLogger(__name__)


def parse_config(text: str, *, origin: str = "<string>") -> MevalConfig:
    """Decode and validate an experiment document.

    Raises:
        ConfigurationError: If the YAML is malformed or the document does not
            match the experiment schema. Pydantic errors are flattened into
            ``location: message`` lines.
    """
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"failed to decode yaml in {origin}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{origin}: expected a mapping at the top level")
    return validate_config_dict(data, origin=origin)


def validate_config_dict(
    data: dict[str, Any], *, origin: str = "<dict>"
) -> MevalConfig:
    """Validate an already-decoded experiment document."""
    try:
        return MevalConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise ConfigurationError(
            f"invalid configuration in {origin}:\n{_format_errors(e)}"
        ) from e


def load_config(path: str | Path) -> MevalConfig:
    """Read and validate an experiment document from a file."""
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"failed to open file {config_path}: {e}") from e
    config = parse_config(text, origin=str(config_path))
    log.info(
        "Loaded experiment %s v%s from %s",
        config.experiment.name,
        config.experiment.version,
        config_path,
    )
    return config


def _format_errors(error: pydantic.ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"  {location}: {item['msg']}")
    return "\n".join(lines)
