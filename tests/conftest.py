"""
Global test configuration with support for different test types.
"""

from collections.abc import Callable
import json
import os
from pathlib import Path
from typing import Any

import pytest

from meval.core.types import Schema


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_meval_env(request, monkeypatch):
    """Ensure a clean MEVAL_* environment for each test.

    Harness settings read ``MEVAL_*`` variables, so a developer's shell must
    not leak into test expectations.

    Escape hatch: mark a test with @pytest.mark.allow_env_pollution to keep
    the current environment unchanged.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("MEVAL_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


# --- Shared fixtures ---
@pytest.fixture
def review_schema() -> Schema:
    """Schema used by most source and runner tests."""
    return Schema.of(("id", "string"), ("text", "string"), ("score", "number"))


@pytest.fixture
def review_records() -> list[dict[str, Any]]:
    return [
        {"id": "r1", "text": "Great product", "score": 5},
        {"id": "r2", "text": "Broke after a week", "score": 1},
        {"id": "r3", "text": "Does the job", "score": 3},
    ]


@pytest.fixture
def write_json(tmp_path) -> Callable[..., Path]:
    """Write records to a file under tmp_path as an array or as JSON lines."""

    def _write(name: str, records: list[Any], *, lines: bool = False) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if lines:
            path.write_text(
                "".join(json.dumps(r) + "\n" for r in records), encoding="utf-8"
            )
        else:
            path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with mocked providers",
        "allow_env_pollution: Keep MEVAL_* environment variables for this test",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)
