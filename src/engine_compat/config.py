"""Requirement file loader.

Reads the caller's requirement set from a JSON or YAML file (default:
engine-requirements.json in the working directory)::

    {
      "requirements": [
        {"engine": "node", "minVersion": "18"},
        {"engine": "chrome", "minVersion": "100", "maxVersion": "130"}
      ]
    }

The document is validated against ``REQUIREMENTS_SCHEMA`` before it is
turned into a RequirementSet.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from .models import RequirementSet


DEFAULT_REQUIREMENTS_PATH = Path("engine-requirements.json")
REQUIREMENTS_PATH_ENV_VAR = "ENGINE_COMPAT_REQUIREMENTS"

_VERSION_SCHEMA = {"type": "string"}

REQUIREMENTS_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["requirements"],
    "properties": {
        "requirements": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["engine"],
                "properties": {
                    "engine": {"type": "string", "minLength": 1},
                    "minVersion": _VERSION_SCHEMA,
                    "maxVersion": _VERSION_SCHEMA,
                },
                "additionalProperties": False,
            },
        },
    },
}


class ConfigError(RuntimeError):
    """Raised when the requirement file cannot be loaded or is invalid."""


def _resolve_requirements_path(path: Path | str | None = None) -> Path:
    """Resolve the requirement file path.

    Priority:
    1. Explicit path argument
    2. ENGINE_COMPAT_REQUIREMENTS environment variable
    3. engine-requirements.json in the working directory
    """
    if path is not None:
        return Path(path)

    env_path = os.environ.get(REQUIREMENTS_PATH_ENV_VAR)
    if env_path:
        return Path(env_path)

    return DEFAULT_REQUIREMENTS_PATH


def _format_errors(errors: Iterable) -> str:
    messages = []
    for error in errors:
        pointer = "/".join(str(p) for p in error.path)
        messages.append(f"- {pointer or '<root>'}: {error.message}")
    return "\n".join(messages)


def _parse_document(config_path: Path, content: str) -> Any:
    if config_path.suffix.lower() in (".yaml", ".yml"):
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in requirements file: {exc}") from exc

    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in requirements file: {exc}") from exc


def validate_requirements(data: Any) -> RequirementSet:
    """Validate a parsed requirement document and build a RequirementSet.

    Raises:
        ConfigError: If the document does not match REQUIREMENTS_SCHEMA.
    """
    validator = Draft202012Validator(REQUIREMENTS_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        raise ConfigError("Requirements failed validation:\n" + _format_errors(errors))

    try:
        return RequirementSet.from_dict(data)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_requirements(path: Path | str | None = None) -> RequirementSet:
    """Load and validate a requirement set from a JSON or YAML file.

    Args:
        path: Optional path to the file. If not provided, uses the
            ENGINE_COMPAT_REQUIREMENTS env var or falls back to
            engine-requirements.json.

    Raises:
        ConfigError: If the file cannot be read or contains invalid data.
    """
    config_path = _resolve_requirements_path(path)

    if not config_path.exists():
        raise ConfigError(f"Requirements file not found: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read requirements file: {exc}") from exc

    return validate_requirements(_parse_document(config_path, content))
