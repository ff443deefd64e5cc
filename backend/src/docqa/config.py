"""TOML configuration for docqa.

String values may reference the environment as ``${NAME}`` or
``${NAME:-fallback}``; unset variables without a fallback become ``""``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import toml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config.toml"
CONFIG_ENV_VAR = "DOCQA_CONFIG"

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")

# backend/src/docqa/config.py -> project root
_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def find_config_path(explicit_path: Path | None = None) -> Path:
    """Locate the config file.

    Order: ``explicit_path``, ``$DOCQA_CONFIG``, ``./config.toml``, then the
    project root.
    """
    if explicit_path:
        return explicit_path

    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)

    for candidate in (Path(DEFAULT_CONFIG_NAME), _PROJECT_ROOT / DEFAULT_CONFIG_NAME):
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"{DEFAULT_CONFIG_NAME} not found")


def load_config(config_path: Path = Path(DEFAULT_CONFIG_NAME)) -> dict[str, Any]:
    """Read ``config_path`` and expand environment references."""
    config = _expand(toml.load(config_path))
    logger.debug(f"Loaded config from {config_path}: sections {sorted(config)}")
    return config


def loads_config(content: str) -> dict[str, Any]:
    return _expand(toml.loads(content))


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group("name"), m.group("fallback") or ""), value
        )
    if isinstance(value, dict):
        return {key: _expand(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item) for item in value]
    return value


def get_config_value(config: dict, key_path: str, default: Any = None) -> Any:
    """Look up a dotted path such as ``"retrieval.top_k"``.

    Returns ``default`` as soon as a segment is missing or the value along
    the way is not a table.
    """
    node: Any = config
    for key in key_path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def get_section(config: dict, section: str) -> dict[str, Any]:
    """Return a copy of a top-level table, or an empty dict when absent."""
    value = config.get(section, {})
    return dict(value) if isinstance(value, dict) else {}


def with_overrides(config: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``config`` with dotted-path ``overrides`` applied.

    ``None`` values are skipped so optional CLI flags can be passed through.
    """
    result = {key: dict(value) if isinstance(value, dict) else value for key, value in config.items()}
    for key_path, value in overrides.items():
        if value is None:
            continue
        section, _, key = key_path.partition(".")
        if not key:
            result[section] = value
            continue
        table = result.get(section)
        if not isinstance(table, dict):
            table = {}
        result[section] = {**table, key: value}
    return result
