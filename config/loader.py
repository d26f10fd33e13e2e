"""Configuration loading utilities."""

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from .main_config import Config

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("chatstream.jsonc", "chatstream.json")
GLOBAL_CONFIG_DIR = ".chatstream"

# Environment overrides
DEFAULT_MODEL_ENV = "CHATSTREAM_DEFAULT_MODEL"
PROVIDER_ENV = "CHATSTREAM_PROVIDER"


def strip_jsonc_comments(content: str) -> str:
    """
    Strip comments from JSONC content to convert to valid JSON.

    Handles:
    - Single-line comments: // comment
    - Multi-line comments: /* comment */

    Comment markers inside string literals (e.g. URLs) are left alone.

    Args:
        content: JSONC content string

    Returns:
        JSON string with comments removed
    """
    pattern = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
    return pattern.sub(lambda m: m.group(1) or "", content)


def load_config_file(path: Path) -> dict[str, Any] | None:
    """
    Load a config file from the given path.

    Supports both .json and .jsonc files with comment stripping.

    Args:
        path: Path to the config file

    Returns:
        Parsed config dictionary or None if the file doesn't exist or is invalid
    """
    if not path.exists():
        return None

    try:
        content = path.read_text()
        if path.suffix == ".jsonc":
            content = strip_jsonc_comments(content)
        return json.loads(content)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return None


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Args:
        base: Base configuration
        override: Override configuration (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if os.environ.get(DEFAULT_MODEL_ENV):
        overrides["default_model"] = os.environ[DEFAULT_MODEL_ENV]
    if os.environ.get(PROVIDER_ENV):
        overrides["provider"] = os.environ[PROVIDER_ENV]
    return overrides


def load_config(project_root: Path | None = None) -> Config:
    """
    Load configuration from multiple sources with precedence.

    Sources, lowest precedence first:
    1. Global: ~/.chatstream/chatstream.jsonc
    2. Project-level: chatstream.jsonc, then chatstream.json (first found)
    3. Environment: CHATSTREAM_DEFAULT_MODEL, CHATSTREAM_PROVIDER

    Args:
        project_root: Project root directory (defaults to current working directory)

    Returns:
        Loaded and merged Config model
    """
    if project_root is None:
        project_root = Path.cwd()

    global_config_path = Path.home() / GLOBAL_CONFIG_DIR / CONFIG_FILENAMES[0]
    config_data = load_config_file(global_config_path) or {}

    for name in CONFIG_FILENAMES:
        project_config = load_config_file(project_root / name)
        if project_config:
            config_data = merge_configs(config_data, project_config)
            break

    config_data = merge_configs(config_data, _env_overrides())
    return Config(**config_data)


@lru_cache(maxsize=1)
def get_config(project_root: Path | None = None) -> Config:
    """
    Get cached configuration.

    To reload the config, clear the cache with get_config.cache_clear().

    Args:
        project_root: Project root directory (defaults to current working directory)

    Returns:
        Cached Config model
    """
    return load_config(project_root or Path.cwd())
