"""
Configuration module for the chat streaming service.

Exports the main configuration classes and functions for use throughout the application.
"""

from .defaults import DEFAULT_MODEL_NAME, DEFAULT_PROVIDER
from .loader import get_config, load_config, load_config_file, merge_configs, strip_jsonc_comments
from .main_config import ChatConfig, Config, ModelEntry

__all__ = [
    # Constants
    "DEFAULT_MODEL_NAME",
    "DEFAULT_PROVIDER",
    # Config models
    "Config",
    "ChatConfig",
    "ModelEntry",
    # Loader functions
    "load_config",
    "get_config",
    "load_config_file",
    "merge_configs",
    "strip_jsonc_comments",
]
