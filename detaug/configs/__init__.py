"""Configuration management for detaug.

This module provides YAML-based pipeline configuration with dot notation
access and inheritance support.

Example:
    >>> from detaug.configs import load_config, build_transform_config
    >>> config = load_config("pipeline.yaml")
    >>> transform_config = build_transform_config(config)
"""

from .config import (
    Config,
    ConfigDict,
    build_transform_config,
    get_default_config,
    load_config,
)

__all__ = [
    "Config",
    "ConfigDict",
    "load_config",
    "get_default_config",
    "build_transform_config",
]
