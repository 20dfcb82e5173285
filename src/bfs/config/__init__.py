"""Centralized configuration for bulkfs.

This module provides a single source of truth for all configuration settings
via YAML configuration.

Usage:
    from bfs.config import get_config, load_config

    config = get_config()
    print(config.log_level)
    print(config.get_allowed_dirs())
"""

from bfs.config.loader import (
    BulkFsConfig,
    CopySettings,
    FileSettings,
    PatchSettings,
    SandboxSettings,
    SearchSettings,
    get_config,
    load_config,
    set_config,
)

__all__ = [
    "BulkFsConfig",
    "CopySettings",
    "FileSettings",
    "PatchSettings",
    "SandboxSettings",
    "SearchSettings",
    "get_config",
    "load_config",
    "set_config",
]
