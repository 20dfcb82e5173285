"""YAML configuration loading for bulkfs.

Loads bfs.yaml with sandbox roots and per-operation defaults.

Example bfs.yaml:

    version: 1
    log_level: INFO

    sandbox:
      allowed_dirs:
        - .
        - ~/shared

    search:
      max_depth: 10
      max_results: 100

    # Use !include for modular configs
    patch: !include patch.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from bfs.paths import expand_path, find_config_file, get_effective_cwd


# Custom YAML Loader with !include support
class IncludeLoader(yaml.SafeLoader):
    """YAML loader that supports !include tag for modular configs.

    The !include tag loads another YAML file and inlines its contents.
    Paths are resolved relative to the including file.
    """

    _base_path: Path | None = None

    @classmethod
    def with_base_path(cls, base_path: Path) -> type[IncludeLoader]:
        """Create a loader class with a specific base path for includes."""

        class BoundLoader(cls):  # type: ignore[valid-type,misc]
            _base_path = base_path

        return BoundLoader


def _include_constructor(loader: IncludeLoader, node: yaml.Node) -> Any:
    """Handle !include YAML tag by loading the referenced file."""
    include_path = loader.construct_scalar(node)  # type: ignore[arg-type]

    if loader._base_path is None:
        raise yaml.YAMLError(f"Cannot resolve !include path: {include_path}")

    resolved = (loader._base_path / include_path).resolve()

    if not resolved.exists():
        logger.warning(f"!include file not found: {resolved}")
        return None

    try:
        with resolved.open() as f:
            bound_loader = IncludeLoader.with_base_path(resolved.parent)
            return yaml.load(f, Loader=bound_loader)  # noqa: S506
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error loading !include {include_path}: {e}") from e


IncludeLoader.add_constructor("!include", _include_constructor)

# Current config schema version
CURRENT_CONFIG_VERSION = 1


# ==================== Section Models ====================


class SandboxSettings(BaseModel):
    """Sandbox roots every operation is confined to."""

    allowed_dirs: list[str] = Field(
        default_factory=list,
        description="Allowed directories (relative to BFS_CWD). Empty = cwd only.",
    )


class SearchSettings(BaseModel):
    """Defaults for search_files."""

    max_depth: int = Field(
        default=10,
        ge=0,
        le=1000,
        description="Maximum directory depth to search",
    )
    max_results: int = Field(
        default=100,
        ge=1,
        le=100_000,
        description="Maximum number of results to return",
    )
    max_file_size: int = Field(
        default=10_000_000,
        ge=1000,
        le=1_000_000_000,
        description="Files larger than this are not scanned for content",
    )


class CopySettings(BaseModel):
    """Defaults for copy_directory."""

    max_depth: int = Field(
        default=50,
        ge=0,
        le=1000,
        description="Maximum directory depth to copy",
    )


class PatchSettings(BaseModel):
    """Defaults for patch_file."""

    backup_timestamp_format: str = Field(
        default="%Y%m%d-%H%M%S-%f",
        description="strftime format used in backup file names",
    )


class FileSettings(BaseModel):
    """Single-file operation settings."""

    max_file_size: int = Field(
        default=10_000_000,
        ge=1000,
        le=1_000_000_000,
        description="Maximum file size read_file will return (1KB-1GB)",
    )
    use_trash: bool = Field(
        default=False,
        description="Send deleted entries to the trash instead of unlinking",
    )


class BulkFsConfig(BaseModel):
    """Root configuration for bulkfs."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # Private attribute to track config file location (not serialized)
    _config_dir: Path | None = PrivateAttr(default=None)

    version: int = Field(
        default=1,
        description="Config schema version for migration support",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (relative to config dir)",
    )

    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    copy_settings: CopySettings = Field(default_factory=CopySettings, alias="copy")
    patch: PatchSettings = Field(default_factory=PatchSettings)
    file: FileSettings = Field(default_factory=FileSettings)

    def get_allowed_dirs(self) -> list[Path]:
        """Resolve sandbox roots to absolute paths.

        Relative entries resolve against the effective cwd. An empty list
        means the effective cwd only.

        Returns:
            Absolute root directories, in configuration order
        """
        cwd = get_effective_cwd()
        if not self.sandbox.allowed_dirs:
            return [cwd]
        return [expand_path(d, base=cwd) for d in self.sandbox.allowed_dirs]

    def get_log_dir_path(self) -> Path | None:
        """Get the resolved path to the log directory, if configured."""
        if self.log_dir is None:
            return None
        base = self._config_dir or get_effective_cwd()
        return expand_path(self.log_dir, base=base)


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load and parse YAML file with error handling.

    Supports !include tags for modular configuration files.

    Args:
        config_path: Path to YAML file.

    Returns:
        Parsed YAML data as dict.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If YAML is invalid or file can't be read.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open() as f:
            bound_loader = IncludeLoader.with_base_path(config_path.parent)
            raw_data = yaml.load(f, Loader=bound_loader)  # noqa: S506
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Error reading {config_path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Config root must be a mapping in {config_path}")
    return raw_data


def _validate_version(data: dict[str, Any], config_path: Path) -> None:
    """Validate config version and set default if missing.

    Args:
        data: Config data dict (modified in place).
        config_path: Path to config file (for error messages).

    Raises:
        ValueError: If version is unsupported.
    """
    config_version = data.get("version")
    if config_version is None:
        logger.warning(
            f"Config file missing 'version' field, assuming version 1. "
            f"Add 'version: {CURRENT_CONFIG_VERSION}' to {config_path}"
        )
        data["version"] = 1
    elif config_version > CURRENT_CONFIG_VERSION:
        raise ValueError(
            f"Config version {config_version} is not supported. "
            f"Maximum supported version is {CURRENT_CONFIG_VERSION}."
        )


def load_config(config_path: Path | str | None = None) -> BulkFsConfig:
    """Load bulkfs configuration from YAML file.

    Resolution order (when config_path is None):
    1. BFS_CONFIG env var
    2. cwd/.bulkfs/bfs.yaml
    3. ~/.bulkfs/bfs.yaml
    4. Built-in defaults

    Args:
        config_path: Path to config file (overrides resolution)

    Returns:
        Validated BulkFsConfig

    Raises:
        FileNotFoundError: If explicit config path doesn't exist
        ValueError: If YAML is invalid or validation fails
    """
    resolved_path = Path(config_path) if config_path is not None else find_config_file()

    if resolved_path is None:
        logger.debug("No config file found, using defaults")
        return BulkFsConfig()

    logger.debug(f"Loading config from {resolved_path}")

    raw_data = _load_yaml_file(resolved_path)
    _validate_version(raw_data, resolved_path)

    try:
        config = BulkFsConfig.model_validate(raw_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {resolved_path}: {e}") from e

    config._config_dir = resolved_path.parent.resolve()
    logger.info(f"Config loaded: version {config.version}")

    return config


# Global config instance
_config: BulkFsConfig | None = None


def get_config(
    config_path: Path | str | None = None, reload: bool = False
) -> BulkFsConfig:
    """Get or load the global configuration.

    Args:
        config_path: Path to config file (only used on first load)
        reload: Force reload configuration

    Returns:
        BulkFsConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def set_config(config: BulkFsConfig | None) -> None:
    """Replace the global configuration (None clears the cache)."""
    global _config
    _config = config
