"""Path resolution for bulkfs global and project directories.

bulkfs uses a two-tier directory structure:
- Global: ~/.bulkfs/ - user-wide settings
- Project: .bulkfs/ - project-specific config

Nothing is created on import; directories are only read.
"""

from __future__ import annotations

import os
from pathlib import Path

# Directory names
GLOBAL_DIR_NAME = ".bulkfs"
PROJECT_DIR_NAME = ".bulkfs"

CONFIG_FILE_NAME = "bfs.yaml"


def get_effective_cwd() -> Path:
    """Get the effective working directory.

    Returns BFS_CWD if set, else Path.cwd(). This provides a single point
    of control for working directory resolution across the package.

    Returns:
        Resolved Path for working directory
    """
    env_cwd = os.getenv("BFS_CWD")
    if env_cwd:
        return Path(env_cwd).resolve()
    return Path.cwd()


def get_global_dir() -> Path:
    """Get the global bulkfs directory path.

    Returns:
        Path to ~/.bulkfs/ (not necessarily existing)
    """
    return Path.home() / GLOBAL_DIR_NAME


def get_project_dir(start: Path | None = None) -> Path | None:
    """Get the project bulkfs directory.

    Returns cwd/.bulkfs if it exists, else None. No tree-walking.

    Args:
        start: Starting directory (default: get_effective_cwd())

    Returns:
        Path to .bulkfs/ if found, None otherwise
    """
    cwd = start or get_effective_cwd()
    candidate = cwd / PROJECT_DIR_NAME
    if candidate.is_dir():
        return candidate
    return None


def find_config_file() -> Path | None:
    """Find the configuration file.

    Resolution order:
    1. BFS_CONFIG env var
    2. cwd/.bulkfs/bfs.yaml (project-specific)
    3. ~/.bulkfs/bfs.yaml (global)

    Returns:
        Path to config file if found, None otherwise
    """
    env_config = os.getenv("BFS_CONFIG")
    if env_config:
        return Path(env_config)

    project_dir = get_project_dir()
    if project_dir is not None:
        project_config = project_dir / CONFIG_FILE_NAME
        if project_config.exists():
            return project_config

    global_config = get_global_dir() / CONFIG_FILE_NAME
    if global_config.exists():
        return global_config

    return None


def expand_path(path: str | os.PathLike[str], base: Path | None = None) -> Path:
    """Make a user supplied path absolute without following symlinks.

    Relative paths are joined to ``base`` (default: effective cwd); ``~`` is
    expanded; ``..`` segments are normalized lexically.

    Args:
        path: Path string or PathLike
        base: Directory relative paths are resolved against

    Returns:
        Absolute, normalized Path
    """
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = (base or get_effective_cwd()) / p
    return Path(os.path.normpath(p))
