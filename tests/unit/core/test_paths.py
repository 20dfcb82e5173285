"""Unit tests for bfs.paths module.

Tests path resolution logic including:
- get_effective_cwd() with and without BFS_CWD
- Config file resolution order
- expand_path() normalization
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.mark.unit
@pytest.mark.core
def test_get_effective_cwd_returns_cwd_by_default() -> None:
    """Verify get_effective_cwd() returns Path.cwd() when BFS_CWD not set."""
    from bfs.paths import get_effective_cwd

    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("BFS_CWD", None)
        result = get_effective_cwd()

    assert result == Path.cwd()


@pytest.mark.unit
@pytest.mark.core
def test_get_effective_cwd_uses_bfs_cwd_env_var(tmp_path: Path) -> None:
    """Verify get_effective_cwd() uses BFS_CWD when set."""
    from bfs.paths import get_effective_cwd

    with patch.dict(os.environ, {"BFS_CWD": str(tmp_path)}):
        result = get_effective_cwd()

    assert result == tmp_path.resolve()


@pytest.mark.unit
@pytest.mark.core
def test_get_effective_cwd_resolves_relative_bfs_cwd() -> None:
    from bfs.paths import get_effective_cwd

    with patch.dict(os.environ, {"BFS_CWD": "demo"}):
        result = get_effective_cwd()

    assert result.is_absolute()
    assert result.name == "demo"


@pytest.mark.unit
@pytest.mark.core
def test_get_global_dir_returns_home_bulkfs() -> None:
    from bfs.paths import get_global_dir

    assert get_global_dir() == Path.home() / ".bulkfs"


@pytest.mark.unit
@pytest.mark.core
def test_get_project_dir_returns_none_when_not_exists(tmp_path: Path) -> None:
    from bfs.paths import get_project_dir

    assert get_project_dir(start=tmp_path) is None


@pytest.mark.unit
@pytest.mark.core
def test_get_project_dir_uses_effective_cwd(tmp_path: Path) -> None:
    """Verify get_project_dir() uses get_effective_cwd() when no start given."""
    from bfs.paths import get_project_dir

    project_dir = tmp_path / ".bulkfs"
    project_dir.mkdir()

    with patch.dict(os.environ, {"BFS_CWD": str(tmp_path)}):
        result = get_project_dir()

    assert result == tmp_path.resolve() / ".bulkfs"


@pytest.mark.unit
@pytest.mark.core
class TestFindConfigFile:
    """Config file resolution order: BFS_CONFIG, project, global."""

    @pytest.fixture(autouse=True)
    def _isolate(self, tmp_path: Path):
        self.project = tmp_path / "project"
        self.home = tmp_path / "home"
        self.project.mkdir()
        self.home.mkdir()
        env = {"BFS_CWD": str(self.project)}
        with patch.dict(os.environ, env), patch.object(Path, "home", return_value=self.home):
            os.environ.pop("BFS_CONFIG", None)
            yield

    def test_env_var_wins(self, tmp_path: Path) -> None:
        from bfs.paths import find_config_file

        explicit = tmp_path / "explicit.yaml"
        (self.project / ".bulkfs").mkdir()
        (self.project / ".bulkfs" / "bfs.yaml").write_text("version: 1\n")

        with patch.dict(os.environ, {"BFS_CONFIG": str(explicit)}):
            assert find_config_file() == explicit

    def test_project_before_global(self) -> None:
        from bfs.paths import find_config_file

        (self.project / ".bulkfs").mkdir()
        project_config = self.project / ".bulkfs" / "bfs.yaml"
        project_config.write_text("version: 1\n")
        (self.home / ".bulkfs").mkdir()
        (self.home / ".bulkfs" / "bfs.yaml").write_text("version: 1\n")

        assert find_config_file() == project_config.resolve()

    def test_falls_back_to_global(self) -> None:
        from bfs.paths import find_config_file

        (self.home / ".bulkfs").mkdir()
        global_config = self.home / ".bulkfs" / "bfs.yaml"
        global_config.write_text("version: 1\n")

        assert find_config_file() == global_config

    def test_none_when_not_found(self) -> None:
        from bfs.paths import find_config_file

        assert find_config_file() is None


@pytest.mark.unit
@pytest.mark.core
def test_expand_path_expands_home() -> None:
    from bfs.paths import expand_path

    assert expand_path("~/projects") == Path.home() / "projects"


@pytest.mark.unit
@pytest.mark.core
def test_expand_path_joins_base_and_normalizes(tmp_path: Path) -> None:
    """Relative paths join the base; '..' is collapsed lexically."""
    from bfs.paths import expand_path

    result = expand_path("a/../b/./c", base=tmp_path)

    assert result == tmp_path / "b" / "c"


@pytest.mark.unit
@pytest.mark.core
def test_expand_path_does_not_expand_env_vars() -> None:
    """Verify expand_path() does NOT expand ${VAR} (use ~ instead)."""
    from bfs.paths import expand_path

    with patch.dict(os.environ, {"MY_DIR": "/custom/path"}):
        result = expand_path("${MY_DIR}/subdir")

    assert "${MY_DIR}" in str(result)
