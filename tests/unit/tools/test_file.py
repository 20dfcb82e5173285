"""Unit tests for the file tool layer.

Tests file.search_files(), file.copy_directory(), file.move_directory(),
file.patch_file() and the single-entry helpers.
Uses tmp_path fixture for isolated test files.
"""

from __future__ import annotations

import errno
import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest

from bfs.config import BulkFsConfig

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture(autouse=True)
def sandbox_config(root: Path) -> Generator[BulkFsConfig, None, None]:
    """Confine the tools to the temp directory."""
    config = BulkFsConfig.model_validate({"sandbox": {"allowed_dirs": [str(root)]}})

    with (
        patch("bfs_tools.file.get_config", return_value=config),
        patch("bfs_tools.file.get_effective_cwd", return_value=root),
    ):
        yield config


@pytest.fixture
def tree(root: Path) -> Path:
    """Create a small project tree."""
    (root / "src").mkdir()
    (root / "src" / "one.py").write_text("x = 1  # TODO\n")
    (root / "src" / "two.py").write_text("# TODO a\n# TODO b\nprint()\n")
    (root / "src" / "notes.md").write_text("nothing here\n")
    return root


@pytest.mark.unit
@pytest.mark.tools
def test_namespace_is_file() -> None:
    from bfs_tools.file import namespace

    assert namespace == "file"


@pytest.mark.unit
@pytest.mark.tools
def test_all_exports() -> None:
    """Verify __all__ contains the expected public functions."""
    from bfs_tools.file import __all__

    assert set(__all__) == {
        "copy_directory",
        "copy_file",
        "create_directory",
        "delete_file",
        "is_error",
        "list_directory",
        "move_directory",
        "move_file",
        "patch_file",
        "read_file",
        "search_files",
        "write_file",
    }


# ============================================================================
# search_files
# ============================================================================


@pytest.mark.unit
@pytest.mark.tools
class TestSearchFiles:
    def test_content_search_ranked(self, tree: Path) -> None:
        from bfs_tools.file import search_files

        result = search_files(directory=str(tree / "src"), content="TODO")

        assert result.startswith("Found 2 results:")
        assert result.index("two.py") < result.index("one.py")
        assert "notes.md" not in result
        assert "Line 1: # TODO a" in result
        assert "Total content matches: 3" in result

    def test_defaults_to_first_allowed_dir(self, tree: Path) -> None:
        from bfs_tools.file import search_files

        result = search_files(pattern="*.md")

        assert "src/notes.md" in result
        assert "Summary: 1 files, 0 directories" in result

    def test_limited_results(self, tree: Path) -> None:
        from bfs_tools.file import search_files

        result = search_files(file_type="py", max_results=1)

        assert result.startswith("Found 1 (limited) results:")

    def test_max_results_from_config(self, tree: Path, sandbox_config: BulkFsConfig) -> None:
        from bfs_tools.file import search_files

        sandbox_config.search.max_results = 1

        assert "(limited)" in search_files(file_type="py")

    def test_no_results(self, tree: Path) -> None:
        from bfs_tools.file import search_files

        assert search_files(content="absent") == "No files found matching the search criteria."

    def test_outside_sandbox(self, root: Path) -> None:
        from bfs_tools.file import is_error, search_files

        result = search_files(directory=str(root.parent))

        assert is_error(result)
        assert "Access denied" in result

    def test_invalid_request(self) -> None:
        from bfs_tools.file import search_files

        result = search_files(max_results=0)

        assert result.startswith("Error: Invalid request: max_results")


# ============================================================================
# copy_directory / move_directory
# ============================================================================


@pytest.mark.unit
@pytest.mark.tools
def test_copy_directory_with_include(tree: Path) -> None:
    from bfs_tools.file import copy_directory

    result = copy_directory(
        source=str(tree / "src"),
        destination=str(tree / "backup"),
        include_patterns=["*.py"],
    )

    assert result.startswith("OK: Copied directory")
    assert "Files copied: 2" in result
    assert "Files skipped: 1" in result
    assert sorted(p.name for p in (tree / "backup").iterdir()) == ["one.py", "two.py"]


@pytest.mark.unit
@pytest.mark.tools
def test_copy_directory_into_itself(tree: Path) -> None:
    from bfs_tools.file import copy_directory

    result = copy_directory(source=str(tree / "src"), destination=str(tree / "src" / "inner"))

    assert result.startswith("Error:")
    assert not (tree / "src" / "inner").exists()


@pytest.mark.unit
@pytest.mark.tools
def test_move_directory_atomic(tree: Path) -> None:
    from bfs_tools.file import move_directory

    result = move_directory(source=str(tree / "src"), destination=str(tree / "lib"))

    assert result == f"OK: renamed directory from {tree / 'src'} to {tree / 'lib'} (atomic operation)"
    assert (tree / "lib" / "one.py").exists()
    assert not (tree / "src").exists()


@pytest.mark.unit
@pytest.mark.tools
def test_move_directory_conflict_then_merge(tree: Path) -> None:
    from bfs_tools.file import move_directory

    (tree / "dest").mkdir()
    (tree / "dest" / "one.py").write_text("keep\n")

    conflict = move_directory(source=str(tree / "src"), destination=str(tree / "dest"))
    assert conflict.startswith("Error:")
    assert (tree / "src").exists()

    merged = move_directory(
        source=str(tree / "src"), destination=str(tree / "dest"), merge_existing=True
    )
    assert "(merge operation)" in merged
    assert "Files moved: 2" in merged
    assert "Files skipped: 1" in merged
    assert (tree / "dest" / "one.py").read_text() == "keep\n"
    assert not (tree / "src").exists()


# ============================================================================
# patch_file
# ============================================================================


@pytest.mark.unit
@pytest.mark.tools
class TestPatchFile:
    def test_applies_edits(self, root: Path) -> None:
        from bfs_tools.file import patch_file

        target = root / "app.py"
        target.write_text("a\nb\nDEBUG = False\nd\ne\n")

        result = patch_file(
            path=str(target),
            edits=[
                {"type": "replace", "line": 3, "old": "False", "new": "True"},
                {"type": "insert", "afterLine": 1, "content": "import os"},
            ],
        )

        assert result.startswith("OK: Applied 2 edit(s)")
        assert "Replaced text in line 3" in result
        assert target.read_text() == "a\nimport os\nb\nDEBUG = True\nd\ne\n"

    def test_content_mismatch_leaves_file(self, root: Path) -> None:
        from bfs_tools.file import patch_file

        target = root / "app.py"
        target.write_text("a\nb\nc\n")

        result = patch_file(
            path=str(target),
            edits=[
                {"type": "delete", "line": 1},
                {"type": "replace", "line": 3, "old": "zzz", "new": "x"},
            ],
        )

        assert result.startswith("Error: Content mismatch")
        assert target.read_text() == "a\nb\nc\n"

    def test_unknown_edit_type(self, root: Path) -> None:
        from bfs_tools.file import patch_file

        (root / "a.txt").write_text("a\n")

        result = patch_file(path=str(root / "a.txt"), edits=[{"type": "swap", "line": 1}])

        assert result.startswith("Error: Invalid request:")


# ============================================================================
# Single-entry operations
# ============================================================================


@pytest.mark.unit
@pytest.mark.tools
def test_write_read_roundtrip(root: Path) -> None:
    from bfs_tools.file import read_file, write_file

    result = write_file(path=str(root / "notes" / "a.md"), content="# Title\n")

    assert result == f"OK: wrote 8 bytes to {root / 'notes' / 'a.md'}"
    assert read_file(path=str(root / "notes" / "a.md")) == "# Title\n"


@pytest.mark.unit
@pytest.mark.tools
def test_read_missing_file(root: Path) -> None:
    from bfs_tools.file import is_error, read_file

    assert is_error(read_file(path=str(root / "missing.txt")))


@pytest.mark.unit
@pytest.mark.tools
def test_delete_messages(root: Path) -> None:
    from bfs_tools.file import delete_file

    (root / "f.txt").write_text("x")
    (root / "d").mkdir()
    (root / "d" / "g.txt").write_text("x")

    assert delete_file(path=str(root / "f.txt")) == f"OK: Deleted file: {root / 'f.txt'}"
    assert delete_file(path=str(root / "d")).startswith("Error: Directory is not empty")
    assert delete_file(path=str(root / "d"), recursive=True).startswith(
        "OK: Deleted directory and all contents"
    )


@pytest.mark.unit
@pytest.mark.tools
def test_copy_and_move_file(root: Path) -> None:
    from bfs_tools.file import copy_file, move_file

    (root / "a.txt").write_text("hello")

    assert copy_file(source=str(root / "a.txt"), destination=str(root / "b.txt")).endswith("(5 B)")
    assert move_file(source=str(root / "b.txt"), destination=str(root / "c.txt")).startswith(
        "OK: renamed file"
    )
    assert move_file(source=str(root / "a.txt"), destination=str(root / "c.txt")).startswith(
        "Error: Destination already exists"
    )


@pytest.mark.unit
@pytest.mark.tools
def test_create_and_list_directory(root: Path) -> None:
    from bfs_tools.file import create_directory, list_directory

    assert create_directory(path=str(root / "sub")).startswith("OK: Created directory")
    assert create_directory(path=str(root / "sub")).startswith("OK: Directory already exists")
    (root / "z.txt").write_text("x")

    listing = list_directory(path=str(root))

    assert listing.splitlines() == [
        f"Directory listing for {root}:",
        "[DIRECTORY] sub",
        "[FILE] z.txt",
    ]


# ============================================================================
# Partial statistics and JSON output
# ============================================================================


@pytest.mark.unit
@pytest.mark.tools
def test_copy_failure_reports_counts_so_far(root: Path) -> None:
    from bfs_tools.file import copy_directory, is_error

    (root / "src").mkdir()
    for name in ("a.txt", "b.txt", "c.txt"):
        (root / "src" / name).write_text("12345")
    failing = AsyncMock(side_effect=[5, 5, OSError(errno.ENOSPC, "No space left on device")])

    with patch("bfs.fsio.copy_file", failing):
        result = copy_directory(source=str(root / "src"), destination=str(root / "out"))

    assert is_error(result)
    assert "No space left on device" in result
    assert "Files copied: 2" in result
    assert "Total size: 10 B" in result


@pytest.mark.unit
@pytest.mark.tools
def test_search_json_output(tree: Path) -> None:
    from bfs_tools.file import search_files

    data = json.loads(search_files(directory=str(tree / "src"), content="TODO", output_format="json"))

    assert [r["path"] for r in data["results"]] == ["two.py", "one.py"]
    assert data["totalMatches"] == 3
    assert data["truncated"] is False


@pytest.mark.unit
@pytest.mark.tools
def test_copy_and_patch_json_output(tree: Path) -> None:
    from bfs_tools.file import copy_directory, patch_file

    stats = json.loads(
        copy_directory(
            source=str(tree / "src"), destination=str(tree / "out"), output_format="json"
        )
    )
    report = json.loads(
        patch_file(
            path=str(tree / "out" / "one.py"),
            edits=[{"type": "delete", "line": 1}],
            output_format="json",
        )
    )

    assert stats["filesCopied"] == 3
    assert report["changesSummary"] == ["Deleted line 1"]
    assert report["linesAfter"] == 0


@pytest.mark.unit
@pytest.mark.tools
def test_unknown_output_format_rejected(tree: Path) -> None:
    from bfs_tools.file import move_directory

    result = move_directory(
        source=str(tree / "src"), destination=str(tree / "lib"), output_format="xml"
    )

    assert result.startswith("Error: Invalid request: output_format")
    assert (tree / "src").exists()
