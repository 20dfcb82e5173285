"""Unit tests for single-entry FileOperations."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from bfs.errors import (
    AccessDenied,
    Conflict,
    InvalidOperation,
    NotFound,
    TypeMismatch,
    ValidationFailure,
)
from bfs.files import FileOperations
from bfs.sandbox import PathSandbox


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture
def ops(root: Path) -> FileOperations:
    return FileOperations(PathSandbox([root]), max_file_size=1000)


@pytest.mark.unit
@pytest.mark.core
class TestReadText:
    def test_reads_utf8(self, root: Path, ops: FileOperations) -> None:
        (root / "a.txt").write_text("héllo\n", encoding="utf-8")

        assert asyncio.run(ops.read_text(root / "a.txt")) == "héllo\n"

    def test_falls_back_to_detected_encoding(self, root: Path, ops: FileOperations) -> None:
        text = "Ceci est un fichier encodé en latin-1, très ordinaire.\n" * 3
        (root / "latin.txt").write_bytes(text.encode("latin-1"))

        result = asyncio.run(ops.read_text(root / "latin.txt"))

        assert "fichier" in result
        assert "très" in result

    def test_too_large(self, root: Path, ops: FileOperations) -> None:
        (root / "big.txt").write_text("x" * 2000)

        with pytest.raises(ValidationFailure, match="too large"):
            asyncio.run(ops.read_text(root / "big.txt"))

    def test_binary(self, root: Path, ops: FileOperations) -> None:
        (root / "blob.bin").write_bytes(b"\x00\x01\x02")

        with pytest.raises(ValidationFailure, match="Binary"):
            asyncio.run(ops.read_text(root / "blob.bin"))

    def test_missing_and_directory(self, root: Path, ops: FileOperations) -> None:
        with pytest.raises(NotFound):
            asyncio.run(ops.read_text(root / "missing.txt"))
        with pytest.raises(TypeMismatch):
            asyncio.run(ops.read_text(root))

    def test_outside_sandbox(self, root: Path, ops: FileOperations) -> None:
        with pytest.raises(AccessDenied):
            asyncio.run(ops.read_text(root / ".." / "elsewhere.txt"))


@pytest.mark.unit
@pytest.mark.core
def test_write_text_creates_parents(root: Path, ops: FileOperations) -> None:
    written = asyncio.run(ops.write_text(root / "new" / "dir" / "f.txt", "ünï"))

    assert (root / "new" / "dir" / "f.txt").read_text(encoding="utf-8") == "ünï"
    assert written == len("ünï".encode())


@pytest.mark.unit
@pytest.mark.core
def test_write_text_to_directory_fails(root: Path, ops: FileOperations) -> None:
    (root / "d").mkdir()

    with pytest.raises(TypeMismatch):
        asyncio.run(ops.write_text(root / "d", "x"))


@pytest.mark.unit
@pytest.mark.core
class TestDelete:
    def test_file(self, root: Path, ops: FileOperations) -> None:
        (root / "f.txt").write_text("x")

        outcome = asyncio.run(ops.delete(root / "f.txt"))

        assert outcome.kind == "file"
        assert not (root / "f.txt").exists()

    def test_empty_directory(self, root: Path, ops: FileOperations) -> None:
        (root / "empty").mkdir()

        outcome = asyncio.run(ops.delete(root / "empty"))

        assert outcome.kind == "empty_directory"
        assert not (root / "empty").exists()

    def test_non_empty_directory_requires_recursive(self, root: Path, ops: FileOperations) -> None:
        (root / "full").mkdir()
        (root / "full" / "f.txt").write_text("x")

        with pytest.raises(InvalidOperation, match="recursive"):
            asyncio.run(ops.delete(root / "full"))
        assert (root / "full" / "f.txt").exists()

        outcome = asyncio.run(ops.delete(root / "full", recursive=True))
        assert outcome.kind == "tree"
        assert not (root / "full").exists()

    def test_missing(self, root: Path, ops: FileOperations) -> None:
        with pytest.raises(NotFound):
            asyncio.run(ops.delete(root / "missing"))

    def test_trash(self, root: Path) -> None:
        (root / "f.txt").write_text("x")
        ops = FileOperations(PathSandbox([root]), use_trash=True)

        with patch("bfs.files.send2trash") as mock_trash:
            outcome = asyncio.run(ops.delete(root / "f.txt"))

        mock_trash.assert_called_once_with(str(root / "f.txt"))
        assert outcome.trashed is True


@pytest.mark.unit
@pytest.mark.core
class TestCopyMoveFile:
    def test_copy(self, root: Path, ops: FileOperations) -> None:
        (root / "a.txt").write_text("hello")

        size = asyncio.run(ops.copy_file(root / "a.txt", root / "sub" / "b.txt"))

        assert size == 5
        assert (root / "sub" / "b.txt").read_text() == "hello"
        assert (root / "a.txt").exists()

    def test_copy_conflict_and_overwrite(self, root: Path, ops: FileOperations) -> None:
        (root / "a.txt").write_text("new")
        (root / "b.txt").write_text("old")

        with pytest.raises(Conflict):
            asyncio.run(ops.copy_file(root / "a.txt", root / "b.txt"))
        assert (root / "b.txt").read_text() == "old"

        asyncio.run(ops.copy_file(root / "a.txt", root / "b.txt", overwrite=True))
        assert (root / "b.txt").read_text() == "new"

    def test_copy_onto_directory(self, root: Path, ops: FileOperations) -> None:
        (root / "a.txt").write_text("x")
        (root / "d").mkdir()

        with pytest.raises(TypeMismatch):
            asyncio.run(ops.copy_file(root / "a.txt", root / "d"))

    def test_move_renamed_vs_moved(self, root: Path, ops: FileOperations) -> None:
        (root / "a.txt").write_text("x")

        assert asyncio.run(ops.move_file(root / "a.txt", root / "b.txt")) == "renamed"
        assert asyncio.run(ops.move_file(root / "b.txt", root / "d" / "b.txt")) == "moved"
        assert (root / "d" / "b.txt").read_text() == "x"
        assert not (root / "a.txt").exists()

    def test_move_source_must_be_file(self, root: Path, ops: FileOperations) -> None:
        (root / "d").mkdir()

        with pytest.raises(TypeMismatch):
            asyncio.run(ops.move_file(root / "d", root / "e"))


@pytest.mark.unit
@pytest.mark.core
def test_create_directory(root: Path, ops: FileOperations) -> None:
    assert asyncio.run(ops.create_directory(root / "a" / "b")) is True
    assert asyncio.run(ops.create_directory(root / "a" / "b")) is False
    (root / "f.txt").write_text("x")
    with pytest.raises(TypeMismatch):
        asyncio.run(ops.create_directory(root / "f.txt"))


@pytest.mark.unit
@pytest.mark.core
def test_list_directory_orders_directories_first(root: Path, ops: FileOperations) -> None:
    (root / "b.txt").write_text("x")
    (root / "a.txt").write_text("x")
    (root / "zdir").mkdir()
    (root / "cdir").mkdir()

    listed = asyncio.run(ops.list_directory(root))

    assert [e.name for e in listed] == ["cdir", "zdir", "a.txt", "b.txt"]
    assert listed[0].to_dict() == {"name": "cdir", "type": "directory"}
    assert listed[2].to_dict() == {"name": "a.txt", "type": "file"}
