"""Unit tests for PathSandbox."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bfs.errors import AccessDenied, ErrorKind
from bfs.sandbox import PathSandbox, is_within


@pytest.fixture
def root(tmp_path: Path) -> Path:
    allowed = tmp_path / "allowed-dir"
    allowed.mkdir()
    return allowed.resolve()


@pytest.mark.unit
@pytest.mark.core
class TestIsAllowed:
    """Separator-aligned ancestor checks."""

    def test_root_itself_is_allowed(self, root: Path) -> None:
        assert PathSandbox([root]).is_allowed(root)

    def test_nested_path_is_allowed(self, root: Path) -> None:
        sandbox = PathSandbox([root])
        assert sandbox.is_allowed(root / "a" / "b.txt")

    def test_sibling_with_shared_prefix_is_rejected(self, root: Path) -> None:
        sibling = root.parent / "allowed-dir2"
        sibling.mkdir()

        assert not PathSandbox([root]).is_allowed(sibling)
        assert not PathSandbox([root]).is_allowed(sibling / "file.txt")

    def test_dotdot_escape_is_rejected(self, root: Path) -> None:
        sandbox = PathSandbox([root])
        assert not sandbox.is_allowed(root / ".." / "outside.txt")

    def test_relative_path_resolves_against_base(self, root: Path) -> None:
        sandbox = PathSandbox([root], base=root)
        assert sandbox.is_allowed("sub/file.txt")
        assert not sandbox.is_allowed("../file.txt")

    def test_symlink_pointing_outside_is_rejected(self, root: Path, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "escape").symlink_to(outside, target_is_directory=True)

        assert not PathSandbox([root]).is_allowed(root / "escape" / "secret.txt")

    def test_any_of_several_roots(self, root: Path, tmp_path: Path) -> None:
        other = tmp_path / "other"
        other.mkdir()
        sandbox = PathSandbox([root, other])

        assert sandbox.is_allowed(other / "x")
        assert not sandbox.is_allowed(tmp_path / "third" / "x")

    def test_filesystem_root(self) -> None:
        sandbox = PathSandbox([os.sep])
        assert sandbox.is_allowed(Path(os.sep) / "anything")


@pytest.mark.unit
@pytest.mark.core
def test_authorize_raises_access_denied(root: Path, tmp_path: Path) -> None:
    """authorize() names the rejected path and the role."""
    sandbox = PathSandbox([root])

    with pytest.raises(AccessDenied) as exc_info:
        sandbox.authorize(tmp_path / "elsewhere", label="destination")

    assert exc_info.value.kind is ErrorKind.ACCESS_DENIED
    assert "destination" in exc_info.value.message
    assert "elsewhere" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.core
def test_authorize_keeps_symlink_in_place(root: Path) -> None:
    """The authorized path is the link itself, not its target."""
    target = root / "target"
    target.mkdir()
    link = root / "link"
    link.symlink_to(target, target_is_directory=True)

    assert PathSandbox([root]).authorize(link) == link


@pytest.mark.unit
@pytest.mark.core
def test_roots_are_deduplicated(root: Path) -> None:
    sandbox = PathSandbox([root, str(root), root / "."])
    assert sandbox.roots == (root,)
    assert sandbox.default_root == root


@pytest.mark.unit
@pytest.mark.core
def test_no_roots_is_an_error() -> None:
    with pytest.raises(ValueError):
        PathSandbox([])


@pytest.mark.unit
@pytest.mark.core
def test_is_within() -> None:
    assert is_within(Path("/a/b"), Path("/a/b"))
    assert is_within(Path("/a/b/c"), Path("/a/b"))
    assert not is_within(Path("/a/bc"), Path("/a/b"))
    assert not is_within(Path("/a"), Path("/a/b"))
