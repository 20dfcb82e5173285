"""Path sandbox confining every operation to a fixed set of root directories."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from bfs.errors import AccessDenied
from bfs.paths import expand_path, get_effective_cwd


def _canonical(path: Path) -> str:
    # resolve() works on non-existent paths too and follows existing symlinks
    return str(path.resolve())


class PathSandbox:
    """Authorizes paths against an ordered, immutable set of roots.

    A path is allowed when, after resolving symlinks and ``..``, one of the
    roots is a separator-aligned ancestor of it (or the root itself), so
    ``/allowed-dir2`` is rejected when only ``/allowed-dir`` is configured.
    """

    __slots__ = ("_base", "_prefixes", "_roots")

    def __init__(self, roots: Iterable[str | os.PathLike[str]], base: Path | None = None) -> None:
        """Create a sandbox.

        Args:
            roots: Allowed root directories; relative roots resolve against ``base``
            base: Directory relative paths resolve against (default: effective cwd)

        Raises:
            ValueError: If no roots are given
        """
        self._base = base or get_effective_cwd()
        resolved: list[str] = []
        for root in roots:
            canonical = _canonical(expand_path(root, base=self._base))
            if canonical not in resolved:
                resolved.append(canonical)
        if not resolved:
            raise ValueError("At least one allowed directory must be provided")
        self._roots: tuple[str, ...] = tuple(resolved)
        self._prefixes: tuple[str, ...] = tuple(
            r if r.endswith(os.sep) else r + os.sep for r in resolved
        )

    @property
    def roots(self) -> tuple[Path, ...]:
        return tuple(Path(r) for r in self._roots)

    @property
    def default_root(self) -> Path:
        """First configured root, used when a request omits its directory."""
        return Path(self._roots[0])

    def is_allowed(self, path: str | os.PathLike[str]) -> bool:
        """Check whether ``path`` lies inside one of the roots.

        Side-effect free; never raises for malformed paths.
        """
        try:
            candidate = _canonical(expand_path(path, base=self._base))
        except (OSError, ValueError, RuntimeError):
            return False
        return any(
            candidate == root or candidate.startswith(prefix)
            for root, prefix in zip(self._roots, self._prefixes, strict=True)
        )

    def authorize(self, path: str | os.PathLike[str], *, label: str | None = None) -> Path:
        """Resolve ``path`` and check it, raising AccessDenied on failure.

        The returned path is absolute and lexically normalized but keeps
        symlinks in place, so a link operated on is the link itself.

        Args:
            path: User supplied path
            label: Role of the path in the request ("source", "destination")

        Returns:
            Absolute path to operate on

        Raises:
            AccessDenied: If the path resolves outside every root
        """
        absolute = expand_path(path, base=self._base)
        if not self.is_allowed(absolute):
            role = f" to {label}" if label else ""
            raise AccessDenied(
                f"Access denied{role}: {path} is outside allowed directories",
                path=str(path),
            )
        return absolute

    def __repr__(self) -> str:
        return f"PathSandbox(roots={list(self._roots)!r})"


def is_within(path: Path, ancestor: Path) -> bool:
    """True when ``path`` equals ``ancestor`` or lies beneath it (separator aligned)."""
    child, parent = str(path), str(ancestor)
    if child == parent:
        return True
    prefix = parent if parent.endswith(os.sep) else parent + os.sep
    return child.startswith(prefix)
