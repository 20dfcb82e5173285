"""Depth-limited, cycle-safe directory traversal.

``TreeWalker.walk`` yields entries depth-first in pre-order: a directory is
yielded before its children, siblings in name order. Entry depth is the
depth of the containing directory (0 for children of the base), and a
directory is only descended into while ``depth + 1 <= max_depth``.

Cycle safety comes from the traversal context's visited set: the canonical
(symlink-resolved) path of every directory about to be descended into is
recorded, and directories whose canonical path was already seen are
skipped entirely.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from bfs import fsio
from bfs.sandbox import PathSandbox

HIDDEN_PREFIX = "."


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class TraversalRequest:
    """Traversal limits.

    Attributes:
        max_depth: Deepest directory level whose entries are listed (base = 0, None = unlimited)
        include_hidden: Yield and descend into dot-entries
        max_results: Stop after this many yielded entries (None = unlimited)
        follow_symlinks: Treat symlinks to directories as directories
    """

    max_depth: int | None = 10
    include_hidden: bool = False
    max_results: int | None = None
    follow_symlinks: bool = True


@dataclass
class TraversalContext:
    """State owned by exactly one traversal call.

    Attributes:
        visited: Canonical paths of directories already descended into
        skipped: Directories that could not be listed
        yielded: Entries produced so far
        truncated: True when the walk stopped on max_results
    """

    visited: set[Path] = field(default_factory=set)
    skipped: list[Path] = field(default_factory=list)
    yielded: int = 0
    truncated: bool = False


@dataclass(frozen=True)
class WalkEntry:
    """One traversal result.

    Attributes:
        path: Absolute path (symlinks not resolved)
        relative: Path relative to the traversal base
        kind: File or directory
        depth: Depth of the containing directory
        is_symlink: Entry itself is a symbolic link
    """

    path: Path
    relative: Path
    kind: EntryKind
    depth: int
    is_symlink: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def name(self) -> str:
        return self.path.name


class TreeWalker:
    """Recursive traversal engine; stateless between calls."""

    def __init__(self, sandbox: PathSandbox | None = None) -> None:
        """Create a walker.

        Args:
            sandbox: When given, entries resolving outside it are skipped
        """
        self.sandbox = sandbox

    async def _list(
        self, directory: Path, context: TraversalContext, follow_symlinks: bool
    ) -> list[fsio.DirEntryInfo]:
        """List ``directory``, recording it as skipped when unreadable."""
        try:
            return await fsio.list_dir(directory, follow_symlinks=follow_symlinks)
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            context.skipped.append(directory)
            return []

    def _in_sandbox(self, entry: fsio.DirEntryInfo, follow_symlinks: bool) -> bool:
        if self.sandbox is None:
            return True
        if entry.is_symlink and not follow_symlinks:
            # The link itself is moved/copied, not its target
            return self.sandbox.is_allowed(entry.path.parent)
        return self.sandbox.is_allowed(entry.path)

    async def walk(
        self,
        root: Path,
        request: TraversalRequest | None = None,
        context: TraversalContext | None = None,
    ) -> AsyncIterator[WalkEntry]:
        """Yield entries under ``root`` depth-first.

        Args:
            root: Base directory (must exist; callers check beforehand)
            request: Traversal limits (defaults apply when None)
            context: Per-call state; pass one in to inspect it afterwards

        Yields:
            WalkEntry for every file and directory reached
        """
        request = request or TraversalRequest()
        context = context if context is not None else TraversalContext()
        follow = request.follow_symlinks

        context.visited.add(await fsio.realpath(root))
        entries = await self._list(root, context, follow)

        # Worklist of (listed entries, depth of their directory, next index)
        stack: list[tuple[list[fsio.DirEntryInfo], int, int]] = [(entries, 0, 0)]

        while stack:
            listed, depth, index = stack.pop()
            if index >= len(listed):
                continue
            entry = listed[index]
            stack.append((listed, depth, index + 1))

            if not request.include_hidden and entry.name.startswith(HIDDEN_PREFIX):
                continue
            link_as_file = entry.is_symlink and not follow
            if not (entry.is_dir or entry.is_file or link_as_file):
                # Broken symlinks, sockets, devices
                continue
            if not self._in_sandbox(entry, follow):
                logger.debug(f"Skipping {entry.path}: outside sandbox")
                continue

            children: list[fsio.DirEntryInfo] = []
            if entry.is_dir:
                try:
                    canonical = await fsio.realpath(entry.path)
                except OSError as e:
                    logger.debug(f"Cannot resolve {entry.path}: {e}")
                    continue
                if canonical in context.visited:
                    logger.debug(f"Skipping already visited directory {entry.path} -> {canonical}")
                    continue
                if request.max_depth is None or depth + 1 <= request.max_depth:
                    context.visited.add(canonical)
                    children = await self._list(entry.path, context, follow)

            if request.max_results is not None and context.yielded >= request.max_results:
                context.truncated = True
                return

            context.yielded += 1
            yield WalkEntry(
                path=entry.path,
                relative=entry.path.relative_to(root),
                kind=EntryKind.DIRECTORY if entry.is_dir else EntryKind.FILE,
                depth=depth,
                is_symlink=entry.is_symlink,
            )

            if children:
                stack.append((children, depth + 1, 0))
