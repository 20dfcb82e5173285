"""Bulk directory copy with include/exclude filtering.

Preconditions are checked before anything is written. Pattern mismatches
and existing destination files (without overwrite) are counted as skipped;
an I/O error on an attempted copy aborts the whole operation and carries
the statistics gathered so far.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from bfs import fsio
from bfs.errors import InvalidOperation, IOFailure, NotFound, TypeMismatch
from bfs.patterns import compile_any_pattern
from bfs.sandbox import PathSandbox, is_within
from bfs.walker import TraversalContext, TraversalRequest, TreeWalker


@dataclass
class CopyPlan:
    """Options for one copy.

    | Option              | Effect                                                   |
    |---------------------|----------------------------------------------------------|
    | recursive           | descend into subdirectories (False: top-level files only) |
    | overwrite           | replace files already present at the destination         |
    | include_patterns    | copy only files whose name matches one of these globs    |
    | exclude_patterns    | never copy files whose name matches one of these globs   |
    | preserve_timestamps | copy access/modify times from the source file            |
    | max_depth           | deepest source level copied (source root = 0)            |
    """

    recursive: bool = True
    overwrite: bool = False
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    preserve_timestamps: bool = True
    max_depth: int = 50


@dataclass
class CopyStats:
    """Running counters of one copy call."""

    files_copied: int = 0
    directories_created: int = 0
    files_skipped: int = 0
    bytes_copied: int = 0
    directories_skipped: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filesCopied": self.files_copied,
            "directoriesCreated": self.directories_created,
            "filesSkipped": self.files_skipped,
            "bytesCopied": self.bytes_copied,
            "directoriesSkipped": self.directories_skipped,
        }


class FileFilter:
    """Include/exclude decision on file names (case-insensitive globs)."""

    def __init__(self, include: list[str], exclude: list[str]) -> None:
        self._include = compile_any_pattern(include)
        self._exclude = compile_any_pattern(exclude)

    def __call__(self, name: str) -> bool:
        if self._include is not None and not self._include(name):
            return False
        return not (self._exclude is not None and self._exclude(name))


async def _count_missing(path: Path) -> int:
    """Number of directories makedirs(path) will create, ``path`` included."""
    missing = 0
    while path != path.parent and await fsio.try_stat(path) is None:
        missing += 1
        path = path.parent
    return missing


class BulkCopyEngine:
    """Mirrors a source tree onto a destination."""

    def __init__(self, sandbox: PathSandbox) -> None:
        self.sandbox = sandbox
        self.walker = TreeWalker(sandbox)

    async def _check_preconditions(
        self, source: str | Path, destination: str | Path
    ) -> tuple[Path, Path, bool]:
        src = self.sandbox.authorize(source, label="source")
        dest = self.sandbox.authorize(destination, label="destination")

        src_stat = await fsio.try_stat(src)
        if src_stat is None:
            raise NotFound(f"Source directory does not exist: {source}", path=str(source))
        if not fsio.is_dir_stat(src_stat):
            raise TypeMismatch(f"Source is not a directory: {source}", path=str(source))

        real_src = await fsio.realpath(src)
        real_dest = await fsio.realpath(dest)
        if is_within(real_dest, real_src):
            raise InvalidOperation(
                f"Cannot copy directory into itself: {destination} is inside {source}",
                path=str(destination),
            )

        dest_stat = await fsio.try_stat(dest)
        if dest_stat is not None and not fsio.is_dir_stat(dest_stat):
            raise TypeMismatch(
                f"Destination exists and is not a directory: {destination}",
                path=str(destination),
            )
        return src, dest, dest_stat is not None

    async def copy(
        self,
        source: str | Path,
        destination: str | Path,
        plan: CopyPlan | None = None,
    ) -> CopyStats:
        """Copy the ``source`` tree to ``destination``.

        Args:
            source: Source directory
            destination: Destination directory (created when missing)
            plan: Copy options

        Returns:
            CopyStats for the run

        Raises:
            AccessDenied: Either path is outside the sandbox
            NotFound: Source missing
            TypeMismatch: Source not a directory, or destination exists as a file
            InvalidOperation: Destination is the source or nested inside it
            IOFailure: A directory or file copy failed; ``stats`` holds partial counts
        """
        plan = plan or CopyPlan()
        src, dest, dest_exists = await self._check_preconditions(source, destination)

        stats = CopyStats()
        accept = FileFilter(plan.include_patterns, plan.exclude_patterns)
        request = TraversalRequest(
            max_depth=plan.max_depth if plan.recursive else 0,
            include_hidden=True,
            follow_symlinks=True,
        )
        context = TraversalContext()
        current: Path = dest

        try:
            if not dest_exists:
                current = dest
                missing = await _count_missing(dest)
                await fsio.makedirs(dest)
                stats.directories_created += missing

            async for entry in self.walker.walk(src, request, context):
                target = dest / entry.relative
                current = target

                if entry.is_dir:
                    if not plan.recursive or entry.depth + 1 > plan.max_depth:
                        continue
                    if not self.sandbox.is_allowed(target):
                        logger.debug(f"Skipping directory {target}: outside sandbox")
                        continue
                    if await fsio.makedirs(target):
                        stats.directories_created += 1
                    continue

                if not accept(entry.name):
                    stats.files_skipped += 1
                    continue
                if not self.sandbox.is_allowed(target):
                    stats.files_skipped += 1
                    continue
                if not plan.overwrite and await fsio.try_stat(target, follow_symlinks=False) is not None:
                    stats.files_skipped += 1
                    continue

                stats.bytes_copied += await fsio.copy_file(
                    entry.path, target, preserve_timestamps=plan.preserve_timestamps
                )
                stats.files_copied += 1
        except OSError as e:
            stats.directories_skipped = len(context.skipped)
            raise IOFailure.from_os_error(
                e, action="Copy", path=str(current), stats=stats.to_dict()
            ) from e

        stats.directories_skipped = len(context.skipped)
        return stats

