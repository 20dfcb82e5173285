"""Directory move: atomic rename, or recursive merge into an existing directory."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from bfs import fsio
from bfs.errors import Conflict, InvalidOperation, IOFailure, NotFound, TypeMismatch
from bfs.sandbox import PathSandbox, is_within
from bfs.walker import TraversalContext, TraversalRequest, TreeWalker

MoveOperation = Literal["atomic_move", "merge"]


@dataclass
class MergePlan:
    """Options for one move.

    | Option          | Effect                                                        |
    |-----------------|---------------------------------------------------------------|
    | merge_existing  | merge into an existing destination instead of failing         |
    | overwrite_files | during a merge, replace files that exist at the destination   |
    """

    merge_existing: bool = False
    overwrite_files: bool = False


@dataclass
class MoveReport:
    """Outcome of a move.

    Counters are None for an atomic move, where the whole tree moves in one
    rename and nothing is counted.
    """

    operation: MoveOperation
    source: str
    destination: str
    renamed: bool = False
    files_moved: int | None = None
    directories_moved: int | None = None
    directories_merged: int = 0
    files_skipped: int = 0
    source_removed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "filesMoved": "all" if self.files_moved is None else self.files_moved,
            "directoriesMoved": "all" if self.directories_moved is None else self.directories_moved,
            "directoriesMerged": self.directories_merged,
            "filesSkipped": self.files_skipped,
            "sourceRemoved": self.source_removed,
        }


class BulkMoveMergeEngine:
    """Moves a directory tree, merging when asked to."""

    def __init__(self, sandbox: PathSandbox) -> None:
        self.sandbox = sandbox
        self.walker = TreeWalker(sandbox)

    async def move(
        self,
        source: str | Path,
        destination: str | Path,
        plan: MergePlan | None = None,
    ) -> MoveReport:
        """Move ``source`` to ``destination``.

        An absent destination is reached with one rename (parents created
        first). An existing destination is merged into when
        ``plan.merge_existing`` is set; the source tree is removed afterwards.

        Raises:
            AccessDenied: Either path is outside the sandbox
            NotFound: Source missing
            TypeMismatch: Source not a directory, or destination exists as a file
            InvalidOperation: Destination is the source or nested inside it
            Conflict: Destination exists and merging was not requested
            IOFailure: Rename, move or removal failed
        """
        plan = plan or MergePlan()
        src = self.sandbox.authorize(source, label="source")
        dest = self.sandbox.authorize(destination, label="destination")

        src_stat = await fsio.try_stat(src)
        if src_stat is None:
            raise NotFound(f"Source directory does not exist: {source}", path=str(source))
        if not fsio.is_dir_stat(src_stat):
            raise TypeMismatch(f"Source is not a directory: {source}", path=str(source))

        if is_within(await fsio.realpath(dest), await fsio.realpath(src)):
            raise InvalidOperation(
                f"Cannot move directory into itself: {destination} is inside or same as {source}",
                path=str(destination),
            )

        dest_stat = await fsio.try_stat(dest)
        if dest_stat is not None:
            if not fsio.is_dir_stat(dest_stat):
                raise TypeMismatch(
                    f"Destination exists and is not a directory: {destination}",
                    path=str(destination),
                )
            if not plan.merge_existing:
                raise Conflict(
                    f"Destination directory already exists (use merge_existing=true to merge): {destination}",
                    path=str(destination),
                )

        renamed = src.parent == dest.parent
        if dest_stat is None:
            moved = await self._atomic_move(src, dest)
            if moved:
                return MoveReport(
                    operation="atomic_move",
                    source=str(src),
                    destination=str(dest),
                    renamed=renamed,
                )
            logger.info(f"{src} and {dest} are on different devices, merging instead")

        report = await self._merge(src, dest, plan.overwrite_files)
        report.renamed = renamed
        return report

    async def _atomic_move(self, src: Path, dest: Path) -> bool:
        """Rename in one call; False when the rename would cross devices."""
        try:
            await fsio.makedirs(dest.parent)
            await fsio.rename(src, dest)
        except OSError as e:
            if e.errno == errno.EXDEV:
                return False
            raise IOFailure.from_os_error(e, action="Move", path=str(src)) from e
        return True

    async def _merge(self, src: Path, dest: Path, overwrite_files: bool) -> MoveReport:
        report = MoveReport(
            operation="merge",
            source=str(src),
            destination=str(dest),
            files_moved=0,
            directories_moved=0,
            source_removed=False,
        )
        request = TraversalRequest(max_depth=None, include_hidden=True, follow_symlinks=False)
        context = TraversalContext()
        emptied: list[tuple[int, Path]] = []
        current = dest

        try:
            if await fsio.makedirs(dest):
                report.directories_moved += 1

            async for entry in self.walker.walk(src, request, context):
                target = dest / entry.relative
                current = target
                if not self.sandbox.is_allowed(target):
                    if not entry.is_dir:
                        report.files_skipped += 1
                    continue

                if entry.is_dir:
                    if await fsio.makedirs(target):
                        report.directories_moved += 1
                    else:
                        report.directories_merged += 1
                    emptied.append((entry.depth, entry.path))
                    continue

                existing = await fsio.try_stat(target, follow_symlinks=False)
                if existing is not None and not overwrite_files:
                    report.files_skipped += 1
                    continue
                await fsio.move_entry(entry.path, target)
                report.files_moved += 1

            # Deepest first so parents are emptied before they are tried
            for _depth, directory in sorted(emptied, key=lambda item: item[0], reverse=True):
                current = directory
                if not await fsio.remove_empty_dir(directory):
                    logger.debug(f"Leaving non-empty source directory {directory}")

            current = src
            if report.files_skipped:
                logger.warning(
                    f"Removing {src} with {report.files_skipped} skipped file(s) left in it"
                )
            await fsio.remove_tree(src)
        except OSError as e:
            raise IOFailure.from_os_error(
                e, action="Merge", path=str(current), stats=report.to_dict()
            ) from e

        report.source_removed = await fsio.try_stat(src, follow_symlinks=False) is None
        return report
