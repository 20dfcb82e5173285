"""Recursive file search by name, extension and content.

Results are ranked: entries with content hits first, more hits first, then
by relative path. When a content query is set, files without a hit are left
out entirely, as are directories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from bfs import fsio
from bfs.errors import NotFound, TypeMismatch
from bfs.patch import split_lines
from bfs.patterns import (
    ContentQuery,
    compile_content_query,
    compile_name_pattern,
    matches_extension,
)
from bfs.sandbox import PathSandbox
from bfs.walker import EntryKind, TraversalContext, TraversalRequest, TreeWalker

DEFAULT_MAX_FILE_SIZE = 10_000_000


@dataclass
class MatchSpec:
    """What a search looks for.

    Attributes:
        pattern: Glob matched against entry names
        content: Content query (plain text, glob, or /regex/flags)
        file_type: Extension filter ("py", ".py")
        case_sensitive: Case sensitivity for pattern and content
        show_context: Attach the line before/after each content match
    """

    pattern: str | None = None
    content: str | None = None
    file_type: str | None = None
    case_sensitive: bool = False
    show_context: bool = True


@dataclass
class ContentMatch:
    """One matching line."""

    line: int
    text: str
    context: list[tuple[int, str]] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"line": self.line, "text": self.text}
        if self.context is not None:
            data["context"] = [{"line": n, "text": t} for n, t in self.context]
        return data


@dataclass
class SearchResult:
    """A file or directory found by a search."""

    path: str
    kind: EntryKind
    size: int
    modified: float
    matches: list[ContentMatch] | None = None

    @property
    def match_count(self) -> int:
        return len(self.matches) if self.matches else 0

    def sort_key(self) -> tuple[int, int, str]:
        count = self.match_count
        return (0 if count else 1, -count, self.path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "type": self.kind.value,
            "size": self.size,
            "modified": datetime.fromtimestamp(self.modified, tz=UTC).isoformat(),
        }
        if self.matches is not None:
            data["matches"] = [m.to_dict() for m in self.matches]
        return data


@dataclass
class SearchReport:
    """Ordered results plus aggregate counts."""

    directory: str
    results: list[SearchResult] = field(default_factory=list)
    truncated: bool = False
    files_scanned: int = 0
    files_skipped: int = 0

    @property
    def file_count(self) -> int:
        return sum(1 for r in self.results if r.kind is EntryKind.FILE)

    @property
    def directory_count(self) -> int:
        return sum(1 for r in self.results if r.kind is EntryKind.DIRECTORY)

    @property
    def total_matches(self) -> int:
        return sum(r.match_count for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "directory": self.directory,
            "results": [r.to_dict() for r in self.results],
            "files": self.file_count,
            "directories": self.directory_count,
            "totalMatches": self.total_matches,
            "filesScanned": self.files_scanned,
            "filesSkipped": self.files_skipped,
            "truncated": self.truncated,
        }


def scan_lines(
    lines: list[str], query: ContentQuery, show_context: bool
) -> list[ContentMatch]:
    """Find every line matching ``query``.

    Args:
        lines: File content split into lines
        query: Compiled content query
        show_context: Attach up to one line before and after each hit

    Returns:
        Matches in line order, 1-based line numbers
    """
    matches: list[ContentMatch] = []
    last = len(lines) - 1
    for i, line in enumerate(lines):
        if not query(line):
            continue
        context = None
        if show_context:
            context = [
                (j + 1, lines[j].strip())
                for j in (i - 1, i + 1)
                if 0 <= j <= last
            ]
        matches.append(ContentMatch(line=i + 1, text=line.strip(), context=context))
    return matches


class SearchEngine:
    """Composes TreeWalker and the pattern compilers into a ranked search."""

    def __init__(
        self, sandbox: PathSandbox, max_file_size: int = DEFAULT_MAX_FILE_SIZE
    ) -> None:
        self.sandbox = sandbox
        self.max_file_size = max_file_size
        self.walker = TreeWalker(sandbox)

    async def _content_matches(
        self, path: Path, size: int, query: ContentQuery, show_context: bool
    ) -> list[ContentMatch] | None:
        """Scan one file; None means it was skipped (binary, unreadable, too large)."""
        if size > self.max_file_size:
            logger.debug(f"Skipping {path}: {size} bytes exceeds content scan limit")
            return None
        try:
            data = await fsio.read_bytes(path)
        except OSError as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return None
        if fsio.is_binary(data):
            return None
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping {path}: not valid UTF-8")
            return None
        lines, _, _ = split_lines(text)
        return scan_lines(lines, query, show_context)

    async def search(
        self,
        root: str | Path,
        spec: MatchSpec,
        request: TraversalRequest | None = None,
    ) -> SearchReport:
        """Search under ``root``.

        Args:
            root: Directory to search (sandbox-checked)
            spec: What to match
            request: Depth, hidden-entry and result limits

        Returns:
            SearchReport with ranked results

        Raises:
            AccessDenied: If root is outside the sandbox
            NotFound: If root does not exist
            TypeMismatch: If root is not a directory
        """
        request = request or TraversalRequest()
        base = self.sandbox.authorize(root)

        st = await fsio.try_stat(base)
        if st is None:
            raise NotFound(f"Directory does not exist: {root}", path=str(root))
        if not fsio.is_dir_stat(st):
            raise TypeMismatch(f"Path is not a directory: {root}", path=str(root))

        name_matches = compile_name_pattern(spec.pattern, spec.case_sensitive)
        query = compile_content_query(spec.content, spec.case_sensitive) if spec.content else None
        # Directories cannot satisfy content or extension filters
        want_dirs = query is None and not spec.file_type

        max_results = request.max_results
        walk_request = TraversalRequest(
            max_depth=request.max_depth,
            include_hidden=request.include_hidden,
            max_results=None,
            follow_symlinks=request.follow_symlinks,
        )
        report = SearchReport(directory=str(base))
        context = TraversalContext()

        async for entry in self.walker.walk(base, walk_request, context):
            if max_results is not None and len(report.results) >= max_results:
                report.truncated = True
                break

            if entry.kind is EntryKind.DIRECTORY:
                if want_dirs and name_matches(entry.name):
                    entry_stat = await fsio.try_stat(entry.path)
                    if entry_stat is None:
                        continue
                    report.results.append(
                        SearchResult(
                            path=str(entry.relative),
                            kind=EntryKind.DIRECTORY,
                            size=0,
                            modified=entry_stat.st_mtime,
                        )
                    )
                continue

            if not matches_extension(entry.name, spec.file_type):
                continue
            if not name_matches(entry.name):
                continue

            entry_stat = await fsio.try_stat(entry.path)
            if entry_stat is None:
                continue

            matches: list[ContentMatch] | None = None
            if query is not None:
                report.files_scanned += 1
                matches = await self._content_matches(
                    entry.path, entry_stat.st_size, query, spec.show_context
                )
                if matches is None:
                    report.files_skipped += 1
                    continue
                if not matches:
                    continue

            report.results.append(
                SearchResult(
                    path=str(entry.relative),
                    kind=EntryKind.FILE,
                    size=entry_stat.st_size,
                    modified=entry_stat.st_mtime,
                    matches=matches,
                )
            )

        report.results.sort(key=SearchResult.sort_key)
        if context.skipped:
            logger.debug(f"Search skipped {len(context.skipped)} unreadable directories")
        return report
