"""Sandboxed bulk file operations for bulkfs.

Provides recursive search, directory copy, directory move/merge and
multi-edit patching, plus single-entry file management. All paths are
validated against the configured sandbox roots.

Every function returns text: a result on success, ``"Error: <message>"``
on failure (see ``is_error``).

Configuration via bfs.yaml:
    sandbox:
      allowed_dirs: ["."]          # Allowed directories (empty = cwd only)
    search:
      max_depth: 10
      max_results: 100
      max_file_size: 10000000      # Larger files are not content-scanned
    copy:
      max_depth: 50
    file:
      use_trash: false             # Send deletions to the trash
"""

from __future__ import annotations

namespace = "file"

__all__ = [
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
]

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from pydantic import ValidationError

from bfs.config import get_config
from bfs.copy import BulkCopyEngine, CopyStats
from bfs.errors import FsOpError
from bfs.files import FileOperations
from bfs.logging import LogSpan
from bfs.models import CopyRequest, MoveRequest, PatchRequest, SearchRequest
from bfs.move import BulkMoveMergeEngine, MoveReport
from bfs.patch import PatchEngine, PatchReport
from bfs.paths import get_effective_cwd
from bfs.sandbox import PathSandbox
from bfs.search import SearchEngine, SearchReport
from bfs.utils.format import format_size, serialize_result
from bfs.walker import EntryKind

T = TypeVar("T")

ERROR_PREFIX = "Error: "
MAX_MATCHES_SHOWN = 3


# ============================================================================
# Plumbing
# ============================================================================


def _get_sandbox() -> PathSandbox:
    """Build the sandbox from the configured allowed directories."""
    cfg = get_config()
    return PathSandbox(cfg.get_allowed_dirs(), base=get_effective_cwd())


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


_STAT_LABELS = {
    "filesCopied": "Files copied",
    "filesMoved": "Files moved",
    "directoriesCreated": "Directories created",
    "directoriesMoved": "Directories moved",
    "directoriesMerged": "Directories merged",
    "filesSkipped": "Files skipped",
    "bytesCopied": "Total size",
    "directoriesSkipped": "Unreadable directories skipped",
}


def _fail(s: LogSpan, error: FsOpError) -> str:
    s.add(error=error.kind.value)
    if error.stats is None:
        return f"{ERROR_PREFIX}{error.message}"
    s.add(stats=error.stats)
    lines = [f"{ERROR_PREFIX}{error.message}", "Completed before the error:"]
    for key, label in _STAT_LABELS.items():
        if key not in error.stats:
            continue
        value = error.stats[key]
        lines.append(f"{label}: {format_size(value) if key == 'bytesCopied' else value}")
    return "\n".join(lines)


def _invalid(s: LogSpan, error: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
        for err in error.errors()
    )
    s.add(error="invalid_request")
    return f"{ERROR_PREFIX}Invalid request: {problems}"


def is_error(result: str) -> bool:
    """True when a tool result reports a failure."""
    return result.startswith(ERROR_PREFIX)


# ============================================================================
# Rendering
# ============================================================================


def _render_search(report: SearchReport, request: SearchRequest) -> str:
    if not report.results:
        return "No files found matching the search criteria."

    limited = " (limited)" if report.truncated else ""
    lines = [f"Found {len(report.results)}{limited} results:", ""]

    directories = [r for r in report.results if r.kind is EntryKind.DIRECTORY]
    files = [r for r in report.results if r.kind is EntryKind.FILE]

    if directories:
        lines.append("DIRECTORIES:")
        lines.extend(f"  {d.path}/" for d in directories)
        lines.append("")

    if files:
        lines.append("FILES:")
        for f in files:
            match_str = f" [{f.match_count} matches]" if f.matches is not None else ""
            lines.append(f"  {f.path} ({format_size(f.size)}){match_str}")
            if not f.matches:
                continue
            for match in f.matches[:MAX_MATCHES_SHOWN]:
                lines.append(f"    Line {match.line}: {match.text}")
                if match.context:
                    lines.append("    Context:")
                    lines.extend(f"      {n}: {text}" for n, text in match.context)
            if f.match_count > MAX_MATCHES_SHOWN:
                lines.append(f"    ... and {f.match_count - MAX_MATCHES_SHOWN} more matches")
            lines.append("")

    lines.append("---")
    lines.append(f"Summary: {report.file_count} files, {report.directory_count} directories")
    if request.content:
        lines.append(f"Total content matches: {report.total_matches}")
    if report.files_skipped:
        lines.append(f"Files not scanned (binary, unreadable or too large): {report.files_skipped}")
    return "\n".join(lines)


def _render_copy(stats: CopyStats, source: str, destination: str) -> str:
    lines = [
        f"OK: Copied directory from {source} to {destination}",
        f"Files copied: {stats.files_copied}",
        f"Directories created: {stats.directories_created}",
        f"Files skipped: {stats.files_skipped}",
        f"Total size: {format_size(stats.bytes_copied)}",
    ]
    if stats.directories_skipped:
        lines.append(f"Unreadable directories skipped: {stats.directories_skipped}")
    return "\n".join(lines)


def _render_move(report: MoveReport, source: str, destination: str) -> str:
    verb = "renamed" if report.renamed else "moved"
    if report.operation == "atomic_move":
        return f"OK: {verb} directory from {source} to {destination} (atomic operation)"
    lines = [
        f"OK: {verb} directory from {source} to {destination} (merge operation)",
        f"Files moved: {report.files_moved}",
        f"Directories moved: {report.directories_moved}",
        f"Directories merged: {report.directories_merged}",
        f"Files skipped: {report.files_skipped}",
    ]
    if not report.source_removed:
        lines.append(f"Source directory left in place: {source}")
    return "\n".join(lines)


def _render_patch(report: PatchReport, path: str) -> str:
    lines = [f"OK: Applied {len(report.changes_summary)} edit(s) to {path}"]
    lines.extend(f"  - {change}" for change in report.changes_summary)
    lines.append(f"Lines: {report.lines_before} -> {report.lines_after}")
    if report.backup_path:
        lines.append(f"Backup: {report.backup_path}")
    return "\n".join(lines)


# ============================================================================
# Bulk Operations
# ============================================================================


def search_files(
    *,
    directory: str | None = None,
    pattern: str | None = None,
    content: str | None = None,
    file_type: str | None = None,
    max_depth: int | None = None,
    max_results: int | None = None,
    case_sensitive: bool = False,
    include_hidden: bool = False,
    show_context: bool = True,
    output_format: str = "text",
) -> str:
    """Search files and directories by name, extension and content.

    Results with content matches come first, most matches first, then by
    path. With a content query, files without a match are left out.

    Args:
        directory: Directory to search (default: first allowed directory)
        pattern: Glob for names ("*.py", "test_?.txt")
        content: Text, glob or /regex/flags to find inside files
        file_type: Extension filter ("py", ".md")
        max_depth: Maximum depth (default: search.max_depth)
        max_results: Maximum results (default: search.max_results)
        case_sensitive: Case-sensitive pattern and content matching
        include_hidden: Include dot-files and dot-directories
        show_context: Show the line before and after each match
        output_format: "text" (default) or "json" for the report payload

    Returns:
        Ranked results with a summary, or error message

    Example:
        file.search_files(content="TODO", file_type="py")
        file.search_files(pattern="*config*", directory="src")
        file.search_files(content="/def \\w+_test/")
    """
    with LogSpan(
        span="file.search_files",
        directory=directory,
        pattern=pattern,
        content=content,
        fileType=file_type,
    ) as s:
        cfg = get_config()
        try:
            request = SearchRequest(
                directory=directory,
                pattern=pattern,
                content=content,
                file_type=file_type,
                max_depth=cfg.search.max_depth if max_depth is None else max_depth,
                max_results=cfg.search.max_results if max_results is None else max_results,
                case_sensitive=case_sensitive,
                include_hidden=include_hidden,
                show_context=show_context,
                output_format=output_format,
            )
        except ValidationError as e:
            return _invalid(s, e)

        try:
            sandbox = _get_sandbox()
            engine = SearchEngine(sandbox, max_file_size=cfg.search.max_file_size)
            root = request.directory or sandbox.default_root
            report = _run(engine.search(root, request.to_spec(), request.to_traversal()))
        except FsOpError as e:
            return _fail(s, e)

        s.add(
            resultCount=len(report.results),
            totalMatches=report.total_matches,
            truncated=report.truncated,
        )
        if request.output_format == "json":
            return serialize_result(report)
        return _render_search(report, request)


def copy_directory(
    *,
    source: str,
    destination: str,
    recursive: bool = True,
    overwrite: bool = False,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    preserve_timestamps: bool = True,
    max_depth: int | None = None,
    output_format: str = "text",
) -> str:
    """Copy a directory tree with filtering.

    Files that fail the include/exclude test, or that already exist at the
    destination when overwrite is off, are skipped and counted. Any I/O
    error aborts the copy; the error text lists the counts so far.

    Args:
        source: Source directory
        destination: Destination directory (created if missing)
        recursive: Copy subdirectories (default: True)
        overwrite: Replace existing destination files (default: False)
        include_patterns: Only copy files matching one of these globs
        exclude_patterns: Never copy files matching one of these globs
        preserve_timestamps: Keep access/modify times (default: True)
        max_depth: Maximum depth (default: copy.max_depth)
        output_format: "text" (default) or "json" for the statistics payload

    Returns:
        Copy statistics, or error message

    Example:
        file.copy_directory(source="src", destination="backup/src")
        file.copy_directory(source="docs", destination="out", include_patterns=["*.md"])
    """
    with LogSpan(span="file.copy_directory", source=source, destination=destination) as s:
        cfg = get_config()
        try:
            request = CopyRequest(
                source=source,
                destination=destination,
                recursive=recursive,
                overwrite=overwrite,
                include_patterns=include_patterns or [],
                exclude_patterns=exclude_patterns or [],
                preserve_timestamps=preserve_timestamps,
                max_depth=cfg.copy_settings.max_depth if max_depth is None else max_depth,
                output_format=output_format,
            )
        except ValidationError as e:
            return _invalid(s, e)

        try:
            engine = BulkCopyEngine(_get_sandbox())
            stats = _run(engine.copy(request.source, request.destination, request.to_plan()))
        except FsOpError as e:
            return _fail(s, e)

        s.add(**stats.to_dict())
        if request.output_format == "json":
            return serialize_result(stats)
        return _render_copy(stats, source, destination)


def move_directory(
    *,
    source: str,
    destination: str,
    merge_existing: bool = False,
    overwrite_files: bool = False,
    output_format: str = "text",
) -> str:
    """Move or rename a directory.

    A missing destination is reached with one atomic rename. An existing
    destination is an error unless merge_existing is set, in which case the
    source contents are merged into it and the source is removed.

    Args:
        source: Source directory
        destination: Destination directory
        merge_existing: Merge into an existing destination (default: False)
        overwrite_files: When merging, replace existing files (default: False)
        output_format: "text" (default) or "json" for the move report

    Returns:
        Move summary, or error message

    Example:
        file.move_directory(source="build", destination="dist")
        file.move_directory(source="new", destination="site", merge_existing=True)
    """
    with LogSpan(
        span="file.move_directory",
        source=source,
        destination=destination,
        merge=merge_existing,
    ) as s:
        try:
            request = MoveRequest(
                source=source,
                destination=destination,
                merge_existing=merge_existing,
                overwrite_files=overwrite_files,
                output_format=output_format,
            )
        except ValidationError as e:
            return _invalid(s, e)

        try:
            engine = BulkMoveMergeEngine(_get_sandbox())
            report = _run(engine.move(request.source, request.destination, request.to_plan()))
        except FsOpError as e:
            return _fail(s, e)

        s.add(**report.to_dict())
        if request.output_format == "json":
            return serialize_result(report)
        return _render_move(report, source, destination)


def patch_file(
    *,
    path: str,
    edits: list[dict[str, Any]],
    validate_content: bool = True,
    create_backup: bool = False,
    output_format: str = "text",
) -> str:
    """Apply several line edits to a file in one atomic write.

    Line numbers always refer to the file as it is before the call; the
    edits are ordered internally so they do not disturb each other.

    Args:
        path: File to patch
        edits: List of edits, each one of
            {"type": "replace", "line": N, "new": "...", "old": "..."?}
            {"type": "insert", "after_line": N, "content": "..."}
            {"type": "delete", "line": N} or {"type": "delete", "start_line": A, "end_line": B}
        validate_content: Require replace "old" text to be present (default: True)
        create_backup: Keep a timestamped .bak copy (default: False)
        output_format: "text" (default) or "json" for the patch report

    Returns:
        Summary of changes, or error message

    Example:
        file.patch_file(path="app.py", edits=[
            {"type": "replace", "line": 3, "old": "DEBUG = False", "new": "DEBUG = True"},
            {"type": "insert", "after_line": 1, "content": "import os"},
        ])
    """
    with LogSpan(span="file.patch_file", path=path, editCount=len(edits)) as s:
        cfg = get_config()
        try:
            request = PatchRequest(
                path=path,
                edits=edits,
                validate_content=validate_content,
                create_backup=create_backup,
                output_format=output_format,
            )
        except ValidationError as e:
            return _invalid(s, e)

        try:
            engine = PatchEngine(
                _get_sandbox(),
                backup_timestamp_format=cfg.patch.backup_timestamp_format,
            )
            report = _run(
                engine.apply(
                    request.path,
                    request.edits,
                    validate_content=request.validate_content,
                    create_backup=request.create_backup,
                )
            )
        except FsOpError as e:
            return _fail(s, e)

        s.add(linesBefore=report.lines_before, linesAfter=report.lines_after)
        if request.output_format == "json":
            return serialize_result(report)
        return _render_patch(report, path)


# ============================================================================
# Single-Entry Operations
# ============================================================================


def _file_ops() -> FileOperations:
    cfg = get_config()
    return FileOperations(
        _get_sandbox(),
        max_file_size=cfg.file.max_file_size,
        use_trash=cfg.file.use_trash,
    )


def read_file(*, path: str) -> str:
    """Read the complete contents of a text file.

    Args:
        path: Path to file

    Returns:
        File content, or error message

    Example:
        file.read_file(path="README.md")
    """
    with LogSpan(span="file.read_file", path=path) as s:
        try:
            text = _run(_file_ops().read_text(path))
        except FsOpError as e:
            return _fail(s, e)
        s.add(resultLen=len(text))
        return text


def write_file(*, path: str, content: str) -> str:
    """Create or overwrite a file, creating parent directories.

    Example:
        file.write_file(path="notes/today.md", content="# Notes\\n")
    """
    with LogSpan(span="file.write_file", path=path, contentLen=len(content)) as s:
        try:
            written = _run(_file_ops().write_text(path, content))
        except FsOpError as e:
            return _fail(s, e)
        s.add(bytesWritten=written)
        return f"OK: wrote {written} bytes to {path}"


def delete_file(*, path: str, recursive: bool = False) -> str:
    """Delete a file or directory.

    Directories must be empty unless recursive is set.

    Args:
        path: File or directory to delete
        recursive: Delete a directory and all its contents (default: False)

    Returns:
        Success message, or error message
    """
    with LogSpan(span="file.delete_file", path=path, recursive=recursive) as s:
        try:
            outcome = _run(_file_ops().delete(path, recursive=recursive))
        except FsOpError as e:
            return _fail(s, e)
        s.add(deleted=outcome.kind, trashed=outcome.trashed)
        if outcome.trashed:
            return f"OK: Moved to trash: {path}"
        if outcome.kind == "tree":
            return f"OK: Deleted directory and all contents: {path}"
        if outcome.kind == "empty_directory":
            return f"OK: Deleted empty directory: {path}"
        return f"OK: Deleted file: {path}"


def copy_file(*, source: str, destination: str, overwrite: bool = False) -> str:
    """Copy a single file.

    Example:
        file.copy_file(source="config.yaml", destination="config.backup.yaml")
    """
    with LogSpan(span="file.copy_file", source=source, destination=destination) as s:
        try:
            size = _run(_file_ops().copy_file(source, destination, overwrite=overwrite))
        except FsOpError as e:
            return _fail(s, e)
        s.add(bytesCopied=size)
        return f"OK: Copied file from {source} to {destination} ({format_size(size)})"


def move_file(*, source: str, destination: str, overwrite: bool = False) -> str:
    """Move or rename a single file.

    Example:
        file.move_file(source="old_name.py", destination="new_name.py")
    """
    with LogSpan(span="file.move_file", source=source, destination=destination) as s:
        try:
            verb = _run(_file_ops().move_file(source, destination, overwrite=overwrite))
        except FsOpError as e:
            return _fail(s, e)
        s.add(operation=verb)
        return f"OK: {verb} file from {source} to {destination}"


def create_directory(*, path: str) -> str:
    """Create a directory and any missing parents."""
    with LogSpan(span="file.create_directory", path=path) as s:
        try:
            created = _run(_file_ops().create_directory(path))
        except FsOpError as e:
            return _fail(s, e)
        s.add(created=created)
        if not created:
            return f"OK: Directory already exists: {path}"
        return f"OK: Created directory: {path}"


def list_directory(*, path: str = ".") -> str:
    """List a directory, subdirectories first.

    Args:
        path: Directory to list (default: current directory)

    Returns:
        One "[DIRECTORY] name" or "[FILE] name" line per entry, or error message
    """
    with LogSpan(span="file.list_directory", path=path) as s:
        try:
            entries = _run(_file_ops().list_directory(path))
        except FsOpError as e:
            return _fail(s, e)
        s.add(resultCount=len(entries))
        lines = [f"Directory listing for {path}:"]
        lines.extend(f"[{e.kind.value.upper()}] {e.name}" for e in entries)
        return "\n".join(lines)
