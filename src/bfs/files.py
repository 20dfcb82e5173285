"""Single-entry file and directory operations.

These sit next to the bulk engines and follow the same rules: every path
is sandbox-checked first, failures raise the ``bfs.errors`` taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import charset_normalizer
from send2trash import send2trash

from bfs import fsio
from bfs.errors import (
    Conflict,
    InvalidOperation,
    IOFailure,
    NotFound,
    TypeMismatch,
    ValidationFailure,
)
from bfs.sandbox import PathSandbox
from bfs.walker import EntryKind

DEFAULT_MAX_FILE_SIZE = 10_000_000


@dataclass(frozen=True)
class ListedEntry:
    name: str
    kind: EntryKind

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.kind.value}


@dataclass(frozen=True)
class DeleteOutcome:
    path: str
    kind: Literal["file", "empty_directory", "tree"]
    trashed: bool = False


class FileOperations:
    """Read, write, delete, copy, move and list single entries."""

    def __init__(
        self,
        sandbox: PathSandbox,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        use_trash: bool = False,
    ) -> None:
        self.sandbox = sandbox
        self.max_file_size = max_file_size
        self.use_trash = use_trash

    async def _existing_file(self, path: str | Path, *, label: str | None = None) -> Path:
        resolved = self.sandbox.authorize(path, label=label)
        st = await fsio.try_stat(resolved)
        if st is None:
            raise NotFound(f"File does not exist: {path}", path=str(path))
        if not fsio.is_file_stat(st):
            raise TypeMismatch(f"Not a file: {path}", path=str(path))
        return resolved

    async def read_text(self, path: str | Path) -> str:
        """Read a text file.

        UTF-8 is tried first; other encodings are detected with
        charset-normalizer.

        Raises:
            ValidationFailure: File too large, binary, or undecodable
        """
        resolved = await self._existing_file(path)
        try:
            data = await fsio.read_bytes(resolved)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Read", path=str(path)) from e

        if len(data) > self.max_file_size:
            raise ValidationFailure(
                f"File too large: {len(data)} bytes (max: {self.max_file_size})",
                path=str(path),
            )
        if fsio.is_binary(data):
            raise ValidationFailure(
                f"Binary file detected ({len(data)} bytes): {path}", path=str(path)
            )
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            detected = charset_normalizer.from_bytes(data).best()
            if detected is None:
                raise ValidationFailure(
                    f"Could not decode file as UTF-8 or auto-detected encoding: {path}",
                    path=str(path),
                ) from None
            return str(detected)

    async def write_text(self, path: str | Path, content: str) -> int:
        """Create or replace a file atomically, creating parent directories.

        Returns:
            Number of bytes written
        """
        resolved = self.sandbox.authorize(path)
        st = await fsio.try_stat(resolved)
        if st is not None and fsio.is_dir_stat(st):
            raise TypeMismatch(f"Path is a directory: {path}", path=str(path))
        data = content.encode("utf-8")
        try:
            await fsio.makedirs(resolved.parent)
            await fsio.atomic_write_bytes(resolved, data)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Write", path=str(path)) from e
        return len(data)

    async def delete(self, path: str | Path, *, recursive: bool = False) -> DeleteOutcome:
        """Delete a file, an empty directory, or (``recursive``) a whole tree."""
        resolved = self.sandbox.authorize(path)
        st = await fsio.try_stat(resolved, follow_symlinks=False)
        if st is None:
            raise NotFound(f"Path does not exist: {path}", path=str(path))

        is_dir = fsio.is_dir_stat(st)
        kind: Literal["file", "empty_directory", "tree"] = "file"
        try:
            if is_dir and not recursive:
                if await fsio.list_dir(resolved):
                    raise InvalidOperation(
                        f"Directory is not empty. Use recursive=true to delete directory and all contents: {path}",
                        path=str(path),
                    )
                kind = "empty_directory"
            elif is_dir:
                kind = "tree"

            if self.use_trash:
                send2trash(str(resolved))
                return DeleteOutcome(str(resolved), kind, trashed=True)

            if kind == "file":
                await fsio.remove_file(resolved)
            elif kind == "empty_directory":
                await fsio.remove_empty_dir(resolved)
            else:
                await fsio.remove_tree(resolved)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Delete", path=str(path)) from e
        return DeleteOutcome(str(resolved), kind)

    async def copy_file(
        self, source: str | Path, destination: str | Path, *, overwrite: bool = False
    ) -> int:
        """Copy one file, creating the destination's parents.

        Returns:
            Size of the copied file in bytes
        """
        src = await self._existing_file(source, label="source")
        dest = self.sandbox.authorize(destination, label="destination")
        await self._check_destination(dest, destination, overwrite)
        try:
            await fsio.makedirs(dest.parent)
            return await fsio.copy_file(src, dest)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Copy", path=str(source)) from e

    async def move_file(
        self, source: str | Path, destination: str | Path, *, overwrite: bool = False
    ) -> Literal["renamed", "moved"]:
        """Move or rename one file.

        Returns:
            "renamed" when source and destination share a parent, else "moved"
        """
        src = await self._existing_file(source, label="source")
        dest = self.sandbox.authorize(destination, label="destination")
        await self._check_destination(dest, destination, overwrite)
        try:
            await fsio.makedirs(dest.parent)
            await fsio.move_entry(src, dest)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Move", path=str(source)) from e
        return "renamed" if src.parent == dest.parent else "moved"

    async def _check_destination(
        self, dest: Path, destination: str | Path, overwrite: bool
    ) -> None:
        st = await fsio.try_stat(dest, follow_symlinks=False)
        if st is None:
            return
        if fsio.is_dir_stat(st):
            raise TypeMismatch(f"Destination is a directory: {destination}", path=str(destination))
        if not overwrite:
            raise Conflict(
                f"Destination already exists (use overwrite=true to replace): {destination}",
                path=str(destination),
            )

    async def create_directory(self, path: str | Path) -> bool:
        """Create a directory and missing parents.

        Returns:
            True if created, False if it already existed
        """
        resolved = self.sandbox.authorize(path)
        st = await fsio.try_stat(resolved)
        if st is not None and not fsio.is_dir_stat(st):
            raise TypeMismatch(f"Path exists and is not a directory: {path}", path=str(path))
        try:
            return await fsio.makedirs(resolved)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Create directory", path=str(path)) from e

    async def list_directory(self, path: str | Path) -> list[ListedEntry]:
        """List a directory, directories first, each group by name."""
        resolved = self.sandbox.authorize(path)
        st = await fsio.try_stat(resolved)
        if st is None:
            raise NotFound(f"Directory does not exist: {path}", path=str(path))
        if not fsio.is_dir_stat(st):
            raise TypeMismatch(f"Not a directory: {path}", path=str(path))
        try:
            entries = await fsio.list_dir(resolved)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="List", path=str(path)) from e
        listed = [
            ListedEntry(e.name, EntryKind.DIRECTORY if e.is_dir else EntryKind.FILE)
            for e in entries
        ]
        listed.sort(key=lambda e: (e.kind is not EntryKind.DIRECTORY, e.name))
        return listed
