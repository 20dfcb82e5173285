"""Async filesystem primitives shared by the engines.

Every call here is a suspension point: blocking os/shutil functions run in
the default executor through aiofiles. Existence probes return ``None``
instead of raising.
"""

from __future__ import annotations

import errno
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os
from aiofiles.ospath import wrap

# Pre-computed set of text characters for binary detection
# Includes common control chars (bell, backspace, tab, newline, formfeed, carriage return, escape)
# plus all printable ASCII and extended ASCII
_TEXT_CHARS = frozenset({7, 8, 9, 10, 12, 13, 27} | set(range(0x20, 0x100)))

BINARY_SAMPLE_SIZE = 8192


@dataclass(frozen=True)
class DirEntryInfo:
    """Snapshot of one directory entry with its type resolved."""

    name: str
    path: Path
    is_dir: bool
    is_file: bool
    is_symlink: bool


def _scan(path: str, follow_symlinks: bool) -> list[DirEntryInfo]:
    entries: list[DirEntryInfo] = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir(follow_symlinks=follow_symlinks)
                is_file = entry.is_file(follow_symlinks=follow_symlinks)
                is_symlink = entry.is_symlink()
            except OSError:
                # Entry vanished or is unreadable; treat as neither
                is_dir = is_file = False
                is_symlink = False
            entries.append(
                DirEntryInfo(
                    name=entry.name,
                    path=Path(entry.path),
                    is_dir=is_dir,
                    is_file=is_file,
                    is_symlink=is_symlink,
                )
            )
    entries.sort(key=lambda e: e.name)
    return entries


_scan_async = wrap(_scan)
_lstat = wrap(os.lstat)
_realpath = wrap(os.path.realpath)
_utime = wrap(os.utime)
_copyfile = wrap(shutil.copyfile)
_copy2 = wrap(shutil.copy2)
_copymode = wrap(shutil.copymode)
_rmtree = wrap(shutil.rmtree)
_mkstemp = wrap(tempfile.mkstemp)
_close = wrap(os.close)


async def try_stat(path: Path, *, follow_symlinks: bool = True) -> os.stat_result | None:
    """Stat ``path``, returning None when it does not exist.

    Other errors (e.g. permission denied on a parent) propagate.
    """
    try:
        if follow_symlinks:
            return await aiofiles.os.stat(path)
        return await _lstat(path)
    except FileNotFoundError:
        return None
    except NotADirectoryError:
        return None


def is_dir_stat(st: os.stat_result) -> bool:
    return stat.S_ISDIR(st.st_mode)


def is_file_stat(st: os.stat_result) -> bool:
    return stat.S_ISREG(st.st_mode)


async def list_dir(path: Path, *, follow_symlinks: bool = True) -> list[DirEntryInfo]:
    """List a directory with type metadata, sorted by name."""
    return await _scan_async(str(path), follow_symlinks)


async def realpath(path: Path) -> Path:
    """Canonical path with all symlinks resolved."""
    return Path(await _realpath(str(path)))


async def makedirs(path: Path) -> bool:
    """Create ``path`` and missing parents.

    Returns:
        True if the directory was created, False if it already existed
    """
    try:
        await aiofiles.os.makedirs(path)
    except FileExistsError:
        if await aiofiles.os.path.isdir(path):
            return False
        raise
    return True


async def copy_file(
    source: Path, destination: Path, *, preserve_timestamps: bool = False
) -> int:
    """Copy file content, optionally carrying over access/modify times.

    Returns:
        Number of bytes copied
    """
    src_stat = await aiofiles.os.stat(source)
    await _copyfile(source, destination)
    if preserve_timestamps:
        await _utime(destination, ns=(src_stat.st_atime_ns, src_stat.st_mtime_ns))
    return src_stat.st_size


async def move_entry(source: Path, destination: Path) -> None:
    """Rename ``source`` onto ``destination``, copying across devices."""
    try:
        await aiofiles.os.replace(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        await _copy2(source, destination, follow_symlinks=False)
        await aiofiles.os.remove(source)


async def rename(source: Path, destination: Path) -> None:
    await aiofiles.os.rename(source, destination)


async def remove_file(path: Path) -> None:
    await aiofiles.os.remove(path)


async def remove_empty_dir(path: Path) -> bool:
    """Remove ``path`` if it is empty.

    Returns:
        True if removed, False if the directory still had entries
    """
    try:
        await aiofiles.os.rmdir(path)
    except OSError as e:
        if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
            return False
        raise
    return True


async def remove_tree(path: Path) -> None:
    await _rmtree(path)


async def read_bytes(path: Path) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


async def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a sibling temp file and rename.

    Readers see either the old content or the new content, never a mix.
    Permissions of an existing file are preserved.
    """
    fd, temp_name = await _mkstemp(
        dir=str(path.parent), prefix=".tmp_", suffix=path.suffix
    )
    await _close(fd)
    temp_path = Path(temp_name)
    try:
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(data)
        if await aiofiles.os.path.exists(path):
            await _copymode(path, temp_path)
        await aiofiles.os.replace(temp_path, path)
    except Exception:
        if await aiofiles.os.path.exists(temp_path):
            await aiofiles.os.remove(temp_path)
        raise


def is_binary(data: bytes, sample_size: int = BINARY_SAMPLE_SIZE) -> bool:
    """Detect if data appears to be binary.

    Args:
        data: Bytes to check
        sample_size: Number of bytes to sample

    Returns:
        True if data appears binary
    """
    sample = data[:sample_size]
    if b"\x00" in sample:
        return True
    non_text = sum(1 for byte in sample if byte not in _TEXT_CHARS)
    return non_text / len(sample) > 0.3 if sample else False
