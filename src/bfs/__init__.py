"""bulkfs - sandboxed bulk filesystem operations.

Features:
- Recursive search by name pattern, extension and file content
- Directory copy with include/exclude filtering and timestamp preservation
- Directory move with atomic rename or recursive merge
- Multi-edit, line-addressed file patching written back atomically

Every path is checked against a fixed set of allowed root directories.

Usage:
    # Search from the command line
    bfs --allow ./project search --content TODO

    # With config
    bfs --config .bulkfs/bfs.yaml copy src backup
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bulkfs")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
