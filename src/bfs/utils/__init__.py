"""bulkfs utilities."""

from bfs.utils.format import format_size, serialize_result

__all__ = ["format_size", "serialize_result"]
