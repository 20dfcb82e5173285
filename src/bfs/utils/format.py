"""Result serialization and size formatting for tool responses."""

from __future__ import annotations

import json
from typing import Any

__all__ = ["format_size", "serialize_result"]


def serialize_result(result: Any) -> str:
    """Serialize an operation result to text.

    - Strings pass through unchanged
    - Objects with ``to_dict()`` are converted first
    - Dicts and lists are serialized to compact JSON
    - Other types use str()

    Args:
        result: Operation result

    Returns:
        String representation suitable for a tool response
    """
    if isinstance(result, str):
        return result
    if hasattr(result, "to_dict"):
        result = result.to_dict()
    if isinstance(result, (dict, list)):
        return json.dumps(result, ensure_ascii=False, separators=(",", ":"))
    return str(result)


def format_size(size_bytes: int) -> str:
    """Format bytes as human-readable size.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable string like "1.23 MB"
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
