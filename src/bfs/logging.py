"""Structured logging for bulkfs.

Operations wrap their work in a ``LogSpan``; on exit the span emits a single
loguru record with its name, elapsed time and collected attributes.

Example:
    >>> with LogSpan(span="copy.directory", source="src") as s:
    ...     s.add(filesCopied=3)
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from types import TracebackType
from typing import Any

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


class LogSpan:
    """A structured logging span with timing and attributes."""

    def __init__(self, span: str, level: str = "DEBUG", **attrs: Any) -> None:
        """Initialize a log span.

        Args:
            span: Span name (e.g., "search.files")
            level: Loguru level used when the span succeeds
            **attrs: Initial attributes to log
        """
        self.span = span
        self.level = level
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.perf_counter()

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Supports both positional and keyword argument styles.

        Args:
            key: Attribute name (optional if using kwargs)
            value: Attribute value (required if key is provided)
            **attrs: Bulk attribute additions (e.g., count=10, skipped=2)

        Returns:
            Self for method chaining
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    @property
    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def __enter__(self) -> LogSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None:
            self.attrs["error"] = f"{type(exc).__name__}: {exc}"
        level = "WARNING" if "error" in self.attrs else self.level
        logger.bind(span=self.span, **self.attrs).log(
            level,
            "{} {}ms {}",
            self.span,
            self.elapsed_ms,
            " ".join(f"{k}={v!r}" for k, v in self.attrs.items()),
        )


def configure_logging(level: str = "INFO", log_dir: Path | None = None) -> None:
    """Configure loguru sinks for the process.

    Replaces the default sink with a stderr sink at ``level``. When
    ``log_dir`` is given, also writes a rotating ``bfs.log`` there.

    Args:
        level: Minimum level for the stderr sink
        log_dir: Optional directory for the log file
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "bfs.log",
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            enqueue=False,
        )


__all__ = ["LogSpan", "configure_logging", "logger"]
