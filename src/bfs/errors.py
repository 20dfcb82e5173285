"""Error taxonomy for bulkfs operations.

Every operation either returns a structured result or raises one of the
``FsOpError`` subclasses below. Callers switch on the exception class or on
``FsOpError.kind``; messages are for humans only.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the engines."""

    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    TYPE_MISMATCH = "type_mismatch"
    CONFLICT = "conflict"
    VALIDATION_FAILURE = "validation_failure"
    INVALID_OPERATION = "invalid_operation"
    IO_FAILURE = "io_failure"


class FsOpError(Exception):
    """Base class for all typed operation failures.

    Attributes:
        kind: Failure kind, fixed per subclass
        message: Human readable description naming the offending path/edit
        path: Offending path, if any
        stats: Partial statistics of a bulk operation aborted midway
    """

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        stats: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.path = path
        self.stats = stats
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured responses."""
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.path is not None:
            data["path"] = self.path
        if self.stats is not None:
            data["stats"] = self.stats
        return data


class AccessDenied(FsOpError):
    """Path resolves outside every sandbox root."""

    kind = ErrorKind.ACCESS_DENIED


class NotFound(FsOpError):
    """Source file or directory does not exist."""

    kind = ErrorKind.NOT_FOUND


class TypeMismatch(FsOpError):
    """Expected a file and found a directory, or the reverse."""

    kind = ErrorKind.TYPE_MISMATCH


class Conflict(FsOpError):
    """Destination exists and neither overwrite nor merge was requested."""

    kind = ErrorKind.CONFLICT


class ValidationFailure(FsOpError):
    """Patch edit out of range, malformed, overlapping or content mismatch."""

    kind = ErrorKind.VALIDATION_FAILURE


class InvalidOperation(FsOpError):
    """Request is structurally impossible (e.g. destination nested in source)."""

    kind = ErrorKind.INVALID_OPERATION


class IOFailure(FsOpError):
    """Underlying filesystem error not otherwise classified."""

    kind = ErrorKind.IO_FAILURE

    @classmethod
    def from_os_error(
        cls,
        error: OSError,
        *,
        action: str,
        path: str | None = None,
        stats: dict[str, Any] | None = None,
    ) -> IOFailure:
        """Wrap an OSError raised while performing ``action``."""
        target = path or error.filename
        reason = error.strerror or str(error)
        message = f"{action} failed for {target}: {reason}" if target else f"{action} failed: {reason}"
        return cls(message, path=str(target) if target else None, stats=stats)


__all__ = [
    "AccessDenied",
    "Conflict",
    "ErrorKind",
    "FsOpError",
    "IOFailure",
    "InvalidOperation",
    "NotFound",
    "TypeMismatch",
    "ValidationFailure",
]
