"""Multi-edit, line-addressed file patching.

A batch of edits is validated against the file as read, ordered so that no
edit shifts the lines another edit still has to address, applied to an
in-memory line buffer, and written back in a single atomic replace.

Edit kinds (line numbers are 1-based and always refer to the original file):

    replace   {line, old?, new}             substitute a line, or ``old`` within it
    insert    {after_line, content}         insert after a line (0 = top of file)
    delete    {line} | {start_line, end_line}   remove one line or an inclusive range

``new`` and ``content`` may span several lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from bfs import fsio
from bfs.errors import IOFailure, NotFound, TypeMismatch, ValidationFailure
from bfs.sandbox import PathSandbox

DEFAULT_BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


# ============================================================================
# Edit models
# ============================================================================


class _Edit(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ReplaceEdit(_Edit):
    type: Literal["replace"] = "replace"
    line: int
    old: str | None = None
    new: str


class InsertEdit(_Edit):
    type: Literal["insert"] = "insert"
    after_line: int = Field(alias="afterLine")
    content: str


class DeleteEdit(_Edit):
    type: Literal["delete"] = "delete"
    line: int | None = None
    start_line: int | None = Field(default=None, alias="startLine")
    end_line: int | None = Field(default=None, alias="endLine")


PatchEdit = Annotated[ReplaceEdit | InsertEdit | DeleteEdit, Field(discriminator="type")]


# ============================================================================
# Edit plan
# ============================================================================


@dataclass(frozen=True)
class PlannedEdit:
    """A validated edit with its resolved line span.

    Attributes:
        index: Position in the submitted batch (0-based)
        edit: The edit itself
        start: First affected line (insert: the line inserted after)
        end: Last affected line (equal to start except for range deletes)
    """

    index: int
    edit: ReplaceEdit | InsertEdit | DeleteEdit
    start: int
    end: int

    @property
    def label(self) -> str:
        return f"edit #{self.index + 1} ({self.edit.type})"

    def sort_key(self) -> tuple[int, int, int]:
        # Highest line first; at the same line inserts go before replace/delete,
        # and later inserts before earlier ones so their order is kept.
        is_insert = isinstance(self.edit, InsertEdit)
        return (-self.start, 0 if is_insert else 1, -self.index)


@dataclass
class EditPlan:
    """Validated edits in application order."""

    total_lines: int
    edits: list[PlannedEdit] = field(default_factory=list)

    @classmethod
    def build(
        cls, edits: list[ReplaceEdit | InsertEdit | DeleteEdit], total_lines: int
    ) -> EditPlan:
        """Validate ``edits`` against a file of ``total_lines`` lines.

        Raises:
            ValidationFailure: Naming the first offending edit
        """
        if not edits:
            raise ValidationFailure("No edits provided")

        planned = [_plan_edit(i, edit, total_lines) for i, edit in enumerate(edits)]
        _check_overlaps(planned)
        return cls(total_lines=total_lines, edits=sorted(planned, key=PlannedEdit.sort_key))


def _plan_edit(
    index: int, edit: ReplaceEdit | InsertEdit | DeleteEdit, total_lines: int
) -> PlannedEdit:
    label = f"edit #{index + 1} ({edit.type})"

    def in_range(line: int, name: str) -> None:
        if not 1 <= line <= total_lines:
            raise ValidationFailure(
                f"Invalid {label}: {name} {line} is out of range (file has {total_lines} lines)"
            )

    if isinstance(edit, ReplaceEdit):
        in_range(edit.line, "line")
        return PlannedEdit(index, edit, edit.line, edit.line)

    if isinstance(edit, InsertEdit):
        if not 0 <= edit.after_line <= total_lines:
            raise ValidationFailure(
                f"Invalid {label}: after_line {edit.after_line} is out of range "
                f"(must be 0-{total_lines})"
            )
        return PlannedEdit(index, edit, edit.after_line, edit.after_line)

    has_range = edit.start_line is not None or edit.end_line is not None
    if edit.line is not None and has_range:
        raise ValidationFailure(f"Invalid {label}: give either line or start_line/end_line, not both")
    if edit.line is not None:
        in_range(edit.line, "line")
        return PlannedEdit(index, edit, edit.line, edit.line)
    if edit.start_line is None or edit.end_line is None:
        raise ValidationFailure(f"Invalid {label}: requires line, or both start_line and end_line")
    in_range(edit.start_line, "start_line")
    in_range(edit.end_line, "end_line")
    if edit.start_line > edit.end_line:
        raise ValidationFailure(
            f"Invalid {label}: start_line {edit.start_line} is after end_line {edit.end_line}"
        )
    return PlannedEdit(index, edit, edit.start_line, edit.end_line)


def _check_overlaps(planned: list[PlannedEdit]) -> None:
    """Reject edits that address the same original lines."""
    spans = [p for p in planned if not isinstance(p.edit, InsertEdit)]
    inserts = [p for p in planned if isinstance(p.edit, InsertEdit)]

    ordered = sorted(spans, key=lambda p: (p.start, p.index))
    for prev, cur in zip(ordered, ordered[1:], strict=False):
        if cur.start <= prev.end:
            raise ValidationFailure(
                f"Invalid {cur.label}: overlaps {prev.label} at line {cur.start}"
            )

    for ins in inserts:
        for span in spans:
            # Inserting between two lines that are both deleted has no anchor left
            if isinstance(span.edit, DeleteEdit) and span.start <= ins.start < span.end:
                raise ValidationFailure(
                    f"Invalid {ins.label}: after_line {ins.start} falls inside "
                    f"{span.label} (lines {span.start}-{span.end})"
                )


# ============================================================================
# Applying
# ============================================================================


def _split_text(text: str) -> list[str]:
    return text.replace("\r\n", "\n").split("\n")


def split_lines(text: str) -> tuple[list[str], str, bool]:
    """Split file text into lines on ``\\n``, dropping a ``\\r`` before it.

    Other control characters (form feed, lone ``\\r``, ...) stay inside
    their line, so line numbers match what editors and ``grep -n`` show.
    Mixed files are rewritten with their dominant newline sequence.

    Returns:
        Tuple of (lines, newline sequence, had trailing newline)
    """
    crlf = text.count("\r\n")
    newline = "\r\n" if crlf and crlf * 2 >= text.count("\n") else "\n"
    if not text:
        return [], newline, False
    trailing = text.endswith("\n")
    parts = text.split("\n")
    if trailing:
        parts.pop()
    lines = [p[:-1] if p.endswith("\r") else p for p in parts]
    return lines, newline, trailing


def join_lines(lines: list[str], newline: str, trailing: bool) -> str:
    text = newline.join(lines)
    if trailing and lines:
        text += newline
    return text


def check_content(plan: EditPlan, lines: list[str]) -> None:
    """Assert every replace ``old`` text is present in its original line."""
    for planned in plan.edits:
        edit = planned.edit
        if isinstance(edit, ReplaceEdit) and edit.old is not None:
            current = lines[edit.line - 1]
            if edit.old not in current:
                raise ValidationFailure(
                    f"Content mismatch in {planned.label}: line {edit.line} does not contain "
                    f"{edit.old!r} (found {current.strip()!r})"
                )


def apply_plan(plan: EditPlan, lines: list[str]) -> tuple[list[str], dict[int, str]]:
    """Apply ``plan`` to a copy of ``lines``.

    Returns:
        Tuple of (new lines, summary per submitted edit index)
    """
    buffer = list(lines)
    summary: dict[int, str] = {}
    for planned in plan.edits:
        edit = planned.edit
        if isinstance(edit, ReplaceEdit):
            pos = edit.line - 1
            if edit.old is not None and edit.old in buffer[pos]:
                replaced = buffer[pos].replace(edit.old, edit.new, 1)
                summary[planned.index] = f"Replaced text in line {edit.line}"
            else:
                replaced = edit.new
                summary[planned.index] = f"Replaced line {edit.line}"
            buffer[pos : pos + 1] = _split_text(replaced)
        elif isinstance(edit, InsertEdit):
            new_lines = _split_text(edit.content)
            buffer[edit.after_line : edit.after_line] = new_lines
            where = "at start of file" if edit.after_line == 0 else f"after line {edit.after_line}"
            summary[planned.index] = f"Inserted {len(new_lines)} line(s) {where}"
        else:
            del buffer[planned.start - 1 : planned.end]
            if planned.start == planned.end:
                summary[planned.index] = f"Deleted line {planned.start}"
            else:
                summary[planned.index] = f"Deleted lines {planned.start}-{planned.end}"
    return buffer, summary


@dataclass
class PatchReport:
    path: str
    changes_summary: list[str]
    lines_before: int
    lines_after: int
    backup_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "changesSummary": self.changes_summary,
            "editsApplied": len(self.changes_summary),
            "linesBefore": self.lines_before,
            "linesAfter": self.lines_after,
        }
        if self.backup_path is not None:
            data["backupPath"] = self.backup_path
        return data


class PatchEngine:
    """Applies a batch of line edits to one file, all or nothing."""

    def __init__(
        self,
        sandbox: PathSandbox,
        backup_timestamp_format: str = DEFAULT_BACKUP_TIMESTAMP_FORMAT,
    ) -> None:
        self.sandbox = sandbox
        self.backup_timestamp_format = backup_timestamp_format

    def backup_path_for(self, path: Path) -> Path:
        stamp = datetime.now().strftime(self.backup_timestamp_format)
        return path.with_name(f"{path.name}.{stamp}.bak")

    async def apply(
        self,
        path: str | Path,
        edits: list[ReplaceEdit | InsertEdit | DeleteEdit],
        *,
        validate_content: bool = True,
        create_backup: bool = False,
    ) -> PatchReport:
        """Apply ``edits`` to the file at ``path``.

        Args:
            path: File to patch
            edits: Edits addressing lines of the file as it is now
            validate_content: Fail when a replace's ``old`` text is not in its line
            create_backup: Copy the original to ``<name>.<timestamp>.bak`` first

        Returns:
            PatchReport with one summary line per edit, in submission order

        Raises:
            AccessDenied: Path outside the sandbox
            NotFound: File missing
            TypeMismatch: Path is a directory
            ValidationFailure: Bad edit or content mismatch; the file is untouched
            IOFailure: Read, backup or write failed
        """
        target = self.sandbox.authorize(path)
        st = await fsio.try_stat(target)
        if st is None:
            raise NotFound(f"File does not exist: {path}", path=str(path))
        if fsio.is_dir_stat(st):
            raise TypeMismatch(f"Path is a directory, not a file: {path}", path=str(path))

        try:
            data = await fsio.read_bytes(target)
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Read", path=str(path)) from e
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationFailure(f"Cannot patch {path}: not a UTF-8 text file ({e.reason})", path=str(path)) from e

        lines, newline, trailing = split_lines(text)
        plan = EditPlan.build(list(edits), len(lines))
        if validate_content:
            check_content(plan, lines)
        new_lines, summary = apply_plan(plan, lines)

        backup: Path | None = None
        try:
            if create_backup:
                backup = self.backup_path_for(target)
                await fsio.copy_file(target, backup, preserve_timestamps=True)
                logger.debug(f"Backed up {target} to {backup}")
            await fsio.atomic_write_bytes(
                target, join_lines(new_lines, newline, trailing).encode("utf-8")
            )
        except OSError as e:
            raise IOFailure.from_os_error(e, action="Write", path=str(path)) from e

        return PatchReport(
            path=str(target),
            changes_summary=[summary[i] for i in range(len(edits))],
            lines_before=len(lines),
            lines_after=len(new_lines),
            backup_path=str(backup) if backup else None,
        )
