"""Request models for the bulk operations.

Field names are the wire names accepted by the tool layer. Each request
converts into the plan/spec objects the engines take.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from bfs.copy import CopyPlan
from bfs.move import MergePlan
from bfs.patch import PatchEdit
from bfs.search import MatchSpec
from bfs.walker import TraversalRequest


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output_format: Literal["text", "json"] = Field(
        default="text", description="text for a readable summary, json for the report payload"
    )


class SearchRequest(_Request):
    directory: str | None = Field(default=None, description="Directory to search (default: first allowed directory)")
    pattern: str | None = Field(default=None, description="Glob matched against file and directory names")
    content: str | None = Field(default=None, description="Text, glob or /regex/flags searched in file content")
    file_type: str | None = Field(default=None, description="Extension filter, e.g. 'py'")
    max_depth: int = Field(default=10, ge=0)
    max_results: int = Field(default=100, ge=1)
    case_sensitive: bool = False
    include_hidden: bool = False
    show_context: bool = True

    def to_spec(self) -> MatchSpec:
        return MatchSpec(
            pattern=self.pattern,
            content=self.content,
            file_type=self.file_type,
            case_sensitive=self.case_sensitive,
            show_context=self.show_context,
        )

    def to_traversal(self) -> TraversalRequest:
        return TraversalRequest(
            max_depth=self.max_depth,
            include_hidden=self.include_hidden,
            max_results=self.max_results,
        )


class CopyRequest(_Request):
    source: str
    destination: str
    recursive: bool = True
    overwrite: bool = False
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    preserve_timestamps: bool = True
    max_depth: int = Field(default=50, ge=0)

    def to_plan(self) -> CopyPlan:
        return CopyPlan(
            recursive=self.recursive,
            overwrite=self.overwrite,
            include_patterns=list(self.include_patterns),
            exclude_patterns=list(self.exclude_patterns),
            preserve_timestamps=self.preserve_timestamps,
            max_depth=self.max_depth,
        )


class MoveRequest(_Request):
    source: str
    destination: str
    merge_existing: bool = False
    overwrite_files: bool = False

    def to_plan(self) -> MergePlan:
        return MergePlan(
            merge_existing=self.merge_existing,
            overwrite_files=self.overwrite_files,
        )


class PatchRequest(_Request):
    path: str
    edits: list[PatchEdit]
    validate_content: bool = True
    create_backup: bool = False
