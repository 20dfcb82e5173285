"""Glob and content-query compilation.

Name patterns understand ``*`` (any run of characters) and ``?`` (exactly one
character); every other character is literal and the pattern must match the
whole name.

Content queries come in three forms:

    /regex/flags   raw regular expression (flags: i, m, s, x; g and u ignored)
    *glob?         glob compiled like a name pattern, but unanchored
    text           plain substring

Compilation never raises: an invalid regex degrades to substring matching.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

Predicate = Callable[[str], bool]
QueryKind = Literal["regex", "glob", "text"]

_REGEX_QUERY = re.compile(r"^/(?P<body>.+)/(?P<flags>[gimsuxy]*)$", re.DOTALL)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    # JavaScript-only flags, meaningless for a per-line scan
    "g": 0,
    "u": 0,
    "y": 0,
}


def glob_to_regex(pattern: str, *, anchored: bool = True) -> str:
    """Translate a ``*``/``?`` glob into a regular expression source.

    All regex metacharacters are escaped first, then the escaped wildcards
    are turned back into ``.*`` and ``.``.
    """
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    if anchored:
        return rf"\A{escaped}\Z"
    return escaped


def compile_name_pattern(pattern: str | None, case_sensitive: bool = False) -> Predicate:
    """Compile a glob into a full-name predicate.

    A missing or empty pattern matches everything.
    """
    if not pattern:
        return lambda _name: True
    flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
    regex = re.compile(glob_to_regex(pattern), flags)
    return lambda name: regex.match(name) is not None


def compile_any_pattern(patterns: Iterable[str], case_sensitive: bool = False) -> Predicate | None:
    """Compile several globs into one predicate matching if any of them does.

    Returns None when there are no patterns, so callers can tell "no filter"
    apart from "filter that rejects everything".
    """
    compiled = [compile_name_pattern(p, case_sensitive) for p in patterns if p]
    if not compiled:
        return None
    return lambda name: any(match(name) for match in compiled)


@dataclass
class ContentQuery:
    """A compiled content query.

    Attributes:
        query: Query string as supplied
        kind: How the query was interpreted
        regex: Compiled expression (None for plain text)
        needle: Substring for plain text matching
    """

    query: str
    kind: QueryKind
    case_sensitive: bool = False
    regex: re.Pattern[str] | None = None
    needle: str = ""
    _folded: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        self._folded = self.needle if self.case_sensitive else self.needle.casefold()

    def __call__(self, text: str) -> bool:
        if self.regex is not None:
            return self.regex.search(text) is not None
        if self.case_sensitive:
            return self._folded in text
        return self._folded in text.casefold()


def _regex_flags(spec: str, case_sensitive: bool) -> int:
    flags = 0 if case_sensitive else re.IGNORECASE
    for char in spec:
        flags |= _FLAG_MAP[char]
    return flags


def compile_content_query(query: str, case_sensitive: bool = False) -> ContentQuery:
    """Compile a content query into a predicate over text.

    Args:
        query: ``/regex/flags``, a glob containing ``*`` or ``?``, or plain text
        case_sensitive: When False every form matches case-insensitively

    Returns:
        Callable ContentQuery
    """
    delimited = _REGEX_QUERY.match(query)
    if delimited:
        body = delimited.group("body")
        try:
            regex = re.compile(body, _regex_flags(delimited.group("flags"), case_sensitive))
        except re.error as e:
            logger.debug(f"Invalid regex {query!r} ({e}), falling back to substring match")
            return ContentQuery(query=query, kind="text", case_sensitive=case_sensitive, needle=body)
        return ContentQuery(query=query, kind="regex", case_sensitive=case_sensitive, regex=regex)

    if "*" in query or "?" in query:
        flags = 0 if case_sensitive else re.IGNORECASE
        regex = re.compile(glob_to_regex(query, anchored=False), flags)
        return ContentQuery(query=query, kind="glob", case_sensitive=case_sensitive, regex=regex)

    return ContentQuery(query=query, kind="text", case_sensitive=case_sensitive, needle=query)


def normalize_extension(file_type: str) -> str:
    """Normalize an extension filter: ``"TS"``, ``".ts"`` and ``"*.ts"`` become ``"ts"``."""
    return file_type.strip().lstrip("*").lstrip(".").lower()


def matches_extension(name: str, file_type: str | None) -> bool:
    """Check a file name against an extension filter (case-insensitive)."""
    if not file_type:
        return True
    ext = os.path.splitext(name)[1][1:].lower()
    return ext == normalize_extension(file_type)
