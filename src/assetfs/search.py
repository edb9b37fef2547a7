"""Content search helpers: per-line matching with truncated previews."""

from __future__ import annotations

import re
from dataclasses import dataclass

ELLIPSIS = "..."


@dataclass
class SearchResult:
    """One matching line."""

    path: str
    line_number: int  # 1-based
    preview: str


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Case-insensitive regular expression; raises ``re.error`` on bad input."""
    return re.compile(pattern, re.IGNORECASE)


def truncate_preview(line: str, width: int) -> str:
    if len(line) > width:
        return line[:width] + ELLIPSIS
    return line


def match_lines(
    path: str,
    text: str,
    regex: re.Pattern[str],
    results: list[SearchResult],
    *,
    limit: int,
    width: int,
) -> bool:
    """Append matches in ``text`` to ``results``; returns True once ``limit`` is hit."""
    for number, line in enumerate(text.split("\n"), start=1):
        if len(results) >= limit:
            return True
        if regex.search(line):
            results.append(SearchResult(path=path, line_number=number, preview=truncate_preview(line, width)))
    return len(results) >= limit
