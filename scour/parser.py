"""
Output Parser -- turns backend output into grouped FileResults.

Input lines look like `relativePath:lineNumber:content`. The path ends at
the first colon that is not backslash-escaped, the line number at the
next colon, and the content is everything after it, colons included.
Lines that do not fit that shape are dropped.
"""

import os
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from scour.models import FileResult, LineMatch


def _split_path(line: str) -> Optional[Tuple[str, str]]:
    """Split off the path at the first unescaped colon."""
    start = 0
    while True:
        idx = line.find(":", start)
        if idx == -1:
            return None
        if idx > 0 and line[idx - 1] == "\\":
            start = idx + 1
            continue
        return line[:idx].replace("\\:", ":"), line[idx + 1:]


def parse_line(line: str) -> Optional[Tuple[str, int, str]]:
    """Parse one output line into (relative_path, line_number, content)."""
    split = _split_path(line)
    if split is None:
        return None
    path, rest = split

    number, sep, content = rest.partition(":")
    if not path or not sep or not number.isascii() or not number.isdigit():
        return None
    line_number = int(number)
    if line_number < 1:
        return None

    # `grep -r .` prefixes every path with "./"
    while path.startswith("./"):
        path = path[2:]
    if not path:
        return None
    return path, line_number, content


def parse_output(output: str, root: str) -> List[FileResult]:
    """
    Group raw backend output by file.

    Files appear in first-seen order and matches in encounter order.
    Relative paths are joined onto root; absolute ones are kept as-is.
    """
    if not output:
        return []

    grouped: Dict[str, List[LineMatch]] = {}
    for line in output.split("\n"):
        if not line:
            continue
        parsed = parse_line(line)
        if parsed is None:
            continue
        relative_path, line_number, content = parsed
        grouped.setdefault(relative_path, []).append(
            LineMatch(line_number=line_number, line_content=content)
        )

    results = []
    for relative_path, matches in grouped.items():
        if os.path.isabs(relative_path):
            path = relative_path
        else:
            path = os.path.normpath(os.path.join(root, relative_path))
        results.append(FileResult(path=path, relative_path=relative_path, matches=tuple(matches)))
    return results


def total_matches(results: Sequence[FileResult]) -> int:
    return sum(r.match_count for r in results)


def cap_results(results: Sequence[FileResult], max_results: int) -> Tuple[List[FileResult], bool]:
    """
    Keep at most max_results matches in total, preserving order.

    Returns (kept, truncated). A cap of 0 disables truncation.
    """
    if max_results <= 0:
        return list(results), False

    kept: List[FileResult] = []
    remaining = max_results
    for file_result in results:
        if remaining <= 0:
            return kept, True
        if file_result.match_count <= remaining:
            kept.append(file_result)
            remaining -= file_result.match_count
        else:
            kept.append(replace(file_result, matches=file_result.matches[:remaining]))
            return kept, True
    return kept, False
