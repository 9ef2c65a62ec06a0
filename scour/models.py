"""
Result and option value types for project search.

Everything here is plain data. Scans build fresh FileResult/LineMatch
objects every time; nothing is patched in place after a replace, the
coordinator simply runs a new scan.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class MatchOptions:
    """Everything that decides what a scan matches."""
    query: str = ""
    case_sensitive: bool = False
    use_regex: bool = False
    whole_word: bool = False
    file_filter: str = ""  # globs or directory prefixes, e.g. "*.py, src/"

    @property
    def trimmed_query(self) -> str:
        return self.query.strip()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to search for."""
        return not self.trimmed_query


@dataclass(frozen=True)
class LineMatch:
    """A single matching line."""
    line_number: int   # 1-based
    line_content: str  # raw line text, untrimmed


@dataclass(frozen=True)
class FileResult:
    """All matches within one file, in the order the backend reported them."""
    path: str           # absolute path, identity key
    relative_path: str  # relative to the scan root
    matches: Tuple[LineMatch, ...] = ()

    @property
    def file_name(self) -> str:
        return os.path.basename(self.path)

    @property
    def directory_path(self) -> str:
        """Directory part of relative_path ("" for files at the root)."""
        return os.path.dirname(self.relative_path)

    @property
    def match_count(self) -> int:
        return len(self.matches)


@dataclass(frozen=True)
class ScanState:
    """
    Published outcome of one scan generation.

    A pattern error always comes with empty results and a zero total;
    `unavailable` is set when the backend process could not be started.
    """
    generation: int = 0
    results: Tuple[FileResult, ...] = ()
    total_matches: int = 0
    is_searching: bool = False
    regex_error: Optional[str] = None
    truncated: bool = False
    unavailable: Optional[str] = None


@dataclass(frozen=True)
class ReplaceOutcome:
    """Summary of one replace invocation (single file or replace-all)."""
    files_changed: int = 0
    replacements_count: int = 0

    def __bool__(self) -> bool:
        return self.replacements_count > 0


@dataclass(frozen=True)
class SearchSnapshot:
    """The full observable surface of a SearchCoordinator at one instant."""
    root: Optional[str] = None
    options: MatchOptions = field(default_factory=MatchOptions)
    replace_text: str = ""
    scan: ScanState = field(default_factory=ScanState)
    is_replacing: bool = False
    last_replace_result: Optional[ReplaceOutcome] = None

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "query": self.options.query,
            "total_matches": self.scan.total_matches,
            "files": len(self.scan.results),
            "is_searching": self.scan.is_searching,
            "regex_error": self.scan.regex_error,
            "truncated": self.scan.truncated,
            "is_replacing": self.is_replacing,
        }
