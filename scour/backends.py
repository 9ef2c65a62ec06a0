"""
Search backends -- the external line matchers behind a scan.

Two implementations of one interface:

- GitGrepBackend: `git grep` for version-controlled roots. Honors
  .gitignore natively and takes file filters as pathspecs.
- GrepBackend:    recursive `grep` for everything else. Skips a fixed list
  of noise directories and maps glob filters to --include.

Both are asked for plain `relativePath:lineNumber:content` lines with no
color codes and no binary files, so one parser handles either.

Usage:
    from scour.backends import select_backend, is_version_controlled

    backend = select_backend(is_version_controlled(root))
    argv = backend.build_args(options)
"""

import os
from abc import ABC, abstractmethod
from typing import List, Optional

from scour.models import MatchOptions
from scour.patterns import parse_file_filter
from scour.settings import SearchSettings


def is_version_controlled(root: str) -> bool:
    """Default VCS probe: a .git entry (directory, or file for worktrees)."""
    return os.path.exists(os.path.join(root, ".git"))


class SearchBackend(ABC):
    """Builds the argv for one external search tool."""

    name = ""

    def __init__(self, settings: Optional[SearchSettings] = None):
        self.settings = settings or SearchSettings()

    @property
    @abstractmethod
    def executable(self) -> str:
        ...

    @abstractmethod
    def build_args(self, options: MatchOptions) -> List[str]:
        """Full argv (executable first) for searching with these options."""
        ...

    def parse_success(self, exit_code: int) -> bool:
        """0 = matches, 1 = no matches; both are normal completions."""
        return exit_code in (0, 1)

    def _match_flags(self, options: MatchOptions) -> List[str]:
        flags = []
        if not options.case_sensitive:
            flags.append("-i")
        if options.whole_word:
            flags.append("-w")
        flags.append("-E" if options.use_regex else "--fixed-strings")
        # -e keeps queries starting with "-" from being read as options
        flags.extend(["-e", options.trimmed_query])
        return flags

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.executable}>"


class GitGrepBackend(SearchBackend):
    """git grep over the tracked tree."""

    name = "git-grep"

    @property
    def executable(self) -> str:
        return self.settings.git_executable

    def build_args(self, options: MatchOptions) -> List[str]:
        # quotePath off: non-ASCII paths come back verbatim instead of "\303\251"
        args = [self.executable, "-c", "core.quotePath=false",
                "grep", "-n", "--color=never", "-I"]
        if self.settings.max_count_per_file:
            args.append(f"--max-count={self.settings.max_count_per_file}")
        args.extend(self._match_flags(options))

        file_filter = parse_file_filter(options.file_filter)
        if file_filter:
            args.append("--")
            args.extend(file_filter.tokens)
        return args


class GrepBackend(SearchBackend):
    """Plain recursive grep over the filesystem."""

    name = "grep"

    @property
    def executable(self) -> str:
        return self.settings.grep_executable

    def build_args(self, options: MatchOptions) -> List[str]:
        # -H forces the filename even when a single file is searched
        args = [self.executable, "-rnH", "--color=never", "-I"]
        for directory in self.settings.exclude_dirs:
            args.append(f"--exclude-dir={directory}")

        file_filter = parse_file_filter(options.file_filter)
        for glob in file_filter.globs:
            args.append(f"--include={glob}")

        args.extend(self._match_flags(options))

        roots = [d.rstrip("/") or "/" for d in file_filter.directories]
        args.extend(roots or ["."])
        return args


def select_backend(version_controlled: bool,
                   settings: Optional[SearchSettings] = None) -> SearchBackend:
    """Pick the backend for a root; the VCS answer comes from the caller."""
    if version_controlled:
        return GitGrepBackend(settings)
    return GrepBackend(settings)
