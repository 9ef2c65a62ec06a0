"""
Pattern building shared by scans, replacement and result highlighting.

The external backends get the raw query plus tool flags (-F/-E, -w, -i);
everything that runs in-process (replace, highlight) goes through
build_pattern()/compile_pattern() so both sides agree on what matches.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Optional, Pattern, Tuple

from scour.models import MatchOptions

logger = logging.getLogger(__name__)


# POSIX bracket classes accepted by grep -E / git grep -E, rewritten into
# ranges Python's re understands. Only valid inside a bracket expression,
# e.g. "[[:alpha:]_]" -> "[a-zA-Z_]".
_POSIX_CLASSES = {
    "alpha": "a-zA-Z",
    "digit": "0-9",
    "alnum": "a-zA-Z0-9",
    "upper": "A-Z",
    "lower": "a-z",
    "space": r" \t\n\r\f\v",
    "blank": r" \t",
    "xdigit": "0-9A-Fa-f",
    "punct": r"!-/:-@\[-`{-~",
    "cntrl": r"\x00-\x1f\x7f",
    "print": r"\x20-\x7e",
    "graph": r"\x21-\x7e",
}
_POSIX_CLASS_RE = re.compile(r"\[:(" + "|".join(_POSIX_CLASSES) + r"):\]")

# "$1", "${1}", "${name}" and "$$" in regex-mode replacement text
_TEMPLATE_TOKEN_RE = re.compile(r"\$(?:(\$)|(\d+)|\{(\w+)\})|(\\(?:\\|\d|g<))|(\\)")


def translate_posix_classes(pattern: str) -> str:
    """Rewrite [:class:] sequences into explicit character ranges."""
    return _POSIX_CLASS_RE.sub(lambda m: _POSIX_CLASSES[m.group(1)], pattern)


def build_pattern(options: MatchOptions) -> str:
    """
    Build the Python regex source for the options' query.

    Literal queries are escaped so metacharacters match themselves. Whole
    word follows grep -w: the match may not touch a word character on
    either side. The query is used as given; callers pass it trimmed.
    """
    if options.use_regex:
        pattern = translate_posix_classes(options.query)
        if options.whole_word:
            pattern = rf"(?<!\w)(?:{pattern})(?!\w)"
    else:
        pattern = re.escape(options.query)
        if options.whole_word:
            pattern = rf"(?<!\w){pattern}(?!\w)"
    return pattern


def pattern_flags(options: MatchOptions) -> int:
    flags = 0 if options.case_sensitive else re.IGNORECASE
    if options.use_regex:
        # grep applies ^ and $ per line
        flags |= re.MULTILINE
    return flags


def compile_pattern(options: MatchOptions) -> Optional[Pattern[str]]:
    """Compile the options' pattern, or None when it is not a valid regex."""
    try:
        return re.compile(build_pattern(options), pattern_flags(options))
    except re.error as e:
        logger.debug("Pattern %r does not compile: %s", options.query, e)
        return None


def first_match_span(line: str, options: MatchOptions) -> Optional[Tuple[int, int]]:
    """Return (start, end) of the first match in a line, for highlighting."""
    if options.is_empty:
        return None
    compiled = compile_pattern(replace(options, query=options.trimmed_query))
    if compiled is None:
        return None
    match = compiled.search(line)
    if match is None or match.start() == match.end():
        return None
    return match.span()


def expand_template(replacement: str) -> str:
    """
    Convert $-style group references into Python's re template syntax.

    "$1" / "${1}" -> "\\g<1>", "${name}" -> "\\g<name>", "$$" -> "$".
    Backslash references ("\\1", "\\g<name>") and "\\\\" pass through
    untouched; any other backslash is literal, so "C:\\path" stays as typed.
    """
    def _convert(m: "re.Match[str]") -> str:
        if m.group(1):
            return "$"
        if m.group(4):
            return m.group(4)
        if m.group(5):
            return "\\\\"
        return r"\g<" + (m.group(2) or m.group(3)) + ">"

    return _TEMPLATE_TOKEN_RE.sub(_convert, replacement)


# =============================================================================
# File filter
# =============================================================================

@dataclass(frozen=True)
class FileFilter:
    """A comma-separated file filter split into glob and directory tokens."""
    tokens: Tuple[str, ...] = ()
    globs: Tuple[str, ...] = ()
    directories: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.tokens)


def is_directory_token(token: str) -> bool:
    """A bare path like "src" or "docs/" rather than a glob like "*.py"."""
    return token.endswith("/") or ("*" not in token and "." not in token)


def parse_file_filter(text: str) -> FileFilter:
    tokens = tuple(t.strip() for t in (text or "").split(",") if t.strip())
    return FileFilter(
        tokens=tokens,
        globs=tuple(t for t in tokens if not is_directory_token(t)),
        directories=tuple(t for t in tokens if is_directory_token(t)),
    )
