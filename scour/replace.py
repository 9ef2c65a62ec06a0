"""
Replace Engine -- rewrites matched text on disk.

apply_replacement() is the pure part; replace_in_file() adds the read and
the atomic write; replace_all() walks a snapshot of scan results. None of
them raise on bad patterns or I/O trouble: failures count as zero
replacements, and a partially successful replace-all is not rolled back.

Usage:
    from scour.replace import replace_all

    outcome = replace_all(snapshot.scan.results, root, "alpha", "omega", options)
    print(outcome.files_changed, outcome.replacements_count)
"""

import codecs
import difflib
import logging
import os
import re
import stat
import tempfile
from dataclasses import replace as dataclass_replace
from typing import Iterable, Optional, Tuple

from scour.models import FileResult, MatchOptions, ReplaceOutcome
from scour.patterns import compile_pattern, expand_template

logger = logging.getLogger(__name__)


def apply_replacement(content: str, query: str, replacement: str,
                      options: MatchOptions) -> Tuple[str, int]:
    """
    Replace every non-overlapping match of query in content.

    Returns (new_content, count). Literal mode inserts the replacement
    verbatim; regex mode expands group references ($1, \\1, ${name}).
    An invalid pattern or template gives (content, 0).
    """
    compiled = compile_pattern(dataclass_replace(options, query=query))
    if compiled is None:
        return content, 0

    if options.use_regex:
        try:
            new_content, count = compiled.subn(expand_template(replacement), content)
        except re.error as e:
            logger.debug("Invalid replacement template %r: %s", replacement, e)
            return content, 0
    else:
        new_content, count = compiled.subn(lambda _m: replacement, content)
    return new_content, count


# =============================================================================
# File I/O
# =============================================================================

def _read_text(path: str) -> Optional[Tuple[str, str]]:
    """Read a whole file as (text, encoding); None if unreadable or not UTF-8."""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None

    encoding = "utf-8-sig" if data.startswith(codecs.BOM_UTF8) else "utf-8"
    try:
        return data.decode(encoding), encoding
    except UnicodeDecodeError:
        logger.debug("Skipping %s: not valid UTF-8", path)
        return None


def atomic_write_text(path: str, text: str, encoding: str = "utf-8") -> None:
    """
    Write text to path via a temp file in the same directory + os.replace.

    Readers see either the old file or the new one, never a partial write.
    Symlinks are followed so the link itself survives, and the original
    permission bits are carried over.
    """
    target = os.path.realpath(path)
    fd, tmp_path = tempfile.mkstemp(
        dir=os.path.dirname(target),
        prefix=f".{os.path.basename(target)}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(text.encode(encoding))
            f.flush()
            os.fsync(f.fileno())
        try:
            os.chmod(tmp_path, stat.S_IMODE(os.stat(target).st_mode))
        except FileNotFoundError:
            pass  # target vanished; the rename recreates it
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def replace_in_file(path: str, query: str, replacement: str,
                    options: MatchOptions) -> int:
    """
    Replace all matches of query in one file and return the count.

    Writes only when something matched and the text actually changed.
    Any read, decode or write failure returns 0.
    """
    if not query.strip():
        return 0

    loaded = _read_text(path)
    if loaded is None:
        return 0
    content, encoding = loaded

    new_content, count = apply_replacement(content, query, replacement, options)
    if count == 0 or new_content == content:
        return 0

    try:
        atomic_write_text(path, new_content, encoding)
    except (OSError, UnicodeError) as e:
        logger.warning("Failed to write replacements to %s: %s", path, e)
        return 0

    logger.debug("Replaced %d occurrence(s) in %s", count, path)
    return count


def preview_in_file(path: str, query: str, replacement: str,
                    options: MatchOptions, label: Optional[str] = None) -> Tuple[int, str]:
    """Dry run of replace_in_file: (count, unified diff). Nothing is written."""
    if not query.strip():
        return 0, ""
    loaded = _read_text(path)
    if loaded is None:
        return 0, ""
    content, _ = loaded

    new_content, count = apply_replacement(content, query, replacement, options)
    if count == 0 or new_content == content:
        return 0, ""

    name = label or path
    diff = difflib.unified_diff(
        content.splitlines(keepends=True),
        new_content.splitlines(keepends=True),
        fromfile=f"a/{name}",
        tofile=f"b/{name}",
    )
    return count, "".join(diff)


# =============================================================================
# Replace-all
# =============================================================================

def is_under_root(path: str, root: str) -> bool:
    """True if path resolves to a location inside root (component-wise)."""
    try:
        real_path = os.path.realpath(path)
        real_root = os.path.realpath(root)
        return os.path.commonpath([real_path, real_root]) == real_root
    except ValueError:
        # different drives on Windows, or an empty path
        return False


def replace_all(files: Iterable[FileResult], root: str, query: str,
                replacement: str, options: MatchOptions) -> ReplaceOutcome:
    """
    Run replace_in_file over a snapshot of results.

    Files that no longer resolve under root are skipped. A file counts as
    changed only if at least one replacement was written to it.
    """
    files_changed = 0
    replacements = 0
    for file_result in files:
        if not is_under_root(file_result.path, root):
            logger.debug("Skipping %s: not under %s", file_result.path, root)
            continue
        count = replace_in_file(file_result.path, query, replacement, options)
        if count > 0:
            files_changed += 1
            replacements += count

    logger.info("Replace-all changed %d file(s), %d replacement(s)", files_changed, replacements)
    return ReplaceOutcome(files_changed=files_changed, replacements_count=replacements)
