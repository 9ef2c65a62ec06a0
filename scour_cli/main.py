#!/usr/bin/env python3
"""
scour CLI - project-wide search and replace from the terminal.

Usage:
    scour search TODO                          # search the current directory
    scour search "def \\w+_test" --regex --files "*.py, tests/"
    scour replace alpha omega                  # dry run: show the diff
    scour replace alpha omega --apply          # write the changes
    scour config show                          # show configuration
    scour config set search.max_results 500    # change a setting
    scour config path                          # print config file path

Exit status is 2 for an invalid pattern or bad arguments, 1 when the
search tool could not be run, 0 otherwise.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import fire
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from scour.coordinator import SearchCoordinator
from scour.models import MatchOptions, ReplaceOutcome, SearchSnapshot
from scour.replace import preview_in_file
from scour.settings import SearchSettings
from scour_cli import __version__
from scour_cli.config import (
    build_settings,
    get_config_path,
    get_env_path,
    load_config,
    set_config_value,
    show_config,
)
from scour_cli.display import render_diffs, render_outcome, render_scan
from scour_cli.logging_setup import setup_logging

logger = logging.getLogger(__name__)

console = Console()

EXIT_OK = 0
EXIT_UNAVAILABLE = 1
EXIT_USAGE = 2

# How long a CLI invocation waits for a scan or replace to finish
WAIT_TIMEOUT = 120.0


def _fail(message: str, code: int = EXIT_USAGE):
    console.print(f"[bold red]Error:[/] {escape(message)}")
    sys.exit(code)


def _bootstrap(verbose: bool) -> Tuple[Dict[str, Any], SearchSettings]:
    """Load ~/.scour/.env and config.yaml, set up logging, build engine settings."""
    env_path = get_env_path()
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)

    config = load_config()
    setup_logging(verbose, config)
    try:
        settings = build_settings(config)
    except ValueError as e:
        _fail(f"invalid search settings in {get_config_path()}: {e}")
    return config, settings


def _resolve_root(root: Optional[str]) -> str:
    path = os.path.abspath(os.path.expanduser(root or os.getcwd()))
    if not os.path.isdir(path):
        _fail(f"not a directory: {path}")
    return path


def _start(coordinator: SearchCoordinator, root: str, options: MatchOptions):
    coordinator.set_root(root)
    coordinator.case_sensitive = options.case_sensitive
    coordinator.use_regex = options.use_regex
    coordinator.whole_word = options.whole_word
    coordinator.file_filter = options.file_filter
    coordinator.query = options.query
    coordinator.refresh()


def _run_scan(settings: SearchSettings, root: str, options: MatchOptions) -> SearchSnapshot:
    """Drive one scan through the coordinator and return the settled snapshot."""
    with SearchCoordinator(settings) as coordinator:
        _start(coordinator, root, options)
        if not coordinator.wait_idle(WAIT_TIMEOUT):
            logger.warning("Search did not finish within %.0fs", WAIT_TIMEOUT)
        return coordinator.snapshot()


def _scan_exit_code(snapshot: SearchSnapshot) -> int:
    if snapshot.scan.regex_error:
        return EXIT_USAGE
    if snapshot.scan.unavailable:
        return EXIT_UNAVAILABLE
    return EXIT_OK


def search(
    query: str,
    root: str = None,
    case_sensitive: bool = False,
    regex: bool = False,
    whole_word: bool = False,
    files: str = "",
    names_only: bool = False,
    verbose: bool = False,
):
    """
    Search every file under ROOT for QUERY.

    Args:
        query: Text (or, with --regex, an extended regular expression) to find
        root: Directory to search (default: current directory)
        case_sensitive: Match case exactly
        regex: Treat QUERY as a regular expression
        whole_word: Only match whole words
        files: Comma-separated globs or directories, e.g. "*.py, src/"
        names_only: Print only the paths of matching files
        verbose: Log debug output to stderr
    """
    config, settings = _bootstrap(verbose)
    options = MatchOptions(
        query=str(query),
        case_sensitive=case_sensitive,
        use_regex=regex,
        whole_word=whole_word,
        file_filter=files or "",
    )
    if options.is_empty:
        _fail("empty query")

    root_path = _resolve_root(root)
    snapshot = _run_scan(settings, root_path, options)

    max_width = (config.get("display") or {}).get("max_line_width", 0) or 0
    render_scan(console, snapshot.scan, options, max_width=max_width, files_only=names_only)

    code = _scan_exit_code(snapshot)
    if code != EXIT_OK:
        sys.exit(code)


def replace(
    query: str,
    replacement: str,
    root: str = None,
    case_sensitive: bool = False,
    regex: bool = False,
    whole_word: bool = False,
    files: str = "",
    apply: bool = False,
    verbose: bool = False,
):
    """
    Replace QUERY with REPLACEMENT in every matching file under ROOT.

    Without --apply nothing is written; the changes are shown as diffs.
    With --regex, REPLACEMENT may reference groups as $1, ${name} or \\1;
    any other backslash is kept as typed.

    Args:
        query: Text or regular expression to replace
        replacement: Replacement text
        root: Directory to search (default: current directory)
        case_sensitive: Match case exactly
        regex: Treat QUERY as a regular expression
        whole_word: Only match whole words
        files: Comma-separated globs or directories, e.g. "*.py, src/"
        apply: Write the changes (default is a dry run)
        verbose: Log debug output to stderr
    """
    config, settings = _bootstrap(verbose)
    options = MatchOptions(
        query=str(query),
        case_sensitive=case_sensitive,
        use_regex=regex,
        whole_word=whole_word,
        file_filter=files or "",
    )
    if options.is_empty:
        _fail("empty query")
    replacement = "" if replacement is None else str(replacement)
    root_path = _resolve_root(root)

    if apply:
        outcome = _apply_replace(settings, root_path, options, replacement)
        render_outcome(console, outcome, applied=True)
        return

    snapshot = _run_scan(settings, root_path, options)
    code = _scan_exit_code(snapshot)
    if code != EXIT_OK:
        render_scan(console, snapshot.scan, options)
        sys.exit(code)

    show_diff = (config.get("display") or {}).get("show_diff", True)
    files_changed = 0
    count_total = 0
    diffs = []
    for file_result in snapshot.scan.results:
        count, diff = preview_in_file(
            file_result.path, options.trimmed_query, replacement, options,
            label=file_result.relative_path,
        )
        if count:
            files_changed += 1
            count_total += count
            diffs.append(diff)

    if show_diff:
        render_diffs(console, diffs)
    render_outcome(console, ReplaceOutcome(files_changed, count_total), applied=False)
    if count_total:
        console.print("[dim]Run again with --apply to write these changes.[/]")


def _apply_replace(settings: SearchSettings, root: str, options: MatchOptions,
                   replacement: str) -> Optional[ReplaceOutcome]:
    with SearchCoordinator(settings) as coordinator:
        coordinator.replace_text = replacement
        _start(coordinator, root, options)
        coordinator.wait_idle(WAIT_TIMEOUT)

        scan = coordinator.snapshot().scan
        if scan.regex_error:
            render_scan(console, scan, options)
            sys.exit(EXIT_USAGE)
        if scan.unavailable:
            render_scan(console, scan, options)
            sys.exit(EXIT_UNAVAILABLE)
        if not scan.results:
            return ReplaceOutcome()

        coordinator.replace_all()
        if not coordinator.wait_idle(WAIT_TIMEOUT):
            logger.warning("Replace did not finish within %.0fs", WAIT_TIMEOUT)
        return coordinator.last_replace_result


def config(action: str = "show", key: str = None, value: str = None):
    """
    Show or change configuration.

    Args:
        action: One of show, set, path
        key: Dotted config key ("search.max_results") or SCOUR_* variable, for set
        value: New value, for set
    """
    if action == "show":
        show_config(console)
    elif action == "path":
        console.print(str(get_config_path()))
    elif action == "set":
        if key is None or value is None:
            _fail("usage: scour config set KEY VALUE")
        try:
            stored = set_config_value(str(key), str(value))
        except ValueError as e:
            _fail(str(e))
        console.print(f"[green]Set {key} = {stored!r}[/]")
    else:
        _fail(f"unknown config action {action!r} (expected show, set or path)")


def version():
    """Print the scour version."""
    console.print(f"scour {__version__}")


COMMANDS = {
    "search": search,
    "replace": replace,
    "config": config,
    "version": version,
}


def main():
    fire.Fire(COMMANDS)


if __name__ == "__main__":
    main()
