"""
Rich rendering for search results, pattern errors and replace outcomes.
"""

from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.text import Text

from scour.models import FileResult, MatchOptions, ReplaceOutcome, ScanState
from scour.patterns import first_match_span


def summary_line(scan: ScanState) -> str:
    """Header like "3 results in 2 files" for a finished scan."""
    results = "result" if scan.total_matches == 1 else "results"
    files = "file" if len(scan.results) == 1 else "files"
    line = f"{scan.total_matches} {results} in {len(scan.results)} {files}"
    if scan.truncated:
        line += " (truncated)"
    return line


def highlight_line(content: str, options: MatchOptions, max_width: int = 0) -> Text:
    """Style the first match on a line. Long lines are cut around it."""
    content = content.rstrip("\r\n")
    span = first_match_span(content, options)
    offset = 0
    if max_width and len(content) > max_width:
        if span and span[1] > max_width:
            offset = max(0, min(span[0] - max_width // 4, len(content) - max_width))
        content = content[offset:offset + max_width]

    text = Text(content)
    if span:
        start, end = span[0] - offset, span[1] - offset
        if 0 <= start < len(content):
            text.stylize("bold black on yellow", start, min(end, len(content)))
    return text


def render_file(console: Console, file_result: FileResult, options: MatchOptions,
                max_width: int = 0):
    header = Text()
    header.append(file_result.file_name, style="bold cyan")
    if file_result.directory_path:
        header.append(f"  {file_result.directory_path}", style="dim")
    header.append(f"  ({file_result.match_count})", style="dim")
    console.print(header)

    for match in file_result.matches:
        line = Text(f"{match.line_number:>6}  ", style="green")
        line.append_text(highlight_line(match.line_content, options, max_width))
        console.print(line, soft_wrap=True)


def render_scan(console: Console, scan: ScanState, options: MatchOptions,
                max_width: int = 0, files_only: bool = False):
    """Print a whole scan: error, empty notice, or grouped results."""
    if scan.regex_error:
        console.print(f"[bold red]Invalid pattern:[/] {escape(scan.regex_error)}")
        return
    if scan.unavailable:
        console.print(f"[yellow]Search tool unavailable:[/] {escape(scan.unavailable)}")
    if not scan.results:
        console.print("[dim]No results[/]")
        return

    for file_result in scan.results:
        if files_only:
            console.print(file_result.relative_path)
        else:
            render_file(console, file_result, options, max_width)
            console.print()

    console.print(f"[bold]{summary_line(scan)}[/]")


def render_diffs(console: Console, diffs: Iterable[str]):
    for diff in diffs:
        if diff:
            console.print(Syntax(diff, "diff", theme="ansi_dark", word_wrap=True))


def render_outcome(console: Console, outcome: Optional[ReplaceOutcome], applied: bool):
    if outcome is None or not outcome.replacements_count:
        console.print("[dim]Nothing replaced[/]")
        return
    verb = "Replaced" if applied else "Would replace"
    occurrences = "occurrence" if outcome.replacements_count == 1 else "occurrences"
    files = "file" if outcome.files_changed == 1 else "files"
    console.print(
        f"[bold green]{verb} {outcome.replacements_count} {occurrences} "
        f"in {outcome.files_changed} {files}[/]"
    )
