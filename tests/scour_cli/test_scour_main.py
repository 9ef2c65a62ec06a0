"""End-to-end tests for the scour commands, run against real grep."""

import io
import shutil

import fire
import pytest
from rich.console import Console

import scour_cli.main as scour_main
from scour.models import MatchOptions, ReplaceOutcome, ScanState
from scour_cli.config import ENV_OVERRIDES
from scour_cli.display import highlight_line, render_outcome, summary_line

requires_grep = pytest.mark.skipif(shutil.which("grep") is None, reason="grep not installed")


# ── Fixtures ─────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Private SCOUR_HOME, captured console, no log handlers on the root logger."""
    monkeypatch.setenv("SCOUR_HOME", str(tmp_path / "home"))
    for key in ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(scour_main, "setup_logging", lambda verbose, config: None)
    buf = io.StringIO()
    monkeypatch.setattr(scour_main, "console", Console(file=buf, width=200, color_system=None))
    return buf


@pytest.fixture
def output(isolated):
    return lambda: isolated.getvalue()


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.txt").write_text("alpha\nbeta\nalpha\n")
    (root / "b.txt").write_text("gamma alpha\n")
    (root / "c.txt").write_text("nothing here\n")
    return root


# ── search ───────────────────────────────────────────────────────────────

@requires_grep
class TestSearchCommand:
    def test_prints_results_and_summary(self, tree, output):
        scour_main.search("alpha", root=str(tree))
        text = output()
        assert "a.txt" in text
        assert "gamma alpha" in text
        assert "3 results in 2 files" in text

    def test_names_only(self, tree, output):
        scour_main.search("alpha", root=str(tree), names_only=True)
        lines = [l for l in output().splitlines() if l.endswith(".txt")]
        assert sorted(lines) == ["a.txt", "b.txt"]

    def test_no_results(self, tree, output):
        scour_main.search("zzz-not-there", root=str(tree))
        assert "No results" in output()

    def test_invalid_regex_exits_nonzero(self, tree, output):
        with pytest.raises(SystemExit) as exc:
            scour_main.search("(", root=str(tree), regex=True)
        assert exc.value.code == scour_main.EXIT_USAGE
        assert "Invalid pattern" in output()

    def test_file_filter(self, tree, output):
        (tree / "notes.md").write_text("alpha in markdown\n")
        scour_main.search("alpha", root=str(tree), files="*.md")
        assert "1 result in 1 file" in output()

    def test_via_fire(self, tree, output):
        fire.Fire(scour_main.COMMANDS, command=["search", "alpha", "--root", str(tree)])
        assert "3 results in 2 files" in output()


class TestSearchArguments:
    def test_empty_query(self, tree):
        with pytest.raises(SystemExit) as exc:
            scour_main.search("   ", root=str(tree))
        assert exc.value.code == scour_main.EXIT_USAGE

    def test_missing_root(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            scour_main.search("alpha", root=str(tmp_path / "nope"))
        assert exc.value.code == scour_main.EXIT_USAGE


# ── replace ──────────────────────────────────────────────────────────────

@requires_grep
class TestReplaceCommand:
    def test_dry_run_writes_nothing(self, tree, output):
        scour_main.replace("alpha", "omega", root=str(tree))
        assert (tree / "a.txt").read_text() == "alpha\nbeta\nalpha\n"
        text = output()
        assert "Would replace 3 occurrences in 2 files" in text
        assert "+omega" in text

    def test_apply(self, tree, output):
        scour_main.replace("alpha", "omega", root=str(tree), apply=True)
        assert (tree / "a.txt").read_text() == "omega\nbeta\nomega\n"
        assert (tree / "b.txt").read_text() == "gamma omega\n"
        assert "Replaced 3 occurrences in 2 files" in output()

    def test_apply_twice_is_noop(self, tree, output):
        scour_main.replace("alpha", "omega", root=str(tree), apply=True)
        scour_main.replace("alpha", "omega", root=str(tree), apply=True)
        assert "Nothing replaced" in output()

    def test_regex_template(self, tree, output):
        (tree / "items.txt").write_text("item1 item22\n")
        scour_main.replace(r"item([0-9]+)", "num$1", root=str(tree), regex=True,
                           files="items.txt", apply=True)
        assert (tree / "items.txt").read_text() == "num1 num22\n"

    def test_literal_dollar_amount(self, tree):
        (tree / "price.txt").write_text("cost: $10.00\n")
        scour_main.replace("$10.00", "$15.00", root=str(tree), apply=True)
        assert (tree / "price.txt").read_text() == "cost: $15.00\n"

    def test_invalid_regex_exits_nonzero(self, tree):
        with pytest.raises(SystemExit) as exc:
            scour_main.replace("[invalid", "x", root=str(tree), regex=True, apply=True)
        assert exc.value.code == scour_main.EXIT_USAGE


# ── config ───────────────────────────────────────────────────────────────

class TestConfigCommand:
    def test_set_then_show(self, output):
        scour_main.config("set", "search.max_results", "42")
        scour_main.config("show")
        text = output()
        assert "Set search.max_results = 42" in text
        assert "42" in text

    def test_set_invalid(self):
        with pytest.raises(SystemExit):
            scour_main.config("set", "search.debounce_ms", "-1")

    def test_set_requires_value(self):
        with pytest.raises(SystemExit):
            scour_main.config("set", "search.debounce_ms")

    def test_path(self, tmp_path, output):
        scour_main.config("path")
        assert str(tmp_path / "home" / "config.yaml") in output()

    def test_unknown_action(self):
        with pytest.raises(SystemExit):
            scour_main.config("frobnicate")


# ── display helpers ──────────────────────────────────────────────────────

class TestDisplay:
    def test_summary_pluralization(self):
        assert summary_line(ScanState()) == "0 results in 0 files"
        assert summary_line(ScanState(total_matches=5, truncated=True)).endswith("(truncated)")

    def test_highlight_first_match(self):
        text = highlight_line("foo bar foo\r", MatchOptions(query="foo"))
        assert text.plain == "foo bar foo"
        assert [(s.start, s.end) for s in text.spans] == [(0, 3)]

    def test_highlight_long_line_keeps_match_visible(self):
        line = "x" * 300 + "needle"
        text = highlight_line(line, MatchOptions(query="needle"), max_width=50)
        assert len(text.plain) == 50
        assert "needle" in text.plain

    def test_outcome_rendering(self):
        buf = io.StringIO()
        console = Console(file=buf, width=200, color_system=None)
        render_outcome(console, ReplaceOutcome(1, 1), applied=True)
        assert "Replaced 1 occurrence in 1 file" in buf.getvalue()
