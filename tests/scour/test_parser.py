"""Tests for backend output parsing and result capping."""

import os

from scour.models import FileResult, LineMatch
from scour.parser import cap_results, parse_line, parse_output, total_matches

ROOT = "/project"


class TestParseLine:
    def test_basic(self):
        assert parse_line("src/app.py:12:    return x") == ("src/app.py", 12, "    return x")

    def test_content_keeps_colons(self):
        assert parse_line("a.txt:3:key: value: more") == ("a.txt", 3, "key: value: more")

    def test_empty_content(self):
        assert parse_line("a.txt:7:") == ("a.txt", 7, "")

    def test_leading_dot_slash_stripped(self):
        assert parse_line("./lib/x.c:1:int x;") == ("lib/x.c", 1, "int x;")

    def test_escaped_colon_in_path(self):
        assert parse_line(r"odd\:name.txt:2:hit") == ("odd:name.txt", 2, "hit")

    def test_non_numeric_line_rejected(self):
        assert parse_line("a.txt:abc:content") is None

    def test_zero_line_rejected(self):
        assert parse_line("a.txt:0:content") is None

    def test_missing_separators_rejected(self):
        assert parse_line("Binary file x matches") is None
        assert parse_line("a.txt:12") is None

    def test_empty_path_rejected(self):
        assert parse_line(":3:content") is None

    def test_unicode_digits_rejected(self):
        assert parse_line("a.txt:٣:content") is None


class TestParseOutput:
    def test_groups_by_file_in_first_seen_order(self):
        output = (
            "b.txt:1:alpha\n"
            "a.txt:2:alpha\n"
            "b.txt:5:alpha again\n"
        )
        results = parse_output(output, ROOT)
        assert [r.relative_path for r in results] == ["b.txt", "a.txt"]
        assert [m.line_number for m in results[0].matches] == [1, 5]
        assert results[0].path == os.path.join(ROOT, "b.txt")

    def test_malformed_lines_skipped(self):
        output = "garbage\na.txt:1:ok\nnot:a:number:line\n\n"
        results = parse_output(output, ROOT)
        assert len(results) == 1
        assert results[0].matches == (LineMatch(1, "ok"),)

    def test_empty_output(self):
        assert parse_output("", ROOT) == []

    def test_no_trailing_newline(self):
        results = parse_output("a.txt:1:x", ROOT)
        assert total_matches(results) == 1

    def test_crlf_content_preserved(self):
        results = parse_output("win.txt:1:line\r\n", ROOT)
        assert results[0].matches[0].line_content == "line\r"

    def test_absolute_paths_kept(self):
        results = parse_output("/abs/path.txt:4:x\n", ROOT)
        assert results[0].path == "/abs/path.txt"

    def test_derived_fields(self):
        results = parse_output("pkg/sub/mod.py:1:x\npkg/sub/mod.py:2:y\n", ROOT)
        result = results[0]
        assert result.file_name == "mod.py"
        assert result.directory_path == "pkg/sub"
        assert result.match_count == 2

    def test_root_level_file_has_empty_directory(self):
        results = parse_output("top.txt:1:x\n", ROOT)
        assert results[0].directory_path == ""


def _file(name, count):
    return FileResult(
        path=f"{ROOT}/{name}",
        relative_path=name,
        matches=tuple(LineMatch(i + 1, "x") for i in range(count)),
    )


class TestCapResults:
    def test_under_cap(self):
        results = [_file("a", 2), _file("b", 3)]
        kept, truncated = cap_results(results, 10)
        assert kept == results
        assert not truncated

    def test_exact_cap_not_truncated(self):
        kept, truncated = cap_results([_file("a", 2), _file("b", 3)], 5)
        assert total_matches(kept) == 5
        assert not truncated

    def test_cut_inside_file(self):
        kept, truncated = cap_results([_file("a", 2), _file("b", 3), _file("c", 1)], 4)
        assert truncated
        assert [r.relative_path for r in kept] == ["a", "b"]
        assert kept[1].match_count == 2

    def test_cut_at_file_boundary(self):
        kept, truncated = cap_results([_file("a", 2), _file("b", 3)], 2)
        assert truncated
        assert [r.relative_path for r in kept] == ["a"]

    def test_zero_disables_cap(self):
        kept, truncated = cap_results([_file("a", 5000)], 0)
        assert total_matches(kept) == 5000
        assert not truncated
