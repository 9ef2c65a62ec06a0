"""Tests for backend selection and argv construction."""

from scour.backends import (
    GitGrepBackend,
    GrepBackend,
    is_version_controlled,
    select_backend,
)
from scour.models import MatchOptions
from scour.settings import SearchSettings


class TestSelectBackend:
    def test_versioned_root_uses_git(self):
        assert isinstance(select_backend(True), GitGrepBackend)

    def test_plain_root_uses_grep(self):
        assert isinstance(select_backend(False), GrepBackend)

    def test_settings_are_passed_through(self):
        settings = SearchSettings(git_executable="/opt/git/bin/git")
        backend = select_backend(True, settings)
        assert backend.executable == "/opt/git/bin/git"

    def test_is_version_controlled(self, tmp_path):
        assert not is_version_controlled(str(tmp_path))
        (tmp_path / ".git").mkdir()
        assert is_version_controlled(str(tmp_path))

    def test_git_file_counts_for_worktrees(self, tmp_path):
        (tmp_path / ".git").write_text("gitdir: /elsewhere\n")
        assert is_version_controlled(str(tmp_path))


class TestGitGrepArgs:
    def test_defaults(self):
        args = GitGrepBackend().build_args(MatchOptions(query="needle"))
        assert args[:3] == ["git", "-c", "core.quotePath=false"]
        assert args[3:7] == ["grep", "-n", "--color=never", "-I"]
        assert "--max-count=50" in args
        assert "-i" in args
        assert "--fixed-strings" in args
        assert args[-2:] == ["-e", "needle"]
        assert "--" not in args

    def test_case_sensitive_regex_whole_word(self):
        options = MatchOptions(query="fo+", case_sensitive=True, use_regex=True, whole_word=True)
        args = GitGrepBackend().build_args(options)
        assert "-i" not in args
        assert "-w" in args
        assert "-E" in args
        assert "--fixed-strings" not in args

    def test_query_is_trimmed(self):
        args = GitGrepBackend().build_args(MatchOptions(query="  spaced  "))
        assert args[-2:] == ["-e", "spaced"]

    def test_dash_query_is_not_an_option(self):
        args = GitGrepBackend().build_args(MatchOptions(query="--version"))
        assert args[args.index("-e") + 1] == "--version"

    def test_file_filter_becomes_pathspecs(self):
        args = GitGrepBackend().build_args(MatchOptions(query="x", file_filter="*.py, src/"))
        sep = args.index("--")
        assert args[sep + 1:] == ["*.py", "src/"]
        assert args.index("-e") < sep

    def test_max_count_disabled(self):
        backend = GitGrepBackend(SearchSettings(max_count_per_file=0))
        args = backend.build_args(MatchOptions(query="x"))
        assert not any(a.startswith("--max-count") for a in args)


class TestGrepArgs:
    def test_defaults(self):
        settings = SearchSettings(exclude_dirs=[".git", "node_modules"])
        args = GrepBackend(settings).build_args(MatchOptions(query="needle"))
        assert args[:4] == ["grep", "-rnH", "--color=never", "-I"]
        assert "--exclude-dir=.git" in args
        assert "--exclude-dir=node_modules" in args
        assert args[-1] == "."
        assert args[-3:-1] == ["-e", "needle"]

    def test_default_excludes_cover_build_dirs(self):
        args = GrepBackend().build_args(MatchOptions(query="x"))
        for directory in (".git", ".build", "node_modules", ".swiftpm"):
            assert f"--exclude-dir={directory}" in args

    def test_globs_become_include(self):
        args = GrepBackend().build_args(MatchOptions(query="x", file_filter="*.py, *.md"))
        assert "--include=*.py" in args
        assert "--include=*.md" in args
        assert args[-1] == "."

    def test_directories_become_search_roots(self):
        args = GrepBackend().build_args(MatchOptions(query="x", file_filter="src/, docs, *.txt"))
        assert args[-2:] == ["src", "docs"]
        assert "--include=*.txt" in args
        assert "." not in args

    def test_regex_flags(self):
        args = GrepBackend().build_args(MatchOptions(query="a|b", use_regex=True, whole_word=True))
        assert "-E" in args
        assert "-w" in args

    def test_parse_success(self):
        backend = GrepBackend()
        assert backend.parse_success(0)
        assert backend.parse_success(1)
        assert not backend.parse_success(2)
