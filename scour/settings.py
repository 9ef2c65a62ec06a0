"""
Engine settings.

The CLI builds these from ~/.scour/config.yaml (see scour_cli.config);
embedding hosts can construct them directly.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

# Directories the plain grep backend never descends into: VCS metadata,
# build output and dependency caches.
DEFAULT_EXCLUDE_DIRS: Tuple[str, ...] = (
    ".git", ".hg", ".svn",
    ".build", "build", "dist", "target",
    ".swiftpm", "node_modules", ".venv", "venv",
    "__pycache__", ".mypy_cache", ".pytest_cache", ".tox",
)

DEFAULT_DEBOUNCE_MS = 300
DEFAULT_MAX_RESULTS = 1000
DEFAULT_MAX_COUNT_PER_FILE = 50


@dataclass
class SearchSettings:
    """Tunables for the search engine."""
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    max_results: int = DEFAULT_MAX_RESULTS          # total match cap after parsing (0 = no cap)
    max_count_per_file: int = DEFAULT_MAX_COUNT_PER_FILE  # git grep --max-count
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    git_executable: str = "git"
    grep_executable: str = "grep"

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "debounce_ms": self.debounce_ms,
            "max_results": self.max_results,
            "max_count_per_file": self.max_count_per_file,
            "exclude_dirs": list(self.exclude_dirs),
            "git_executable": self.git_executable,
            "grep_executable": self.grep_executable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchSettings":
        """Build settings from a config section, validating numeric limits."""
        data = data or {}
        settings = cls(
            debounce_ms=_non_negative_int(data, "debounce_ms", DEFAULT_DEBOUNCE_MS),
            max_results=_non_negative_int(data, "max_results", DEFAULT_MAX_RESULTS),
            max_count_per_file=_non_negative_int(
                data, "max_count_per_file", DEFAULT_MAX_COUNT_PER_FILE
            ),
            git_executable=str(data.get("git_executable") or "git"),
            grep_executable=str(data.get("grep_executable") or "grep"),
        )
        exclude = data.get("exclude_dirs")
        if exclude is not None:
            if isinstance(exclude, str):
                exclude = [p.strip() for p in exclude.split(",")]
            if not isinstance(exclude, (list, tuple)):
                raise ValueError(f"exclude_dirs must be a list, got {type(exclude).__name__}")
            settings.exclude_dirs = [str(p) for p in exclude if str(p).strip()]
        return settings


def _non_negative_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if number < 0:
        raise ValueError(f"{key} must be >= 0, got {number}")
    return number
