"""
scour -- project-wide search and replace.

Modules:
- models:      value types (MatchOptions, FileResult, ScanState, ...)
- settings:    engine tunables (SearchSettings)
- patterns:    regex building, file filters, highlight spans
- backends:    git grep / grep argument builders
- executor:    deadlock-free backend process runner
- parser:      `path:line:content` output -> grouped results
- replace:     in-memory and on-disk replacement
- workers:     serial worker queue and debounce timer
- coordinator: the debounced, generation-tagged search model
"""

from .models import (
    MatchOptions,
    LineMatch,
    FileResult,
    ScanState,
    ReplaceOutcome,
    SearchSnapshot,
)
from .settings import SearchSettings
from .backends import (
    SearchBackend,
    GitGrepBackend,
    GrepBackend,
    select_backend,
    is_version_controlled,
)
from .executor import ProcessResult, run_process, run_scan, pattern_error
from .parser import parse_output, cap_results
from .replace import apply_replacement, replace_in_file, replace_all
from .coordinator import SearchCoordinator

__all__ = [
    # Model
    'MatchOptions',
    'LineMatch',
    'FileResult',
    'ScanState',
    'ReplaceOutcome',
    'SearchSnapshot',
    'SearchSettings',
    # Backends
    'SearchBackend',
    'GitGrepBackend',
    'GrepBackend',
    'select_backend',
    'is_version_controlled',
    # Execution / parsing
    'ProcessResult',
    'run_process',
    'run_scan',
    'pattern_error',
    'parse_output',
    'cap_results',
    # Replace
    'apply_replacement',
    'replace_in_file',
    'replace_all',
    # Coordinator
    'SearchCoordinator',
]
