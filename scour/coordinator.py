"""
Search Coordinator -- the reactive core of project search.

Owns the current match options, debounces changes to them, runs at most
one scan at a time on a background worker, and publishes results to
observers. Every scan is tagged with a generation number; when a scan
finishes after a newer one has started, its results are dropped instead of
published. Nothing is ever killed; cancellation is purely logical.

Threads:
  - host thread(s): set options, call set_root()/clear()/replace_*()
  - worker:         runs backend processes and file replacements, in order
  - publisher:      the only place published state changes; observer
                    callbacks and the debounce callback run here

Usage:
    from scour.coordinator import SearchCoordinator

    coordinator = SearchCoordinator()
    coordinator.subscribe(lambda snap: print(snap.scan.total_matches))
    coordinator.set_root("/path/to/project")
    coordinator.query = "TODO"          # scan starts 300ms after the last edit
    ...
    coordinator.replace_text = "DONE"
    coordinator.replace_all()
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence

from scour.backends import GrepBackend, is_version_controlled, select_backend
from scour.executor import pattern_error, run_scan
from scour.models import FileResult, MatchOptions, ReplaceOutcome, ScanState, SearchSnapshot
from scour.parser import cap_results, parse_output, total_matches
from scour.replace import is_under_root, replace_all, replace_in_file
from scour.settings import SearchSettings
from scour.workers import Debouncer, SerialQueue, WorkTracker

logger = logging.getLogger(__name__)

Observer = Callable[[SearchSnapshot], None]


class SearchCoordinator:
    """
    Debounced, generation-tagged project search with replace.

    Options (query, case_sensitive, use_regex, whole_word, file_filter)
    may be set from any thread; each change restarts the debounce timer.
    Published state is read through snapshot() or the read-only properties,
    or pushed to observers registered with subscribe().
    """

    def __init__(
        self,
        settings: Optional[SearchSettings] = None,
        vcs_probe: Callable[[str], bool] = is_version_controlled,
        publisher: Optional[Any] = None,
    ):
        self.settings = settings or SearchSettings()
        self._vcs_probe = vcs_probe

        self._lock = threading.RLock()
        self._options = MatchOptions()
        self._replace_text = ""
        self._root: Optional[str] = None
        self._generation = 0
        self._scan = ScanState()
        self._is_replacing = False
        self._last_replace: Optional[ReplaceOutcome] = None
        self._observers: List[Observer] = []

        # publisher: a SerialQueue by default, or any host object with submit(fn, *args)
        self._worker = SerialQueue("scour-worker")
        self._owns_publisher = publisher is None
        self._publisher = publisher or SerialQueue("scour-publisher")
        self._work = WorkTracker()
        self._debouncer = Debouncer(self.settings.debounce_seconds, self._on_debounce,
                                    self._work.wrap(self._publisher))
        self._closed = False

    # ------------------------------------------------------------------
    # Options (host-writable)
    # ------------------------------------------------------------------

    def _set_option(self, **changes):
        with self._lock:
            updated = replace(self._options, **changes)
            if updated == self._options:
                return
            self._options = updated
        self._debouncer.trigger()

    @property
    def options(self) -> MatchOptions:
        with self._lock:
            return self._options

    @property
    def query(self) -> str:
        return self.options.query

    @query.setter
    def query(self, value: str):
        self._set_option(query=value or "")

    @property
    def case_sensitive(self) -> bool:
        return self.options.case_sensitive

    @case_sensitive.setter
    def case_sensitive(self, value: bool):
        self._set_option(case_sensitive=bool(value))

    @property
    def use_regex(self) -> bool:
        return self.options.use_regex

    @use_regex.setter
    def use_regex(self, value: bool):
        self._set_option(use_regex=bool(value))

    @property
    def whole_word(self) -> bool:
        return self.options.whole_word

    @whole_word.setter
    def whole_word(self, value: bool):
        self._set_option(whole_word=bool(value))

    @property
    def file_filter(self) -> str:
        return self.options.file_filter

    @file_filter.setter
    def file_filter(self, value: str):
        self._set_option(file_filter=value or "")

    @property
    def replace_text(self) -> str:
        with self._lock:
            return self._replace_text

    @replace_text.setter
    def replace_text(self, value: str):
        # replacement text is only read by replace_*(); it never triggers a scan
        with self._lock:
            self._replace_text = value or ""

    # ------------------------------------------------------------------
    # Published state (read-only)
    # ------------------------------------------------------------------

    @property
    def root(self) -> Optional[str]:
        with self._lock:
            return self._root

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def results(self) -> Sequence[FileResult]:
        return self.snapshot().scan.results

    @property
    def total_matches(self) -> int:
        return self.snapshot().scan.total_matches

    @property
    def is_searching(self) -> bool:
        return self.snapshot().scan.is_searching

    @property
    def regex_error(self) -> Optional[str]:
        return self.snapshot().scan.regex_error

    @property
    def is_replacing(self) -> bool:
        with self._lock:
            return self._is_replacing

    @property
    def last_replace_result(self) -> Optional[ReplaceOutcome]:
        with self._lock:
            return self._last_replace

    def snapshot(self) -> SearchSnapshot:
        with self._lock:
            return SearchSnapshot(
                root=self._root,
                options=self._options,
                replace_text=self._replace_text,
                scan=self._scan,
                is_replacing=self._is_replacing,
                last_replace_result=self._last_replace,
            )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)
        return _unsubscribe

    def _notify(self):
        snap = self.snapshot()
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snap)
            except Exception:
                logger.exception("Search observer %r failed", observer)

    def _on_publisher(self, fn: Callable, *args):
        # host contexts may only offer submit(); those always get a queued job
        is_current = getattr(self._publisher, "is_current", None)
        if is_current is not None and is_current():
            fn(*args)
        else:
            self._work.post(self._publisher, fn, *args)

    # ------------------------------------------------------------------
    # Root / clear / refresh
    # ------------------------------------------------------------------

    def set_root(self, root: str):
        """Switch to a new project root; rescans at once if a query is set."""
        with self._lock:
            self._root = root
            has_query = not self._options.is_empty
        self._on_publisher(self._apply_root, root, has_query)

    def _apply_root(self, root: str, has_query: bool):
        with self._lock:
            if root != self._root:
                return  # superseded by a later set_root()
            self._generation += 1
            self._scan = ScanState(generation=self._generation)
            self._last_replace = None
        logger.info("Search root set to %s", root)
        self._notify()
        # options edited since set_root() are scanned by the pending timer
        if has_query and not self._debouncer.pending:
            self._perform_search()

    def clear(self):
        """Reset query, filter, replacement text and all published results."""
        self._debouncer.cancel()
        with self._lock:
            self._options = replace(self._options, query="", file_filter="")
            self._replace_text = ""
        self._on_publisher(self._apply_clear)

    def _apply_clear(self):
        with self._lock:
            self._generation += 1
            self._scan = ScanState(generation=self._generation)
            self._last_replace = None
        self._notify()

    def refresh(self):
        """Re-run the current search now, skipping the debounce."""
        self._debouncer.cancel()
        self._on_publisher(self._perform_search)

    def _on_debounce(self):
        self._perform_search()

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _perform_search(self):
        """Start a scan for the current options. Runs on the publisher."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            options = replace(self._options, query=self._options.trimmed_query,
                              file_filter=self._options.file_filter.strip())
            root = self._root

            if options.is_empty or root is None:
                self._scan = ScanState(generation=generation)
                empty = True
            else:
                self._scan = replace(self._scan, generation=generation, is_searching=True,
                                     regex_error=None, unavailable=None)
                empty = False
        self._notify()
        if empty:
            return

        if not self._work.post(self._worker, self._scan_job, generation, root, options):
            with self._lock:
                self._scan = replace(self._scan, is_searching=False)
            self._notify()

    def _scan_job(self, generation: int, root: str, options: MatchOptions):
        """Worker side of a scan: run the backend and parse its output."""
        with self._lock:
            if generation != self._generation:
                logger.debug("Skipping stale scan %d (current %d)", generation, self._generation)
                return
        try:
            version_controlled = self._vcs_probe(root)
            backend = select_backend(version_controlled, self.settings)
            fallback = GrepBackend(self.settings) if version_controlled else None
            result = run_scan(backend, options, root, fallback=fallback)

            error = pattern_error(result, options)
            if error is not None:
                state = ScanState(generation=generation, regex_error=error)
            else:
                parsed = parse_output(result.stdout or "", root)
                kept, truncated = cap_results(parsed, self.settings.max_results)
                state = ScanState(
                    generation=generation,
                    results=tuple(kept),
                    total_matches=total_matches(kept),
                    truncated=truncated,
                    unavailable=result.stderr if result.spawn_failed else None,
                )
        except Exception:
            logger.exception("Scan %d for %r failed", generation, options.query)
            state = ScanState(generation=generation)

        self._work.post(self._publisher, self._publish_scan, generation, root, state)

    def _publish_scan(self, generation: int, root: str, state: ScanState):
        with self._lock:
            if generation != self._generation or root != self._root:
                logger.debug("Dropping results of superseded scan %d", generation)
                return
            self._scan = state
        logger.debug("Scan %d: %d match(es) in %d file(s)",
                     generation, state.total_matches, len(state.results))
        self._notify()

    # ------------------------------------------------------------------
    # Replace
    # ------------------------------------------------------------------

    def replace_in_file(self, file_result: FileResult) -> bool:
        """Replace all matches in one result file. Returns False if not started."""
        with self._lock:
            options = replace(self._options, query=self._options.trimmed_query)
            root = self._root
            replacement = self._replace_text
        if options.is_empty or root is None:
            return False
        if not is_under_root(file_result.path, root):
            logger.warning("Refusing to replace in %s: outside %s", file_result.path, root)
            return False

        def _job():
            count = replace_in_file(file_result.path, options.query, replacement, options)
            return ReplaceOutcome(files_changed=1 if count else 0, replacements_count=count)

        return self._start_replace(root, _job)

    def replace_all(self) -> bool:
        """Replace across every file in the current results. Returns False if not started."""
        with self._lock:
            options = replace(self._options, query=self._options.trimmed_query)
            root = self._root
            replacement = self._replace_text
            files = tuple(self._scan.results)
        if options.is_empty or root is None:
            return False

        return self._start_replace(
            root, lambda: replace_all(files, root, options.query, replacement, options)
        )

    def _start_replace(self, root: str, job: Callable[[], ReplaceOutcome]) -> bool:
        def _begin():
            with self._lock:
                self._is_replacing = True
            self._notify()

        def _run():
            try:
                outcome = job()
            except Exception:
                logger.exception("Replace in %s failed", root)
                outcome = ReplaceOutcome()
            self._work.post(self._publisher, self._finish_replace, root, outcome)

        self._on_publisher(_begin)
        return self._work.post(self._worker, _run)

    def _finish_replace(self, root: str, outcome: ReplaceOutcome):
        with self._lock:
            self._is_replacing = False
            same_root = root == self._root
            if same_root:
                self._last_replace = outcome
        self._notify()
        if same_root and outcome.replacements_count > 0:
            self._perform_search()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def wait_idle(self, timeout: float = 10.0) -> bool:
        """Block until no debounce, scan, replace or publish work is pending."""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            # a firing timer counts its job before it stops being pending
            if self._debouncer.pending:
                time.sleep(min(0.01, remaining))
                continue
            if self._work.wait(min(remaining, 0.05)):
                return True

    def close(self):
        """Stop timers and threads. In-flight work finishes and is discarded."""
        if self._closed:
            return
        self._closed = True
        self._debouncer.cancel()
        with self._lock:
            self._generation += 1
            self._root = None
            self._observers.clear()
        self._worker.close()
        if self._owns_publisher:
            self._publisher.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
