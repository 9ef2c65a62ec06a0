"""
Search Executor -- runs one backend process and collects its output.

stdout and stderr are each drained on their own thread while the process
runs, and the exit status is only waited for once both readers are done.
A child that fills one pipe therefore never blocks against a parent that
is waiting on the other (or on the exit). No timeout is imposed: a hung
backend hangs only the worker job that started it.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import List, Optional

from scour.backends import SearchBackend
from scour.models import MatchOptions

logger = logging.getLogger(__name__)

# Exit code reported when the process could not be started at all
SPAWN_FAILED = -1


@dataclass
class ProcessResult:
    """Captured output of one backend run."""
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: int = 0
    spawn_failed: bool = False

    @property
    def first_stderr_line(self) -> Optional[str]:
        if not self.stderr:
            return None
        for line in self.stderr.splitlines():
            if line.strip():
                return line.strip()
        return None


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def run_process(argv: List[str], cwd: str) -> ProcessResult:
    """
    Run argv in cwd and return its complete stdout/stderr and exit code.

    Failure to start (missing executable, permission denied, missing cwd)
    yields exit_code=SPAWN_FAILED with the error message as stderr.
    """
    try:
        proc = subprocess.Popen(
            argv,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.debug("Failed to start %s: %s", argv[0] if argv else "<empty argv>", e)
        return ProcessResult(stdout=None, stderr=str(e), exit_code=SPAWN_FAILED, spawn_failed=True)

    chunks = {"stdout": [], "stderr": []}

    def _drain(name: str, stream):
        try:
            for block in iter(lambda: stream.read(65536), b""):
                chunks[name].append(block)
        except ValueError:
            pass  # stream closed underneath us
        finally:
            try:
                stream.close()
            except Exception:
                pass

    readers = [
        threading.Thread(target=_drain, args=("stdout", proc.stdout), daemon=True,
                         name="scour-drain-stdout"),
        threading.Thread(target=_drain, args=("stderr", proc.stderr), daemon=True,
                         name="scour-drain-stderr"),
    ]
    for reader in readers:
        reader.start()
    for reader in readers:
        reader.join()
    exit_code = proc.wait()

    return ProcessResult(
        stdout=_decode(b"".join(chunks["stdout"])),
        stderr=_decode(b"".join(chunks["stderr"])),
        exit_code=exit_code,
    )


def run_scan(backend: SearchBackend, options: MatchOptions, root: str,
             fallback: Optional[SearchBackend] = None) -> ProcessResult:
    """
    Run one scan with a backend rooted at root.

    When the backend cannot be started and a fallback is given (git missing
    on a versioned tree), the fallback runs instead.
    """
    argv = backend.build_args(options)
    logger.debug("Scanning %s with %s: %s", root, backend.name, argv)
    result = run_process(argv, cwd=root)

    if result.spawn_failed and fallback is not None:
        logger.warning("%s unavailable (%s), falling back to %s",
                       backend.name, result.stderr, fallback.name)
        result = run_process(fallback.build_args(options), cwd=root)

    if result.spawn_failed:
        logger.warning("Search backend could not be started: %s", result.stderr)
    elif not backend.parse_success(result.exit_code) and not options.use_regex:
        logger.info("%s exited with %d: %s", backend.name, result.exit_code,
                    result.first_stderr_line)
    return result


def pattern_error(result: ProcessResult, options: MatchOptions) -> Optional[str]:
    """
    The user-facing pattern error for a finished scan, if any.

    Only regex mode can produce one: an exit other than 0/1 with stderr
    text. Spawn failures are never reported as pattern errors.
    """
    if not options.use_regex or result.spawn_failed:
        return None
    if result.exit_code in (0, 1):
        return None
    return result.first_stderr_line or f"search exited with status {result.exit_code}"
