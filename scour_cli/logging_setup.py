"""
Logging setup for the scour command line.

A rotating file log under ~/.scour/logs keeps scan and replace activity
around for debugging; --verbose additionally streams DEBUG output to stderr.
"""

import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from scour_cli.config import ensure_scour_home, get_log_dir

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def setup_logging(verbose: bool = False, config: Optional[Dict[str, Any]] = None) -> Optional[RotatingFileHandler]:
    """Configure the root logger; returns the file handler if one was added."""
    log_config = (config or {}).get("logging") or {}
    level_name = str(log_config.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(level)

    file_name = log_config.get("file", "scour.log")
    if not file_name:
        return None

    try:
        ensure_scour_home()
        file_handler = RotatingFileHandler(
            get_log_dir() / file_name,
            maxBytes=int(log_config.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(log_config.get("backup_count", 3)),
            encoding="utf-8",
        )
    except OSError as e:
        logging.getLogger(__name__).warning("File logging disabled: %s", e)
        return None

    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
    return file_handler
