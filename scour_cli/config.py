"""
Configuration management for scour.

Config files are stored in ~/.scour/ (override with SCOUR_HOME):
- ~/.scour/config.yaml  - Search, logging and display settings
- ~/.scour/.env         - Environment overrides (SCOUR_GIT, SCOUR_GREP, ...)

This module provides:
- scour config          - Show current configuration
- scour config set      - Set a specific value
- scour config path     - Print the config file path
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values, set_key
from rich.console import Console
from rich.table import Table

from scour.settings import DEFAULT_EXCLUDE_DIRS, SearchSettings

logger = logging.getLogger(__name__)


# =============================================================================
# Config paths
# =============================================================================

def get_scour_home() -> Path:
    """Get the scour home directory (~/.scour)."""
    return Path(os.getenv("SCOUR_HOME", Path.home() / ".scour"))

def get_config_path() -> Path:
    """Get the main config file path."""
    return get_scour_home() / "config.yaml"

def get_env_path() -> Path:
    """Get the .env file path."""
    return get_scour_home() / ".env"

def get_log_dir() -> Path:
    return get_scour_home() / "logs"

def ensure_scour_home():
    """Ensure ~/.scour directory structure exists."""
    home = get_scour_home()
    home.mkdir(parents=True, exist_ok=True)
    (home / "logs").mkdir(parents=True, exist_ok=True)


# =============================================================================
# Config loading/saving
# =============================================================================

DEFAULT_CONFIG = {
    "search": {
        "debounce_ms": 300,
        "max_results": 1000,        # total matches kept per scan, 0 = unlimited
        "max_count_per_file": 50,   # git grep --max-count
        "exclude_dirs": list(DEFAULT_EXCLUDE_DIRS),
        "git_executable": "git",
        "grep_executable": "grep",
    },

    "logging": {
        "level": "INFO",
        "file": "scour.log",        # relative to ~/.scour/logs, "" disables
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 3,
    },

    "display": {
        "max_line_width": 160,      # long result lines are cut for display
        "show_diff": True,          # replace dry runs print a unified diff
    },

    # Config schema version - bump this when adding new required fields
    "_config_version": 1,
}

# Environment variables that override config.yaml entries
ENV_OVERRIDES = {
    "SCOUR_GIT": ("search", "git_executable", str),
    "SCOUR_GREP": ("search", "grep_executable", str),
    "SCOUR_DEBOUNCE_MS": ("search", "debounce_ms", int),
    "SCOUR_MAX_RESULTS": ("search", "max_results", int),
    "SCOUR_LOG_LEVEL": ("logging", "level", str),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, preserving nested defaults.

    Keys in *override* take precedence. If both values are dicts the merge
    recurses, so a user who overrides only ``search.max_results`` keeps the
    default ``search.exclude_dirs`` intact.
    """
    result = base.copy()
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_user_config() -> Dict[str, Any]:
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config() -> Dict[str, Any]:
    """Load configuration from ~/.scour/config.yaml, then apply env overrides."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    try:
        config = _deep_merge(config, _read_user_config())
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("Failed to load config: %s", e)

    return apply_env_overrides(config)


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply SCOUR_* variables from the environment or ~/.scour/.env."""
    for env_key, (section, key, cast) in ENV_OVERRIDES.items():
        raw = get_env_value(env_key)
        if raw is None or raw == "":
            continue
        try:
            config.setdefault(section, {})[key] = cast(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: expected %s", env_key, raw, cast.__name__)
    return config


def save_config(config: Dict[str, Any]):
    """Save configuration to ~/.scour/config.yaml."""
    ensure_scour_home()
    with open(get_config_path(), "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def build_settings(config: Optional[Dict[str, Any]] = None) -> SearchSettings:
    """Turn the `search` section into SearchSettings (ValueError if invalid)."""
    if config is None:
        config = load_config()
    return SearchSettings.from_dict(config.get("search") or {})


# =============================================================================
# .env handling
# =============================================================================

def load_env() -> Dict[str, str]:
    """Load variables from ~/.scour/.env (not exported to os.environ)."""
    env_path = get_env_path()
    if not env_path.exists():
        return {}
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def save_env_value(key: str, value: str):
    """Save or update a value in ~/.scour/.env."""
    ensure_scour_home()
    env_path = get_env_path()
    env_path.touch(exist_ok=True)
    set_key(str(env_path), key, value)


def get_env_value(key: str) -> Optional[str]:
    """Get a value from the environment or ~/.scour/.env."""
    # Check environment first
    if key in os.environ:
        return os.environ[key]
    return load_env().get(key)


# =============================================================================
# Config editing / display
# =============================================================================

def _coerce_value(value: str) -> Any:
    """Interpret a command-line value with YAML scalar rules ("true", "10", "[a, b]")."""
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


def set_config_value(key: str, value: str) -> Any:
    """
    Set a configuration value and return what was stored.

    SCOUR_* keys go to ~/.scour/.env; dotted keys ("search.max_results")
    go to config.yaml. Only the user's own config is rewritten, not the
    merged defaults.
    """
    if key.upper() in ENV_OVERRIDES:
        save_env_value(key.upper(), value)
        return value

    user_config = _read_user_config()

    parts = key.split(".")
    current = user_config
    for part in parts[:-1]:
        if part not in current or not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    coerced = _coerce_value(value)
    current[parts[-1]] = coerced

    # Validate before writing so a bad value never lands on disk
    build_settings(_deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config))

    save_config(user_config)
    return coerced


def show_config(console: Optional[Console] = None):
    """Display current configuration."""
    console = console or Console()
    config = load_config()

    console.print()
    console.print("[bold cyan]scour configuration[/]")
    console.print(f"  Config:  {get_config_path()}")
    console.print(f"  Env:     {get_env_path()}")
    console.print(f"  Logs:    {get_log_dir()}")

    for section in ("search", "logging", "display"):
        table = Table(title=section, title_justify="left", show_header=False, box=None)
        table.add_column("key", style="cyan")
        table.add_column("value")
        for key, value in (config.get(section) or {}).items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            table.add_row(key, str(value))
        console.print()
        console.print(table)

    overridden = [k for k in ENV_OVERRIDES if get_env_value(k)]
    if overridden:
        console.print()
        console.print(f"[dim]Overridden from environment: {', '.join(overridden)}[/]")
    console.print()
