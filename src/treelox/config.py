"""
Interpreter settings.

Settings come from three layers, later layers winning:

1. Built-in defaults
2. A YAML file: an explicit path, else ``$TREELOX_CONFIG``, else
   ``treelox.yaml`` in the working directory when it exists
3. ``TREELOX_*`` environment variables

Example ``treelox.yaml``::

    max_errors: 50
    show_source: false
    log_level: DEBUG
    recursion_limit: 50000
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = "treelox.yaml"

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

MIN_RECURSION_LIMIT = 1000


@dataclass(frozen=True)
class Settings:
    """Options that shape a run; fixed for the lifetime of an interpreter."""
    repl_mode: bool = False     # Record the value of bare top-level expressions
    max_errors: int = 20        # Stop collecting static errors after this many
    show_source: bool = True    # Include the source line and caret in diagnostics
    log_level: str = "WARNING"
    recursion_limit: int = 25000    # Python frames available to nested code and calls


def _parse_bool(name: str, raw: str) -> bool:
    text = raw.strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"{name}: expected a boolean, got {raw!r}")


def _coerce(name: str, value: Any, expected: type) -> Any:
    """Validate a value read from the YAML file."""
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return _parse_bool(name, value)
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif expected is str:
        if isinstance(value, str):
            return value.upper() if name == "log_level" else value
    raise ValueError(f"{name}: expected {expected.__name__}, got {value!r}")


def _find_config_file(path: Optional[Path | str]) -> Optional[Path]:
    if path is not None:
        return Path(path)
    env_path = os.environ.get("TREELOX_CONFIG")
    if env_path:
        return Path(env_path)
    default = Path.cwd() / CONFIG_FILENAME
    if default.exists():
        return default
    return None


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    with config_path.open("r", encoding="utf-8") as fp:
        try:
            data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{config_path}: invalid YAML: {e}")
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a mapping at top level")

    known = {f.name: f.type for f in fields(Settings)}
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"{config_path}: unknown setting {key!r}")
        expected = {"bool": bool, "int": int, "str": str}.get(known[key], known[key])
        overrides[key] = _coerce(key, value, expected)
    return overrides


def _read_environment() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    max_errors = os.environ.get("TREELOX_MAX_ERRORS")
    if max_errors:
        try:
            overrides["max_errors"] = int(max_errors)
        except ValueError:
            raise ValueError(f"TREELOX_MAX_ERRORS: expected an integer, got {max_errors!r}")

    show_source = os.environ.get("TREELOX_SHOW_SOURCE")
    if show_source:
        overrides["show_source"] = _parse_bool("TREELOX_SHOW_SOURCE", show_source)

    recursion_limit = os.environ.get("TREELOX_RECURSION_LIMIT")
    if recursion_limit:
        try:
            overrides["recursion_limit"] = int(recursion_limit)
        except ValueError:
            raise ValueError(f"TREELOX_RECURSION_LIMIT: expected an integer, got {recursion_limit!r}")

    log_level = os.environ.get("TREELOX_LOG_LEVEL")
    if log_level:
        overrides["log_level"] = log_level.upper()

    return overrides


def load_settings(path: Optional[Path | str] = None, **overrides: Any) -> Settings:
    """
    Load settings from defaults, a YAML file and the environment.

    Args:
        path: Explicit config file; must exist when given
        **overrides: Final overrides applied last (e.g. from CLI flags)

    Raises:
        FileNotFoundError: If an explicit or ``$TREELOX_CONFIG`` path is missing
        ValueError: If the file or an environment variable is malformed
    """
    settings = Settings()

    config_path = _find_config_file(path)
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"config file not found: {config_path}")
        settings = replace(settings, **_read_config_file(config_path))

    settings = replace(settings, **_read_environment())
    if overrides:
        settings = replace(settings, **overrides)
    if settings.max_errors < 1:
        raise ValueError(f"max_errors must be at least 1, got {settings.max_errors}")
    if settings.recursion_limit < MIN_RECURSION_LIMIT:
        raise ValueError(
            f"recursion_limit must be at least {MIN_RECURSION_LIMIT}, got {settings.recursion_limit}"
        )
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {settings.log_level!r}")
    return settings
