"""Configuration loader for ProxyRoute.

This module provides functions to load and validate the YAML settings file
that configures the proxy prefix, storage locations, and host navigator.
"""

from pathlib import Path
from typing import Any

import yaml

from proxyroute.core.constants import (
    ABORTED_ERROR_CODES,
    DEFAULTS,
    HTTP_SCHEMES,
    PROXY_PREFIX,
    LoopGuardBackend,
)
from proxyroute.core.exceptions import ConfigError
from proxyroute.core.models import Settings


# ============================================================================
# Configuration Paths
# ============================================================================

def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to configs directory (./configs relative to project root)
    """
    # core/ -> proxyroute/ -> src/ -> root
    project_root = Path(__file__).parent.parent.parent.parent
    return project_root / "configs"


# ============================================================================
# Settings Loader
# ============================================================================

def load_settings(config_file: Path | str | None = None) -> Settings:
    """Load runtime settings from YAML file.

    Relative paths for the database and audit directory are resolved
    against the directory holding the configuration file.

    Args:
        config_file: Path to settings YAML. If None, loads proxyroute.example.yaml

    Returns:
        Settings object with validated values

    Raises:
        ConfigError: If file not found, YAML parsing fails, or a value is invalid
    """
    if config_file is None:
        config_path = get_config_dir() / "proxyroute.example.yaml"
    else:
        config_path = Path(config_file)

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config YAML: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping")

    return parse_settings(data, base_dir=config_path.parent)


def parse_settings(data: dict[str, Any], base_dir: Path | None = None) -> Settings:
    """Build Settings from an already-parsed configuration mapping.

    Args:
        data: Configuration mapping
        base_dir: Directory used to resolve relative paths

    Returns:
        Settings object

    Raises:
        ConfigError: If a value is missing or has the wrong type
    """
    base_dir = base_dir or Path.cwd()

    proxy_prefix = data.get("proxy_prefix", PROXY_PREFIX)
    if not isinstance(proxy_prefix, str) or not proxy_prefix.startswith(HTTP_SCHEMES):
        raise ConfigError(f"'proxy_prefix' must be an http(s) URL, got: {proxy_prefix!r}")

    database = _resolve_path(data.get("database", DEFAULTS["database"]), base_dir, "database")

    audit_dir = data.get("audit_dir")
    if audit_dir is not None:
        audit_dir = _resolve_path(audit_dir, base_dir, "audit_dir")

    heartbeat_interval = data.get("heartbeat_interval", DEFAULTS["heartbeat_interval"])
    if not isinstance(heartbeat_interval, (int, float)) or heartbeat_interval <= 0:
        raise ConfigError("'heartbeat_interval' must be a positive number")

    aborted = data.get("aborted_error_codes", sorted(ABORTED_ERROR_CODES))
    if not isinstance(aborted, list):
        raise ConfigError("'aborted_error_codes' must be a list")

    try:
        loop_guard = LoopGuardBackend(data.get("loop_guard", DEFAULTS["loop_guard"]))
    except ValueError as e:
        available = ", ".join(b.value for b in LoopGuardBackend)
        raise ConfigError(f"Unknown loop_guard backend. Available: {available}") from e

    navigator = data.get("navigator") or {}
    if not isinstance(navigator, dict):
        raise ConfigError("'navigator' must be a mapping")

    force_list = data.get("force_list", [])
    if not isinstance(force_list, list):
        raise ConfigError("'force_list' must be a list")

    return Settings(
        proxy_prefix=proxy_prefix,
        database=database,
        audit_dir=audit_dir,
        heartbeat_interval=float(heartbeat_interval),
        aborted_error_codes=frozenset(str(code) for code in aborted),
        loop_guard=loop_guard,
        navigator_endpoint=navigator.get("endpoint"),
        navigator_timeout=float(navigator.get("timeout", DEFAULTS["navigator_timeout"])),
        force_list=[str(p) for p in force_list],
    )


def _resolve_path(value: Any, base_dir: Path, name: str) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{name}' must be a non-empty path string")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path
