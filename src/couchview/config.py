"""couchview configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (COUCHVIEW_URL, COUCHVIEW_DATABASE)
  3. Per-project couchview.yaml
  4. Global ~/.couchview/config.yaml
  5. Hardcoded defaults

Config files must never contain credentials; use COUCHDB_USER and
COUCHDB_PASSWORD instead. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from couchview.design.document import DEFAULT_ON_CONFLICT, ON_CONFLICT_POLICIES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".couchview" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "couchview.yaml"

# Key names that look like credentials — forbidden in any config file.
_CREDENTIAL_RE: re.Pattern[str] = re.compile(
    r"passw(?:ord|d)"
    r"|^user(?:name)?$"
    r"|_token$"
    r"|^token$"
    r"|secret"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["server", "views"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ServerCfg:
    """CouchDB server and database (couchview.yaml: server:)."""

    url: str = "http://localhost:5984/"
    database: str | None = None


@dataclass
class ViewsCfg:
    """Design document publication (couchview.yaml: views:).

    Attributes:
        on_conflict: ``overwrite`` rewrites a stored design document that
            differs from the local views; ``raise`` stops with an error.
    """

    on_conflict: str = DEFAULT_ON_CONFLICT


@dataclass
class CouchViewConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    server: ServerCfg = field(default_factory=ServerCfg)
    views: ViewsCfg = field(default_factory=ViewsCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_credentials(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _CREDENTIAL_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export COUCHDB_USER=<user> COUCHDB_PASSWORD=<password>"
                    )
                _scan(v, full)

    _scan(data, "")


def _validate_on_conflict(value: str) -> None:
    if value not in ON_CONFLICT_POLICIES:
        raise ConfigError(
            f"views.on_conflict must be one of {', '.join(sorted(ON_CONFLICT_POLICIES))}, "
            f"got '{value}'"
        )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=3,
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> CouchViewConfig:
    """Build a *CouchViewConfig* from a merged raw YAML dict."""
    cfg = CouchViewConfig()

    if "server" in data:
        s = data["server"] or {}
        database = s.get("database", cfg.server.database)
        cfg.server = ServerCfg(
            url=str(s.get("url", cfg.server.url)),
            database=str(database) if database is not None else None,
        )

    if "views" in data:
        v = data["views"] or {}
        cfg.views = ViewsCfg(
            on_conflict=str(v.get("on_conflict", cfg.views.on_conflict)),
        )

    return cfg


def _apply_env_overrides(cfg: CouchViewConfig) -> CouchViewConfig:
    """Apply COUCHVIEW_* environment variable overrides."""
    if url := os.environ.get("COUCHVIEW_URL"):
        cfg.server.url = url
    if database := os.environ.get("COUCHVIEW_DATABASE"):
        cfg.server.database = database
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CouchViewConfig:
    """Load and return a merged *CouchViewConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *couchview.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *CouchViewConfig* with env var overrides applied.

    Raises:
        ConfigError: If a config file contains credential-like fields or
            ``views.on_conflict`` is not a known policy.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if path.exists():
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            _check_no_credentials(raw, path)
            _warn_unknown_keys(raw, path)
            merged = _deep_merge(merged, raw)

    cfg = _cfg_from_dict(merged)
    _validate_on_conflict(cfg.views.on_conflict)

    return _apply_env_overrides(cfg)
