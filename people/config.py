"""Configuration management for the people registry service."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_CHANNEL = "person_created"
DEFAULT_POOL_SIZE = 30
DEFAULT_POLL_INTERVAL = 0.05
DEFAULT_QUERY_TIMEOUT = 5.0

_ALLOWED_CHANNEL = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

_ENV_KEYS = {
    "database_path": "PEOPLE_DB_PATH",
    "pool_size": "PEOPLE_DB_POOL",
    "channel": "PEOPLE_CHANNEL",
    "poll_interval": "PEOPLE_POLL_INTERVAL",
    "query_timeout": "PEOPLE_QUERY_TIMEOUT",
    "backfill": "PEOPLE_BACKFILL",
    "log_level": "PEOPLE_LOG_LEVEL",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _parse_flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value for backfill: {value!r}")


def _resolve_path(raw: object, base_path: Path | None) -> Path:
    candidate = Path(str(raw)).expanduser()
    if candidate.is_absolute() or base_path is None:
        return candidate.resolve(strict=False)
    return (base_path / candidate).resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Startup configuration for a service instance."""

    database_path: Path
    pool_size: int = DEFAULT_POOL_SIZE
    channel: str = DEFAULT_CHANNEL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    backfill: bool = False
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data, validating every field."""

        unknown = set(data.keys()) - set(_ENV_KEYS)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            database_path = _resolve_path(raw_path, base_path)
        else:
            database_path = (_project_root() / "data" / "people.sqlite3").resolve(strict=False)

        try:
            pool_size = int(data.get("pool_size", DEFAULT_POOL_SIZE))
        except (TypeError, ValueError) as exc:
            raise ValueError("pool_size must be an integer") from exc
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")

        channel = str(data.get("channel", DEFAULT_CHANNEL)).strip()
        if not _ALLOWED_CHANNEL.fullmatch(channel):
            raise ValueError(
                "channel may only contain letters, numbers, and underscores",
            )

        try:
            poll_interval = float(data.get("poll_interval", DEFAULT_POLL_INTERVAL))
            query_timeout = float(data.get("query_timeout", DEFAULT_QUERY_TIMEOUT))
        except (TypeError, ValueError) as exc:
            raise ValueError("poll_interval and query_timeout must be numbers") from exc
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if query_timeout <= 0:
            raise ValueError("query_timeout must be positive")

        log_level = str(data.get("log_level", "INFO")).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"Unsupported log_level: {log_level}")

        return Settings(
            database_path=database_path,
            pool_size=pool_size,
            channel=channel,
            poll_interval=poll_interval,
            query_timeout=query_timeout,
            backfill=_parse_flag(data.get("backfill", False)),
            log_level=log_level,
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_project_root() / "config" / "people.yaml").resolve(strict=False)


def _read_config_file(config_path: Path) -> Dict[str, object]:
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    return dict(raw)


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("PEOPLE_CONFIG"))
    data = _read_config_file(path)
    base_path = path.parent if data else None

    overrides: Dict[str, object] = {
        key: env[name] for key, name in _ENV_KEYS.items() if env.get(name)
    }
    # Paths from the environment are relative to the working directory, not the file.
    if "database_path" in overrides:
        overrides["database_path"] = _resolve_path(overrides["database_path"], None)
    return Settings.from_dict({**data, **overrides}, base_path=base_path)


__all__ = [
    "DEFAULT_CHANNEL",
    "Settings",
    "load_settings",
    "resolve_config_path",
]
