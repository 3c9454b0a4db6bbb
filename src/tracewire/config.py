"""Client configuration and its layered loading.

Resolution order, highest first: explicit keyword arguments, ``TRACEWIRE_*``
environment variables, the user config file at
``~/.config/tracewire/config.yaml``, then the dataclass defaults.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tracewire.diagnostics import get_logger
from tracewire.errors import ConfigurationError

log = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.tracewire.dev"

# XDG-style default config directory
_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "tracewire"

REPO_ID_ENV = "TRACEWIRE_LOG_REPO_ID"

_ENV_FIELDS: dict[str, str] = {
    "TRACEWIRE_API_KEY": "api_key",
    "TRACEWIRE_BASE_URL": "base_url",
    "TRACEWIRE_RAISE_EXCEPTIONS": "raise_exceptions",
    "TRACEWIRE_DEBUG": "debug",
    "TRACEWIRE_FLUSH_INTERVAL": "flush_interval",
    REPO_ID_ENV: "repository_id",
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass
class TracewireConfig:
    """Settings shared by every logger a client creates.

    Attributes:
        api_key: Backend API key. Required to build a logger.
        base_url: Backend root URL.
        raise_exceptions: Strict mode; invalid entity ids raise instead of
            being replaced.
        debug: Log every committed entry and flushed chunk at DEBUG.
        flush_interval: Seconds between background flushes.
        max_in_memory_logs: Queue length that triggers an early flush.
        max_retries: HTTP retries per request.
        timeout: HTTP timeout in seconds.
        repository_id: Default log repository for loggers built without one.
    """

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    raise_exceptions: bool = False
    debug: bool = False
    flush_interval: float = 10.0
    max_in_memory_logs: int = 100
    max_retries: int = 5
    timeout: float = 30.0
    repository_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TracewireConfig:
        """Build from a mapping, converting string values to field types.

        Raises:
            ConfigurationError: If a value cannot be converted.
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in fields:
                log.warning("unknown_config_key", key=key)
                continue
            if value is None:
                continue
            kwargs[key] = _convert(key, value, fields[key].default)
        return cls(**kwargs)

    @classmethod
    def load(
        cls,
        *,
        config_dir: Path | None = None,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> TracewireConfig:
        """Resolve configuration from all sources.

        Args:
            config_dir: Override the user config directory (for testing).
            environ: Override the environment (for testing).
            **overrides: Explicit values; ``None`` means "not given".
        """
        merged: dict[str, Any] = dict(load_user_config(config_dir))
        merged.update(config_from_env(os.environ if environ is None else environ))
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(merged)


@dataclass
class LoggerConfig:
    """Selects the log repository a logger writes to.

    ``id`` falls back to ``TRACEWIRE_LOG_REPO_ID`` / the client's
    ``repository_id`` when omitted.
    """

    id: str | None = None
    auto_flush: bool = True
    flush_interval: float | None = None


def _convert(key: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}")
    if isinstance(default, (int, float)):
        try:
            return type(default)(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}") from e
    return value


def config_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Pick the ``TRACEWIRE_*`` settings that are present in ``environ``."""
    return {field: environ[name] for name, field in _ENV_FIELDS.items() if name in environ}


def load_user_config(config_dir: Path | None = None) -> dict[str, Any]:
    """Read ``config.yaml`` from the user config directory.

    Returns an empty dict when the file is missing or unreadable; parse
    failures are logged, not raised.
    """
    config_dir = config_dir or _DEFAULT_CONFIG_DIR
    config_path = config_dir / "config.yaml"

    if not config_path.exists():
        return {}

    from ruamel.yaml import YAML
    from ruamel.yaml.error import YAMLError

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except OSError as e:
        log.warning("user_config_load_failed", path=str(config_path), error=str(e))
        return {}
    except YAMLError as e:
        log.warning("user_config_parse_failed", path=str(config_path), error=str(e))
        return {}

    if not isinstance(data, Mapping):
        return {}

    log.debug("user_config_loaded", path=str(config_path))
    return dict(data)
