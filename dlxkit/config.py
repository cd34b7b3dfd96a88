"""Global configuration management for dlxkit."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".dlxkit"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "dlxkit_config_dir_override",
    default=None,
)

DEFAULT_DLX_DIR = Path(os.path.expanduser("~")) / ".socket" / "_dlx"
DLX_DIR: Path | None = None
_DLX_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "dlxkit_dlx_dir_override",
    default=None,
)

ENV_DLX_DIR = "SOCKET_DLX_DIR"
ENV_SOCKET_HOME = "SOCKET_HOME"
DLX_DIRNAME = "_dlx"
DLX_METADATA_FILENAME = ".dlx-metadata.json"
DLX_MANIFEST_FILENAME = ".dlx-manifest.json"
DLX_LOCK_FILENAME = ".concurrency.lock"
DLX_METADATA_VERSION = "1.0.0"
MS_PER_DAY = 24 * 60 * 60 * 1000
DLX_BINARY_CACHE_TTL_MS = 7 * MS_PER_DAY


@dataclass
class Config:
    dlx_dir: str | None = None
    cache_ttl_ms: int = DLX_BINARY_CACHE_TTL_MS


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


def config_file_path() -> Path:
    """Return the config file used in the current context."""
    return _resolve_config_file()


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        return Config()
    return Config(
        dlx_dir=(raw.get("dlx_dir") or None),
        cache_ttl_ms=_coerce_ttl(raw.get("cache_ttl_ms"), DLX_BINARY_CACHE_TTL_MS),
    )


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {}
    if config.dlx_dir:
        data["dlx_dir"] = config.dlx_dir
    data["cache_ttl_ms"] = int(config.cache_ttl_ms)
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_configured_dlx_dir(value: Path | str | None) -> None:
    config = load_config()
    if value is None:
        config.dlx_dir = None
    else:
        config.dlx_dir = str(Path(value).expanduser().resolve())
    save_config(config)


def set_cache_ttl_days(value: float) -> None:
    if value <= 0:
        raise ValueError(Messages.ERROR_TTL_INVALID)
    config = load_config()
    config.cache_ttl_ms = int(value * MS_PER_DAY)
    save_config(config)


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else Config(base.dlx_dir, base.cache_ttl_ms)
    if "dlx_dir" in data:
        config.dlx_dir = _coerce_optional_str(data["dlx_dir"], "dlx_dir")
    if "cache_ttl_ms" in data:
        value = data["cache_ttl_ms"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="cache_ttl_ms"))
        config.cache_ttl_ms = int(value)
    return config


def resolve_cache_ttl_ms(value: int | None = None) -> int:
    """Return *value* when given, else the configured TTL."""

    if value is not None:
        return int(value)
    try:
        return load_config().cache_ttl_ms
    except (OSError, ValueError):
        return DLX_BINARY_CACHE_TTL_MS


def resolve_dlx_dir(explicit: Path | str | None = None) -> Path:
    """Return the dlx cache root.

    Precedence: explicit argument, context override, ``set_dlx_dir``,
    ``SOCKET_DLX_DIR``, ``SOCKET_HOME/_dlx``, the persisted config value and
    finally ``~/.socket/_dlx``.
    """

    if explicit is not None:
        return Path(explicit).expanduser()
    override = _DLX_DIR_OVERRIDE.get()
    if override is not None:
        return override
    if DLX_DIR is not None:
        return DLX_DIR
    env_dir = os.getenv(ENV_DLX_DIR)
    if env_dir:
        return Path(env_dir).expanduser()
    socket_home = os.getenv(ENV_SOCKET_HOME)
    if socket_home:
        return Path(socket_home).expanduser() / DLX_DIRNAME
    try:
        configured = load_config().dlx_dir
    except (OSError, ValueError):
        configured = None
    if configured:
        return Path(configured).expanduser()
    return DEFAULT_DLX_DIR


@contextmanager
def dlx_dir_context(path: Path | str | None):
    """Temporarily override the dlx cache root for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _DLX_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _DLX_DIR_OVERRIDE.reset(token)


def set_dlx_dir(path: Path | str | None) -> None:
    global DLX_DIR
    if path is None:
        DLX_DIR = None
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    DLX_DIR = dir_path


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _coerce_optional_str(value: object, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_ttl(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value <= 0:
        return default
    return int(value)
