"""Layout and maintenance helpers for the dlx cache directory."""

from __future__ import annotations

import errno
import hashlib
import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .config import DLX_BINARY_CACHE_TTL_MS, DLX_METADATA_FILENAME, resolve_dlx_dir
from .errors import CacheDirError
from .text import Messages
from .utils import normalize_path, now_ms

logger = logging.getLogger(__name__)

CACHE_KEY_LENGTH = 16


@dataclass(slots=True)
class DlxCacheEntry:
    """One cached binary as reported by :func:`list_dlx_cache`."""

    name: str
    path: Path
    url: str
    size: int
    age_ms: int
    checksum: str
    platform: str
    arch: str


def generate_cache_key(spec: str) -> str:
    """Return a 16 character hex key for *spec*.

    The key is the leading slice of the SHA-512 digest. It only needs to spread
    entries across directories, so collisions are not a security concern.
    """

    digest = hashlib.sha512(spec.encode("utf-8")).hexdigest()
    return digest[:CACHE_KEY_LENGTH]


def read_cache_metadata(entry_dir: Path) -> Dict[str, Any] | None:
    """Return the sidecar metadata of *entry_dir* or ``None`` when unusable."""

    metadata_path = entry_dir / DLX_METADATA_FILENAME
    try:
        raw = metadata_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.debug("Unable to read %s: %s", metadata_path, exc)
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.debug("Ignoring corrupt metadata %s: %s", metadata_path, exc)
        return None
    if not isinstance(data, dict):
        logger.debug("Ignoring non-object metadata %s", metadata_path)
        return None
    return data


def find_cached_artifact(entry_dir: Path) -> Path | None:
    """Return the first non-hidden regular file in *entry_dir*."""

    try:
        names = sorted(os.listdir(entry_dir))
    except OSError:
        return None
    for name in names:
        if name.startswith("."):
            continue
        candidate = entry_dir / name
        if candidate.is_file():
            return candidate
    return None


def _metadata_url(metadata: Dict[str, Any]) -> str:
    source = metadata.get("source")
    if isinstance(source, dict) and source.get("url"):
        return str(source["url"])
    return str(metadata.get("url") or "")


def _metadata_timestamp(metadata: Dict[str, Any]) -> int | None:
    value = metadata.get("timestamp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return int(value)


def list_dlx_cache(*, dlx_dir: Path | str | None = None) -> list[DlxCacheEntry]:
    """Return every readable cached binary below the dlx directory."""

    root = resolve_dlx_dir(dlx_dir)
    if not root.is_dir():
        return []
    current = now_ms()
    entries: list[DlxCacheEntry] = []
    for entry_dir in sorted(root.iterdir()):
        if not entry_dir.is_dir():
            continue
        metadata = read_cache_metadata(entry_dir)
        if metadata is None:
            continue
        artifact = find_cached_artifact(entry_dir)
        if artifact is None:
            continue
        try:
            size = artifact.stat().st_size
        except OSError as exc:
            logger.debug("Skipping %s: %s", artifact, exc)
            continue
        timestamp = _metadata_timestamp(metadata)
        entries.append(
            DlxCacheEntry(
                name=artifact.name,
                path=artifact,
                url=_metadata_url(metadata),
                size=size,
                age_ms=current - timestamp if timestamp is not None else 0,
                checksum=str(metadata.get("checksum") or ""),
                platform=str(metadata.get("platform") or "unknown"),
                arch=str(metadata.get("arch") or "unknown"),
            )
        )
    return entries


def clean_dlx_cache(
    max_age_ms: int = DLX_BINARY_CACHE_TTL_MS,
    *,
    dlx_dir: Path | str | None = None,
) -> int:
    """Remove cached binaries older than *max_age_ms* and return how many went."""

    root = resolve_dlx_dir(dlx_dir)
    if not root.is_dir():
        return 0
    current = now_ms()
    removed = 0
    for entry_dir in sorted(root.iterdir()):
        if not entry_dir.is_dir():
            continue
        try:
            metadata = read_cache_metadata(entry_dir)
            if metadata is None:
                continue
            timestamp = _metadata_timestamp(metadata)
            if timestamp is not None and current - timestamp <= max_age_ms:
                continue
            shutil.rmtree(entry_dir)
            removed += 1
            logger.debug("Removed expired cache entry %s", entry_dir)
        except OSError as exc:
            logger.debug("Failed to clean %s: %s", entry_dir, exc)
            try:
                if entry_dir.is_dir() and not any(entry_dir.iterdir()):
                    entry_dir.rmdir()
                    removed += 1
            except OSError:
                logger.debug("Leaving broken cache entry %s", entry_dir)
    return removed


def get_dlx_package_dir(package_name: str, *, dlx_dir: Path | str | None = None) -> Path:
    return resolve_dlx_dir(dlx_dir) / package_name


def get_dlx_package_node_modules_dir(
    package_name: str, *, dlx_dir: Path | str | None = None
) -> Path:
    return get_dlx_package_dir(package_name, dlx_dir=dlx_dir) / "node_modules"


def get_dlx_installed_package_dir(
    package_name: str, *, dlx_dir: Path | str | None = None
) -> Path:
    return get_dlx_package_node_modules_dir(package_name, dlx_dir=dlx_dir) / package_name


def get_dlx_package_json_path(
    package_name: str, *, dlx_dir: Path | str | None = None
) -> Path:
    return get_dlx_installed_package_dir(package_name, dlx_dir=dlx_dir) / "package.json"


def is_dlx_package_installed(
    package_name: str, *, dlx_dir: Path | str | None = None
) -> bool:
    return get_dlx_installed_package_dir(package_name, dlx_dir=dlx_dir).exists()


def list_dlx_packages(*, dlx_dir: Path | str | None = None) -> list[str]:
    """Return the sorted names of directories directly below the dlx directory."""

    root = resolve_dlx_dir(dlx_dir)
    try:
        return sorted(entry.name for entry in root.iterdir() if entry.is_dir())
    except OSError:
        return []


def remove_dlx_package(package_name: str, *, dlx_dir: Path | str | None = None) -> None:
    package_dir = get_dlx_package_dir(package_name, dlx_dir=dlx_dir)
    try:
        shutil.rmtree(package_dir)
    except FileNotFoundError:
        return
    except PermissionError as exc:
        raise CacheDirError(
            str(package_dir),
            Messages.ERROR_REMOVE_PERMISSION.format(name=package_name, path=package_dir),
        ) from exc
    except OSError as exc:
        if exc.errno == errno.EROFS:
            message = Messages.ERROR_REMOVE_READONLY
        else:
            message = Messages.ERROR_REMOVE_FAILED
        raise CacheDirError(
            str(package_dir), message.format(name=package_name, path=package_dir)
        ) from exc


def clear_dlx(*, dlx_dir: Path | str | None = None) -> int:
    """Remove every entry directory and return how many were removed."""

    packages = list_dlx_packages(dlx_dir=dlx_dir)
    for package_name in packages:
        remove_dlx_package(package_name, dlx_dir=dlx_dir)
    return len(packages)


def dlx_dir_exists(*, dlx_dir: Path | str | None = None) -> bool:
    return resolve_dlx_dir(dlx_dir).exists()


def ensure_dlx_dir(*, dlx_dir: Path | str | None = None) -> Path:
    """Create the dlx directory when missing and return it."""

    root = resolve_dlx_dir(dlx_dir)
    ensure_cache_dir(root)
    return root


def ensure_cache_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as exc:
        raise CacheDirError(
            str(path), Messages.ERROR_CACHE_DIR_PERMISSION.format(path=path)
        ) from exc
    except OSError as exc:
        if exc.errno == errno.EROFS:
            message = Messages.ERROR_CACHE_DIR_READONLY
        else:
            message = Messages.ERROR_CACHE_DIR_FAILED
        raise CacheDirError(str(path), message.format(path=path)) from exc


def is_in_dlx(path: Path | str, *, dlx_dir: Path | str | None = None) -> bool:
    """Return True when *path* lies strictly below the dlx directory."""

    if not os.fspath(path):
        return False
    root = normalize_path(os.path.abspath(resolve_dlx_dir(dlx_dir)))
    candidate = normalize_path(os.path.abspath(path))
    return candidate.startswith(root.rstrip("/") + "/")
