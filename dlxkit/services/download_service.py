"""Download, verify and cache binaries, then run them."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence
from urllib import error, request

from ..cache import ensure_cache_dir, generate_cache_key, read_cache_metadata
from ..config import (
    DLX_LOCK_FILENAME,
    DLX_MANIFEST_FILENAME,
    DLX_METADATA_FILENAME,
    DLX_METADATA_VERSION,
    resolve_cache_ttl_ms,
    resolve_dlx_dir,
)
from ..errors import ChecksumMismatchError, DownloadError, LockTimeoutError
from ..locking import file_lock
from ..manifest import BinaryDetails, BinarySource, DlxManifest
from ..text import Messages
from ..utils import current_arch, current_platform, is_windows, now_ms
from .exec_service import SpawnOptions, execute_binary

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "sha256"
DOWNLOAD_TIMEOUT = 300.0
SRI_ALGORITHMS = ("sha512", "sha384", "sha256")


@dataclass(slots=True)
class DownloadResult:
    binary_path: Path
    downloaded: bool


@dataclass(slots=True)
class DlxBinaryResult:
    binary_path: Path
    downloaded: bool
    process: subprocess.Popen


def get_dlx_cache_path(*, dlx_dir: Path | str | None = None) -> Path:
    """Return the directory holding cached binaries."""
    return resolve_dlx_dir(dlx_dir)


def default_binary_name() -> str:
    return f"binary-{current_platform()}-{current_arch()}"


def _is_cache_hit(
    entry_dir: Path,
    binary_path: Path,
    ttl_ms: int,
    checksum: str | None,
) -> bool:
    metadata = read_cache_metadata(entry_dir)
    if metadata is None:
        return False
    recorded = metadata.get("checksum")
    if not isinstance(recorded, str) or not recorded:
        return False
    timestamp = metadata.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp <= 0:
        return False
    if now_ms() - timestamp >= ttl_ms:
        return False
    if not binary_path.is_file():
        return False
    if checksum and checksum.strip().lower() != recorded.lower():
        logger.debug("Cached checksum %s differs from requested %s", recorded, checksum)
        return False
    return True


def _fetch(url: str, dest: Path, *, timeout: float) -> bytes:
    try:
        with request.urlopen(url, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            if status is None or not 200 <= status < 300:
                raise DownloadError(
                    url,
                    Messages.ERROR_DOWNLOAD_STATUS.format(url=url, status=status),
                    status=status,
                )
            return response.read()
    except error.HTTPError as exc:
        raise DownloadError(
            url,
            Messages.ERROR_DOWNLOAD_STATUS.format(url=url, status=exc.code),
            status=exc.code,
        ) from exc
    except (error.URLError, OSError, ValueError) as exc:
        raise DownloadError(
            url, Messages.ERROR_DOWNLOAD_FAILED.format(url=url, dest=dest)
        ) from exc


def compute_integrity(payload: bytes, algorithm: str = "sha512") -> str:
    digest = hashlib.new(algorithm, payload).digest()
    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"


def verify_integrity(payload: bytes, integrity: str) -> None:
    """Check *payload* against an SRI string; any matching token passes."""

    tokens = integrity.split()
    expected: list[tuple[str, str]] = []
    for token in tokens:
        algorithm, _, value = token.partition("-")
        algorithm = algorithm.lower()
        if algorithm not in SRI_ALGORITHMS or not value:
            continue
        expected.append((algorithm, token))
    if not expected:
        raise ValueError(Messages.ERROR_INTEGRITY_INVALID.format(value=integrity))
    actual = ""
    for algorithm, token in expected:
        actual = compute_integrity(payload, algorithm)
        # Options such as "?foo" trail the digest in SRI.
        if token.split("?", 1)[0] == actual:
            return
    raise ChecksumMismatchError(
        integrity,
        actual,
        message=Messages.ERROR_INTEGRITY_MISMATCH.format(expected=integrity, actual=actual),
    )


def _write_atomic(path: Path, data: bytes, *, executable: bool = False) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        if executable and not is_windows():
            os.chmod(tmp_name, 0o755)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def _build_metadata(
    *,
    cache_key: str,
    url: str,
    name: str,
    checksum: str,
    integrity: str,
    size: int,
) -> Dict[str, Any]:
    return {
        "version": DLX_METADATA_VERSION,
        "cache_key": cache_key,
        "url": url,
        "name": name,
        "checksum": checksum,
        "checksum_algorithm": CHECKSUM_ALGORITHM,
        "integrity": integrity,
        "size": size,
        "timestamp": now_ms(),
        "platform": current_platform(),
        "arch": current_arch(),
        "source": {"type": "download", "url": url},
    }


def _record_manifest(root: Path, spec: str, metadata: Dict[str, Any]) -> None:
    manifest = DlxManifest(root / DLX_MANIFEST_FILENAME)
    details = BinaryDetails(
        checksum=metadata["checksum"],
        checksum_algorithm=metadata["checksum_algorithm"],
        platform=metadata["platform"],
        arch=metadata["arch"],
        size=metadata["size"],
        source=BinarySource(type="download", url=metadata["url"]),
        integrity=metadata["integrity"],
    )
    try:
        manifest.set_binary_entry(spec, metadata["cache_key"], details)
    except (OSError, LockTimeoutError) as exc:
        logger.warning("Unable to update dlx manifest %s: %s", manifest.manifest_path, exc)


def download_binary(
    *,
    url: str,
    name: str | None = None,
    checksum: str | None = None,
    integrity: str | None = None,
    force: bool = False,
    cache_ttl_ms: int | None = None,
    dlx_dir: Path | str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DownloadResult:
    """Return a verified local copy of *url*, downloading it when needed.

    A cached copy is reused while its metadata is younger than the TTL, its
    artifact exists and its recorded checksum agrees with *checksum*. Misses
    fetch the URL once, verify the bytes and only then move them into place;
    the sidecar metadata is written last.
    """

    binary_name = name or default_binary_name()
    spec = f"{url}:{binary_name}"
    cache_key = generate_cache_key(spec)
    root = resolve_dlx_dir(dlx_dir)
    entry_dir = root / cache_key
    binary_path = entry_dir / binary_name
    ttl_ms = resolve_cache_ttl_ms(cache_ttl_ms)

    if not force and _is_cache_hit(entry_dir, binary_path, ttl_ms, checksum):
        logger.debug("Cache hit for %s at %s", url, binary_path)
        return DownloadResult(binary_path=binary_path, downloaded=False)

    ensure_cache_dir(entry_dir)
    with file_lock(entry_dir / DLX_LOCK_FILENAME):
        if not force and _is_cache_hit(entry_dir, binary_path, ttl_ms, checksum):
            logger.debug("Cache filled concurrently for %s", url)
            return DownloadResult(binary_path=binary_path, downloaded=False)

        (entry_dir / DLX_METADATA_FILENAME).unlink(missing_ok=True)

        logger.info("Downloading %s", url)
        payload = _fetch(url, binary_path, timeout=timeout)
        actual = hashlib.sha256(payload).hexdigest()
        if checksum and checksum.strip().lower() != actual:
            raise ChecksumMismatchError(checksum, actual)
        if integrity:
            verify_integrity(payload, integrity)

        _write_atomic(binary_path, payload, executable=True)
        metadata = _build_metadata(
            cache_key=cache_key,
            url=url,
            name=binary_name,
            checksum=actual,
            integrity=compute_integrity(payload),
            size=len(payload),
        )
        _write_atomic(
            entry_dir / DLX_METADATA_FILENAME,
            json.dumps(metadata, ensure_ascii=False, indent=2).encode("utf-8"),
        )
        _record_manifest(root, spec, metadata)
    return DownloadResult(binary_path=binary_path, downloaded=True)


def dlx_binary(
    args: Sequence[str],
    *,
    url: str,
    name: str | None = None,
    checksum: str | None = None,
    integrity: str | None = None,
    force: bool = False,
    yes: bool = False,
    cache_ttl_ms: int | None = None,
    spawn_options: SpawnOptions | None = None,
    dlx_dir: Path | str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DlxBinaryResult:
    """Download (or reuse) the binary at *url* and start it with *args*.

    ``yes`` implies ``force``. The returned process is not waited on.
    """

    result = download_binary(
        url=url,
        name=name,
        checksum=checksum,
        integrity=integrity,
        force=force or yes,
        cache_ttl_ms=cache_ttl_ms,
        dlx_dir=dlx_dir,
        timeout=timeout,
    )
    process = execute_binary(result.binary_path, args, spawn_options, dlx_dir=dlx_dir)
    return DlxBinaryResult(
        binary_path=result.binary_path,
        downloaded=result.downloaded,
        process=process,
    )


async def download_binary_async(
    *,
    url: str,
    name: str | None = None,
    checksum: str | None = None,
    integrity: str | None = None,
    force: bool = False,
    cache_ttl_ms: int | None = None,
    dlx_dir: Path | str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DownloadResult:
    return await asyncio.to_thread(
        download_binary,
        url=url,
        name=name,
        checksum=checksum,
        integrity=integrity,
        force=force,
        cache_ttl_ms=cache_ttl_ms,
        dlx_dir=dlx_dir,
        timeout=timeout,
    )


async def dlx_binary_async(
    args: Sequence[str],
    *,
    url: str,
    name: str | None = None,
    checksum: str | None = None,
    integrity: str | None = None,
    force: bool = False,
    yes: bool = False,
    cache_ttl_ms: int | None = None,
    spawn_options: SpawnOptions | None = None,
    dlx_dir: Path | str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DlxBinaryResult:
    return await asyncio.to_thread(
        dlx_binary,
        args,
        url=url,
        name=name,
        checksum=checksum,
        integrity=integrity,
        force=force,
        yes=yes,
        cache_ttl_ms=cache_ttl_ms,
        spawn_options=spawn_options,
        dlx_dir=dlx_dir,
        timeout=timeout,
    )
