"""dlxkit package initialization."""

from __future__ import annotations

from .cache import clean_dlx_cache, generate_cache_key, list_dlx_cache
from .config import dlx_dir_context, set_dlx_dir
from .errors import (
    BinaryNotFoundError,
    CacheDirError,
    ChecksumMismatchError,
    DlxError,
    DownloadError,
    LockTimeoutError,
)
from .manifest import DlxManifest, dlx_manifest
from .services.detect_service import detect_executable_type
from .services.download_service import dlx_binary, dlx_binary_async, download_binary
from .services.exec_service import SpawnOptions, exec_bin
from .services.shim_service import resolve_real_bin, which, which_real

__all__ = [
    "__version__",
    "BinaryNotFoundError",
    "CacheDirError",
    "ChecksumMismatchError",
    "DlxError",
    "DlxManifest",
    "DownloadError",
    "LockTimeoutError",
    "SpawnOptions",
    "clean_dlx_cache",
    "detect_executable_type",
    "dlx_binary",
    "dlx_binary_async",
    "dlx_dir_context",
    "dlx_manifest",
    "download_binary",
    "exec_bin",
    "generate_cache_key",
    "get_version",
    "list_dlx_cache",
    "resolve_real_bin",
    "set_dlx_dir",
    "which",
    "which_real",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
