"""Utility helpers for path handling, platform names and formatting."""

from __future__ import annotations

from pathlib import Path
import os
import platform as platform_module
import posixpath
import re
import sys
import time

_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:/")

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64",
    "s390x": "s390x",
}


def now_ms() -> int:
    """Return the current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def current_platform() -> str:
    """Return the running OS using Node-style names (win32, darwin, linux)."""
    if sys.platform.startswith("win"):
        return "win32"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def current_arch() -> str:
    machine = (platform_module.machine() or "").lower()
    return _ARCH_ALIASES.get(machine, machine or "unknown")


def is_windows(platform: str | None = None) -> bool:
    return (platform or current_platform()) == "win32"


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Return *path* with forward slashes and redundant segments collapsed."""

    raw = os.fspath(path)
    if not raw:
        return "."
    unified = raw.replace("\\", "/")
    if unified.startswith("//"):
        # Keep UNC prefixes intact; posixpath collapses more than two slashes.
        return "/" + posixpath.normpath(unified[1:])
    return posixpath.normpath(unified)


def is_absolute_path(path: str) -> bool:
    unified = path.replace("\\", "/")
    return unified.startswith("/") or bool(_WINDOWS_DRIVE_RE.match(unified))


def is_path(value: str | os.PathLike[str]) -> bool:
    """Return True when *value* looks like a path rather than a bare command name."""

    raw = os.fspath(value)
    if not raw:
        return False
    if is_absolute_path(raw):
        return True
    if raw in {".", ".."}:
        return True
    return "/" in raw or "\\" in raw


def format_path(path: Path, base: Path | None = None) -> str:
    """Return a user friendly representation of *path* relative to *base* when possible."""
    if base:
        try:
            relative = path.relative_to(base)
            return f"./{relative.as_posix()}"
        except ValueError:
            return str(path)
    return str(path)


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"  # pragma: no cover - loop always returns


def format_age(age_ms: int) -> str:
    seconds = max(0, int(age_ms // 1000))
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 48:
        return f"{hours}h"
    return f"{hours // 24}d"

