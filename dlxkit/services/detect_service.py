"""Classify executables as Node packages or native binaries."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..cache import is_in_dlx
from ..config import resolve_dlx_dir

logger = logging.getLogger(__name__)

NODE_JS_EXTENSIONS = frozenset({".js", ".mjs", ".cjs"})


class ExecutableType(str, Enum):
    PACKAGE = "package"
    BINARY = "binary"


class DetectionMethod(str, Enum):
    DLX_CACHE = "dlx-cache"
    PACKAGE_JSON = "package-json"
    FILE_EXTENSION = "file-extension"


@dataclass(slots=True)
class ExecutableDetection:
    type: ExecutableType
    method: DetectionMethod
    in_dlx_cache: bool = False
    package_json_path: Path | None = None


def is_js_file_path(path: str | os.PathLike[str]) -> bool:
    return os.path.splitext(os.fspath(path))[1].lower() in NODE_JS_EXTENSIONS


def _find_package_json(path: Path) -> Path | None:
    """Walk up from *path* to the nearest well-formed ``package.json``.

    Returns it only when it declares a non-empty ``bin``. Malformed manifests
    are skipped.
    """

    current = path.parent
    while True:
        candidate = current / "package.json"
        if candidate.is_file():
            try:
                data = json.loads(candidate.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.debug("Skipping unreadable %s: %s", candidate, exc)
            else:
                if isinstance(data, dict):
                    return candidate if data.get("bin") else None
                logger.debug("Skipping non-object %s", candidate)
        parent = current.parent
        if parent == current:
            return None
        current = parent


def detect_dlx_executable_type(
    path: str | os.PathLike[str], *, dlx_dir: Path | str | None = None
) -> ExecutableDetection:
    """Classify a path inside the dlx directory by its entry's ``node_modules``."""

    root = Path(os.path.abspath(resolve_dlx_dir(dlx_dir)))
    absolute = Path(os.path.abspath(path))
    try:
        parts = absolute.relative_to(root).parts
    except ValueError:
        parts = ()
    entry_dir = root / parts[0] if parts else root
    if (entry_dir / "node_modules").exists():
        return ExecutableDetection(
            ExecutableType.PACKAGE, DetectionMethod.DLX_CACHE, in_dlx_cache=True
        )
    return ExecutableDetection(
        ExecutableType.BINARY, DetectionMethod.DLX_CACHE, in_dlx_cache=True
    )


def detect_local_executable_type(path: str | os.PathLike[str]) -> ExecutableDetection:
    absolute = Path(os.path.abspath(path))
    package_json = _find_package_json(absolute)
    if package_json is not None:
        return ExecutableDetection(
            ExecutableType.PACKAGE,
            DetectionMethod.PACKAGE_JSON,
            package_json_path=package_json,
        )
    if is_js_file_path(path):
        return ExecutableDetection(ExecutableType.PACKAGE, DetectionMethod.FILE_EXTENSION)
    return ExecutableDetection(ExecutableType.BINARY, DetectionMethod.FILE_EXTENSION)


def detect_executable_type(
    path: str | os.PathLike[str], *, dlx_dir: Path | str | None = None
) -> ExecutableDetection:
    if is_in_dlx(path, dlx_dir=dlx_dir):
        return detect_dlx_executable_type(path, dlx_dir=dlx_dir)
    return detect_local_executable_type(path)


def is_native_binary(
    path: str | os.PathLike[str], *, dlx_dir: Path | str | None = None
) -> bool:
    return detect_executable_type(path, dlx_dir=dlx_dir).type is ExecutableType.BINARY


def is_node_package(
    path: str | os.PathLike[str], *, dlx_dir: Path | str | None = None
) -> bool:
    return detect_executable_type(path, dlx_dir=dlx_dir).type is ExecutableType.PACKAGE
