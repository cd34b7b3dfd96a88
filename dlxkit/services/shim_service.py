"""Locate commands on PATH and see through launcher shims to the real program."""

from __future__ import annotations

import json
import logging
import os
import posixpath
import re
import shutil
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from ..utils import current_platform, is_absolute_path, is_path, normalize_path

logger = logging.getLogger(__name__)

NPM_FAMILY = frozenset({"npm", "npx"})
PNPM_FAMILY = frozenset({"pnpm", "yarn"})
WINDOWS_WRAPPER_EXTENSIONS = frozenset({"", ".cmd", ".ps1", ".exe"})
SHADOW_BIN_SEGMENT = "node_modules/.bin"
SETUP_PNPM_SEGMENT = "/.bin/pnpm"

_VOLTA_SEGMENT_RE = re.compile(r"/\.volta/", re.IGNORECASE)


class WrapperDialect(str, Enum):
    """Known launcher script layouts, each with one extraction pattern."""

    NPM_CLI_CMD = "npm-cli-cmd"
    NPM_CLI_SH = "npm-cli-sh"
    NPM_CLI_PS1 = "npm-cli-ps1"
    PNPM_CMD_NODE = "pnpm-cmd-node"
    PNPM_CMD_BUNDLED_NODE = "pnpm-cmd-bundled-node"
    PNPM_SH_TOOLS = "pnpm-sh-tools"
    PNPM_SH_EXEC_NODE = "pnpm-sh-exec-node"
    SH_TOOLS = "sh-tools"
    SH_EXEC_NODE = "sh-exec-node"
    CMD_SHIM_CMD = "cmd-shim-cmd"
    CMD_SHIM_SH = "cmd-shim-sh"
    CMD_SHIM_PS1 = "cmd-shim-ps1"


# "CLI_VAR" is replaced with NPM_CLI_JS or NPX_CLI_JS.
_DIALECT_PATTERNS: dict[WrapperDialect, tuple[str, int]] = {
    WrapperDialect.NPM_CLI_CMD: (r'"CLI_VAR=%~dp0\\([^"]*)"', 0),
    WrapperDialect.NPM_CLI_SH: (r'CLI_VAR="\$CLI_BASEDIR/([^"]*)"', 0),
    WrapperDialect.NPM_CLI_PS1: (r'\$CLI_VAR="\$PSScriptRoot/([^"]*)"', 0),
    WrapperDialect.PNPM_CMD_NODE: (r'node\s+"%~dp0\\([^"]+)"\s+%\*', 0),
    WrapperDialect.PNPM_CMD_BUNDLED_NODE: (
        r'"%~dp0\\[^"]*node[^"]*"\s+"%~dp0\\([^"]+)"\s+%\*',
        0,
    ),
    WrapperDialect.PNPM_SH_TOOLS: (r'"\$basedir/(\.tools/pnpm/[^"]+)"\s+"\$@"', 0),
    WrapperDialect.PNPM_SH_EXEC_NODE: (
        r'exec\s+node\s+"\$basedir/(\.tools/pnpm/[^"]+)"\s+"\$@"',
        0,
    ),
    WrapperDialect.SH_TOOLS: (r'"\$basedir/(\.tools/[^"]+)"\s+"\$@"', 0),
    WrapperDialect.SH_EXEC_NODE: (r'exec\s+node\s+"?\$basedir/([^"]+)"?\s+"\$@"', 0),
    WrapperDialect.CMD_SHIM_CMD: (r'"%dp0%\\([^"\r\n]*)" %\*\r?$', re.MULTILINE),
    WrapperDialect.CMD_SHIM_SH: (r'"\$basedir/([^"]+)"\s+"\$@"', 0),
    WrapperDialect.CMD_SHIM_PS1: (r'"\$basedir/([^"]+)"\s+\$args', 0),
}


@lru_cache(maxsize=None)
def _compiled(dialect: WrapperDialect, basename: str) -> re.Pattern[str]:
    pattern, flags = _DIALECT_PATTERNS[dialect]
    if "CLI_VAR" in pattern:
        pattern = pattern.replace("CLI_VAR", re.escape(f"{basename.upper()}_CLI_JS"))
    return re.compile(pattern, flags)


def extract_relative_path(
    dialect: WrapperDialect, source: str, basename: str = "npm"
) -> str | None:
    """Return the script path a wrapper of *dialect* launches, relative to it."""

    match = _compiled(dialect, basename).search(source)
    if match is None:
        return None
    captured = match.group(1)
    return captured or None


def dialects_for(platform: str, basename: str, ext: str) -> tuple[WrapperDialect, ...]:
    """Return the dialects to try, in priority order, for a wrapper file."""

    ext = ext.lower()
    if platform == "win32":
        if ext not in WINDOWS_WRAPPER_EXTENSIONS or ext == ".exe":
            return ()
        if basename in NPM_FAMILY:
            return {
                ".cmd": (WrapperDialect.NPM_CLI_CMD,),
                "": (WrapperDialect.NPM_CLI_SH,),
                ".ps1": (WrapperDialect.NPM_CLI_PS1,),
            }[ext]
        if basename in PNPM_FAMILY:
            return {
                ".cmd": (
                    WrapperDialect.PNPM_CMD_NODE,
                    WrapperDialect.PNPM_CMD_BUNDLED_NODE,
                    WrapperDialect.CMD_SHIM_CMD,
                ),
                "": (
                    WrapperDialect.PNPM_SH_TOOLS,
                    WrapperDialect.PNPM_SH_EXEC_NODE,
                    WrapperDialect.CMD_SHIM_SH,
                ),
                ".ps1": (WrapperDialect.CMD_SHIM_PS1,),
            }[ext]
        return {
            ".cmd": (WrapperDialect.CMD_SHIM_CMD,),
            "": (WrapperDialect.CMD_SHIM_SH,),
            ".ps1": (WrapperDialect.CMD_SHIM_PS1,),
        }[ext]
    if ext:
        return ()
    if basename in PNPM_FAMILY:
        return (
            WrapperDialect.SH_TOOLS,
            WrapperDialect.CMD_SHIM_SH,
            WrapperDialect.SH_EXEC_NODE,
        )
    if basename in NPM_FAMILY:
        return (WrapperDialect.NPM_CLI_SH,)
    return ()


def is_shadow_bin_path(dir_path: str | os.PathLike[str] | None) -> bool:
    """Return True for ``node_modules/.bin`` directories."""

    if not dir_path:
        return False
    return SHADOW_BIN_SEGMENT in os.fspath(dir_path).replace("\\", "/")


def _path_entries(path: str | None) -> list[str]:
    raw = path if path is not None else os.environ.get("PATH", "")
    return [entry for entry in raw.split(os.pathsep) if entry]


def which(
    name: str, *, all: bool = False, path: str | None = None
) -> str | list[str] | None:
    """Find *name* on PATH.

    Paths are returned untouched. With ``all=True`` a list of every match in
    PATH order is returned (possibly empty).
    """

    if is_path(name):
        return [name] if all else name
    if not all:
        return shutil.which(name, path=path)
    matches: list[str] = []
    seen: set[str] = set()
    for directory in _path_entries(path):
        found = shutil.which(name, path=directory)
        if found and found not in seen:
            seen.add(found)
            matches.append(found)
    return matches


def which_real(
    name: str, *, all: bool = False, path: str | None = None
) -> str | list[str] | None:
    """Like :func:`which` but every match is passed through :func:`resolve_real_bin`."""

    if all:
        found = which(name, all=True, path=path)
        return [resolve_real_bin(item) for item in found or []]
    found = which(name, path=path)
    if not found:
        return None
    return resolve_real_bin(found)


def find_real_bin(bin_name: str, common_paths: Sequence[str] = ()) -> str | None:
    """Return the first existing common path, else the first PATH match outside shadow bins."""

    for candidate in common_paths:
        if candidate and os.path.exists(candidate):
            return candidate
    found = shutil.which(bin_name)
    if not found:
        return None
    if is_shadow_bin_path(os.path.dirname(found)):
        for alternative in which(bin_name, all=True) or []:
            if not is_shadow_bin_path(os.path.dirname(alternative)):
                return alternative
    return found


def find_real_npm() -> str:
    node = shutil.which("node")
    if node:
        sibling = os.path.join(os.path.dirname(node), "npm")
        if os.path.exists(sibling):
            return sibling
    result = find_real_bin("npm", ["/usr/local/bin/npm", "/usr/bin/npm"])
    if result and os.path.exists(result):
        return result
    resolved = which_real("npm")
    if isinstance(resolved, str) and os.path.exists(resolved):
        return resolved
    return "npm"


def find_real_pnpm() -> str:
    home = os.path.expanduser("~")
    if current_platform() == "win32":
        appdata = os.environ.get("APPDATA", "")
        local_appdata = os.environ.get("LOCALAPPDATA", "")
        candidates = [
            os.path.join(appdata, "npm", "pnpm.cmd") if appdata else "",
            os.path.join(appdata, "npm", "pnpm") if appdata else "",
            os.path.join(local_appdata, "pnpm", "pnpm.cmd") if local_appdata else "",
            os.path.join(local_appdata, "pnpm", "pnpm") if local_appdata else "",
            "C:\\Program Files\\nodejs\\pnpm.cmd",
            "C:\\Program Files\\nodejs\\pnpm",
        ]
    else:
        data_home = os.environ.get("XDG_DATA_HOME") or os.path.join(home, ".local", "share")
        candidates = [
            "/usr/local/bin/pnpm",
            "/usr/bin/pnpm",
            os.path.join(data_home, "pnpm", "pnpm"),
            os.path.join(home, ".pnpm", "pnpm"),
        ]
    return find_real_bin("pnpm", [item for item in candidates if item]) or ""


def find_real_yarn() -> str:
    home = os.path.expanduser("~")
    candidates = [
        "/usr/local/bin/yarn",
        "/usr/bin/yarn",
        os.path.join(home, ".yarn", "bin", "yarn"),
        os.path.join(home, ".config", "yarn", "global", "node_modules", ".bin", "yarn"),
    ]
    return find_real_bin("yarn", candidates) or ""


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Unable to read %s: %s", path, exc)
        return None


def _finalize(path: str) -> str:
    try:
        return normalize_path(os.path.realpath(path, strict=True))
    except (OSError, ValueError):
        return normalize_path(path)


def _resolve_volta(bin_path: str, basename: str) -> str | None:
    match = _VOLTA_SEGMENT_RE.search(bin_path)
    if match is None:
        return None
    volta_root = bin_path[: match.end() - 1]
    image_dir = posixpath.join(volta_root, "tools", "image")
    user_dir = posixpath.join(volta_root, "tools", "user")
    candidates: list[str] = []
    if basename in NPM_FAMILY:
        platform_info = _read_json(posixpath.join(user_dir, "platform.json"))
        node_info = platform_info.get("node") if isinstance(platform_info, dict) else None
        if isinstance(node_info, dict):
            cli_rel = f"bin/{basename}-cli.js"
            npm_version = node_info.get("npm")
            node_version = node_info.get("runtime")
            if npm_version:
                candidates.append(posixpath.join(image_dir, "npm", str(npm_version), cli_rel))
            if node_version:
                candidates.append(
                    posixpath.join(
                        image_dir, "node", str(node_version), "lib/node_modules/npm", cli_rel
                    )
                )
    else:
        bin_info = _read_json(posixpath.join(user_dir, "bin", f"{basename}.json"))
        package = bin_info.get("package") if isinstance(bin_info, dict) else None
        if package:
            target = posixpath.join(image_dir, "packages", str(package), "bin", basename)
            candidates.extend([target, f"{target}.cmd"])
    for candidate in candidates:
        if os.path.exists(candidate):
            return _finalize(candidate)
    logger.debug("No Volta target found for %s", bin_path)
    return None


def _read_wrapper(path: str) -> str | None:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Unable to read wrapper %s: %s", path, exc)
        return None


def _follow_wrapper(
    bin_path: str,
    dialects: tuple[WrapperDialect, ...],
    basename: str,
    *,
    pnpm_prefix: bool = False,
) -> str:
    if not dialects or not os.path.isfile(bin_path):
        return bin_path
    source = _read_wrapper(bin_path)
    if source is None:
        return bin_path
    for dialect in dialects:
        relative = extract_relative_path(dialect, source, basename)
        if not relative:
            continue
        relative = relative.replace("\\", "/")
        if pnpm_prefix and basename == "pnpm" and relative.startswith("pnpm/"):
            relative = f"../{relative}"
        return normalize_path(posixpath.join(posixpath.dirname(bin_path), relative))
    return bin_path


def resolve_real_bin(bin_path: str | os.PathLike[str], *, platform: str | None = None) -> str:
    """Return the script or executable that *bin_path* ultimately launches.

    Handles Volta shims, npm/npx wrappers, pnpm/yarn wrappers (including the
    setup-pnpm layout) and generic cmd-shim scripts. Whenever a wrapper cannot
    be read or understood the input path is returned, normalised.
    """

    platform = platform or current_platform()
    raw = os.fspath(bin_path)
    if raw and not is_absolute_path(raw) and not is_path(raw):
        found = which(raw)
        if isinstance(found, str) and found:
            raw = found
    path = normalize_path(raw)
    if path == ".":
        return path

    filename = posixpath.basename(path)
    basename, ext = posixpath.splitext(filename)
    ext = ext.lower()

    if basename != "node":
        volta_target = _resolve_volta(path, basename)
        if volta_target is not None:
            return volta_target

    if platform == "win32":
        if ext in WINDOWS_WRAPPER_EXTENSIONS and basename in NPM_FAMILY:
            quick_path = posixpath.join(
                posixpath.dirname(path), f"node_modules/npm/bin/{basename}-cli.js"
            )
            if os.path.exists(quick_path):
                return _finalize(quick_path)
        path = _follow_wrapper(path, dialects_for(platform, basename, ext), basename)
    else:
        if basename in PNPM_FAMILY and f"{SETUP_PNPM_SEGMENT}/bin/" in path:
            base_bin = path[: path.index(SETUP_PNPM_SEGMENT) + len(SETUP_PNPM_SEGMENT)]
            if os.path.isfile(base_bin):
                path = normalize_path(base_bin)
                filename = posixpath.basename(path)
                basename, ext = posixpath.splitext(filename)
                ext = ext.lower()
        path = _follow_wrapper(
            path,
            dialects_for(platform, basename, ext),
            basename,
            pnpm_prefix=True,
        )
    return _finalize(path)
