"""Process spawning for cached binaries and resolved commands."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Mapping, Sequence

from ..errors import BinaryNotFoundError
from ..utils import current_platform, is_path
from .detect_service import ExecutableType, detect_executable_type, is_js_file_path
from .shim_service import resolve_real_bin, which_real

logger = logging.getLogger(__name__)

SHELL_EXTENSIONS = frozenset({".bat", ".cmd", ".ps1"})

StdStream = int | IO[Any] | None


@dataclass(slots=True)
class SpawnOptions:
    cwd: Path | str | None = None
    env: Mapping[str, str] | None = None
    shell: bool = False
    stdin: StdStream = None
    stdout: StdStream = None
    stderr: StdStream = None


def spawn(
    command: str | os.PathLike[str],
    args: Sequence[str] = (),
    options: SpawnOptions | None = None,
) -> subprocess.Popen:
    """Start *command* with *args* and return without waiting for it."""

    options = options or SpawnOptions()
    argv = [os.fspath(command), *args]
    cmd: str | list[str] = argv
    if options.shell and current_platform() != "win32":
        cmd = shlex.join(argv)
    logger.debug("Spawning %s", argv)
    return subprocess.Popen(
        cmd,
        cwd=options.cwd,
        env=dict(options.env) if options.env is not None else None,
        shell=options.shell,
        stdin=options.stdin,
        stdout=options.stdout,
        stderr=options.stderr,
    )


def _with_path_prefix(env: Mapping[str, str] | None, directory: str, separator: str) -> dict[str, str]:
    merged = dict(env if env is not None else os.environ)
    current = merged.get("PATH", "")
    merged["PATH"] = f"{directory}{separator}{current}" if current else directory
    return merged


def execute_binary(
    binary_path: str | os.PathLike[str],
    args: Sequence[str] = (),
    options: SpawnOptions | None = None,
    *,
    platform: str | None = None,
    dlx_dir: Path | str | None = None,
) -> subprocess.Popen:
    """Run an artifact the way its type requires.

    Windows batch and PowerShell wrappers go through the shell with their own
    directory first on PATH. JavaScript entry points of Node packages run
    through ``node``. Everything else is executed directly.
    """

    platform = platform or current_platform()
    options = options or SpawnOptions()
    path = os.fspath(binary_path)
    ext = os.path.splitext(path)[1].lower()
    if platform == "win32" and ext in SHELL_EXTENSIONS:
        directory = os.path.dirname(path)
        shell_options = SpawnOptions(
            cwd=options.cwd,
            env=_with_path_prefix(options.env, directory, ";"),
            shell=True,
            stdin=options.stdin,
            stdout=options.stdout,
            stderr=options.stderr,
        )
        return spawn(path, args, shell_options)
    if is_js_file_path(path):
        detection = detect_executable_type(path, dlx_dir=dlx_dir)
        if detection.type is ExecutableType.PACKAGE:
            node = shutil.which("node") or "node"
            return spawn(node, [path, *args], options)
    return spawn(path, args, options)


def exec_bin(
    bin_path: str,
    args: Sequence[str] = (),
    options: SpawnOptions | None = None,
    *,
    platform: str | None = None,
) -> subprocess.Popen:
    """Resolve *bin_path* through PATH and launcher shims, then run it.

    Raises :class:`BinaryNotFoundError` when a command name is not on PATH or
    a path does not exist.
    """

    if is_path(bin_path):
        resolved: str | None = resolve_real_bin(bin_path, platform=platform)
        if not os.path.exists(resolved):
            raise BinaryNotFoundError(bin_path)
    else:
        found = which_real(bin_path)
        resolved = found if isinstance(found, str) else None
    if not resolved:
        raise BinaryNotFoundError(bin_path)
    return execute_binary(resolved, args, options, platform=platform)
