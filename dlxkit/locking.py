"""Exclusive locks shared by threads and processes working on the dlx directory."""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator

from .errors import LockTimeoutError
from .text import Messages

if os.name == "nt":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 600.0
LOCK_POLL_INTERVAL = 0.05


@dataclass(slots=True)
class _ThreadLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


_THREAD_LOCKS: Dict[str, _ThreadLock] = {}
_THREAD_LOCKS_GUARD = threading.Lock()


@contextmanager
def _thread_lock(key: str) -> Iterator[None]:
    with _THREAD_LOCKS_GUARD:
        holder = _THREAD_LOCKS.get(key)
        if holder is None:
            holder = _ThreadLock()
            _THREAD_LOCKS[key] = holder
        holder.users += 1
    try:
        with holder.lock:
            yield
    finally:
        with _THREAD_LOCKS_GUARD:
            holder.users -= 1
            if holder.users == 0:
                _THREAD_LOCKS.pop(key, None)


def _try_lock(fd: int) -> None:
    if os.name == "nt":
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
    else:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(fd: int) -> None:
    if os.name == "nt":
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)


@contextmanager
def file_lock(lock_path: Path, *, timeout: float = LOCK_TIMEOUT) -> Iterator[None]:
    """Hold an exclusive lock on *lock_path* against other threads and processes.

    The lock file is created when missing and left in place afterwards. The OS
    drops the lock when its holder exits, so a crashed process never leaves a
    stale lock behind. Raises :class:`LockTimeoutError` after *timeout* seconds.
    """

    key = os.path.abspath(lock_path)
    with _thread_lock(key):
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            deadline = time.monotonic() + timeout
            while True:
                try:
                    _try_lock(fd)
                    break
                except OSError:
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(
                            str(lock_path), Messages.ERROR_LOCK_TIMEOUT.format(path=lock_path)
                        ) from None
                    time.sleep(LOCK_POLL_INTERVAL)
            logger.debug("Acquired lock %s", lock_path)
            try:
                yield
            finally:
                _unlock(fd)
        finally:
            os.close(fd)
