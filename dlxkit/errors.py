"""Exception types raised by dlxkit."""

from __future__ import annotations

from .text import Messages


class DlxError(RuntimeError):
    """Base class for dlxkit failures."""


class BinaryNotFoundError(DlxError, FileNotFoundError):
    """Raised when a command cannot be located on PATH."""

    code = "ENOENT"

    def __init__(self, name: str) -> None:
        super().__init__(Messages.ERROR_BINARY_NOT_FOUND.format(name=name))
        self.name = name

    def __str__(self) -> str:
        return Messages.ERROR_BINARY_NOT_FOUND.format(name=self.name)


class ChecksumMismatchError(DlxError):
    def __init__(self, expected: str, actual: str, *, message: str | None = None) -> None:
        super().__init__(
            message
            or Messages.ERROR_CHECKSUM_MISMATCH.format(expected=expected, actual=actual)
        )
        self.expected = expected
        self.actual = actual


class DownloadError(DlxError):
    def __init__(self, url: str, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class CacheDirError(DlxError):
    """Raised when the dlx cache directory cannot be created or removed."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class LockTimeoutError(DlxError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path
