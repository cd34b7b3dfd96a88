"""Helpers for formatting CLI output safely across terminals."""

from __future__ import annotations

import sys

from rich.console import Console

CHECKSUM_PREVIEW_LENGTH = 12


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "✓✗"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_icon(passed: bool, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return "[green]✓[/green]" if passed else "[red]✗[/red]"
    return "[green]OK[/green]" if passed else "[red]X[/red]"


def format_checksum(checksum: str, console: Console | None = None) -> str:
    """Return a status icon followed by the leading digest characters."""

    if not checksum:
        return format_status_icon(False, console)
    preview = checksum[:CHECKSUM_PREVIEW_LENGTH]
    return f"{format_status_icon(True, console)} {preview}"
