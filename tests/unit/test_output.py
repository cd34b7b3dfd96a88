from __future__ import annotations

from dlxkit import output


def test_encoding_supports_rejects_unknown_codecs():
    assert output._encoding_supports("✓", "utf-8") is True  # type: ignore[attr-defined]
    assert output._encoding_supports("✓", "ascii") is False  # type: ignore[attr-defined]
    assert output._encoding_supports("✓", "no-such-codec") is False  # type: ignore[attr-defined]
    assert output._encoding_supports("✓", None) is False  # type: ignore[attr-defined]


def test_format_checksum_unicode(monkeypatch):
    monkeypatch.setattr(output, "supports_unicode_output", lambda console=None: True)

    assert output.format_checksum("abcdef0123456789") == "[green]✓[/green] abcdef012345"
    assert output.format_checksum("") == "[red]✗[/red]"


def test_format_checksum_ascii_fallback(monkeypatch):
    monkeypatch.setattr(output, "supports_unicode_output", lambda console=None: False)

    assert output.format_checksum("abc") == "[green]OK[/green] abc"
    assert output.format_status_icon(False) == "[red]X[/red]"
