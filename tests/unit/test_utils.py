from pathlib import Path

import pytest

from dlxkit import utils


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", "."),
        ("a/b/../c", "a/c"),
        ("C:\\Users\\me\\npm.cmd", "C:/Users/me/npm.cmd"),
        ("/usr//local/./bin", "/usr/local/bin"),
        ("\\\\server\\share\\tool", "//server/share/tool"),
    ],
)
def test_normalize_path(raw, expected):
    assert utils.normalize_path(raw) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("npm", False),
        ("", False),
        ("./npm", True),
        ("bin/npm", True),
        ("..", True),
        ("/usr/bin/npm", True),
        ("C:\\tools\\npm.cmd", True),
    ],
)
def test_is_path(value, expected):
    assert utils.is_path(value) is expected


def test_is_absolute_path():
    assert utils.is_absolute_path("/tmp")
    assert utils.is_absolute_path("D:\\bin")
    assert not utils.is_absolute_path("bin/tool")


def test_current_arch_uses_node_names(monkeypatch):
    monkeypatch.setattr(utils.platform_module, "machine", lambda: "x86_64")
    assert utils.current_arch() == "x64"
    monkeypatch.setattr(utils.platform_module, "machine", lambda: "AArch64")
    assert utils.current_arch() == "arm64"


def test_current_platform_maps_windows(monkeypatch):
    monkeypatch.setattr(utils.sys, "platform", "win32")
    assert utils.current_platform() == "win32"
    assert utils.is_windows()
    monkeypatch.setattr(utils.sys, "platform", "linux")
    assert utils.current_platform() == "linux"
    assert utils.is_windows("win32")


def test_format_size_and_age():
    assert utils.format_size(512) == "512 B"
    assert utils.format_size(2048) == "2.0 KB"
    assert utils.format_age(5_000) == "5s"
    assert utils.format_age(3 * 60_000) == "3m"
    assert utils.format_age(5 * 3_600_000) == "5h"
    assert utils.format_age(3 * 24 * 3_600_000) == "3d"


def test_format_path_relative(tmp_path):
    assert utils.format_path(tmp_path / "a" / "b", tmp_path) == "./a/b"
    assert utils.format_path(Path("/elsewhere"), tmp_path) == "/elsewhere"

