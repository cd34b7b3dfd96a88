import json
from pathlib import Path

import pytest

from dlxkit.services.detect_service import (
    DetectionMethod,
    ExecutableType,
    detect_dlx_executable_type,
    detect_executable_type,
    detect_local_executable_type,
    is_js_file_path,
    is_native_binary,
    is_node_package,
)


def _touch(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "name, expected",
    [
        ("cli.js", True),
        ("cli.MJS", True),
        ("cli.cjs", True),
        ("cli.ts", False),
        ("cli", False),
        ("js", False),
    ],
)
def test_is_js_file_path(name, expected):
    assert is_js_file_path(name) is expected


def test_dlx_entry_with_node_modules_is_package(tmp_path):
    dlx = tmp_path / "_dlx"
    (dlx / "abcdef0123456789" / "node_modules").mkdir(parents=True)
    target = _touch(dlx / "abcdef0123456789" / "node_modules" / ".bin" / "cowsay")

    detection = detect_executable_type(target, dlx_dir=dlx)

    assert detection.type is ExecutableType.PACKAGE
    assert detection.method is DetectionMethod.DLX_CACHE
    assert detection.in_dlx_cache is True
    assert detection.package_json_path is None


def test_dlx_entry_without_node_modules_is_binary(tmp_path):
    dlx = tmp_path / "_dlx"
    target = _touch(dlx / "abcdef0123456789" / "tool.js")
    # A package.json above the dlx directory must not matter.
    _touch(tmp_path / "package.json", json.dumps({"bin": "x.js"}))

    detection = detect_executable_type(target, dlx_dir=dlx)

    assert detection.type is ExecutableType.BINARY
    assert detection.method is DetectionMethod.DLX_CACHE
    assert detection.in_dlx_cache is True


def test_detect_dlx_executable_type_uses_first_segment(tmp_path):
    dlx = tmp_path / "_dlx"
    (dlx / "pkg" / "node_modules").mkdir(parents=True)

    detection = detect_dlx_executable_type(dlx / "pkg" / "deep" / "nested" / "bin", dlx_dir=dlx)

    assert detection.type is ExecutableType.PACKAGE


def test_local_package_json_with_bin(tmp_path):
    project = tmp_path / "project"
    package_json = _touch(project / "package.json", json.dumps({"name": "p", "bin": {"p": "cli"}}))
    target = _touch(project / "bin" / "cli")

    detection = detect_executable_type(target, dlx_dir=tmp_path / "_dlx")

    assert detection.type is ExecutableType.PACKAGE
    assert detection.method is DetectionMethod.PACKAGE_JSON
    assert detection.package_json_path == package_json
    assert detection.in_dlx_cache is False


def test_nearest_package_json_without_bin_stops_walk(tmp_path):
    _touch(tmp_path / "package.json", json.dumps({"bin": "outer.js"}))
    _touch(tmp_path / "inner" / "package.json", json.dumps({"name": "inner"}))
    target = _touch(tmp_path / "inner" / "tool")

    detection = detect_local_executable_type(target)

    assert detection.type is ExecutableType.BINARY
    assert detection.method is DetectionMethod.FILE_EXTENSION


def test_empty_bin_is_ignored(tmp_path):
    _touch(tmp_path / "package.json", json.dumps({"bin": {}}))
    js_target = _touch(tmp_path / "index.mjs")

    detection = detect_local_executable_type(js_target)

    assert detection.type is ExecutableType.PACKAGE
    assert detection.method is DetectionMethod.FILE_EXTENSION
    assert detection.package_json_path is None


def test_malformed_package_json_is_skipped(tmp_path):
    outer = _touch(tmp_path / "package.json", json.dumps({"bin": "outer.js"}))
    _touch(tmp_path / "inner" / "package.json", "{ not json")
    target = _touch(tmp_path / "inner" / "tool")

    detection = detect_local_executable_type(target)

    assert detection.type is ExecutableType.PACKAGE
    assert detection.package_json_path == outer


def test_extension_fallback_for_nonexistent_paths(tmp_path):
    missing_dir = tmp_path / "no" / "such"

    assert detect_local_executable_type(missing_dir / "run.cjs").type is ExecutableType.PACKAGE
    assert detect_local_executable_type(missing_dir / "run").type is ExecutableType.BINARY


def test_boolean_helpers(tmp_path):
    dlx = tmp_path / "_dlx"
    binary = _touch(tmp_path / "work" / "tool")
    script = _touch(tmp_path / "work" / "tool.js")

    assert is_native_binary(binary, dlx_dir=dlx) is True
    assert is_node_package(binary, dlx_dir=dlx) is False
    assert is_node_package(script, dlx_dir=dlx) is True
    assert is_native_binary(script, dlx_dir=dlx) is False
