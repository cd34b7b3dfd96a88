import json
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dlxkit import __version__
from dlxkit.cli import app
from dlxkit.config import DLX_METADATA_FILENAME, MS_PER_DAY, config_dir_context
from dlxkit.errors import BinaryNotFoundError, ChecksumMismatchError
from dlxkit.services.download_service import DlxBinaryResult, DownloadResult


ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

NOW = 1_700_000_000_000


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


class DummyProcess:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode

    def wait(self) -> int:
        return self.returncode


@pytest.fixture(autouse=True)
def temp_config_home(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr("dlxkit.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("dlxkit.config.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def dlx_dir(tmp_path, monkeypatch):
    root = tmp_path / "_dlx"
    monkeypatch.setenv("SOCKET_DLX_DIR", str(root))
    monkeypatch.delenv("SOCKET_HOME", raising=False)
    monkeypatch.setattr("dlxkit.config.DLX_DIR", None)
    return root


def _make_entry(root: Path, key: str, name: str, *, timestamp: int, url: str = "https://example.com/t") -> Path:
    entry = root / key
    entry.mkdir(parents=True)
    (entry / name).write_bytes(b"binary")
    metadata = {
        "version": "1.0.0",
        "cache_key": key,
        "url": url,
        "checksum": "a" * 64,
        "timestamp": timestamp,
        "platform": "linux",
        "arch": "x64",
    }
    (entry / DLX_METADATA_FILENAME).write_text(json.dumps(metadata), encoding="utf-8")
    return entry


def test_version_flag():
    runner = CliRunner()

    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"dlxkit v{__version__}" in result.stdout


def test_run_executes_binary_and_propagates_exit_code(tmp_path, monkeypatch):
    runner = CliRunner()
    captured = {}
    binary = tmp_path / "tool"

    def fake_dlx_binary(args, **kwargs):
        captured["args"] = args
        captured.update(kwargs)
        return DlxBinaryResult(binary_path=binary, downloaded=True, process=DummyProcess(3))

    monkeypatch.setattr("dlxkit.cli.dlx_binary", fake_dlx_binary)

    result = runner.invoke(
        app,
        ["run", "--name", "tool", "--ttl-days", "2", "https://example.com/tool", "--", "--flag", "x"],
    )

    assert result.exit_code == 3
    assert "Downloaded" in strip_ansi(result.stdout)
    assert captured["args"] == ["--flag", "x"]
    assert captured["url"] == "https://example.com/tool"
    assert captured["name"] == "tool"
    assert captured["cache_ttl_ms"] == 2 * MS_PER_DAY
    assert captured["force"] is False


def test_run_reports_cache_hit(tmp_path, monkeypatch):
    runner = CliRunner()

    def fake_dlx_binary(args, **kwargs):
        return DlxBinaryResult(binary_path=tmp_path / "tool", downloaded=False, process=DummyProcess(0))

    monkeypatch.setattr("dlxkit.cli.dlx_binary", fake_dlx_binary)

    result = runner.invoke(app, ["run", "https://example.com/tool"])

    assert result.exit_code == 0
    assert "Using cached" in strip_ansi(result.stdout)


def test_run_reports_checksum_failure(monkeypatch):
    runner = CliRunner()

    def fake_dlx_binary(args, **kwargs):
        raise ChecksumMismatchError("aa", "bb")

    monkeypatch.setattr("dlxkit.cli.dlx_binary", fake_dlx_binary)

    result = runner.invoke(app, ["run", "https://example.com/tool", "--checksum", "aa"])

    assert result.exit_code == 1
    assert "Checksum mismatch: expected aa, got bb" in strip_ansi(result.stdout)


def test_run_rejects_non_positive_ttl(monkeypatch):
    runner = CliRunner()
    monkeypatch.setattr("dlxkit.cli.dlx_binary", lambda *a, **k: pytest.fail("should not run"))

    result = runner.invoke(app, ["run", "https://example.com/tool", "--ttl-days", "0"])

    assert result.exit_code == 1
    assert "TTL must be greater than 0" in strip_ansi(result.stdout)


def test_download_prints_path(tmp_path, monkeypatch):
    runner = CliRunner()
    binary = tmp_path / "tool"

    def fake_download_binary(**kwargs):
        return DownloadResult(binary_path=binary, downloaded=False)

    monkeypatch.setattr("dlxkit.cli.download_binary", fake_download_binary)

    result = runner.invoke(app, ["download", "https://example.com/tool", "--force"])

    assert result.exit_code == 0
    assert str(binary) in result.output


def test_which_lists_matches(monkeypatch):
    runner = CliRunner()
    monkeypatch.setattr(
        "dlxkit.cli.which_real",
        lambda name, all=False: ["/a/npm-cli.js", "/b/npm-cli.js"] if all else "/a/npm-cli.js",
    )

    single = runner.invoke(app, ["which", "npm"])
    every = runner.invoke(app, ["which", "npm", "--all"])

    assert single.exit_code == 0
    assert single.stdout.split() == ["/a/npm-cli.js"]
    assert every.stdout.split() == ["/a/npm-cli.js", "/b/npm-cli.js"]


def test_which_missing_binary(monkeypatch):
    runner = CliRunner()
    monkeypatch.setattr("dlxkit.cli.which_real", lambda name, all=False: None)

    result = runner.invoke(app, ["which", "ghost"])

    assert result.exit_code == 1
    assert "Binary not found: ghost" in strip_ansi(result.stdout)


def test_detect_reports_package(tmp_path, dlx_dir):
    runner = CliRunner()
    script = tmp_path / "work" / "cli.mjs"
    script.parent.mkdir()
    script.write_text("export {}")

    result = runner.invoke(app, ["detect", str(script)])

    assert result.exit_code == 0
    output = strip_ansi(result.stdout)
    assert "Type: package" in output
    assert "Method: file-extension" in output
    assert "In dlx cache: no" in output


def test_detect_reports_dlx_binary(dlx_dir):
    runner = CliRunner()
    entry = _make_entry(dlx_dir, "0123456789abcdef", "tool", timestamp=NOW)

    result = runner.invoke(app, ["detect", str(entry / "tool")])

    output = strip_ansi(result.stdout)
    assert "Type: binary" in output
    assert "Method: dlx-cache" in output
    assert "In dlx cache: yes" in output


def test_exec_runs_resolved_binary(monkeypatch):
    runner = CliRunner()
    captured = {}

    def fake_exec_bin(bin_path, args):
        captured["bin"] = bin_path
        captured["args"] = args
        return DummyProcess(5)

    monkeypatch.setattr("dlxkit.cli.exec_bin", fake_exec_bin)

    result = runner.invoke(app, ["exec", "npm", "--", "-v"])

    assert result.exit_code == 5
    assert captured == {"bin": "npm", "args": ["-v"]}


def test_exec_missing_binary(monkeypatch):
    runner = CliRunner()

    def fake_exec_bin(bin_path, args):
        raise BinaryNotFoundError(bin_path)

    monkeypatch.setattr("dlxkit.cli.exec_bin", fake_exec_bin)

    result = runner.invoke(app, ["exec", "ghost"])

    assert result.exit_code == 1
    assert "Binary not found: ghost" in strip_ansi(result.stdout)


def test_exec_spawn_failure(monkeypatch):
    runner = CliRunner()

    def fake_exec_bin(bin_path, args):
        raise PermissionError("denied")

    monkeypatch.setattr("dlxkit.cli.exec_bin", fake_exec_bin)

    result = runner.invoke(app, ["exec", "./tool"])

    assert result.exit_code == 1
    assert "Unable to start ./tool" in strip_ansi(result.stdout)


def test_cache_without_option(dlx_dir):
    runner = CliRunner()

    result = runner.invoke(app, ["cache"])

    assert result.exit_code == 0
    assert "Nothing to do" in strip_ansi(result.stdout)


def test_cache_rejects_multiple_actions(dlx_dir):
    runner = CliRunner()

    result = runner.invoke(app, ["cache", "--show", "--clear"])

    assert result.exit_code == 1
    assert "Choose only one" in strip_ansi(result.stdout)


def test_cache_show_empty(dlx_dir):
    runner = CliRunner()

    result = runner.invoke(app, ["cache", "--show"])

    assert result.exit_code == 0
    assert "No cached binaries found" in strip_ansi(result.stdout)


def test_cache_show_lists_entries(dlx_dir, monkeypatch):
    runner = CliRunner()
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setattr("dlxkit.cache.now_ms", lambda: NOW)
    _make_entry(dlx_dir, "0123456789abcdef", "tool", timestamp=NOW - 3 * MS_PER_DAY)

    result = runner.invoke(app, ["cache", "--show"])

    assert result.exit_code == 0
    output = strip_ansi(result.stdout)
    assert "Cached binaries" in output
    assert "tool" in output
    assert "3d" in output
    assert "linux-x64" in output


def test_cache_clean_removes_expired_entries(dlx_dir, monkeypatch):
    runner = CliRunner()
    monkeypatch.setattr("dlxkit.cache.now_ms", lambda: NOW)
    old = _make_entry(dlx_dir, "1111111111111111", "old", timestamp=NOW - 10 * MS_PER_DAY)
    fresh = _make_entry(dlx_dir, "2222222222222222", "fresh", timestamp=NOW - MS_PER_DAY)

    result = runner.invoke(app, ["cache", "--clean"])

    assert result.exit_code == 0
    assert "Removed 1 expired cache entry." in strip_ansi(result.stdout)
    assert not old.exists()
    assert fresh.exists()

    result = runner.invoke(app, ["cache", "--clean", "--max-age-days", "0.5"])

    assert "Removed 1 expired cache entry." in strip_ansi(result.stdout)
    assert not fresh.exists()


def test_cache_remove_and_clear(dlx_dir):
    runner = CliRunner()
    _make_entry(dlx_dir, "1111111111111111", "a", timestamp=NOW)
    _make_entry(dlx_dir, "2222222222222222", "b", timestamp=NOW)
    _make_entry(dlx_dir, "3333333333333333", "c", timestamp=NOW)

    removed = runner.invoke(app, ["cache", "--remove", "1111111111111111"])
    cleared = runner.invoke(app, ["cache", "--clear"])
    empty = runner.invoke(app, ["cache", "--clear"])

    assert removed.exit_code == 0
    assert "Removed 1111111111111111." in strip_ansi(removed.stdout)
    assert "Removed 2 dlx entries." in strip_ansi(cleared.stdout)
    assert "already empty" in strip_ansi(empty.stdout)
    assert list(dlx_dir.iterdir()) == []


def test_config_set_ttl_and_show(temp_config_home, dlx_dir):
    runner = CliRunner()

    result = runner.invoke(app, ["config", "--set-ttl-days", "3"])

    assert result.exit_code == 0
    assert "Cache TTL set to 3 day(s)." in strip_ansi(result.stdout)
    assert json.loads(temp_config_home.read_text())["cache_ttl_ms"] == 3 * MS_PER_DAY

    shown = runner.invoke(app, ["config"])

    assert shown.exit_code == 0
    assert "Cache TTL: 3 day(s)" in strip_ansi(shown.stdout)


def test_config_set_and_clear_dlx_dir(tmp_path, temp_config_home):
    runner = CliRunner()
    target = tmp_path / "custom"

    result = runner.invoke(app, ["config", "--set-dlx-dir", str(target)])

    assert result.exit_code == 0
    assert json.loads(temp_config_home.read_text())["dlx_dir"] == str(target.resolve())

    cleared = runner.invoke(app, ["config", "--clear-dlx-dir"])

    assert cleared.exit_code == 0
    assert "dlx_dir" not in json.loads(temp_config_home.read_text())


def test_config_rejects_conflicting_dlx_dir_options(tmp_path):
    runner = CliRunner()

    result = runner.invoke(app, ["config", "--set-dlx-dir", str(tmp_path), "--clear-dlx-dir"])

    assert result.exit_code == 1
    assert "either --set-dlx-dir or --clear-dlx-dir" in strip_ansi(result.stdout)


def test_config_rejects_invalid_ttl(temp_config_home):
    runner = CliRunner()

    result = runner.invoke(app, ["config", "--set-ttl-days", "-1"])

    assert result.exit_code == 1
    assert not temp_config_home.exists()


def test_run_passes_dash_arguments_to_the_binary(tmp_path, monkeypatch):
    runner = CliRunner()
    captured = {}

    def fake_dlx_binary(args, **kwargs):
        captured["args"] = args
        captured["name"] = kwargs["name"]
        return DlxBinaryResult(binary_path=tmp_path / "tool", downloaded=False, process=DummyProcess(0))

    monkeypatch.setattr("dlxkit.cli.dlx_binary", fake_dlx_binary)

    result = runner.invoke(
        app, ["run", "https://example.com/tool", "--json", "-x", "value", "--name", "tool"]
    )

    assert result.exit_code == 0
    assert captured["args"] == ["--json", "-x", "value"]
    assert captured["name"] == "tool"


def test_exec_passes_dash_arguments_to_the_binary(monkeypatch):
    runner = CliRunner()
    captured = {}

    def fake_exec_bin(bin_path, args):
        captured["args"] = args
        return DummyProcess(0)

    monkeypatch.setattr("dlxkit.cli.exec_bin", fake_exec_bin)

    result = runner.invoke(app, ["exec", "npm", "--version", "-g"])

    assert result.exit_code == 0
    assert captured["args"] == ["--version", "-g"]


def test_config_show_reports_the_active_config_file(tmp_path, monkeypatch, dlx_dir):
    runner = CliRunner()
    monkeypatch.setenv("COLUMNS", "400")
    scoped = tmp_path / "scoped"

    with config_dir_context(scoped):
        result = runner.invoke(app, ["config", "--show"])

    assert result.exit_code == 0
    assert f"Config file: {scoped.resolve() / 'config.json'}" in strip_ansi(result.stdout)
