"""Command line interface for dlxkit."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import clean_dlx_cache, clear_dlx, list_dlx_cache, remove_dlx_package
from .config import (
    DLX_BINARY_CACHE_TTL_MS,
    MS_PER_DAY,
    config_file_path,
    load_config,
    resolve_dlx_dir,
    set_cache_ttl_days,
    set_configured_dlx_dir,
)
from .errors import DlxError
from .output import format_checksum
from .services.detect_service import detect_executable_type
from .services.download_service import dlx_binary, download_binary
from .services.exec_service import exec_bin
from .services.shim_service import which_real
from .text import Messages, Styles
from .utils import format_age, format_path, format_size

console = Console()

_PASSTHROUGH_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"dlxkit v{__version__}")
        raise typer.Exit()


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _fail(message: str) -> None:
    console.print(_styled(message, Styles.ERROR))
    raise typer.Exit(code=1)


def _days_to_ms(days: float | None) -> int | None:
    if days is None:
        return None
    if days <= 0:
        _fail(Messages.ERROR_TTL_INVALID)
    return int(days * MS_PER_DAY)


def _plural(count: int) -> str:
    return "y" if count == 1 else "ies"


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help=Messages.HELP_VERSION,
    ),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Global Typer callback for shared options."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    return None


@app.command("run", help=Messages.HELP_RUN, context_settings=_PASSTHROUGH_SETTINGS)
def run_binary(
    url: str = typer.Argument(..., help=Messages.HELP_URL),
    args: list[str] | None = typer.Argument(None, help=Messages.HELP_ARGS),
    name: str | None = typer.Option(None, "--name", help=Messages.HELP_NAME),
    checksum: str | None = typer.Option(None, "--checksum", help=Messages.HELP_CHECKSUM),
    integrity: str | None = typer.Option(None, "--integrity", help=Messages.HELP_INTEGRITY),
    force: bool = typer.Option(False, "--force", help=Messages.HELP_FORCE),
    ttl_days: float | None = typer.Option(None, "--ttl-days", help=Messages.HELP_TTL_DAYS),
) -> None:
    ttl_ms = _days_to_ms(ttl_days)
    try:
        result = dlx_binary(
            list(args or []),
            url=url,
            name=name,
            checksum=checksum,
            integrity=integrity,
            force=force,
            cache_ttl_ms=ttl_ms,
        )
    except (DlxError, ValueError, OSError) as exc:
        _fail(str(exc))
    template = Messages.INFO_DOWNLOADED if result.downloaded else Messages.INFO_CACHE_HIT
    console.print(_styled(template.format(path=result.binary_path), Styles.INFO))
    code = result.process.wait()
    raise typer.Exit(code=code)


@app.command(help=Messages.HELP_DOWNLOAD)
def download(
    url: str = typer.Argument(..., help=Messages.HELP_URL),
    name: str | None = typer.Option(None, "--name", help=Messages.HELP_NAME),
    checksum: str | None = typer.Option(None, "--checksum", help=Messages.HELP_CHECKSUM),
    integrity: str | None = typer.Option(None, "--integrity", help=Messages.HELP_INTEGRITY),
    force: bool = typer.Option(False, "--force", help=Messages.HELP_FORCE),
    ttl_days: float | None = typer.Option(None, "--ttl-days", help=Messages.HELP_TTL_DAYS),
) -> None:
    ttl_ms = _days_to_ms(ttl_days)
    try:
        result = download_binary(
            url=url,
            name=name,
            checksum=checksum,
            integrity=integrity,
            force=force,
            cache_ttl_ms=ttl_ms,
        )
    except (DlxError, ValueError, OSError) as exc:
        _fail(str(exc))
    template = Messages.INFO_DOWNLOADED if result.downloaded else Messages.INFO_CACHE_HIT
    typer.echo(template.format(path=result.binary_path), err=True)
    typer.echo(str(result.binary_path))


@app.command(help=Messages.HELP_WHICH)
def which(
    name: str = typer.Argument(..., help=Messages.HELP_WHICH_NAME),
    all_matches: bool = typer.Option(False, "--all", "-a", help=Messages.HELP_WHICH_ALL),
) -> None:
    found = which_real(name, all=all_matches)
    paths = found if isinstance(found, list) else ([found] if found else [])
    if not paths:
        _fail(Messages.ERROR_BINARY_NOT_FOUND.format(name=name))
    for path in paths:
        typer.echo(path)


@app.command(help=Messages.HELP_DETECT)
def detect(
    path: Path = typer.Argument(..., help=Messages.HELP_DETECT_PATH),
) -> None:
    detection = detect_executable_type(path)
    console.print(
        Messages.INFO_DETECT_SUMMARY.format(
            type=detection.type.value,
            method=detection.method.value,
            in_cache="yes" if detection.in_dlx_cache else "no",
            package_json=detection.package_json_path or "-",
        ),
        highlight=False,
    )


@app.command("exec", help=Messages.HELP_EXEC, context_settings=_PASSTHROUGH_SETTINGS)
def exec_command(
    bin_path: str = typer.Argument(..., metavar="BIN", help=Messages.HELP_EXEC_BIN),
    args: list[str] | None = typer.Argument(None, help=Messages.HELP_ARGS),
) -> None:
    try:
        process = exec_bin(bin_path, list(args or []))
    except DlxError as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(Messages.ERROR_SPAWN_FAILED.format(path=bin_path, reason=exc))
    raise typer.Exit(code=process.wait())


@app.command(help=Messages.HELP_CACHE)
def cache(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_CACHE_SHOW),
    clean: bool = typer.Option(False, "--clean", help=Messages.HELP_CACHE_CLEAN),
    max_age_days: float = typer.Option(
        DLX_BINARY_CACHE_TTL_MS / MS_PER_DAY,
        "--max-age-days",
        help=Messages.HELP_CACHE_MAX_AGE,
    ),
    clear: bool = typer.Option(False, "--clear", help=Messages.HELP_CACHE_CLEAR),
    remove: str | None = typer.Option(None, "--remove", help=Messages.HELP_CACHE_REMOVE),
) -> None:
    selected = sum(1 for flag in (show, clean, clear, remove is not None) if flag)
    if selected > 1:
        _fail(Messages.ERROR_CACHE_OPTION_CONFLICT)
    if selected == 0:
        console.print(_styled(Messages.INFO_CACHE_CHOOSE, Styles.WARNING))
        raise typer.Exit(code=0)

    dlx_dir = resolve_dlx_dir()
    try:
        if show:
            _show_cache(dlx_dir)
        elif clean:
            max_age_ms = _days_to_ms(max_age_days)
            removed = clean_dlx_cache(max_age_ms, dlx_dir=dlx_dir)
            console.print(
                _styled(
                    Messages.INFO_CACHE_CLEANED.format(count=removed, plural=_plural(removed)),
                    Styles.SUCCESS,
                )
            )
        elif clear:
            removed = clear_dlx(dlx_dir=dlx_dir)
            if removed == 0:
                console.print(_styled(Messages.INFO_CACHE_CLEAR_NONE, Styles.INFO))
            else:
                console.print(
                    _styled(
                        Messages.INFO_CACHE_CLEARED.format(count=removed, plural=_plural(removed)),
                        Styles.SUCCESS,
                    )
                )
        elif remove is not None:
            remove_dlx_package(remove, dlx_dir=dlx_dir)
            console.print(_styled(Messages.INFO_CACHE_REMOVED.format(name=remove), Styles.SUCCESS))
    except (DlxError, OSError) as exc:
        _fail(str(exc))


def _show_cache(dlx_dir: Path) -> None:
    entries = list_dlx_cache(dlx_dir=dlx_dir)
    if not entries:
        console.print(_styled(Messages.INFO_CACHE_EMPTY.format(path=dlx_dir), Styles.WARNING))
        return
    console.print(_styled(Messages.INFO_CACHE_HEADER.format(path=dlx_dir), Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_NAME, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_KEY, no_wrap=True)
    table.add_column(Messages.TABLE_HEADER_URL, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_SIZE, justify="right")
    table.add_column(Messages.TABLE_HEADER_AGE, justify="right")
    table.add_column(Messages.TABLE_HEADER_PLATFORM, no_wrap=True)
    table.add_column(Messages.TABLE_HEADER_VERIFIED, no_wrap=True)
    for entry in entries:
        table.add_row(
            entry.name,
            format_path(entry.path.parent, dlx_dir),
            entry.url or "-",
            format_size(entry.size),
            format_age(entry.age_ms),
            f"{entry.platform}-{entry.arch}",
            format_checksum(entry.checksum, console),
        )
    console.print(table)


@app.command(help=Messages.HELP_CONFIG)
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_CONFIG_SHOW),
    set_dlx_dir_option: Path | None = typer.Option(
        None,
        "--set-dlx-dir",
        help=Messages.HELP_SET_DLX_DIR,
    ),
    clear_dlx_dir: bool = typer.Option(False, "--clear-dlx-dir", help=Messages.HELP_CLEAR_DLX_DIR),
    set_ttl_days_option: float | None = typer.Option(
        None,
        "--set-ttl-days",
        help=Messages.HELP_SET_TTL_DAYS,
    ),
) -> None:
    if set_dlx_dir_option is not None and clear_dlx_dir:
        _fail(Messages.ERROR_DLX_DIR_CONFLICT)

    changed = False
    try:
        if set_dlx_dir_option is not None:
            set_configured_dlx_dir(set_dlx_dir_option)
            console.print(
                _styled(
                    Messages.INFO_DLX_DIR_SET.format(value=load_config().dlx_dir),
                    Styles.SUCCESS,
                )
            )
            changed = True
        if clear_dlx_dir:
            set_configured_dlx_dir(None)
            console.print(_styled(Messages.INFO_DLX_DIR_CLEARED, Styles.SUCCESS))
            changed = True
        if set_ttl_days_option is not None:
            set_cache_ttl_days(set_ttl_days_option)
            console.print(
                _styled(Messages.INFO_TTL_SET.format(value=f"{set_ttl_days_option:g}"), Styles.SUCCESS)
            )
            changed = True
        if show or not changed:
            current = load_config()
            console.print(
                _styled(
                    Messages.INFO_CONFIG_SUMMARY.format(
                        dlx_dir=resolve_dlx_dir(),
                        configured=current.dlx_dir or "-",
                        ttl_days=f"{current.cache_ttl_ms / MS_PER_DAY:g}",
                        config_file=config_file_path(),
                    ),
                    Styles.INFO,
                )
            )
    except (ValueError, OSError) as exc:
        _fail(str(exc))


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))


if __name__ == "__main__":  # pragma: no cover
    run(sys.argv[1:])
