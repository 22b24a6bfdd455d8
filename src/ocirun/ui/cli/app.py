"""Typer application wiring for the ocirun CLI."""

from __future__ import annotations

from pathlib import Path

from rich.traceback import Traceback
import typer

from ocirun.core.cache import ResultCache
from ocirun.core.exceptions import OciRunError
from ocirun.version import get_version

from ._options import ConfigOption
from .commands.langs import langs
from .commands.mdbook import mdbook_app
from .commands.run import run
from .state import debug_enabled, emit_error, get_cli_state, set_cli_state
from .utils import resolve_config


app = typer.Typer(
    help="Run commands embedded in Markdown documents and insert their output.",
    context_settings={"help_option_names": ["--help"]},
    invoke_without_command=True,
)

cache_app = typer.Typer(
    help="Inspect and clear cached snippet results.",
    context_settings={"help_option_names": ["--help"]},
)

app.add_typer(cache_app, name="cache")
app.add_typer(mdbook_app, name="mdbook")


@app.callback()
def _app_root(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Print the ocirun version and exit.",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Show full tracebacks when an unexpected error occurs.",
    ),
) -> None:
    ctx.obj = get_cli_state()
    set_cli_state(verbosity=verbose, debug=debug)

    if version:
        typer.echo(f"ocirun {get_version()}")
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@cache_app.command(name="clear")
def cache_clear(config: ConfigOption = None) -> None:
    """Remove every cached snippet result."""
    try:
        settings = resolve_config(config, start=Path.cwd())
        cache = ResultCache.open(settings.cache.directory)
    except OciRunError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        emit_error(f"Unable to open the snippet cache: {exc}", exception=exc)
        raise typer.Exit(code=1) from exc

    removed = cache.clear()
    if removed:
        typer.echo(f"Removed {removed} cached result(s) from {cache.root}")
    else:
        typer.echo("Cache is already empty.")


app.command(name="run")(run)
app.command(name="langs")(langs)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - defensive catch-all
        state = get_cli_state()
        if state.show_tracebacks:
            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "cache_app", "main"]
