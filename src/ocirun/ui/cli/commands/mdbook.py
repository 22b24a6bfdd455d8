"""mdbook preprocessor entry point (`ocirun mdbook`)."""

from __future__ import annotations

import sys
from typing import Annotated

import typer

from ocirun.adapters.mdbook import run_preprocessor, supports_renderer
from ocirun.core.exceptions import OciRunError

from .._options import JobsOption
from ..diagnostics import CliEmitter
from ..state import debug_enabled, emit_error, get_cli_state


mdbook_app = typer.Typer(
    help="Act as an mdbook preprocessor (reads [context, book] JSON on stdin).",
    context_settings={"help_option_names": ["--help"]},
    invoke_without_command=True,
)


@mdbook_app.callback()
def mdbook(ctx: typer.Context, jobs: JobsOption = 1) -> None:
    """Process the book sent by mdbook and print it back as JSON."""
    if ctx.invoked_subcommand is not None:
        return

    emitter = CliEmitter(get_cli_state())
    try:
        run_preprocessor(sys.stdin, sys.stdout, emitter=emitter, jobs=jobs)
    except OciRunError as exc:
        if debug_enabled():
            raise
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


@mdbook_app.command(name="supports")
def supports(
    renderer: Annotated[str, typer.Argument(help="Renderer name announced by mdbook.")],
) -> None:
    """Exit with status 0 when RENDERER is supported."""
    raise typer.Exit(code=0 if supports_renderer(renderer) else 1)


__all__ = ["mdbook_app"]
