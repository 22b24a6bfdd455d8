"""Implementation of the `ocirun langs` command."""

from __future__ import annotations

from pathlib import Path

from rich import box
from rich.table import Table
import typer

from ocirun.adapters.docker import ContainerRuntime
from ocirun.core.exceptions import OciRunError

from .._options import ConfigOption
from ..state import emit_error, emit_warning, get_cli_state
from ..utils import resolve_config


def langs(config: ConfigOption = None) -> None:
    """List the snippet languages registered in the configuration."""
    state = get_cli_state()
    try:
        settings = resolve_config(config, start=Path.cwd())
        registry = settings.registry()
    except OciRunError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if not registry:
        typer.echo("No snippet languages configured.")
        return

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Language", style="cyan")
    table.add_column("Image")
    table.add_column("Command")
    for name in sorted(registry):
        entry = registry[name]
        table.add_row(name, entry.image or "(host)", " ".join(entry.command))
    state.console.print(table)

    if any(entry.image for entry in registry.values()):
        runtime = ContainerRuntime(settings.engine)
        if not runtime.is_available():
            emit_warning(
                f"Container engine '{settings.engine}' was not found; "
                "languages with an image cannot run."
            )


__all__ = ["langs"]
