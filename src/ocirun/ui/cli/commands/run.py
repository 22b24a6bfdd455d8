"""Implementation of the `ocirun run` command."""

from __future__ import annotations

import typer

from ocirun.core.engine import SubstitutionEngine, process_documents
from ocirun.core.exceptions import OciRunError
from ocirun.core.models import Document

from .._options import (
    CacheOption,
    ConfigOption,
    InPlaceOption,
    InputPathArgument,
    JobsOption,
    OutputPathOption,
    StrictOption,
)
from ..diagnostics import CliEmitter
from ..state import debug_enabled, emit_error, get_cli_state
from ..utils import resolve_config, write_output_file


def run(
    inputs: InputPathArgument,
    config: ConfigOption = None,
    output: OutputPathOption = None,
    in_place: InPlaceOption = False,
    jobs: JobsOption = 1,
    strict: StrictOption = None,
    cache: CacheOption = None,
) -> None:
    """Run the directives of Markdown documents and print the result."""
    if output is not None and in_place:
        raise typer.BadParameter("Use either --output or --in-place, not both.")
    if output is not None and len(inputs) > 1:
        raise typer.BadParameter("--output accepts a single input document.")

    state = get_cli_state()
    emitter = CliEmitter(state)

    try:
        settings = resolve_config(config, start=inputs[0].parent, strict=strict, cache=cache)
        documents = [
            Document(text=path.read_text(encoding="utf-8"), path=path) for path in inputs
        ]
        engine = SubstitutionEngine(settings, emitter=emitter)
        results = process_documents(documents, engine, jobs=jobs)
    except OciRunError as exc:
        if debug_enabled():
            raise
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    for path, text in zip(inputs, results):
        if in_place:
            write_output_file(path, text)
        elif output is not None:
            write_output_file(output, text)
        else:
            typer.echo(text, nl=False)


__all__ = ["run"]
