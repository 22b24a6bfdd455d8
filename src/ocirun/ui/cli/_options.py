"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
EXECUTION_PANEL = "Execution"
OUTPUT_PANEL = "Output"

InputPathArgument = Annotated[
    list[Path],
    typer.Argument(
        metavar="FILE...",
        help="Markdown documents containing ocirun directives.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Configuration file (defaults to the nearest ocirun.yml).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Write the processed document to this file instead of stdout.",
        dir_okay=False,
        resolve_path=True,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

InPlaceOption = Annotated[
    bool,
    typer.Option(
        "--in-place",
        "-i",
        help="Rewrite each input document in place.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

JobsOption = Annotated[
    int,
    typer.Option(
        "--jobs",
        "-j",
        min=1,
        help="Process documents from distinct directories concurrently.",
        rich_help_panel=EXECUTION_PANEL,
    ),
]

StrictOption = Annotated[
    bool | None,
    typer.Option(
        "--strict/--lenient",
        help="Abort a document when a directive cannot be resolved or launched.",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

CacheOption = Annotated[
    bool | None,
    typer.Option(
        "--cache/--no-cache",
        help="Reuse snippet results cached by earlier runs in the same directory.",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]
