"""CLI command implementations exposed via `ocirun.ui.cli`."""

from __future__ import annotations

from .langs import langs
from .mdbook import mdbook_app
from .run import run


__all__ = ["langs", "mdbook_app", "run"]
