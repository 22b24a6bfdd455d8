from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import pytest

from ocirun.core.user_dir import user_dir_context


@pytest.fixture(autouse=True)
def isolated_user_dir(tmp_path_factory: pytest.TempPathFactory, monkeypatch) -> Iterator[Path]:
    """Keep snippet caches and config discovery away from the real home directory."""
    monkeypatch.delenv("OCIRUN_CONFIG", raising=False)
    root = tmp_path_factory.mktemp("ocirun-home")
    with user_dir_context(root=root, cache_root=root / "cache"):
        yield root


class RecordingEmitter:
    """Emitter capturing diagnostics for assertions."""

    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()
