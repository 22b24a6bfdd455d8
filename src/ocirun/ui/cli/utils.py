"""Helpers shared by CLI commands."""

from __future__ import annotations

from pathlib import Path

from ocirun.core.config import OciRunConfig, discover_config, load_config


def resolve_config(
    config_path: Path | None,
    *,
    start: Path | None = None,
    strict: bool | None = None,
    cache: bool | None = None,
) -> OciRunConfig:
    """Load the configuration and apply command-line overrides."""
    path = config_path or discover_config(start)
    config = load_config(path)

    updates: dict[str, object] = {}
    if strict is not None:
        updates["strict"] = strict
    if cache is not None:
        updates["cache"] = config.cache.model_copy(update={"enabled": cache})
    if updates:
        config = config.model_copy(update=updates)
    return config


def write_output_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


__all__ = ["resolve_config", "write_output_file"]
