"""Centralised resolution of the ocirun user and cache directories."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import os
from pathlib import Path
from threading import RLock


__all__ = [
    "OciRunUserDir",
    "configure_user_dir",
    "get_user_dir",
    "user_dir_context",
]

_USER_DIR: OciRunUserDir | None = None
_LOCK: RLock = RLock()


def _resolve_root(root: str | Path | None) -> tuple[Path, bool]:
    if root is not None:
        return Path(root).expanduser(), True
    env_root = os.environ.get("OCIRUN_HOME")
    if env_root:
        return Path(env_root).expanduser(), True
    return Path.home() / ".ocirun", False


def _resolve_cache_root(
    cache_root: str | Path | None,
    *,
    user_root: Path,
    root_was_explicit: bool,
) -> tuple[Path, bool]:
    if cache_root is not None:
        return Path(cache_root).expanduser(), True
    env_cache = os.environ.get("OCIRUN_CACHE_DIR")
    if env_cache:
        return Path(env_cache).expanduser(), True
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache).expanduser() / "ocirun", True
    if root_was_explicit:
        return user_root / "cache", True
    return Path.home() / ".cache" / "ocirun", False


@dataclass(slots=True)
class OciRunUserDir:
    """Resolved user and cache roots."""

    root: Path
    cache_root: Path
    root_is_explicit: bool = False
    cache_is_explicit: bool = False

    def cache_dir(self, *parts: str | Path, create: bool = True) -> Path:
        """Return a directory under the cache root, creating it when requested."""
        target = self.cache_root.joinpath(*parts)
        if create:
            target.mkdir(parents=True, exist_ok=True)
        return target


def configure_user_dir(
    *,
    root: str | Path | None = None,
    cache_root: str | Path | None = None,
) -> OciRunUserDir:
    """Replace the global user dir singleton with a freshly resolved instance."""
    global _USER_DIR
    user_root, root_was_explicit = _resolve_root(root)
    resolved_cache_root, cache_was_explicit = _resolve_cache_root(
        cache_root, user_root=user_root, root_was_explicit=root_was_explicit
    )
    with _LOCK:
        _USER_DIR = OciRunUserDir(
            root=user_root,
            cache_root=resolved_cache_root,
            root_is_explicit=root_was_explicit,
            cache_is_explicit=cache_was_explicit,
        )
        return _USER_DIR


def get_user_dir() -> OciRunUserDir:
    """Return the user dir singleton, refreshing it when the environment changed."""
    global _USER_DIR
    with _LOCK:
        if _USER_DIR is None:
            return configure_user_dir()
        current_root, root_was_explicit = _resolve_root(None)
        current_cache_root, cache_was_explicit = _resolve_cache_root(
            None, user_root=current_root, root_was_explicit=root_was_explicit
        )
        if (not _USER_DIR.root_is_explicit and _USER_DIR.root != current_root) or (
            not _USER_DIR.cache_is_explicit and _USER_DIR.cache_root != current_cache_root
        ):
            _USER_DIR = OciRunUserDir(
                root=current_root,
                cache_root=current_cache_root,
                root_is_explicit=root_was_explicit,
                cache_is_explicit=cache_was_explicit,
            )
        return _USER_DIR


@contextmanager
def user_dir_context(
    *,
    root: str | Path | None = None,
    cache_root: str | Path | None = None,
) -> Iterator[OciRunUserDir]:
    """Temporarily override the global user dir singleton."""
    global _USER_DIR
    with _LOCK:
        previous = _USER_DIR
    current = configure_user_dir(root=root, cache_root=cache_root)
    try:
        yield current
    finally:
        with _LOCK:
            _USER_DIR = previous
