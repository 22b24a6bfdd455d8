"""Disk-backed cache of snippet execution results."""

from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any

from .config import SnippetLanguageEntry
from .models import ExecutionResult
from .user_dir import get_user_dir


CACHE_NAMESPACE = "snippets"
CACHE_FILENAME = "metadata.json"
CACHE_VERSION = 2
_log = logging.getLogger(__name__)


def snippet_digest(entry: SnippetLanguageEntry, source: str, working_dir: Path | str) -> str:
    """Return the cache key of a snippet run in ``working_dir``."""
    payload = {
        "language": entry.name,
        "image": entry.image,
        "command": list(entry.command),
        "extension": entry.extension,
        "source": source,
        "working_dir": str(working_dir),
    }
    encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _load_metadata(path: Path) -> dict[str, Any]:
    default: dict[str, Any] = {"version": CACHE_VERSION, "entries": {}}
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return default

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return default

    if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
        return default
    if not isinstance(payload.get("entries"), dict):
        payload["entries"] = {}
    return payload


@dataclass(slots=True)
class ResultCache:
    """Store of snippet outputs keyed by :func:`snippet_digest`.

    Outputs live in ``<digest>.out`` files next to a JSON metadata index that
    records the exit status of each run.
    """

    root: Path
    metadata_path: Path
    metadata: dict[str, Any]
    dirty: bool = False
    _lock: RLock = field(default_factory=RLock, repr=False)

    @classmethod
    def open(cls, root: Path | None = None) -> ResultCache:
        """Open the cache at ``root`` or in the user cache directory."""
        if root is None:
            root = get_user_dir().cache_dir(CACHE_NAMESPACE)
        else:
            root = Path(root).expanduser()
            root.mkdir(parents=True, exist_ok=True)
        metadata_path = root / CACHE_FILENAME
        return cls(root=root, metadata_path=metadata_path, metadata=_load_metadata(metadata_path))

    def lookup(self, digest: str) -> ExecutionResult | None:
        """Return the stored result for ``digest`` when it is still intact."""
        with self._lock:
            payload = self._entries().get(digest)
            if not isinstance(payload, dict):
                return None
            output_path = self.root / str(payload.get("output") or f"{digest}.out")
            try:
                stdout = output_path.read_text(encoding="utf-8")
            except OSError:
                self.discard(digest)
                return None
            return ExecutionResult(
                succeeded=bool(payload.get("succeeded")),
                stdout=stdout,
                returncode=payload.get("returncode"),
            )

    def store(self, digest: str, result: ExecutionResult, *, language: str | None = None) -> None:
        """Persist ``result`` under ``digest``."""
        output_name = f"{digest}.out"
        with self._lock:
            try:
                (self.root / output_name).write_text(result.stdout, encoding="utf-8")
            except OSError as exc:
                _log.debug("unable to cache snippet output %s: %s", digest, exc)
                return
            self._entries()[digest] = {
                "output": output_name,
                "succeeded": result.succeeded,
                "returncode": result.returncode,
                "language": language,
            }
            self.dirty = True

    def discard(self, digest: str) -> None:
        """Remove a cache entry when it becomes invalid."""
        with self._lock:
            entries = self._entries()
            if digest in entries:
                entries.pop(digest, None)
                self.dirty = True

    def flush(self) -> None:
        """Persist metadata to disk when modified."""
        with self._lock:
            if not self.dirty:
                return
            payload = {"version": CACHE_VERSION, "entries": self._entries()}
            tmp_path = self.metadata_path.with_suffix(".tmp")
            try:
                tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
                tmp_path.replace(self.metadata_path)
                self.dirty = False
            except OSError as exc:
                _log.debug("unable to write snippet cache metadata: %s", exc)

    def clear(self) -> int:
        """Remove every stored result and return the number of outputs deleted."""
        with self._lock:
            removed = 0
            for output_path in sorted(self.root.glob("*.out")):
                try:
                    output_path.unlink()
                except OSError as exc:
                    _log.debug("unable to remove cached output %s: %s", output_path, exc)
                    continue
                removed += 1
            try:
                self.metadata_path.unlink(missing_ok=True)
            except OSError as exc:
                _log.debug("unable to remove snippet cache metadata: %s", exc)
            self.metadata = {"version": CACHE_VERSION, "entries": {}}
            self.dirty = False
            return removed

    def _entries(self) -> dict[str, Any]:
        entries = self.metadata.setdefault("entries", {})
        if not isinstance(entries, dict):
            entries = {}
            self.metadata["entries"] = entries
        return entries


__all__ = ["CACHE_NAMESPACE", "ResultCache", "snippet_digest"]
