from __future__ import annotations

import json
from pathlib import Path

from ocirun.core.cache import CACHE_NAMESPACE, ResultCache, snippet_digest
from ocirun.core.config import SnippetLanguageEntry
from ocirun.core.models import ExecutionResult
from ocirun.core.user_dir import get_user_dir


def _entry(**overrides: object) -> SnippetLanguageEntry:
    payload = {"name": "python", "command": ["python3", "{source}"], **overrides}
    return SnippetLanguageEntry(**payload)


def test_digest_depends_on_source_and_runner(tmp_path: Path) -> None:
    base = snippet_digest(_entry(), "print(1)\n", tmp_path)

    assert base == snippet_digest(_entry(), "print(1)\n", tmp_path)
    assert base != snippet_digest(_entry(), "print(2)\n", tmp_path)
    assert base != snippet_digest(_entry(image="python:3.12"), "print(1)\n", tmp_path)


def test_digest_depends_on_working_directory(tmp_path: Path) -> None:
    first = snippet_digest(_entry(), "print(open('data.txt').read())\n", tmp_path / "a")
    second = snippet_digest(_entry(), "print(open('data.txt').read())\n", tmp_path / "b")

    assert first != second


def test_store_and_lookup_survive_reopen(tmp_path: Path) -> None:
    cache = ResultCache.open(tmp_path / "cache")
    cache.store("abc", ExecutionResult(False, "partial\n", 4), language="python")
    cache.flush()

    reopened = ResultCache.open(tmp_path / "cache")
    result = reopened.lookup("abc")

    assert result == ExecutionResult(False, "partial\n", 4)
    metadata = json.loads((tmp_path / "cache" / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["entries"]["abc"]["language"] == "python"


def test_missing_output_discards_entry(tmp_path: Path) -> None:
    cache = ResultCache.open(tmp_path)
    cache.store("abc", ExecutionResult(True, "ok\n", 0))
    (tmp_path / "abc.out").unlink()

    assert cache.lookup("abc") is None
    assert "abc" not in cache.metadata["entries"]


def test_corrupt_metadata_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "metadata.json").write_text("{not json", encoding="utf-8")

    cache = ResultCache.open(tmp_path)

    assert cache.lookup("anything") is None


def test_clear_only_removes_cache_files(tmp_path: Path) -> None:
    unrelated = tmp_path / "notes.txt"
    unrelated.write_text("keep me\n", encoding="utf-8")
    cache = ResultCache.open(tmp_path)
    cache.store("abc", ExecutionResult(True, "ok\n", 0))
    cache.store("def", ExecutionResult(True, "ok\n", 0))
    cache.flush()

    assert cache.clear() == 2

    assert sorted(path.name for path in tmp_path.iterdir()) == ["notes.txt"]
    assert ResultCache.open(tmp_path).lookup("abc") is None
    assert cache.clear() == 0


def test_default_location_is_user_cache() -> None:
    cache = ResultCache.open()

    assert cache.root == get_user_dir().cache_root / CACHE_NAMESPACE
    assert cache.root.is_dir()
