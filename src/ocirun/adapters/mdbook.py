"""mdbook preprocessor protocol.

mdbook first calls ``<command> supports <renderer>`` and expects exit status 0
when the renderer is supported. It then writes ``[context, book]`` as JSON on
stdin and reads the processed book back from stdout.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
import json
from pathlib import Path
from typing import IO, Any

from ocirun.core.config import OciRunConfig, config_from_mapping
from ocirun.core.diagnostics import DiagnosticEmitter
from ocirun.core.engine import SubstitutionEngine, process_documents
from ocirun.core.exceptions import ConfigurationError
from ocirun.core.models import Document


PREPROCESSOR_NAME = "ocirun"
SUPPORTED_RENDERERS = frozenset({"html"})
# Keys mdbook itself reads from [preprocessor.<name>].
MDBOOK_RESERVED_KEYS = frozenset({"command", "renderers", "before", "after", "optional"})


@dataclass(slots=True)
class MdbookContext:
    """Subset of the preprocessor context used to process chapters."""

    root: Path
    src: str
    config: OciRunConfig
    renderer: str | None = None

    @property
    def source_dir(self) -> Path:
        return self.root / self.src


def supports_renderer(renderer: str) -> bool:
    return renderer in SUPPORTED_RENDERERS


def parse_context(payload: Mapping[str, Any]) -> MdbookContext:
    """Build a :class:`MdbookContext` from the JSON context mdbook sends."""
    root = Path(payload.get("root") or ".")
    book_config = payload.get("config") or {}
    book_section = book_config.get("book") or {}
    preprocessors = book_config.get("preprocessor") or {}
    options = preprocessors.get(PREPROCESSOR_NAME) or {}
    if not isinstance(options, Mapping):
        raise ConfigurationError("[preprocessor.ocirun] must be a table.")

    config = config_from_mapping(
        {key: value for key, value in options.items() if key not in MDBOOK_RESERVED_KEYS}
    )
    return MdbookContext(
        root=root,
        src=str(book_section.get("src") or "src"),
        config=config,
        renderer=payload.get("renderer"),
    )


def _book_items(book: Mapping[str, Any]) -> list[Any]:
    # mdbook 0.4 names the top-level list "sections", 0.5 renamed it "items".
    if "items" in book:
        return book["items"]
    return book.get("sections") or []


def iter_chapters(items: list[Any]) -> Iterator[dict[str, Any]]:
    """Yield every chapter mapping, depth first, in book order."""
    for item in items:
        if not isinstance(item, Mapping):
            continue
        chapter = item.get("Chapter")
        if not isinstance(chapter, dict):
            continue
        yield chapter
        yield from iter_chapters(chapter.get("sub_items") or [])


def preprocess_book(
    context: MdbookContext,
    book: dict[str, Any],
    engine: SubstitutionEngine,
    *,
    jobs: int = 1,
) -> dict[str, Any]:
    """Substitute directives in every chapter of ``book`` in place."""
    chapters = list(iter_chapters(_book_items(book)))
    documents = []
    for chapter in chapters:
        chapter_path = chapter.get("path")
        if chapter_path:
            documents.append(
                Document(text=chapter.get("content") or "", path=context.source_dir / chapter_path)
            )
        else:
            documents.append(
                Document(text=chapter.get("content") or "", working_dir=context.source_dir)
            )

    for chapter, content in zip(chapters, process_documents(documents, engine, jobs=jobs)):
        chapter["content"] = content
    return book


def run_preprocessor(
    stdin: IO[str],
    stdout: IO[str],
    *,
    emitter: DiagnosticEmitter | None = None,
    jobs: int = 1,
) -> None:
    """Read ``[context, book]`` from ``stdin`` and write the processed book."""
    try:
        context_payload, book = json.load(stdin)
    except (json.JSONDecodeError, ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid mdbook preprocessor input: {exc}") from exc

    context = parse_context(context_payload)
    engine = SubstitutionEngine(context.config, emitter=emitter)
    preprocess_book(context, book, engine, jobs=jobs)
    json.dump(book, stdout)


__all__ = [
    "PREPROCESSOR_NAME",
    "SUPPORTED_RENDERERS",
    "MdbookContext",
    "iter_chapters",
    "parse_context",
    "preprocess_book",
    "run_preprocessor",
    "supports_renderer",
]
