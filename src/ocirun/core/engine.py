"""Substitute directive output into documents."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
import re
import shutil

from .cache import ResultCache, snippet_digest
from .config import OciRunConfig
from .diagnostics import DiagnosticEmitter, LoggingEmitter
from .exceptions import (
    DirectiveError,
    ExecutionError,
    ResolutionError,
    exception_hint,
    exception_messages,
)
from .models import DirectiveKind, DirectiveOccurrence, Document, ExecutionResult
from .resolver import InvocationResolver
from .runner import ProcessRunner
from .scanner import FAILURE_FLAG, RESULT_LANGUAGE, SUCCESS_FLAG, DirectiveScanner


ERROR_COMMENT_PREFIX = "ocirun-error:"
DIAGNOSTIC_PREFIX = "ocirun:"
_BACKTICK_RUN = re.compile(r"^ {0,3}(`{3,})", re.MULTILINE)
_log = logging.getLogger(__name__)


def render_result_block(succeeded: bool, body: str) -> str:
    """Return a fenced result block carrying ``body``.

    The fence grows past any backtick fence found in ``body`` so the output
    cannot close the block early.
    """
    longest = max((len(match.group(1)) for match in _BACKTICK_RUN.finditer(body)), default=0)
    fence = "`" * max(3, longest + 1)
    flag = SUCCESS_FLAG if succeeded else FAILURE_FLAG
    if body and not body.endswith("\n"):
        body += "\n"
    return f"{fence}{RESULT_LANGUAGE},{flag}\n{body}{fence}"


def render_error_comment(message: str) -> str:
    """Return an HTML comment recording a failed inline directive."""
    text = " ".join(message.split()).replace("-->", "->")
    return f"<!-- {ERROR_COMMENT_PREFIX} {text} -->"


def format_inline_output(stdout: str, *, trailing_newline: bool) -> str:
    """Return inline command output as inserted in the document.

    Directives embedded in a line, such as table cells, lose trailing
    whitespace so the surrounding markup stays on one line.
    """
    if trailing_newline:
        return stdout
    return stdout.rstrip()


class SubstitutionEngine:
    """Drive documents through scanning, resolution, execution, and rewriting."""

    def __init__(
        self,
        config: OciRunConfig | None = None,
        *,
        resolver: InvocationResolver | None = None,
        runner: ProcessRunner | None = None,
        emitter: DiagnosticEmitter | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        self.config = config or OciRunConfig()
        self.resolver = resolver or InvocationResolver(self.config)
        self.runner = runner or ProcessRunner(timeout=self.config.timeout)
        self.emitter = emitter or LoggingEmitter()
        if cache is None and self.config.cache.enabled:
            try:
                cache = ResultCache.open(self.config.cache.directory)
            except OSError as exc:
                self.emitter.warning(f"Snippet cache disabled: {exc}", exc)
        self.cache = cache

    def process(self, document: Document) -> str:
        """Return the text of ``document`` with every directive substituted."""
        working_dir = document.resolve_working_dir()
        text = document.text
        scanner = DirectiveScanner(text, working_dir)
        pieces: list[str] = []
        cursor = 0
        try:
            for occurrence in scanner:
                region = occurrence.replaced_span
                if region.start < cursor:
                    self.emitter.warning(
                        f"{document.label}: overlapping directive at offset {region.start} skipped."
                    )
                    continue
                pieces.append(text[cursor : region.start])
                pieces.append(self._substitute(document, occurrence))
                cursor = region.end
        finally:
            for warning in scanner.warnings:
                self.emitter.warning(f"{document.label}: {warning.message}")
            if self.cache is not None:
                self.cache.flush()
        pieces.append(text[cursor:])
        return "".join(pieces)

    def _substitute(self, document: Document, occurrence: DirectiveOccurrence) -> str:
        snippet = occurrence.kind is DirectiveKind.SNIPPET_BLOCK
        try:
            result = self._execute(document, occurrence)
        except (ResolutionError, ExecutionError) as exc:
            location = self._location(document, occurrence)
            message = str(exc)
            if self.config.strict:
                raise DirectiveError(
                    f"{location}: {message}",
                    start=occurrence.span.start,
                    end=occurrence.span.end,
                ) from exc
            self.emitter.error(self._report(location, exc), exc)
            if snippet:
                return self._snippet_output(
                    document, occurrence, ExecutionResult(False, f"{DIAGNOSTIC_PREFIX} {message}\n")
                )
            suffix = "\n" if occurrence.trailing_newline else ""
            return render_error_comment(message) + suffix

        if not result.succeeded:
            self.emitter.event(
                "directive_exit",
                {
                    "command": self._describe(occurrence),
                    "returncode": result.returncode,
                    "location": self._location(document, occurrence),
                },
            )
        if snippet:
            return self._snippet_output(document, occurrence, result)
        return format_inline_output(result.stdout, trailing_newline=occurrence.trailing_newline)

    def _snippet_output(
        self, document: Document, occurrence: DirectiveOccurrence, result: ExecutionResult
    ) -> str:
        block = document.text[occurrence.span.start : occurrence.span.end]
        return f"{block}\n{render_result_block(result.succeeded, result.stdout)}"

    def _execute(self, document: Document, occurrence: DirectiveOccurrence) -> ExecutionResult:
        digest: str | None = None
        if occurrence.kind is DirectiveKind.SNIPPET_BLOCK and self.cache is not None:
            entry = self.resolver.registry.get(occurrence.language or "")
            if entry is not None:
                digest = snippet_digest(entry, occurrence.raw_payload, occurrence.working_dir)
                cached = self.cache.lookup(digest)
                if cached is not None:
                    self.emitter.event(
                        "snippet_cached", {"language": entry.name, "digest": digest}
                    )
                    return cached

        invocation = self.resolver.resolve(occurrence)
        self.emitter.event(
            "directive_run",
            {
                "command": self._describe(occurrence),
                "image": invocation.image,
                "location": self._location(document, occurrence),
            },
        )
        try:
            result = self.runner.run(invocation)
        finally:
            for artifact in invocation.artifacts:
                shutil.rmtree(artifact, ignore_errors=True)

        if digest is not None and self.cache is not None:
            self.cache.store(digest, result, language=occurrence.language)
        return result

    def _report(self, location: str, exc: BaseException) -> str:
        message = f"{location}: {exc}"
        if self.emitter.debug_enabled:
            chain = exception_messages(exc)[1:]
            if chain:
                details = "\n".join(f"- {line}" for line in chain)
                message = f"{message}\nDetails:\n{details}"
            return message
        hint = exception_hint(exc)
        if hint and hint != str(exc):
            message = f"{message} ({hint})"
        return message

    @staticmethod
    def _describe(occurrence: DirectiveOccurrence) -> str:
        if occurrence.kind is DirectiveKind.SNIPPET_BLOCK:
            return f"{occurrence.language or '?'} snippet"
        return occurrence.raw_payload

    @staticmethod
    def _location(document: Document, occurrence: DirectiveOccurrence) -> str:
        line = document.text.count("\n", 0, occurrence.span.start) + 1
        return f"{document.label}:{line}"


def substitute(
    text: str,
    *,
    path: Path | str | None = None,
    working_dir: Path | str | None = None,
    config: OciRunConfig | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> str:
    """Process a single text with a throwaway engine."""
    engine = SubstitutionEngine(config, emitter=emitter)
    document = Document(
        text=text,
        path=Path(path) if path is not None else None,
        working_dir=Path(working_dir) if working_dir is not None else None,
    )
    return engine.process(document)


def process_documents(
    documents: Sequence[Document],
    engine: SubstitutionEngine,
    *,
    jobs: int = 1,
) -> list[str]:
    """Process ``documents`` and return their texts in input order.

    Documents sharing a working directory always run one after the other, in
    input order. With ``jobs > 1`` distinct directories run concurrently.
    """
    groups: dict[Path, list[int]] = {}
    for index, document in enumerate(documents):
        groups.setdefault(document.resolve_working_dir(), []).append(index)

    results: list[str | None] = [None] * len(documents)

    def _run_group(indices: list[int]) -> None:
        for index in indices:
            results[index] = engine.process(documents[index])

    if jobs <= 1 or len(groups) <= 1:
        _run_group(list(range(len(documents))))
    else:
        _log.debug("processing %d directories with %d workers", len(groups), jobs)
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            futures = [pool.submit(_run_group, indices) for indices in groups.values()]
            for future in futures:
                future.result()

    return [text if text is not None else "" for text in results]


__all__ = [
    "SubstitutionEngine",
    "format_inline_output",
    "process_documents",
    "render_error_comment",
    "render_result_block",
    "substitute",
]
