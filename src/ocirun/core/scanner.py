"""Locate ocirun directives in Markdown text.

Two grammars are recognised:

* inline commands, ``<!-- ocirun <payload> -->`` on a single line, optionally
  followed by one newline that belongs to the directive;
* snippet blocks, fenced code blocks whose info string carries the ``ocirun``
  flag (for example ```` ```python,ocirun ````).

Fenced blocks tagged ``console,success`` or ``console,failure`` are results
written by a previous run. Their content is never scanned so that processing
an already processed document does not execute anything twice.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import logging
from pathlib import Path
import re

from .models import DirectiveKind, DirectiveOccurrence, ScanWarning, Span


EXEC_FLAG = "ocirun"
RESULT_LANGUAGE = "console"
SUCCESS_FLAG = "success"
FAILURE_FLAG = "failure"
RESULT_INFOS = frozenset(
    {f"{RESULT_LANGUAGE},{SUCCESS_FLAG}", f"{RESULT_LANGUAGE},{FAILURE_FLAG}"}
)

INLINE_PATTERN = re.compile(r"<!--[ ]*ocirun (?P<payload>[^\r\n]*?)-->(?P<newline>\r?\n)?")
MARKER_OPEN_PATTERN = re.compile(r"<!--[ ]*ocirun(?![\w-])")
FENCE_PATTERN = re.compile(r"(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>[^\r\n]*)")

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FencedBlock:
    """Fenced code block found in a document."""

    span: Span
    body: Span
    info: str

    @property
    def flags(self) -> list[str]:
        return parse_info_flags(self.info)

    @property
    def language(self) -> str | None:
        flags = self.flags
        return flags[0] if flags and flags[0] else None

    @property
    def is_snippet(self) -> bool:
        return EXEC_FLAG in self.flags[1:]

    @property
    def is_result(self) -> bool:
        return self.info.strip() in RESULT_INFOS


def parse_info_flags(info: str) -> list[str]:
    """Split a fence info string into its comma separated flags."""
    words = info.strip().split()
    if not words:
        return []
    return [flag.strip() for flag in words[0].split(",")]


def _iter_lines(text: str) -> Iterator[tuple[int, int, int]]:
    """Yield ``(start, content_end, line_end)`` for every line of ``text``."""
    position = 0
    length = len(text)
    while position < length:
        newline = text.find("\n", position)
        if newline < 0:
            yield position, length, length
            return
        content_end = newline - 1 if newline > position and text[newline - 1] == "\r" else newline
        yield position, content_end, newline + 1
        position = newline + 1


def find_fenced_blocks(text: str, warnings: list[ScanWarning] | None = None) -> list[FencedBlock]:
    """Return every terminated fenced block in ``text``, in source order.

    An opening fence without a matching closing fence is reported as a warning
    and ignored; the lines after it are scanned as ordinary text.
    """
    blocks: list[FencedBlock] = []
    lines = list(_iter_lines(text))
    index = 0
    while index < len(lines):
        start, content_end, line_end = lines[index]
        opening = FENCE_PATTERN.fullmatch(text, start, content_end)
        if opening is None or (opening["fence"][0] == "`" and "`" in opening["info"]):
            index += 1
            continue

        fence = opening["fence"]
        closing_index = None
        for probe in range(index + 1, len(lines)):
            probe_start, probe_content_end, _ = lines[probe]
            closing = FENCE_PATTERN.fullmatch(text, probe_start, probe_content_end)
            if (
                closing is not None
                and closing["fence"][0] == fence[0]
                and len(closing["fence"]) >= len(fence)
                and not closing["info"].strip()
            ):
                closing_index = probe
                break

        if closing_index is None:
            if warnings is not None:
                warnings.append(
                    ScanWarning(
                        span=Span(start, content_end),
                        message=f"Unterminated fenced block '{text[start:content_end].strip()}'.",
                    )
                )
            index += 1
            continue

        close_start, close_content_end, _ = lines[closing_index]
        blocks.append(
            FencedBlock(
                span=Span(start, close_content_end),
                body=Span(line_end, close_start),
                info=opening["info"],
            )
        )
        index = closing_index + 1
    return blocks


def _line_number(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _following_result(
    text: str, block: FencedBlock, results: dict[int, FencedBlock]
) -> FencedBlock | None:
    """Return the result block written right after ``block`` by a previous run."""
    position = block.span.end
    if text.startswith("\r\n", position):
        position += 2
    elif text.startswith("\n", position):
        position += 1
    else:
        return None
    return results.get(position)


class DirectiveScanner:
    """Single-use iterator over the directives of one text snapshot."""

    def __init__(self, text: str, working_dir: Path) -> None:
        self.text = text
        self.working_dir = working_dir
        self.warnings: list[ScanWarning] = []
        self._consumed = False

    def __iter__(self) -> Iterator[DirectiveOccurrence]:
        if self._consumed:
            raise RuntimeError("DirectiveScanner instances can only be iterated once.")
        self._consumed = True
        return self._scan()

    def warn(self, span: Span, message: str) -> None:
        line = _line_number(self.text, span.start)
        warning = ScanWarning(span=span, message=f"line {line}: {message}")
        self.warnings.append(warning)
        _log.debug("scan warning: %s", warning.message)

    def _scan(self) -> Iterator[DirectiveOccurrence]:
        text = self.text
        fence_warnings: list[ScanWarning] = []
        blocks = find_fenced_blocks(text, fence_warnings)
        for warning in fence_warnings:
            self.warn(warning.span, warning.message)

        results = {block.span.start: block for block in blocks if block.is_result}
        snippets = [block for block in blocks if block.is_snippet and not block.is_result]
        # Markers inside these regions are never executed.
        excluded = [(block, True) for block in snippets]
        excluded.extend((block, False) for block in results.values())
        fence_lines = [Span(block.span.start, block.body.start) for block in blocks]
        fence_lines.extend(Span(block.body.end, block.span.end) for block in blocks)

        occurrences: list[DirectiveOccurrence] = []
        claimed: list[Span] = []

        for block in snippets:
            previous = _following_result(text, block, results)
            occurrences.append(
                DirectiveOccurrence(
                    span=block.span,
                    kind=DirectiveKind.SNIPPET_BLOCK,
                    raw_payload=text[block.body.start : block.body.end],
                    working_dir=self.working_dir,
                    language=block.language,
                    previous_result=previous.span if previous is not None else None,
                )
            )

        for match in INLINE_PATTERN.finditer(text):
            span = Span(match.start(), match.end())
            claimed.append(span)
            container = next(
                (entry for entry in excluded if entry[0].span.overlaps(span)), None
            )
            if container is not None:
                block, is_snippet = container
                if is_snippet:
                    self.warn(span, "directive nested inside an ocirun snippet is ignored.")
                continue
            if any(line.overlaps(span) for line in fence_lines):
                self.warn(span, "directive on a fence line is ignored.")
                continue
            occurrences.append(
                DirectiveOccurrence(
                    span=span,
                    kind=DirectiveKind.INLINE_COMMAND,
                    raw_payload=match["payload"].strip(),
                    working_dir=self.working_dir,
                    trailing_newline=match["newline"] is not None,
                )
            )

        for match in MARKER_OPEN_PATTERN.finditer(text):
            position = match.start()
            if any(span.start <= position < span.end for span in claimed):
                continue
            if any(block.span.start <= position < block.span.end for block, _ in excluded):
                continue
            line_end = text.find("\n", position)
            line_end = len(text) if line_end < 0 else line_end
            self.warn(
                Span(position, line_end),
                "ocirun marker is not closed by '-->' on the same line.",
            )

        occurrences.sort(key=lambda occurrence: occurrence.span.start)
        yield from occurrences


def scan(text: str, working_dir: Path) -> DirectiveScanner:
    """Return a scanner over ``text``; iterate it to obtain the occurrences."""
    return DirectiveScanner(text, working_dir)


__all__ = [
    "EXEC_FLAG",
    "FAILURE_FLAG",
    "RESULT_LANGUAGE",
    "SUCCESS_FLAG",
    "DirectiveScanner",
    "FencedBlock",
    "find_fenced_blocks",
    "parse_info_flags",
    "scan",
]
