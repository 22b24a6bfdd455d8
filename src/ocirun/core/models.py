"""Value objects exchanged between the scanner, resolver, runner, and engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .exceptions import WorkingDirectoryError


class DirectiveKind(str, Enum):
    """Marker grammar that produced an occurrence."""

    INLINE_COMMAND = "inline"
    SNIPPET_BLOCK = "snippet"


class InvocationKind(str, Enum):
    """Closed set of concrete invocation shapes handed to the runner."""

    SHELL = "shell"
    CONTAINER = "container"
    SNIPPET = "snippet"


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open range of offsets into a document text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end}).")

    def overlaps(self, other: Span) -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True, slots=True)
class DirectiveOccurrence:
    """One directive located by the scanner."""

    span: Span
    kind: DirectiveKind
    raw_payload: str
    working_dir: Path
    language: str | None = None
    trailing_newline: bool = False
    previous_result: Span | None = None

    @property
    def replaced_span(self) -> Span:
        """Return the region the engine rewrites for this occurrence."""
        if self.previous_result is None:
            return self.span
        return Span(self.span.start, self.previous_result.end)


@dataclass(frozen=True, slots=True)
class ScanWarning:
    """Non-fatal diagnostic about a malformed or skipped marker."""

    span: Span
    message: str


@dataclass(frozen=True, slots=True)
class ResolvedInvocation:
    """Concrete, ready-to-launch command description."""

    kind: InvocationKind
    executable: str
    arguments: tuple[str, ...]
    working_dir: Path
    image: str | None = None
    artifacts: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]

    def describe(self) -> str:
        """Return a short, shell-like rendering used in diagnostics."""
        return " ".join(self.argv)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of one external command."""

    succeeded: bool
    stdout: str
    returncode: int | None = None


@dataclass(slots=True)
class Document:
    """Text of one source file plus the path used to derive its working directory."""

    text: str
    path: Path | None = None
    working_dir: Path | None = None

    def resolve_working_dir(self) -> Path:
        """Return the absolute directory commands of this document run in."""
        if self.working_dir is not None:
            candidate = Path(self.working_dir)
        elif self.path is not None:
            candidate = Path(self.path).parent
        else:
            candidate = Path.cwd()

        try:
            resolved = candidate.expanduser().resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise WorkingDirectoryError(
                f"Working directory '{candidate}' is not available."
            ) from exc
        if not resolved.is_dir():
            raise WorkingDirectoryError(f"Working directory '{resolved}' is not a directory.")
        return resolved

    @property
    def label(self) -> str:
        return str(self.path) if self.path is not None else "<memory>"


__all__ = [
    "DirectiveKind",
    "DirectiveOccurrence",
    "Document",
    "ExecutionResult",
    "InvocationKind",
    "ResolvedInvocation",
    "ScanWarning",
    "Span",
]
