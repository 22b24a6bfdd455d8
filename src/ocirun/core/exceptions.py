"""Custom exception hierarchy for the directive substitution pipeline."""

from __future__ import annotations


class OciRunError(RuntimeError):
    """Base exception for directive processing failures."""


class ConfigurationError(OciRunError):
    """Raised when the configuration cannot be loaded or validated."""


class WorkingDirectoryError(OciRunError):
    """Raised when the directory owning a document is unavailable."""


class ResolutionError(OciRunError):
    """Raised when a directive cannot be turned into an invocation."""


class UnknownSnippetLanguageError(ResolutionError):
    """Raised when a snippet declares a language absent from the registry."""

    def __init__(self, language: str) -> None:
        super().__init__(f"No snippet runner registered for language '{language}'.")
        self.language = language


class MalformedPayloadError(ResolutionError):
    """Raised when a directive payload does not describe a command."""


class ExecutionError(OciRunError):
    """Raised when an external command cannot be executed."""


class ProcessLaunchError(ExecutionError):
    """Raised when the executable, image runtime, or working directory is missing."""


class CommandTimeoutError(ProcessLaunchError):
    """Raised when a command exceeds the configured timeout."""


class DirectiveError(OciRunError):
    """Raised in strict mode when a single directive fails."""

    def __init__(self, message: str, *, start: int, end: int) -> None:
        super().__init__(message)
        self.start = start
        self.end = end


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "CommandTimeoutError",
    "ConfigurationError",
    "DirectiveError",
    "ExecutionError",
    "MalformedPayloadError",
    "OciRunError",
    "ProcessLaunchError",
    "ResolutionError",
    "UnknownSnippetLanguageError",
    "WorkingDirectoryError",
    "exception_hint",
    "exception_messages",
]
