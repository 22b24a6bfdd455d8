"""Primary public API for ocirun."""

from __future__ import annotations

from ocirun.core.config import (
    OciRunConfig,
    SnippetLanguageEntry,
    SnippetRegistry,
    config_from_mapping,
    load_config,
)
from ocirun.core.engine import SubstitutionEngine, process_documents, substitute
from ocirun.core.exceptions import (
    ConfigurationError,
    DirectiveError,
    MalformedPayloadError,
    OciRunError,
    ProcessLaunchError,
    UnknownSnippetLanguageError,
    WorkingDirectoryError,
)
from ocirun.core.models import (
    DirectiveKind,
    DirectiveOccurrence,
    Document,
    ExecutionResult,
    InvocationKind,
    ResolvedInvocation,
)
from ocirun.core.resolver import InvocationResolver
from ocirun.core.runner import ProcessRunner
from ocirun.core.scanner import scan
from ocirun.version import get_version


__version__ = get_version()

__all__ = [
    "ConfigurationError",
    "DirectiveError",
    "DirectiveKind",
    "DirectiveOccurrence",
    "Document",
    "ExecutionResult",
    "InvocationKind",
    "InvocationResolver",
    "MalformedPayloadError",
    "OciRunConfig",
    "OciRunError",
    "ProcessLaunchError",
    "ProcessRunner",
    "ResolvedInvocation",
    "SnippetLanguageEntry",
    "SnippetRegistry",
    "SubstitutionEngine",
    "UnknownSnippetLanguageError",
    "WorkingDirectoryError",
    "__version__",
    "config_from_mapping",
    "load_config",
    "process_documents",
    "substitute",
    "scan",
]
