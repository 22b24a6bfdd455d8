"""Turn directive occurrences into concrete invocations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import os
from pathlib import Path
import shlex
import shutil
import tempfile

from ocirun.adapters.docker import ContainerRunRequest, ContainerRuntime, VolumeMount

from .config import OciRunConfig, SnippetLanguageEntry, SnippetRegistry
from .exceptions import MalformedPayloadError, ResolutionError, UnknownSnippetLanguageError
from .models import DirectiveKind, DirectiveOccurrence, InvocationKind, ResolvedInvocation


SNIPPET_SOURCE_STEM = "source"


@dataclass(frozen=True, slots=True)
class ShellConvention:
    """Program and flags used to hand a command line to the platform shell."""

    program: str
    flags: tuple[str, ...]

    def command(self, line: str) -> list[str]:
        return [self.program, *self.flags, line]


POSIX_SHELL = ShellConvention("sh", ("-c",))
WINDOWS_SHELL = ShellConvention("cmd", ("/C",))


def default_shell(os_name: str | None = None) -> ShellConvention:
    """Return the shell convention of the running (or given) platform."""
    return WINDOWS_SHELL if (os_name or os.name) == "nt" else POSIX_SHELL


def shell_from_config(config: OciRunConfig) -> ShellConvention:
    if config.shell:
        program, *flags = config.shell
        return ShellConvention(program, tuple(flags))
    return default_shell()


class InvocationResolver:
    """Resolve occurrences against the configuration and snippet registry."""

    def __init__(
        self,
        config: OciRunConfig | None = None,
        *,
        registry: SnippetRegistry | None = None,
        runtime: ContainerRuntime | None = None,
        shell: ShellConvention | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        self.config = config or OciRunConfig()
        self.registry = registry if registry is not None else self.config.registry()
        self.runtime = runtime or ContainerRuntime(self.config.engine)
        self.shell = shell or shell_from_config(self.config)
        self.temp_dir = temp_dir

    def resolve(self, occurrence: DirectiveOccurrence) -> ResolvedInvocation:
        if occurrence.kind is DirectiveKind.SNIPPET_BLOCK:
            return self._resolve_snippet(occurrence)
        return self._resolve_inline(occurrence)

    def split_image(self, payload: str) -> tuple[str | None, str]:
        """Return ``(image, command)`` according to the container mode."""
        container = self.config.container
        if container.mode == "never" or not payload.strip():
            return None, payload

        head, *rest = payload.split(None, 1)
        tail = rest[0].strip() if rest else ""
        if container.mode == "always":
            if not tail:
                return container.default_image, head
            return head, tail

        if head in container.images:
            return head, tail
        return None, payload

    def _resolve_inline(self, occurrence: DirectiveOccurrence) -> ResolvedInvocation:
        payload = occurrence.raw_payload.strip()
        if not payload:
            raise MalformedPayloadError("Directive does not contain a command.")

        image, command = self.split_image(payload)
        if image is None:
            argv = self.shell.command(payload)
            return ResolvedInvocation(
                kind=InvocationKind.SHELL,
                executable=argv[0],
                arguments=tuple(argv[1:]),
                working_dir=occurrence.working_dir,
            )

        try:
            args = shlex.split(command)
        except ValueError as exc:
            raise MalformedPayloadError(f"Cannot parse command '{command}': {exc}") from exc
        if not args:
            raise MalformedPayloadError(f"No command follows image '{image}'.")

        argv = self._container_command(image, args, occurrence.working_dir)
        return ResolvedInvocation(
            kind=InvocationKind.CONTAINER,
            executable=argv[0],
            arguments=tuple(argv[1:]),
            working_dir=occurrence.working_dir,
            image=image,
        )

    def _resolve_snippet(self, occurrence: DirectiveOccurrence) -> ResolvedInvocation:
        language = occurrence.language
        if not language:
            raise MalformedPayloadError("Snippet block does not declare a language.")
        entry = self.registry.get(language)
        if entry is None:
            raise UnknownSnippetLanguageError(language)

        workspace, source = self._materialise(occurrence.raw_payload, entry)
        try:
            command = entry.render_command(source)
            if entry.image:
                argv = self._container_command(
                    entry.image,
                    command,
                    occurrence.working_dir,
                    extra_mounts=[VolumeMount(workspace, str(workspace), read_only=True)],
                )
            else:
                argv = command
        except Exception:
            shutil.rmtree(workspace, ignore_errors=True)
            raise

        return ResolvedInvocation(
            kind=InvocationKind.SNIPPET,
            executable=argv[0],
            arguments=tuple(argv[1:]),
            working_dir=occurrence.working_dir,
            image=entry.image,
            artifacts=(workspace,),
        )

    def _materialise(self, content: str, entry: SnippetLanguageEntry) -> tuple[Path, Path]:
        try:
            workspace = Path(tempfile.mkdtemp(prefix="ocirun-", dir=self.temp_dir)).resolve()
            source = workspace / f"{SNIPPET_SOURCE_STEM}{entry.extension or ''}"
            source.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ResolutionError(f"Unable to write snippet source: {exc}") from exc
        return workspace, source

    def _container_command(
        self,
        image: str,
        args: Sequence[str],
        working_dir: Path,
        *,
        extra_mounts: Sequence[VolumeMount] = (),
    ) -> list[str]:
        container = self.config.container
        request = ContainerRunRequest(
            image=image,
            args=tuple(args),
            mounts=(VolumeMount(working_dir, str(working_dir)), *extra_mounts),
            workdir=str(working_dir),
            use_host_user=container.use_host_user,
            network=container.network,
            extra_args=tuple(container.extra_args),
        )
        return self.runtime.build_run_command(request)


__all__ = [
    "POSIX_SHELL",
    "WINDOWS_SHELL",
    "InvocationResolver",
    "ShellConvention",
    "default_shell",
    "shell_from_config",
]
