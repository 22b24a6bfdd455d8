"""Build container runtime command lines for containerized directives."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import os
from pathlib import Path
import shutil

from ocirun.core.exceptions import ProcessLaunchError


@dataclass(slots=True)
class VolumeMount:
    """Bind mount configuration."""

    source: Path | str
    target: str
    read_only: bool = False


@dataclass(slots=True)
class ContainerRunRequest:
    """Full request payload for one container execution."""

    image: str
    args: Sequence[str] = field(default_factory=tuple)
    mounts: Sequence[VolumeMount] = field(default_factory=tuple)
    workdir: str | None = None
    user: str | None = None
    use_host_user: bool = True
    remove: bool = True
    network: str | None = None
    extra_args: Sequence[str] = field(default_factory=tuple)


class ContainerRuntime:
    """Locate a container engine and translate requests into argument vectors."""

    def __init__(self, engine: str = "docker") -> None:
        self.engine = engine
        self._cached_executable: str | None = None

    def is_available(self) -> bool:
        """Return True when the engine can be located."""
        try:
            return self._resolve_executable(optional=True) is not None
        except ProcessLaunchError:
            return False

    def build_run_command(self, request: ContainerRunRequest) -> list[str]:
        """Return ``[engine, "run", ...]`` for ``request``."""
        executable = self._resolve_executable(optional=False)
        assert executable is not None
        command: list[str] = [executable, "run"]

        if request.remove:
            command.append("--rm")

        if request.extra_args:
            command.extend(request.extra_args)

        user = request.user or (self._resolve_host_user() if request.use_host_user else None)
        if user:
            command.extend(["--user", user])

        if request.workdir:
            command.extend(["--workdir", request.workdir])

        if request.network:
            command.extend(["--network", request.network])

        command.extend(self._build_mounts(request.mounts))

        command.append(request.image)
        command.extend(request.args)
        return command

    def _build_mounts(self, mounts: Sequence[VolumeMount]) -> list[str]:
        flags: list[str] = []
        for mount in mounts:
            host = Path(mount.source).expanduser()
            if not host.exists():
                raise ProcessLaunchError(f"Container mount source '{host}' does not exist.")
            try:
                resolved = host.resolve(strict=True)
            except (OSError, RuntimeError):
                resolved = host.absolute()

            parts = [
                "type=bind",
                f"src={resolved}",
                f"dst={mount.target}",
            ]

            if mount.read_only:
                parts.append("readonly")

            flags.extend(["--mount", ",".join(parts)])
        return flags

    def _resolve_executable(self, *, optional: bool) -> str | None:
        if self._cached_executable:
            return self._cached_executable

        # Absolute paths are used as-is; the runner reports a missing binary.
        if os.path.isabs(self.engine):
            self._cached_executable = self.engine
            return self.engine

        try:
            executable = shutil.which(self.engine)
        except (AssertionError, OSError, ValueError):
            executable = None

        if executable:
            self._cached_executable = executable
            return executable

        if optional:
            return None

        raise ProcessLaunchError(
            f"Container engine '{self.engine}' is required but was not found on PATH."
        )

    def _resolve_host_user(self) -> str | None:
        getuid = getattr(os, "getuid", None)
        getgid = getattr(os, "getgid", None)

        if callable(getuid) and callable(getgid):
            try:
                uid = getuid()
                gid = getgid()
            except OSError:
                return None
            return f"{uid}:{gid}"

        return None


__all__ = [
    "ContainerRunRequest",
    "ContainerRuntime",
    "VolumeMount",
]
