"""Configuration models for the directive runner.

OciRunConfig

`engine` (`str`)
: Container runtime executable used for containerized directives and snippets
  (`docker`, `podman`, or an absolute path).

`shell` (`list[str] | None`)
: Program and flag used to run inline commands on the host, for example
  `["bash", "-c"]`. Defaults to `sh -c` on POSIX and `cmd /C` on Windows.

`strict` (`bool`)
: Abort the whole document when a directive cannot be resolved or launched
  instead of inserting a diagnostic in its place.

`timeout` (`float | None`)
: Seconds after which a command is killed. No timeout when omitted.

ContainerConfig

`mode` (`"auto" | "always" | "never"`)
: How the first token of an inline payload is interpreted. `always` treats it
  as an image name, `never` runs every payload on the host and `auto` only
  treats it as an image when it appears in `images`.

`default_image` (`str`)
: Image used in `always` mode when the payload is a single token.

`images` (`list[str]`)
: Image names recognised as container triggers in `auto` mode.

`use_host_user` (`bool`)
: Run containers with the host uid/gid so generated files stay writable.

`network` (`str | None`)
: Network passed to the container runtime.

`extra_args` (`list[str]`)
: Additional arguments inserted after `run`.

CacheConfig

`enabled` (`bool`)
: Reuse snippet results whose language, image, template, source, and working
  directory are unchanged. Disabled by default.

`directory` (`Path | None`)
: Cache location. Defaults to the user cache directory.

SnippetLanguageEntry

`name` (`str`)
: Language tag matched against the first flag of a fenced block.

`image` (`str | None`)
: Container image. The snippet runs on the host when omitted.

`command` (`list[str]`)
: Command template. Exactly one token carries the `{source}` placeholder,
  replaced by the path of the materialised snippet.

`extension` (`str | None`)
: Suffix of the materialised snippet file, for tools that dispatch on it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError


SOURCE_PLACEHOLDER = "{source}"
CONFIG_FILENAMES = ("ocirun.yml", "ocirun.yaml")


class SnippetLanguageEntry(BaseModel):
    """Execution template registered for a snippet language tag."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    image: str | None = None
    command: tuple[str, ...]
    extension: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("language name must not be empty")
        if "," in name or any(char.isspace() for char in name):
            raise ValueError(f"language name '{name}' must not contain commas or spaces")
        return name

    @field_validator("command")
    @classmethod
    def _check_command(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("command template must not be empty")
        holders = [token for token in value if SOURCE_PLACEHOLDER in token]
        if len(holders) != 1:
            raise ValueError(
                f"command template must contain exactly one '{SOURCE_PLACEHOLDER}' token, "
                f"found {len(holders)}"
            )
        return value

    @field_validator("extension")
    @classmethod
    def _check_extension(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        return value if value.startswith(".") else f".{value}"

    def render_command(self, source: Path | str) -> list[str]:
        """Return the command with the placeholder replaced by ``source``."""
        return [token.replace(SOURCE_PLACEHOLDER, str(source)) for token in self.command]


class ContainerConfig(BaseModel):
    """Options controlling containerized inline commands."""

    model_config = ConfigDict(extra="forbid")

    mode: Literal["auto", "always", "never"] = "auto"
    default_image: str = "alpine"
    images: list[str] = Field(default_factory=list)
    use_host_user: bool = True
    network: str | None = None
    extra_args: list[str] = Field(default_factory=list)


class CacheConfig(BaseModel):
    """Options controlling the snippet result cache."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    directory: Path | None = None


class OciRunConfig(BaseModel):
    """Top-level configuration loaded once per run."""

    model_config = ConfigDict(extra="forbid")

    engine: str = "docker"
    shell: list[str] | None = None
    strict: bool = False
    timeout: float | None = Field(default=None, gt=0)
    container: ContainerConfig = Field(default_factory=ContainerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    langs: list[SnippetLanguageEntry] = Field(default_factory=list)

    @field_validator("shell")
    @classmethod
    def _check_shell(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and (not value or not value[0].strip()):
            raise ValueError("shell must name a program")
        return value

    def registry(self) -> SnippetRegistry:
        """Return the immutable snippet registry described by ``langs``."""
        return SnippetRegistry(self.langs)


class SnippetRegistry(Mapping[str, SnippetLanguageEntry]):
    """Read-only mapping of language tags to execution templates.

    Entries registered later replace earlier ones with the same name.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[SnippetLanguageEntry] = ()) -> None:
        collected: dict[str, SnippetLanguageEntry] = {}
        for entry in entries:
            collected[entry.name] = entry
        self._entries = MappingProxyType(collected)

    def __getitem__(self, key: str) -> SnippetLanguageEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SnippetRegistry({sorted(self._entries)!r})"


def config_from_mapping(data: Mapping[str, Any] | None) -> OciRunConfig:
    """Validate a configuration mapping, raising :class:`ConfigurationError`."""
    try:
        return OciRunConfig.model_validate(dict(data or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid ocirun configuration: {exc}") from exc


def load_config(path: Path | str | None = None) -> OciRunConfig:
    """Load configuration from a YAML file, or return defaults when ``path`` is None."""
    if path is None:
        return OciRunConfig()

    config_path = Path(path).expanduser()
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration '{config_path}': {exc}") from exc

    try:
        payload = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Configuration '{config_path}' is not valid YAML.") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"Configuration '{config_path}' must be a mapping.")

    # An mkdocs.yml style file may nest the options under a dedicated key.
    if "ocirun" in payload and isinstance(payload["ocirun"], Mapping):
        payload = payload["ocirun"]

    return config_from_mapping(payload)


def discover_config(start: Path | str | None = None) -> Path | None:
    """Return the nearest configuration file walking up from ``start``."""
    env_path = os.environ.get("OCIRUN_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    current = Path(start or Path.cwd()).expanduser().resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


__all__ = [
    "CONFIG_FILENAMES",
    "SOURCE_PLACEHOLDER",
    "CacheConfig",
    "ContainerConfig",
    "OciRunConfig",
    "SnippetLanguageEntry",
    "SnippetRegistry",
    "config_from_mapping",
    "discover_config",
    "load_config",
]
