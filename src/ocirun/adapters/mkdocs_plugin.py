"""MkDocs plugin running ocirun directives on page Markdown."""

from __future__ import annotations

from pathlib import Path

from mkdocs.config import config_options
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin, get_plugin_logger
from mkdocs.structure.files import Files
from mkdocs.structure.pages import Page

from ocirun.core.config import OciRunConfig, config_from_mapping, load_config
from ocirun.core.diagnostics import LoggingEmitter
from ocirun.core.engine import SubstitutionEngine
from ocirun.core.exceptions import OciRunError
from ocirun.core.models import Document


log = get_plugin_logger(__name__)

# Plugin options forwarded verbatim to OciRunConfig.
_FORWARDED_OPTIONS = ("engine", "shell", "strict", "timeout", "container", "cache", "langs")


class OciRunPlugin(BasePlugin):
    """Execute ``<!-- ocirun ... -->`` directives and ``,ocirun`` snippets."""

    config_scheme = (
        ("enabled", config_options.Type(bool, default=True)),
        ("config_file", config_options.Type((str, type(None)), default=None)),
        ("engine", config_options.Type((str, type(None)), default=None)),
        ("shell", config_options.Type((list, type(None)), default=None)),
        ("strict", config_options.Type((bool, type(None)), default=None)),
        ("timeout", config_options.Type((int, float, type(None)), default=None)),
        ("container", config_options.Type((dict, type(None)), default=None)),
        ("cache", config_options.Type((dict, type(None)), default=None)),
        ("langs", config_options.Type((list, type(None)), default=None)),
    )

    def __init__(self) -> None:
        self._enabled = True
        self._engine: SubstitutionEngine | None = None
        self._ocirun_config: OciRunConfig | None = None

    def on_config(self, config: MkDocsConfig) -> MkDocsConfig:
        self._enabled = bool(self.config.get("enabled", True))
        if not self._enabled:
            return config

        project_dir = Path(config.config_file_path).parent.resolve()
        try:
            self._ocirun_config = self._build_config(project_dir)
        except OciRunError as exc:
            raise PluginError(str(exc)) from exc

        self._engine = SubstitutionEngine(
            self._ocirun_config,
            emitter=LoggingEmitter(logger_obj=log),
        )
        return config

    def on_page_markdown(
        self,
        markdown: str,
        page: Page,
        config: MkDocsConfig,
        files: Files,  # noqa: ARG002 - required by MkDocs
    ) -> str:
        if not self._enabled or self._engine is None:
            return markdown

        source = page.file.abs_src_path
        document = Document(
            text=markdown,
            path=Path(source) if source else None,
            working_dir=None if source else Path(config.docs_dir),
        )
        try:
            return self._engine.process(document)
        except OciRunError as exc:
            raise PluginError(f"ocirun failed on {page.file.src_path}: {exc}") from exc

    def _build_config(self, project_dir: Path) -> OciRunConfig:
        config_file = self.config.get("config_file")
        if config_file:
            path = Path(config_file)
            if not path.is_absolute():
                path = project_dir / path
            base = load_config(path).model_dump()
        else:
            base = {}

        for key in _FORWARDED_OPTIONS:
            value = self.config.get(key)
            if value is not None:
                base[key] = value
        return config_from_mapping(base)

    @property
    def ocirun_config(self) -> OciRunConfig | None:
        return self._ocirun_config


__all__ = ["OciRunPlugin"]
