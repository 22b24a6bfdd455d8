from __future__ import annotations

from pathlib import Path
import sys

import pytest

from ocirun.core.config import OciRunConfig, config_from_mapping
from ocirun.core.engine import (
    SubstitutionEngine,
    format_inline_output,
    process_documents,
    render_error_comment,
    render_result_block,
    substitute,
)
from ocirun.core.exceptions import DirectiveError, WorkingDirectoryError
from ocirun.core.models import Document, ExecutionResult, ResolvedInvocation
from ocirun.core.runner import ProcessRunner


pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX sh")


def _python_config(**extra: object) -> OciRunConfig:
    return config_from_mapping(
        {
            "langs": [
                {"name": "python", "command": [sys.executable, "{source}"], "extension": "py"}
            ],
            **extra,
        }
    )


def _sh_config(**extra: object) -> OciRunConfig:
    return config_from_mapping({"langs": [{"name": "sh", "command": ["sh", "{source}"]}], **extra})


class CountingRunner(ProcessRunner):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[list[str]] = []

    def run(self, invocation: ResolvedInvocation) -> ExecutionResult:
        self.calls.append(invocation.argv)
        return super().run(invocation)


def _process(engine: SubstitutionEngine, text: str, working_dir: Path) -> str:
    return engine.process(Document(text=text, working_dir=working_dir))


def test_inline_directive_is_replaced_by_output(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(emitter=emitter)

    result = _process(engine, "before\n<!-- ocirun seq 1 3 -->\nafter\n", tmp_path)

    assert result == "before\n1\n2\n3\nafter\n"
    assert emitter.errors == []
    assert [name for name, _ in emitter.events] == ["directive_run"]


def test_text_without_directives_is_unchanged(tmp_path: Path, emitter) -> None:
    text = "# Title\n\n```python\nprint('not run')\n```\n"

    assert _process(SubstitutionEngine(emitter=emitter), text, tmp_path) == text
    assert emitter.events == []


def test_adjacent_directives_keep_offsets(tmp_path: Path, emitter) -> None:
    text = "A<!-- ocirun printf x --><!-- ocirun printf y -->B\n<!-- ocirun printf 'z\\n' -->C"

    result = _process(SubstitutionEngine(emitter=emitter), text, tmp_path)

    assert result == "AxyB\nzC"


def test_table_cell_output_is_trimmed(tmp_path: Path, emitter) -> None:
    text = "| Apples | <!-- ocirun echo 7 --> |\n"

    result = _process(SubstitutionEngine(emitter=emitter), text, tmp_path)

    assert result == "| Apples | 7 |\n"


def test_commands_run_in_document_directory(tmp_path: Path, emitter) -> None:
    chapter = tmp_path / "chapter"
    chapter.mkdir()
    (chapter / "data.txt").write_text("from chapter\n", encoding="utf-8")
    document = Document(text="<!-- ocirun cat data.txt -->\n", path=chapter / "index.md")

    result = SubstitutionEngine(emitter=emitter).process(document)

    assert result == "from chapter\n"


def test_non_zero_exit_keeps_output(tmp_path: Path, emitter) -> None:
    result = _process(
        SubstitutionEngine(emitter=emitter), "<!-- ocirun echo partial; exit 3 -->\n", tmp_path
    )

    assert result == "partial\n"
    assert emitter.errors == []
    exits = [payload for name, payload in emitter.events if name == "directive_exit"]
    assert exits[0]["returncode"] == 3


def test_snippet_result_is_appended(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(_python_config(), emitter=emitter)
    text = "```python,ocirun\nprint('hi')\n```\ntail\n"

    result = _process(engine, text, tmp_path)

    assert result == "```python,ocirun\nprint('hi')\n```\n```console,success\nhi\n```\ntail\n"


def test_snippet_processing_is_idempotent(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(_python_config(), emitter=emitter)
    text = "```python,ocirun\nprint(6 * 7)\n```\n"

    once = _process(engine, text, tmp_path)
    twice = _process(engine, once, tmp_path)

    assert once == twice
    assert once.count("console,success") == 1


def test_failing_snippet_is_tagged_failure(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(_python_config(), emitter=emitter)
    text = "```python,ocirun\nprint('before')\nraise SystemExit(2)\n```\n"

    result = _process(engine, text, tmp_path)

    assert result.endswith("```console,failure\nbefore\n```\n")


def test_unknown_language_does_not_abort(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(emitter=emitter)
    text = "```foo,ocirun\nx\n```\n<!-- ocirun echo after -->\n"

    result = _process(engine, text, tmp_path)

    assert result == (
        "```foo,ocirun\nx\n```\n"
        "```console,failure\n"
        "ocirun: No snippet runner registered for language 'foo'.\n"
        "```\n"
        "after\n"
    )
    assert len(emitter.errors) == 1
    assert emitter.errors[0].startswith("<memory>:1:")


def test_inline_failure_leaves_error_comment(tmp_path: Path, emitter) -> None:
    result = _process(SubstitutionEngine(emitter=emitter), "<!-- ocirun  -->\nnext\n", tmp_path)

    assert result == "<!-- ocirun-error: Directive does not contain a command. -->\nnext\n"
    assert len(emitter.errors) == 1


def test_missing_container_engine_is_a_directive_failure(tmp_path: Path, emitter) -> None:
    config = config_from_mapping(
        {"engine": "ocirun-missing-engine", "container": {"images": ["alpine"]}}
    )

    engine = SubstitutionEngine(config, emitter=emitter)

    result = _process(engine, "<!-- ocirun alpine date -->", tmp_path)

    assert result.startswith("<!-- ocirun-error: Container engine 'ocirun-missing-engine'")
    assert emitter.errors


def test_strict_mode_raises(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(OciRunConfig(strict=True), emitter=emitter)
    text = "ok\n```foo,ocirun\nx\n```\n"

    with pytest.raises(DirectiveError) as excinfo:
        _process(engine, text, tmp_path)

    assert excinfo.value.start == text.index("```foo")
    assert "<memory>:2:" in str(excinfo.value)


def test_missing_working_directory(tmp_path: Path, emitter) -> None:
    with pytest.raises(WorkingDirectoryError):
        _process(SubstitutionEngine(emitter=emitter), "<!-- ocirun true -->", tmp_path / "gone")


def test_scan_warnings_reach_the_emitter(tmp_path: Path, emitter) -> None:
    text = "```sh,ocirun\n<!-- ocirun echo nested -->\n```\n"
    engine = SubstitutionEngine(
        config_from_mapping({"langs": [{"name": "sh", "command": ["sh", "{source}"]}]}),
        emitter=emitter,
    )

    _process(engine, text, tmp_path)

    assert len(emitter.warnings) == 1
    assert emitter.warnings[0].startswith("<memory>: line 2:")


def test_snippet_results_are_cached(tmp_path: Path, emitter) -> None:
    runner = CountingRunner()
    config = _python_config(cache={"enabled": True})
    engine = SubstitutionEngine(config, runner=runner, emitter=emitter)
    text = "```python,ocirun\nprint('cached')\n```\n"

    first = _process(engine, text, tmp_path)
    second = _process(engine, text, tmp_path)

    assert first == second
    assert len(runner.calls) == 1
    assert any(name == "snippet_cached" for name, _ in emitter.events)


def test_cache_is_disabled_by_default(tmp_path: Path, emitter) -> None:
    runner = CountingRunner()
    engine = SubstitutionEngine(_python_config(), runner=runner, emitter=emitter)
    text = "```python,ocirun\nprint('fresh')\n```\n"

    _process(engine, text, tmp_path)
    _process(engine, text, tmp_path)

    assert engine.cache is None
    assert len(runner.calls) == 2


def test_cached_snippets_are_scoped_to_their_directory(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(_sh_config(cache={"enabled": True}), emitter=emitter)
    text = "```sh,ocirun\ncat sibling.txt\n```\n"
    outputs = {}
    for name in ("a", "b"):
        directory = tmp_path / name
        directory.mkdir()
        (directory / "sibling.txt").write_text(f"from {name}\n", encoding="utf-8")
        outputs[name] = engine.process(Document(text=text, path=directory / "index.md"))

    assert outputs["a"].endswith("```console,success\nfrom a\n```\n")
    assert outputs["b"].endswith("```console,success\nfrom b\n```\n")


def test_snippets_see_files_written_by_earlier_directives(tmp_path: Path, emitter) -> None:
    engine = SubstitutionEngine(_sh_config(), emitter=emitter)
    snippet = "```sh,ocirun\ncat n.txt\n```\n"

    first = _process(engine, f"<!-- ocirun echo 1 > n.txt -->\n{snippet}", tmp_path)
    second = _process(engine, f"<!-- ocirun echo 2 > n.txt -->\n{snippet}", tmp_path)

    assert first == f"{snippet}```console,success\n1\n```\n"
    assert second == f"{snippet}```console,success\n2\n```\n"


def test_inline_directives_are_never_cached(tmp_path: Path, emitter) -> None:
    runner = CountingRunner()
    config = config_from_mapping({"cache": {"enabled": True}})
    engine = SubstitutionEngine(config, runner=runner, emitter=emitter)

    _process(engine, "<!-- ocirun echo hi -->\n", tmp_path)
    _process(engine, "<!-- ocirun echo hi -->\n", tmp_path)

    assert len(runner.calls) == 2


def test_launch_failures_report_their_cause(tmp_path: Path, emitter) -> None:
    config = config_from_mapping(
        {"langs": [{"name": "tool", "command": ["ocirun-missing-binary", "{source}"]}]}
    )
    engine = SubstitutionEngine(config, emitter=emitter)

    result = _process(engine, "```tool,ocirun\nx\n```\n", tmp_path)

    assert "console,failure" in result
    assert "could not be located" in emitter.errors[0]
    assert "No such file or directory" in emitter.errors[0]


def test_launch_failure_details_in_debug_mode(tmp_path: Path, emitter) -> None:
    emitter.debug_enabled = True
    config = config_from_mapping(
        {"langs": [{"name": "tool", "command": ["ocirun-missing-binary", "{source}"]}]}
    )
    engine = SubstitutionEngine(config, emitter=emitter)

    _process(engine, "```tool,ocirun\nx\n```\n", tmp_path)

    assert "\nDetails:\n- " in emitter.errors[0]


def test_process_documents_preserves_input_order(tmp_path: Path, emitter) -> None:
    documents = []
    for name in ("one", "two", "three"):
        directory = tmp_path / name
        directory.mkdir()
        (directory / "name.txt").write_text(f"{name}\n", encoding="utf-8")
        documents.append(
            Document(text="<!-- ocirun cat name.txt -->\n", path=directory / "README.md")
        )
    engine = SubstitutionEngine(emitter=emitter)

    sequential = process_documents(documents, engine)
    parallel = process_documents(documents, engine, jobs=3)

    assert sequential == ["one\n", "two\n", "three\n"]
    assert parallel == sequential


def test_substitute_helper(tmp_path: Path, emitter) -> None:
    assert substitute("<!-- ocirun echo hi -->\n", working_dir=tmp_path, emitter=emitter) == "hi\n"


def test_render_result_block_outgrows_inner_fences() -> None:
    block = render_result_block(True, "```\ncode\n```")

    assert block == "````console,success\n```\ncode\n```\n````"
    assert render_result_block(False, "") == "```console,failure\n```"


def test_render_error_comment_cannot_close_early() -> None:
    assert render_error_comment("bad --> input\nhere") == "<!-- ocirun-error: bad -> input here -->"


def test_format_inline_output() -> None:
    assert format_inline_output("7\n", trailing_newline=True) == "7\n"
    assert format_inline_output("7\n  ", trailing_newline=False) == "7"
