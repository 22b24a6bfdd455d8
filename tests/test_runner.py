from __future__ import annotations

from pathlib import Path
import sys

import pytest

from ocirun.core.exceptions import CommandTimeoutError, ProcessLaunchError
from ocirun.core.models import InvocationKind, ResolvedInvocation
from ocirun.core.runner import ProcessRunner, decode_output


pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX sh")


def _shell(line: str, working_dir: Path) -> ResolvedInvocation:
    return ResolvedInvocation(
        kind=InvocationKind.SHELL,
        executable="sh",
        arguments=("-c", line),
        working_dir=working_dir,
    )


def test_stdout_is_captured_verbatim(tmp_path: Path) -> None:
    result = ProcessRunner().run(_shell("seq 1 3", tmp_path))

    assert result.succeeded is True
    assert result.returncode == 0
    assert result.stdout == "1\n2\n3\n"


def test_stderr_is_discarded(tmp_path: Path) -> None:
    result = ProcessRunner().run(_shell("echo out; echo err >&2", tmp_path))

    assert result.stdout == "out\n"


def test_failing_command_keeps_partial_output(tmp_path: Path) -> None:
    result = ProcessRunner().run(_shell("echo partial; exit 3", tmp_path))

    assert result.succeeded is False
    assert result.returncode == 3
    assert result.stdout == "partial\n"


def test_runs_in_working_directory(tmp_path: Path) -> None:
    (tmp_path / "data.txt").write_text("payload\n", encoding="utf-8")

    result = ProcessRunner().run(_shell("cat data.txt", tmp_path))

    assert result.stdout == "payload\n"


def test_stdin_is_empty(tmp_path: Path) -> None:
    result = ProcessRunner().run(_shell("cat; echo done", tmp_path))

    assert result.stdout == "done\n"


def test_missing_executable(tmp_path: Path) -> None:
    invocation = ResolvedInvocation(
        kind=InvocationKind.SNIPPET,
        executable="ocirun-definitely-missing-binary",
        arguments=(),
        working_dir=tmp_path,
    )

    with pytest.raises(ProcessLaunchError, match="could not be located"):
        ProcessRunner().run(invocation)


def test_missing_working_directory(tmp_path: Path) -> None:
    with pytest.raises(ProcessLaunchError, match="does not exist"):
        ProcessRunner().run(_shell("true", tmp_path / "gone"))


def test_timeout(tmp_path: Path) -> None:
    with pytest.raises(CommandTimeoutError):
        ProcessRunner(timeout=0.2).run(_shell("sleep 5", tmp_path))


def test_decode_output() -> None:
    assert decode_output(None) == ""
    assert decode_output(b"a\r\nb\n") == "a\nb\n"
    assert decode_output(b"\xff ok") == "� ok"
