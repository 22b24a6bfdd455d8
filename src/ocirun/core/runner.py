"""Execute resolved invocations as child processes."""

from __future__ import annotations

import logging
import subprocess

from .exceptions import CommandTimeoutError, ProcessLaunchError
from .models import ExecutionResult, ResolvedInvocation


_log = logging.getLogger(__name__)


def decode_output(data: bytes | None) -> str:
    """Decode captured bytes leniently and normalise Windows line breaks."""
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").replace("\r\n", "\n")


class ProcessRunner:
    """Run commands with no stdin, captured stdout, and discarded stderr."""

    def __init__(self, *, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(self, invocation: ResolvedInvocation) -> ExecutionResult:
        working_dir = invocation.working_dir
        if not working_dir.is_dir():
            raise ProcessLaunchError(f"Working directory '{working_dir}' does not exist.")

        _log.debug("running %s in %s", invocation.argv, working_dir)
        try:
            completed = subprocess.run(
                invocation.argv,
                cwd=working_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ProcessLaunchError(
                f"Executable '{invocation.executable}' could not be located."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandTimeoutError(
                f"Command '{invocation.describe()}' timed out after {self.timeout} seconds."
            ) from exc
        except OSError as exc:
            raise ProcessLaunchError(f"Failed to launch '{invocation.executable}': {exc}") from exc

        return ExecutionResult(
            succeeded=completed.returncode == 0,
            stdout=decode_output(completed.stdout),
            returncode=completed.returncode,
        )


__all__ = ["ProcessRunner", "decode_output"]
