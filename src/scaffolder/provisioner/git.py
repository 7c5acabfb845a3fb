"""Async git command runner.

Runs git as a subprocess without blocking the event loop, bounded by a
timeout. Failures become GitOperationError with credentials scrubbed
from the captured output, since clone and push URLs embed the token.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from src.scaffolder.errors import GitOperationError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 300


def _no_redaction(text: str) -> str:
    return text


class GitRunner:
    """Executes git commands for a single workflow run.

    Attributes:
        executable: Path or name of the git binary.
        timeout_seconds: Upper bound for each git command.
        redact: Scrubs secrets from output before it is logged or raised.
    """

    def __init__(
        self,
        executable: str = "git",
        timeout_seconds: int = GIT_TIMEOUT_SECONDS,
        redact: Optional[Callable[[str], str]] = None,
    ):
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self.redact = redact or _no_redaction

    def _environment(self) -> dict:
        env = dict(os.environ)
        # Never block on a credential prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    async def run(
        self,
        operation: str,
        *args: str,
        cwd: Optional[Path] = None,
    ) -> str:
        """Run one git command and return its stdout.

        Args:
            operation: Short name used in errors and logs (e.g. "push").
            *args: Arguments passed to git.
            cwd: Working directory for the command.

        Returns:
            Decoded standard output.

        Raises:
            GitOperationError: If git cannot be executed, exits non-zero
                or exceeds the timeout.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd) if cwd is not None else None,
                env=self._environment(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise GitOperationError(
                operation, f"Failed to execute git: {exc}"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise GitOperationError(
                operation,
                f"timed out after {self.timeout_seconds}s",
            ) from exc

        if process.returncode != 0:
            error_output = self.redact(stderr.decode(errors="replace").strip())
            logger.error(
                "Git command failed",
                extra={
                    "operation": operation,
                    "exit_code": process.returncode,
                    "stderr": error_output[:500],
                },
            )
            raise GitOperationError(
                operation,
                f"exit code {process.returncode}: {error_output}",
                stderr=error_output,
            )

        logger.debug("Git command succeeded", extra={"operation": operation})
        return stdout.decode(errors="replace")
