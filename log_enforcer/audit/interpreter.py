"""External syntax checker for a language family.

Runs a configured command (for example ``["node", "--check"]`` or
``["python3", "-m", "py_compile"]``) with the file path appended, inside
the calling worker thread, under a hard timeout.
"""

import subprocess
import tempfile
from pathlib import Path

import structlog

from log_enforcer.errors import ExternalInterpreterFailure

logger = structlog.get_logger()


class ExternalValidator:
    """Validates files by invoking an external interpreter."""

    def __init__(self, command: list[str], timeout: float = 10.0):
        self.command = list(command)
        self.timeout = timeout
        self._logger = logger.bind(component="ExternalValidator", command=self.command[0])

    def check(self, file_path: str | Path) -> None:
        """Run the checker on a file.

        Raises:
            ExternalInterpreterFailure: On non-zero exit, timeout, or when
                the executable cannot be started
        """
        cmd = [*self.command, str(file_path)]

        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            self._logger.warning("External checker timed out", file=str(file_path), timeout=self.timeout)
            raise ExternalInterpreterFailure(
                f"{self.command[0]} timed out after {self.timeout:g}s",
                command=cmd,
                timed_out=True,
            ) from e
        except OSError as e:
            raise ExternalInterpreterFailure(
                f"Cannot run {self.command[0]}: {e}",
                command=cmd,
            ) from e

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout).strip().splitlines()
            summary = detail[-1] if detail else "no output"
            self._logger.debug(
                "External checker rejected file",
                file=str(file_path),
                returncode=completed.returncode,
            )
            raise ExternalInterpreterFailure(
                f"{self.command[0]} exited with status {completed.returncode}: {summary}",
                command=cmd,
                returncode=completed.returncode,
            )

    def check_content(self, content: str, file_name: str) -> None:
        """Run the checker on content that is not on disk yet.

        The content is written under ``file_name`` in a private temporary
        directory so the checker sees the right extension.
        """
        with tempfile.TemporaryDirectory(prefix="log-enforcer-") as tmp:
            candidate = Path(tmp) / Path(file_name).name
            candidate.write_bytes(content.encode("utf-8"))
            self.check(candidate)
