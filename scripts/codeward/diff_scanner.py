"""
Staged Diff Module.

Reads the staged changes of a git repository so a pre-commit style scan only
analyzes what is about to be committed.

- ``StagedDiffReader`` -- Runs ``git diff --staged`` in the repository

Usage::

    reader = StagedDiffReader("/path/to/repo")
    diff = reader.staged_diff()
"""

from __future__ import annotations

import logging
import subprocess
from typing import List

from codeward.exceptions import GitError

logger = logging.getLogger(__name__)


class StagedDiffReader:
    """Read the staged diff of a git repository.

    Parameters
    ----------
    repo_path : str
        Path to the git repository root.
    timeout : int
        Seconds before a git command is abandoned.
    """

    def __init__(self, repo_path: str = ".", timeout: int = 30) -> None:
        self.repo_path = repo_path
        self.timeout = timeout

    def staged_diff(self) -> str:
        """Return the output of ``git diff --staged``.

        An empty string is returned when there are no staged changes or when
        git cannot be run; the latter is logged as a warning.
        """
        try:
            return self._run_git(["diff", "--staged"])
        except GitError as e:
            logger.warning(f"⚠️  Could not read staged changes: {e}")
            return ""

    def _run_git(self, args: List[str]) -> str:
        """Run a git command and return stdout.

        Raises
        ------
        GitError
            If git is not installed, times out or exits with non-zero status.
        """
        cmd = ["git"] + args
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise GitError("git is not installed or not found in PATH")
        except subprocess.TimeoutExpired:
            raise GitError(f"git command timed out: {' '.join(cmd)}")

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise GitError(
                f"git command failed (exit {result.returncode}): "
                f"{' '.join(cmd)}\n{stderr}"
            )

        return result.stdout


__all__ = ["StagedDiffReader"]
