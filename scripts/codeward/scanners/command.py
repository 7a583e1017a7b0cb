"""
Command execution for external static analysis tools.

``SubprocessCommandRunner`` satisfies the ``CommandRunner`` protocol.  It runs
an argument list without a shell and returns a ``CommandResult``; a missing
executable or a timeout raises ``ScannerError``.
"""

import logging
import subprocess
from typing import Optional, Sequence

from codeward.exceptions import ScannerError
from codeward.protocol import CommandResult

logger = logging.getLogger(__name__)


class SubprocessCommandRunner:
    """Runs commands with ``subprocess.run``.

    Parameters
    ----------
    timeout : int
        Seconds before the command is abandoned.
    """

    def __init__(self, timeout: int = 600) -> None:
        self.timeout = timeout

    def run(self, args: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        cmd = list(args)
        logger.debug("Running: %s (cwd=%s)", " ".join(cmd), cwd or ".")
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ScannerError(f"{cmd[0]} is not installed or not found in PATH")
        except subprocess.TimeoutExpired:
            raise ScannerError(f"Command timed out after {self.timeout}s: {' '.join(cmd)}")

        return CommandResult(stdout=result.stdout or "", stderr=result.stderr or "", returncode=result.returncode)


__all__ = ["SubprocessCommandRunner"]
