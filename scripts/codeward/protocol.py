"""
Capability Protocols - Interfaces for the collaborators the scan core depends on.

The core never talks to an LLM SDK, a subprocess or a scanner binary directly.
It talks to objects satisfying one of these protocols, so the real
implementations and test doubles are interchangeable.

    AnalysisBackend   - ``analyze(prompt, output_schema) -> dict | None``
    StaticAnalyzer    - ``run() -> dict | None``
    CommandRunner     - ``run(args, cwd) -> CommandResult``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command.

    Attributes
    ----------
    stdout : str
        Captured standard output.
    stderr : str
        Captured standard error.
    returncode : int
        Process exit status.  Several security tools exit non-zero when they
        report findings, so callers decide what a non-zero status means.
    """

    stdout: str
    stderr: str
    returncode: int


@runtime_checkable
class AnalysisBackend(Protocol):
    """AI capability: returns parsed structured data, or ``None`` on any failure."""

    def analyze(self, prompt: str, output_schema: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class StaticAnalyzer(Protocol):
    """External static analysis tool producing parsed JSON output."""

    name: str

    def run(self) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class CommandRunner(Protocol):
    """Process-execution capability.

    Raises ``ScannerError`` when the executable is missing or times out.
    """

    def run(self, args: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        ...


__all__ = ["CommandResult", "AnalysisBackend", "StaticAnalyzer", "CommandRunner"]
