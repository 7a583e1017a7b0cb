"""
Static Analyzer Runners for codeward.

Each runner satisfies the ``StaticAnalyzer`` protocol: it has a ``name`` and a
``run()`` method returning the tool's parsed JSON output, or ``None`` when the
tool could not be run or its output could not be parsed.  Normalization of the
parsed output into the report shape happens in ``codeward.aggregator``.

Functions:
    options_to_args: Convert an options mapping into command-line arguments

Classes:
    StaticAnalyzerRunner: Abstract base with the shared run/parse logic
    BrakemanRunner: Brakeman (Rails static analysis)
    BundlerAuditRunner: bundler-audit (vulnerable gem versions)
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from codeward.exceptions import ScannerError
from codeward.protocol import CommandRunner

logger = logging.getLogger(__name__)


def options_to_args(options: Optional[Mapping[str, Any]]) -> List[str]:
    """Convert ``{"--skip-files": "x.rb", "-q": True, "--debug": False}``.

    ``True`` adds the bare flag, ``False`` or ``None`` drops it and any other
    value adds the flag followed by the value.
    """
    args: List[str] = []
    for key, value in (options or {}).items():
        if value is True:
            args.append(str(key))
        elif value is False or value is None:
            continue
        else:
            args.extend([str(key), str(value)])
    return args


class StaticAnalyzerRunner(ABC):
    """Runs one external tool and parses its JSON output."""

    name = "static_analyzer"
    display_name = "static analyzer"

    def __init__(
        self,
        command_runner: CommandRunner,
        options: Optional[Mapping[str, Any]] = None,
        cwd: Optional[str] = None,
    ):
        self.command_runner = command_runner
        self.options = dict(options or {})
        self.cwd = cwd

    @abstractmethod
    def command(self) -> List[str]:
        """Full argv for the tool, options included."""

    def run(self) -> Optional[Dict[str, Any]]:
        logger.info(f"🔍 Running {self.display_name}...")
        try:
            result = self.command_runner.run(self.command(), cwd=self.cwd)
        except ScannerError as e:
            logger.error(f"❌ {self.display_name} could not run: {e}")
            return None

        # both tools exit non-zero when they report findings
        if result.returncode != 0:
            logger.debug("%s exited with status %d", self.display_name, result.returncode)

        try:
            parsed = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.error(f"❌ Failed to parse {self.display_name} JSON output")
            logger.debug("Raw output:\n%s\n%s", result.stdout, result.stderr)
            return None

        if not isinstance(parsed, dict):
            logger.error(f"❌ Unexpected {self.display_name} output type: {type(parsed).__name__}")
            return None

        logger.info(f"   ✅ {self.display_name} finished")
        return parsed


class BrakemanRunner(StaticAnalyzerRunner):
    """Brakeman, forced to run even outside a Rails application."""

    name = "brakeman"
    display_name = "Brakeman"

    def command(self) -> List[str]:
        return ["brakeman", "-f", "json", ".", "--force"] + options_to_args(self.options)


class BundlerAuditRunner(StaticAnalyzerRunner):
    name = "bundler_audit"
    display_name = "bundler-audit"

    def command(self) -> List[str]:
        return ["bundle", "audit", "--format", "json"] + options_to_args(self.options)


__all__ = ["options_to_args", "StaticAnalyzerRunner", "BrakemanRunner", "BundlerAuditRunner"]
