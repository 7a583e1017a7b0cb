"""
Static analyzer integrations for codeward.

Modules:
    command: Subprocess-backed command execution
    scanner_runners: Brakeman and bundler-audit runners
"""

from codeward.scanners.command import SubprocessCommandRunner
from codeward.scanners.scanner_runners import BrakemanRunner, BundlerAuditRunner, options_to_args

__all__ = ["SubprocessCommandRunner", "BrakemanRunner", "BundlerAuditRunner", "options_to_args"]
