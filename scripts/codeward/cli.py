#!/usr/bin/env python3
"""
codeward command-line interface.

Usage:
    codeward [scan] [PATH...] [--diff | --all] [--format console|json|markdown|html]
             [--ai] [--force-scan-ignored] [--chunk-size N]
             [--provider P] [--model M] [--verbose]
    codeward init
    codeward ci-setup --ci github_actions|gitlab_ci

``scan`` is the default command.  Without paths, ``--diff`` is assumed.
"""

import argparse
import logging
import sys
from typing import List, Optional

from codeward.config_loader import build_scan_config
from codeward.exceptions import ConfigError
from codeward.orchestrator.llm_manager import LLMManager
from codeward.report import REPORT_FORMATS, write_report
from codeward.runner import ScanMode, ScanRequest, ScanRunner, resolve_scan_mode
from codeward.scaffold import CI_SERVICES, generate_ci_setup, generate_initial_files
from codeward.scanners import BrakemanRunner, BundlerAuditRunner, SubprocessCommandRunner

logger = logging.getLogger(__name__)

COMMANDS = ("scan", "init", "ci-setup")
VERBOSE_FLAGS = ("-v", "--verbose")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        prog="codeward",
        description="Security scanner combining Brakeman, bundler-audit and AI analysis",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    scan_parser = subparsers.add_parser(
        "scan", parents=[common], help="Scan files/directories or the staged changes (default)"
    )
    scan_parser.add_argument("paths", nargs="*", metavar="PATH", help="Files or directories to scan")
    mode = scan_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--diff", dest="explicit_mode", action="store_const", const=ScanMode.DIFF.value,
        help="Scan only the staged differences (default if no PATH is given)",
    )
    mode.add_argument(
        "--all", dest="explicit_mode", action="store_const", const=ScanMode.ALL.value,
        help="Scan the entire codebase",
    )
    scan_parser.add_argument("--format", choices=REPORT_FORMATS, default="console", help="Output format")
    scan_parser.add_argument("--ai", action="store_true", help="Run only AI analysis, skipping static analyzers")
    scan_parser.add_argument(
        "--force-scan-ignored", action="store_true", help="Scan files matched by the ignore file"
    )
    scan_parser.add_argument("--chunk-size", type=int, default=None, help="Characters per analysis unit")
    scan_parser.add_argument(
        "--provider", choices=["auto", "anthropic", "openai", "ollama"], default=None, help="AI provider"
    )
    scan_parser.add_argument("--model", default=None, help="AI model name")
    scan_parser.add_argument("--language", default=None, help="Language of the finding details")
    scan_parser.add_argument("--output-path", default=None, help="Prefix for json/markdown report files")

    subparsers.add_parser(
        "init", parents=[common], help="Generate .codewardrc and .codewardignore"
    )

    ci_parser = subparsers.add_parser("ci-setup", parents=[common], help="Generate a CI workflow")
    ci_parser.add_argument("--ci", required=True, choices=CI_SERVICES, help="CI service")

    return parser


def _with_default_command(argv: List[str]) -> List[str]:
    """Insert ``scan`` when no command is given.

    ``--verbose`` is accepted before the command and moved after it, where the
    subcommand parsers define it.
    """
    leading = []
    rest = list(argv)
    while rest and rest[0] in VERBOSE_FLAGS:
        leading.append(rest.pop(0))

    if rest and rest[0] in ("-h", "--help"):
        return rest
    if rest and rest[0] in COMMANDS:
        return [rest[0]] + leading + rest[1:]
    return ["scan"] + leading + rest


def run_scan(args: argparse.Namespace) -> int:
    config = build_scan_config(cli_args=args)

    explicit = ScanMode(args.explicit_mode) if args.explicit_mode else None
    request = ScanRequest(
        mode=resolve_scan_mode(args.paths, explicit),
        paths=tuple(args.paths),
        only_ai=args.ai,
        force_include=args.force_scan_ignored,
    )

    backend = LLMManager(config)
    if not backend.initialize():
        logger.warning("⚠️  AI analysis unavailable; AI findings will be empty")

    static_analyzers = []
    if not request.only_ai:
        command_runner = SubprocessCommandRunner(timeout=config.tool_timeout)
        static_analyzers = [
            BrakemanRunner(command_runner, config.brakeman_options),
            BundlerAuditRunner(command_runner, config.bundler_audit_options),
        ]

    runner = ScanRunner(config, backend, static_analyzers)
    report = runner.run(request)
    if report is None:
        return 0

    write_report(report, args.format, config.report_output_path, html_template=config.html_template)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(_with_default_command(argv))

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        if args.command == "init":
            generate_initial_files()
            return 0
        if args.command == "ci-setup":
            generate_ci_setup(args.ci, build_scan_config())
            return 0
        return run_scan(args)
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
