"""
Scan Runner - Drives one scan invocation end to end.

Selects the content to analyze (explicit paths, the staged diff or the whole
codebase), runs the static analyzers unless only AI analysis was requested,
dispatches content to the AI backend through the AnalysisOrchestrator and
assembles the CombinedReport.

Functions:
    resolve_scan_mode: Decide between paths, diff and full-codebase scans

Classes:
    ScanMode: The three scan modes
    ScanRequest: Per-invocation options
    ScanRunner: Runs a ScanRequest
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from codeward.aggregator import build_combined_report, combine_ai_results
from codeward.chunker import ContentChunker
from codeward.config_loader import ScanConfig
from codeward.diff_scanner import StagedDiffReader
from codeward.ignore_rules import IgnoreMatcher, IgnoreSet
from codeward.models import CombinedReport
from codeward.orchestrator.analysis_orchestrator import AnalysisOrchestrator
from codeward.orchestrator.prompt_manager import PromptManager
from codeward.path_collector import PathCollector
from codeward.protocol import AnalysisBackend, StaticAnalyzer
from codeward.schemas import analysis_output_schema

logger = logging.getLogger(__name__)

UnitResults = List[Optional[Dict[str, Any]]]


class ScanMode(str, Enum):
    PATHS = "paths"
    DIFF = "diff"
    ALL = "all"


def resolve_scan_mode(paths: Sequence[str], explicit_mode: Optional[ScanMode] = None) -> ScanMode:
    """Paths always win; without paths the explicit mode or the diff is used."""
    if paths:
        if explicit_mode is not None:
            logger.warning(
                f"⚠️  Paths provided with --{explicit_mode.value}; scanning the specified paths instead"
            )
        return ScanMode.PATHS
    return explicit_mode or ScanMode.DIFF


@dataclass(frozen=True)
class ScanRequest:
    mode: ScanMode = ScanMode.DIFF
    paths: Tuple[str, ...] = ()
    only_ai: bool = False
    force_include: bool = False


class ScanRunner:
    """Runs scans against one project root with one configuration."""

    def __init__(
        self,
        config: ScanConfig,
        backend: AnalysisBackend,
        static_analyzers: Sequence[StaticAnalyzer] = (),
        prompt_manager: Optional[PromptManager] = None,
        diff_reader: Optional[StagedDiffReader] = None,
        project_root: Optional[str] = None,
    ):
        self.config = config
        self.backend = backend
        self.static_analyzers = list(static_analyzers)
        self.project_root = os.path.abspath(project_root or os.getcwd())
        self.prompt_manager = prompt_manager or PromptManager(config)
        self.diff_reader = diff_reader or StagedDiffReader(self.project_root)

        self.matcher = IgnoreMatcher(self.project_root)
        self.collector = PathCollector(config, self.matcher)
        self.orchestrator = AnalysisOrchestrator(ContentChunker(config.chunk_size))
        self.ignore_set = IgnoreSet.load(Path(self.project_root) / config.ignore_file)
        self.output_schema = analysis_output_schema()

    # ------------------------------------------------------------------
    # Analysis capability
    # ------------------------------------------------------------------

    def analyze_unit(self, content: str, label: Optional[str]) -> Optional[Dict[str, Any]]:
        prompt = self.prompt_manager.build_prompt(content, self.config.checks, self.output_schema, file_label=label)
        return self.backend.analyze(prompt, self.output_schema)

    # ------------------------------------------------------------------
    # Static analyzers
    # ------------------------------------------------------------------

    def run_static_analyzers(self) -> Dict[str, Optional[Dict[str, Any]]]:
        logger.info("🔧 Running static analyzers...")
        outputs: Dict[str, Optional[Dict[str, Any]]] = {}
        for analyzer in self.static_analyzers:
            try:
                outputs[analyzer.name] = analyzer.run()
            except Exception as e:
                logger.error(f"❌ {analyzer.name} failed: {type(e).__name__}: {e}")
                outputs[analyzer.name] = None
        return outputs

    # ------------------------------------------------------------------
    # AI analysis per scan mode
    # ------------------------------------------------------------------

    def _scan_paths(self, request: ScanRequest) -> Tuple[UnitResults, bool]:
        files = self.collector.collect_sorted(request.paths, self.ignore_set, request.force_include)
        if not files:
            logger.info("No source files found in the specified paths.")
            return [], False

        logger.info(f"🤖 Scanning {len(files)} file(s) with AI...")
        results: UnitResults = []
        analyzed = False
        for path in files:
            try:
                content = Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"⚠️  Could not read {path}: {e}")
                continue
            label = self.collector.display_path(path)
            logger.info(f"🔍 Analyzing file: {label}")
            results.extend(self.orchestrator.collect_unit_results(content, self.analyze_unit, label))
            analyzed = True
        return results, analyzed

    def _scan_diff(self) -> Tuple[UnitResults, bool]:
        diff = self.diff_reader.staged_diff()
        if not diff:
            logger.info("No staged changes to scan.")
            return [], False
        logger.info("🤖 Scanning staged differences with AI...")
        return self.orchestrator.collect_unit_results(diff, self.analyze_unit), True

    def _scan_all(self, request: ScanRequest) -> Tuple[UnitResults, bool]:
        files = self.collector.collect_sorted([self.project_root], self.ignore_set, request.force_include)
        content = self.collector.concatenate_sources(files)
        if not content.strip():
            logger.info("No code found to scan.")
            return [], False
        logger.info(f"🤖 Scanning entire codebase ({len(files)} files) with AI...")
        return self.orchestrator.collect_unit_results(content, self.analyze_unit), True

    def run(self, request: ScanRequest) -> Optional[CombinedReport]:
        """Run one scan.

        Returns ``None`` when there was nothing to analyze and the static
        analyzers were skipped, so the caller can skip reporting.
        """
        static_outputs = None if request.only_ai else self.run_static_analyzers()

        if request.mode == ScanMode.PATHS:
            unit_results, analyzed = self._scan_paths(request)
        elif request.mode == ScanMode.ALL:
            unit_results, analyzed = self._scan_all(request)
        else:
            unit_results, analyzed = self._scan_diff()

        if not analyzed and static_outputs is None:
            logger.info("Nothing to scan.")
            return None

        failed = sum(1 for result in unit_results if result is None)
        if failed:
            logger.warning(f"⚠️  {failed} of {len(unit_results)} analysis unit(s) returned no result")

        report = build_combined_report(combine_ai_results(unit_results), static_outputs)
        logger.info(f"   ✅ Scan complete: {len(report.ai_security_risks)} AI finding(s)")
        return report


__all__ = ["ScanMode", "ScanRequest", "ScanRunner", "resolve_scan_mode"]
