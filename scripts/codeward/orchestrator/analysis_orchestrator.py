"""
Analysis Orchestrator - Dispatch content to the analysis capability unit by unit.

Content that fits in one chunk is analyzed in a single call.  Larger content is
split by the ContentChunker and each chunk is analyzed in order.  A unit whose
analysis returns ``None`` or raises is recorded as ``None`` and the remaining
units still run.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from codeward.aggregator import combine_ai_results
from codeward.chunker import ContentChunker

logger = logging.getLogger(__name__)

# analyze(unit_content, label) -> {"security_risks": [...]} | None
AnalyzeFn = Callable[[str, Optional[str]], Optional[Dict[str, Any]]]


class AnalysisOrchestrator:
    """Runs the analysis capability over one content blob.

    The maximum unit size is fixed per orchestrator by the chunker it is built
    with (``max_chunk_size``), not passed to each ``process_content`` call.
    Use a second orchestrator for a different size.
    """

    def __init__(self, chunker: ContentChunker):
        self.chunker = chunker

    @property
    def max_chunk_size(self) -> int:
        return self.chunker.max_chunk_size

    def _analyze_unit(self, analyze: AnalyzeFn, content: str, label: Optional[str]) -> Optional[Dict[str, Any]]:
        try:
            result = analyze(content, label)
        except Exception as e:
            logger.error("Analysis failed for %s: %s: %s", label or "content", type(e).__name__, e)
            return None
        if result is None:
            logger.warning(f"⚠️  No analysis result for {label or 'content'}")
        return result

    def collect_unit_results(
        self,
        content: str,
        analyze: AnalyzeFn,
        base_label: Optional[str] = None,
    ) -> List[Optional[Dict[str, Any]]]:
        """Return one entry per analysis unit, ``None`` for failed units."""
        if len(content) <= self.max_chunk_size:
            return [self._analyze_unit(analyze, content, base_label)]

        chunks = self.chunker.make_chunks(content, base_label)
        logger.info(f"   ✂️  Split {base_label or 'content'} into {len(chunks)} chunks")

        results: List[Optional[Dict[str, Any]]] = []
        for chunk in chunks:
            logger.debug("Analyzing %s (%d chars)", chunk.label, len(chunk.content))
            results.append(self._analyze_unit(analyze, chunk.content, chunk.label))
        return results

    def process_content(
        self,
        content: str,
        analyze: AnalyzeFn,
        base_label: Optional[str] = None,
    ) -> Dict[str, list]:
        """Analyze *content* and return the aggregated ``security_risks``."""
        return combine_ai_results(self.collect_unit_results(content, analyze, base_label))


__all__ = ["AnalysisOrchestrator", "AnalyzeFn"]
