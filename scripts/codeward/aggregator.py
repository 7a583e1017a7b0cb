"""
Result Aggregator - Merge per-unit AI results and static analyzer outputs.

Functions:
    combine_ai_results: Flatten per-unit AI results into one findings list
    normalize_static_result: Coerce one tool's raw output into its report shape
    build_combined_report: Assemble the CombinedReport handed to formatters
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Optional

from codeward.models import CombinedReport

logger = logging.getLogger(__name__)

UNAVAILABLE = "unavailable"

# tool name -> key its JSON output must carry as a list
STATIC_TOOL_KEYS: Dict[str, str] = {
    "brakeman": "warnings",
    "bundler_audit": "results",
}


def combine_ai_results(results: Iterable[Optional[Mapping[str, Any]]]) -> Dict[str, list]:
    """Concatenate ``security_risks`` lists in unit order.

    ``None`` entries, non-mapping entries and entries without a
    ``security_risks`` list are skipped.  Findings are never reordered or
    deduplicated.
    """
    findings: list = []
    skipped = 0
    for result in results:
        if not isinstance(result, Mapping):
            skipped += 1
            continue
        risks = result.get("security_risks")
        if not isinstance(risks, list):
            skipped += 1
            continue
        findings.extend(risks)

    if skipped:
        logger.debug("Skipped %d unit result(s) without usable findings", skipped)
    return {"security_risks": findings}


def unavailable_result(tool_name: str) -> Dict[str, Any]:
    """Sentinel for a tool that did not run or produced unusable output."""
    if tool_name == "brakeman":
        return {"warnings": [], "status": UNAVAILABLE}
    if tool_name == "bundler_audit":
        return {"scan": {"results": []}, "status": UNAVAILABLE}
    return {"status": UNAVAILABLE, "results": []}


def normalize_static_result(tool_name: str, raw: Any) -> Dict[str, Any]:
    """Normalize one static analyzer's parsed output.

    Brakeman output is passed through unchanged.  bundler-audit results are
    wrapped as ``{"scan": {"results": [...]}}``.  Anything missing or malformed
    becomes the tool's unavailable sentinel.
    """
    if raw is None:
        logger.warning(f"⚠️  {tool_name} produced no output; marking it unavailable")
        return unavailable_result(tool_name)

    if not isinstance(raw, Mapping):
        logger.warning("Malformed %s output (%s); marking it unavailable", tool_name, type(raw).__name__)
        return unavailable_result(tool_name)

    expected_key = STATIC_TOOL_KEYS.get(tool_name)
    if expected_key is None:
        return dict(raw)

    if not isinstance(raw.get(expected_key), list):
        logger.warning("Malformed %s output: missing '%s' list; marking it unavailable", tool_name, expected_key)
        return unavailable_result(tool_name)

    if tool_name == "bundler_audit":
        return {"scan": {"results": list(raw[expected_key])}}
    return dict(raw)


def build_combined_report(
    ai_result: Optional[Mapping[str, Any]],
    static_outputs: Optional[Mapping[str, Any]] = None,
) -> CombinedReport:
    """Combine one aggregated AI result with the raw static analyzer outputs.

    ``static_outputs`` maps tool name to raw parsed output (or ``None``).
    Passing ``None`` for the mapping means the static analyzers were skipped.
    """
    risks: list = []
    if isinstance(ai_result, Mapping) and isinstance(ai_result.get("security_risks"), list):
        risks = list(ai_result["security_risks"])

    static_results: Dict[str, Dict[str, Any]] = {}
    for tool_name, raw in (static_outputs or {}).items():
        static_results[tool_name] = normalize_static_result(tool_name, raw)

    return CombinedReport(ai_security_risks=risks, static_analysis_results=static_results)


__all__ = [
    "UNAVAILABLE",
    "STATIC_TOOL_KEYS",
    "combine_ai_results",
    "unavailable_result",
    "normalize_static_result",
    "build_combined_report",
]
