"""
Codeward Data Models.

Dataclass definitions shared across the scan pipeline.

Classes:
    IgnoreRule: One parsed line of the ignore file
    ScanTarget: A user-supplied path and its absolute form
    Chunk: One size-bounded, line-preserving slice of a content blob
    CombinedReport: AI findings plus normalized static-analyzer outputs
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class IgnoreRule:
    """Exclusion rule parsed from the ignore file"""

    pattern: str  # markers ('!' prefix, '/' suffix) already stripped
    negated: bool = False
    directory_scoped: bool = False


@dataclass(frozen=True)
class ScanTarget:
    """A path given on the command line"""

    raw: str
    absolute: str


@dataclass(frozen=True)
class Chunk:
    """Slice of a larger content blob submitted as one analysis unit"""

    content: str
    index: int  # 1-based
    total: int
    label: Optional[str] = None


@dataclass
class CombinedReport:
    """Single report object handed to the formatters"""

    ai_security_risks: list[dict[str, Any]] = field(default_factory=list)
    static_analysis_results: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ai_security_risks": list(self.ai_security_risks),
            "static_analysis_results": dict(self.static_analysis_results),
        }


__all__ = ["IgnoreRule", "ScanTarget", "Chunk", "CombinedReport"]
