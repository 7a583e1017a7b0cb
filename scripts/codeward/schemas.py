"""
AI Response Schemas - Typed models for the structured output of the analysis backend.

The JSON schema generated from ``AIAnalysisResponse`` is sent to the LLM as the
required output shape, and replies are validated against the same models before
they reach the aggregator.

Hierarchy:
    Severity             - finding severity levels
    SecurityRisk         - one finding reported by the model
    AIAnalysisResponse   - envelope holding the list of findings
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class SecurityRisk(BaseModel):
    """One security finding as reported by the analysis backend.

    The ``extra = "allow"`` policy keeps any additional keys the model
    attaches so they are forwarded to the report untouched.
    """

    type: str = Field(description="Kind of risk detected (e.g. XSS, CSRF, IDOR).")
    location: str = Field(
        description=(
            "File name and line number, or the diff position (file:+line) "
            "where the risk exists."
        )
    )
    details: str = Field(description="Explanation of the risk and why it is a risk.")
    severity: Severity = Field(description="Severity of the risk.")
    code_snippet: Optional[str] = Field(default=None, description="The affected code.")

    model_config = {"extra": "allow"}

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: Any) -> Any:
        """Accept case variants such as ``high`` or ``CRITICAL``."""
        if isinstance(v, str):
            return v.strip().capitalize()
        return v


class AIAnalysisResponse(BaseModel):
    """Envelope returned by one analysis call."""

    security_risks: List[SecurityRisk] = Field(
        description="Security risks detected in the analyzed code."
    )

    model_config = {"extra": "allow"}


def analysis_output_schema() -> Dict[str, Any]:
    """JSON schema the backend must follow when answering."""
    return AIAnalysisResponse.model_json_schema()


__all__ = [
    "Severity",
    "SecurityRisk",
    "AIAnalysisResponse",
    "analysis_output_schema",
]
