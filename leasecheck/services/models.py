"""Data classes for lease analysis results."""

from dataclasses import dataclass, field
from typing import List, Optional

from leasecheck.services.clause_taxonomy import ClauseCategory, Severity


@dataclass
class ClausePattern:
    id: str
    category: ClauseCategory
    name: str
    description: str
    explanation: str
    keywords: List[str] = field(default_factory=list)  # always empty on the Gemini path
    is_malicious: bool = False   # likely unlawful, not merely risky
    severity: Severity = Severity.LOW
    legal_reference: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "category": self.category.value,
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
            "isMalicious": self.is_malicious,
            "severity": self.severity.value,
            "explanation": self.explanation,
        }
        if self.legal_reference:
            data["legalReference"] = self.legal_reference
        return data


@dataclass
class FlaggedClause:
    clause: ClausePattern
    matched_text: str
    position: int = 0      # best-effort offset into the contract text

    def to_dict(self) -> dict:
        return {
            "clause": self.clause.to_dict(),
            "matchedText": self.matched_text,
            "position": self.position,
        }


@dataclass
class KeyDetail:
    label: str
    value: str
    category: ClauseCategory

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value, "category": self.category.value}


@dataclass
class AnalysisResult:
    summary: str
    key_details: List[KeyDetail] = field(default_factory=list)
    flagged_clauses: List[FlaggedClause] = field(default_factory=list)
    overall_risk_score: int = 0
    recommendations: List[str] = field(default_factory=list)
    source: str = "ai"     # "ai" or "keyword"

    def to_dict(self) -> dict:
        """Serialize to the camelCase shape the results page renders."""
        return {
            "summary": self.summary,
            "keyDetails": [kd.to_dict() for kd in self.key_details],
            "flaggedClauses": [fc.to_dict() for fc in self.flagged_clauses],
            "overallRiskScore": self.overall_risk_score,
            "recommendations": list(self.recommendations),
            "source": self.source,
        }
