"""
Result normalizer - turns Gemini's loosely-typed JSON into an AnalysisResult.
Pure data transformation; no network access.
"""
import logging
import math
from typing import Any, List, Optional

from leasecheck.services.clause_taxonomy import (
    MAX_MATCHED_TEXT_LENGTH, MAX_RECOMMENDATIONS, MAX_RISK_SCORE, MIN_RISK_SCORE, NOT_AVAILABLE,
    coerce_category, coerce_severity,
)
from leasecheck.services.errors import MalformedResult
from leasecheck.services.models import AnalysisResult, ClausePattern, FlaggedClause, KeyDetail

logger = logging.getLogger(__name__)


def _text(value: Any, default: str = "") -> str:
    """Coerce a scalar to a stripped string; None and containers become default."""
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value).strip()


def coerce_risk_score(value: Any) -> int:
    """
    Coerce a raw risk score to an int clamped to [0, 100].

    Accepts ints, floats and numeric strings (rounded).

    Raises:
        MalformedResult: If the value is missing or not numeric.
    """
    if value is None or isinstance(value, bool):
        raise MalformedResult(f"overallRiskScore must be a number, got {value!r}")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip('%'))
        except ValueError:
            raise MalformedResult(f"overallRiskScore must be a number, got {value!r}")
    else:
        raise MalformedResult(f"overallRiskScore must be a number, got {type(value).__name__}")

    if math.isnan(number) or math.isinf(number):
        raise MalformedResult(f"overallRiskScore must be finite, got {value!r}")

    return max(MIN_RISK_SCORE, min(MAX_RISK_SCORE, int(round(number))))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1')
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _coerce_position(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _list_field(raw: dict, key: str) -> list:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResult(f"{key} must be an array, got {type(value).__name__}")
    return value


def _normalize_key_details(items: list) -> List[KeyDetail]:
    details = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"Skipping key detail that is not an object: {item!r}")
            continue

        label = _text(item.get('label'))
        if not label:
            logger.warning("Skipping key detail without a label")
            continue

        details.append(KeyDetail(
            label=label,
            value=_text(item.get('value')) or NOT_AVAILABLE,
            category=coerce_category(item.get('category')),
        ))
    return details


def _normalize_clause(raw_clause: dict, index: int) -> ClausePattern:
    legal_reference: Optional[str] = _text(raw_clause.get('legalReference')) or None

    return ClausePattern(
        id=_text(raw_clause.get('id')) or f"clause-{index + 1}",
        category=coerce_category(raw_clause.get('category')),
        name=_text(raw_clause.get('name')) or "Unnamed clause",
        description=_text(raw_clause.get('description')),
        explanation=_text(raw_clause.get('explanation')),
        keywords=[],  # Gemini does not return keywords
        is_malicious=_coerce_bool(raw_clause.get('isMalicious')),
        severity=coerce_severity(raw_clause.get('severity')),
        legal_reference=legal_reference,
    )


def _normalize_flagged_clauses(items: list) -> List[FlaggedClause]:
    flagged = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get('clause'), dict):
            logger.warning(f"Skipping flagged clause {index + 1}: missing clause object")
            continue

        flagged.append(FlaggedClause(
            clause=_normalize_clause(item['clause'], index),
            matched_text=_text(item.get('matchedText'))[:MAX_MATCHED_TEXT_LENGTH],
            position=_coerce_position(item.get('position')),
        ))
    return flagged


def _normalize_recommendations(items: list) -> List[str]:
    recommendations = [_text(item) for item in items]
    recommendations = [r for r in recommendations if r]
    if len(recommendations) > MAX_RECOMMENDATIONS:
        logger.info(f"Capping {len(recommendations)} recommendations to {MAX_RECOMMENDATIONS}")
    return recommendations[:MAX_RECOMMENDATIONS]


def normalize(raw: Any) -> AnalysisResult:
    """
    Validate a raw Gemini analysis and convert it to an AnalysisResult.

    Unknown categories and severities are coerced to 'other' and 'low'.
    Flagged clauses without a clause object are dropped.

    Args:
        raw: Parsed JSON payload from Gemini.

    Returns:
        Normalized AnalysisResult with source 'ai'.

    Raises:
        MalformedResult: If summary or overallRiskScore is missing or invalid,
            or a list field has the wrong type.
    """
    if not isinstance(raw, dict):
        raise MalformedResult(f"Analysis must be a JSON object, got {type(raw).__name__}")

    summary = raw.get('summary')
    if not isinstance(summary, str) or not summary.strip():
        raise MalformedResult("Analysis is missing a summary")

    if 'overallRiskScore' not in raw:
        raise MalformedResult("Analysis is missing overallRiskScore")

    result = AnalysisResult(
        summary=summary.strip(),
        key_details=_normalize_key_details(_list_field(raw, 'keyDetails')),
        flagged_clauses=_normalize_flagged_clauses(_list_field(raw, 'flaggedClauses')),
        overall_risk_score=coerce_risk_score(raw['overallRiskScore']),
        recommendations=_normalize_recommendations(_list_field(raw, 'recommendations')),
        source="ai",
    )

    logger.info(
        f"Normalized analysis: {len(result.flagged_clauses)} flagged clauses, "
        f"risk score {result.overall_risk_score}"
    )
    return result
