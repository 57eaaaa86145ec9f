"""
Analysis orchestrator - coordinates the full tenancy agreement analysis workflow.
Gemini analysis first, keyword matching as the deterministic fallback.
"""
import logging
import time
from typing import Callable

from leasecheck.config import GeminiConfig
from leasecheck.services.errors import AnalysisFailed, MalformedResult, ServiceUnavailable
from leasecheck.services.gemini_client import GeminiClient
from leasecheck.services.keyword_analyzer import analyze_contract_with_keywords
from leasecheck.services.models import AnalysisResult
from leasecheck.services.result_normalizer import normalize

logger = logging.getLogger(__name__)

# Proxy bound for the Gemini input-token budget (in characters)
MAX_CONTRACT_LENGTH = 50_000
TRUNCATION_MARKER = "\n\n[... contract truncated due to length ...]"


def truncate_contract_text(text: str, max_length: int = MAX_CONTRACT_LENGTH) -> str:
    """
    Keep the beginning of an oversized contract and mark the cut.

    Parties, rent and deposit terms sit near the top of a lease, so the prefix
    is what gets kept.

    Args:
        text: Full contract text.
        max_length: Maximum characters to keep before the marker.

    Returns:
        The text unchanged if it fits, otherwise the first max_length
        characters followed by TRUNCATION_MARKER.
    """
    if len(text) <= max_length:
        return text

    logger.warning(f"Contract length {len(text)} exceeds maximum {max_length}, truncating")
    return text[:max_length] + TRUNCATION_MARKER


def analyze_contract(
    text: str,
    client=None,
    fallback: Callable[[str], AnalysisResult] = analyze_contract_with_keywords
) -> AnalysisResult:
    """
    Analyze a tenancy agreement.

    Runs Gemini analysis on the (possibly truncated) text and normalizes the
    result. If Gemini is unavailable or returns an unusable result, the
    keyword analyzer runs on the full text instead. There is no retry at this
    level beyond the endpoint failover inside the client.

    Args:
        text: The contract text to analyze.
        client: Object with analyze(text) -> dict. Defaults to a GeminiClient
            configured from the environment.
        fallback: Callable(text) -> AnalysisResult. Defaults to the keyword analyzer.

    Returns:
        Normalized AnalysisResult.

    Raises:
        ValueError: If text is blank.
        ConfigurationError: If no client is given and the API key is missing.
        AnalysisFailed: If both Gemini and the fallback fail.
    """
    if not text or not text.strip():
        raise ValueError("Contract text cannot be blank")

    start_time = time.time()
    logger.info(f"Starting contract analysis: {len(text)} chars")

    if client is None:
        client = GeminiClient(GeminiConfig.from_env())

    prompt_text = truncate_contract_text(text)

    try:
        raw = client.analyze(prompt_text)
        result = normalize(raw)
        logger.info(
            f"Analysis complete: source=ai, flagged={len(result.flagged_clauses)}, "
            f"risk={result.overall_risk_score}, duration={time.time() - start_time:.2f}s"
        )
        return result

    except ServiceUnavailable as e:
        logger.warning(f"Gemini unavailable, using keyword fallback: {e} (last error: {e.last_error})")
    except MalformedResult as e:
        logger.warning(f"Gemini returned an unusable result, using keyword fallback: {e}")

    try:
        result = fallback(text)
    except Exception as e:
        logger.error(f"Keyword fallback failed: {type(e).__name__} - {e}")
        raise AnalysisFailed(cause=e)

    logger.info(
        f"Analysis complete: source={result.source}, flagged={len(result.flagged_clauses)}, "
        f"risk={result.overall_risk_score}, duration={time.time() - start_time:.2f}s"
    )
    return result
