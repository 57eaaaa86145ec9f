"""
Unit tests for the analysis orchestrator.
The Gemini client and the fallback analyzer are mocked.
"""
import pytest
from unittest.mock import patch, Mock, MagicMock

from leasecheck.services.analysis_orchestrator import (
    analyze_contract, truncate_contract_text, MAX_CONTRACT_LENGTH, TRUNCATION_MARKER,
)
from leasecheck.services.errors import (
    AnalysisFailed, ConfigurationError, ServiceUnavailable, TransportError,
)
from leasecheck.services.models import AnalysisResult

RAW_ANALYSIS = {
    "summary": "Standard BC tenancy agreement.",
    "keyDetails": [],
    "flaggedClauses": [],
    "overallRiskScore": 150,
    "recommendations": [f"rec {i}" for i in range(8)],
}

FALLBACK_RESULT = AnalysisResult(
    summary="Keyword analysis flagged 0 clause(s).",
    overall_risk_score=0,
    source="keyword",
)


@pytest.fixture
def gemini():
    client = Mock()
    client.analyze.return_value = dict(RAW_ANALYSIS)
    return client


@pytest.fixture
def fallback():
    return MagicMock(return_value=FALLBACK_RESULT)


class TestTruncation:
    """Tests for truncate_contract_text."""

    def test_short_text_unchanged(self):
        text = "Tenant agrees to pay rent."
        assert truncate_contract_text(text) == text

    def test_text_at_limit_unchanged(self):
        text = "a" * MAX_CONTRACT_LENGTH
        assert truncate_contract_text(text) == text

    def test_long_text_keeps_prefix_and_marker(self):
        text = "b" * 10 + "c" * MAX_CONTRACT_LENGTH
        truncated = truncate_contract_text(text)

        assert truncated == text[:MAX_CONTRACT_LENGTH] + TRUNCATION_MARKER
        assert len(truncated) == MAX_CONTRACT_LENGTH + len(TRUNCATION_MARKER)
        assert truncated.startswith("b" * 10)

    def test_custom_limit(self):
        assert truncate_contract_text("abcdef", max_length=3) == "abc" + TRUNCATION_MARKER


class TestAnalyzeContractRemotePath:
    """Tests for the Gemini path."""

    def test_short_text_passed_verbatim(self, gemini, fallback):
        """Text under the limit reaches the client unchanged, without a marker."""
        text = "Lease between Landlord and Tenant."
        analyze_contract(text, client=gemini, fallback=fallback)

        sent = gemini.analyze.call_args[0][0]
        assert sent == text
        assert TRUNCATION_MARKER not in sent

    def test_long_text_truncated_before_client(self, gemini, fallback):
        text = "x" * (MAX_CONTRACT_LENGTH + 500)
        analyze_contract(text, client=gemini, fallback=fallback)

        sent = gemini.analyze.call_args[0][0]
        assert sent == "x" * MAX_CONTRACT_LENGTH + TRUNCATION_MARKER

    def test_result_is_normalized(self, gemini, fallback):
        """Gemini output is clamped and capped before it is returned."""
        result = analyze_contract("Lease text", client=gemini, fallback=fallback)

        assert result.source == "ai"
        assert result.overall_risk_score == 100
        assert len(result.recommendations) == 5
        fallback.assert_not_called()

    def test_client_called_once(self, gemini, fallback):
        """No retries at this level beyond the client's own failover."""
        gemini.analyze.side_effect = ServiceUnavailable("down")
        analyze_contract("Lease text", client=gemini, fallback=fallback)

        assert gemini.analyze.call_count == 1


class TestAnalyzeContractFallback:
    """Tests for delegation to the keyword analyzer."""

    def test_service_unavailable_uses_fallback(self, gemini, fallback):
        gemini.analyze.side_effect = ServiceUnavailable(
            "All Gemini API endpoints failed", last_error=TransportError("503")
        )
        result = analyze_contract("Lease text", client=gemini, fallback=fallback)

        assert result is FALLBACK_RESULT
        fallback.assert_called_once_with("Lease text")

    def test_malformed_result_uses_fallback(self, gemini, fallback):
        gemini.analyze.return_value = {"flaggedClauses": []}
        result = analyze_contract("Lease text", client=gemini, fallback=fallback)

        assert result is FALLBACK_RESULT

    def test_fallback_receives_untruncated_text(self, gemini, fallback):
        gemini.analyze.side_effect = ServiceUnavailable("down")
        text = "y" * (MAX_CONTRACT_LENGTH + 10)
        analyze_contract(text, client=gemini, fallback=fallback)

        assert fallback.call_args[0][0] == text

    def test_fallback_failure_raises_analysis_failed(self, gemini, fallback):
        gemini.analyze.side_effect = ServiceUnavailable("down")
        fallback.side_effect = RuntimeError("pattern engine crashed")

        with pytest.raises(AnalysisFailed) as exc_info:
            analyze_contract("Lease text", client=gemini, fallback=fallback)

        assert "manually" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_default_fallback_is_keyword_analyzer(self, gemini):
        gemini.analyze.side_effect = ServiceUnavailable("down")
        result = analyze_contract(
            "The landlord may enter the premises at any time without notice.", client=gemini
        )

        assert result.source == "keyword"
        assert any(fc.clause.id == "entry-without-notice" for fc in result.flagged_clauses)

    def test_unexpected_client_errors_propagate(self, gemini, fallback):
        """Only ServiceUnavailable and MalformedResult trigger the fallback."""
        gemini.analyze.side_effect = KeyError("bug")

        with pytest.raises(KeyError):
            analyze_contract("Lease text", client=gemini, fallback=fallback)
        fallback.assert_not_called()


class TestAnalyzeContractConfiguration:
    """Tests for default client construction."""

    def test_missing_api_key_fails_fast(self, fallback):
        """ConfigurationError surfaces before any request and does not fall back."""
        with patch('leasecheck.services.analysis_orchestrator.GeminiConfig.from_env') as mock_from_env, \
             patch('leasecheck.services.gemini_client.requests.post') as mock_post:
            mock_from_env.side_effect = ConfigurationError("Gemini API key is not configured")

            with pytest.raises(ConfigurationError):
                analyze_contract("Lease text", fallback=fallback)

            mock_post.assert_not_called()
            fallback.assert_not_called()

    def test_default_client_built_from_env(self, fallback):
        with patch('leasecheck.services.analysis_orchestrator.GeminiConfig.from_env') as mock_from_env, \
             patch('leasecheck.services.analysis_orchestrator.GeminiClient') as mock_client_class:
            mock_client_class.return_value.analyze.return_value = dict(RAW_ANALYSIS)

            result = analyze_contract("Lease text", fallback=fallback)

            mock_client_class.assert_called_once_with(mock_from_env.return_value)
            assert result.source == "ai"

    @pytest.mark.parametrize("text", ["", "   \n  ", None])
    def test_blank_text_rejected(self, text, gemini, fallback):
        with pytest.raises(ValueError, match="blank"):
            analyze_contract(text, client=gemini, fallback=fallback)
        gemini.analyze.assert_not_called()
