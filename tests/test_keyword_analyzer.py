"""
Unit tests for the keyword fallback analyzer.
"""
import pytest

from leasecheck.services.clause_taxonomy import ClauseCategory, Severity
from leasecheck.services.keyword_analyzer import (
    CLAUSE_PATTERNS, CLAUSE_REGEXES, GENERAL_RECOMMENDATION, analyze_contract_with_keywords,
    extract_key_details, find_flagged_clauses, score_flagged_clauses,
)

RISKY_LEASE = """RESIDENTIAL TENANCY AGREEMENT
This agreement is made between Harbour View Properties Ltd. (the "Landlord") and Jane Doe (the "Tenant").
Address: 123 Main Street, Vancouver, BC V5K 0A1
The tenancy starts on September 1, 2025 and ends on August 31, 2026.
The rent is $2,000 per month, due on the first day of each month.
The Tenant shall pay a security deposit of $2,000, being a deposit equal to one month's rent.
A non-refundable cleaning fee of $300 is payable at move-in.
The Landlord may enter the premises at any time for inspection.
The Tenant is responsible for all repairs to the rental unit.
The Landlord may increase the rent at any time by written notice.
The Tenant shall not sublet the premises.
Either party must give one (1) month's written notice to end the tenancy.
"""

CLEAN_LEASE = """RESIDENTIAL TENANCY AGREEMENT
The rent is $1,800 per month.
The Landlord will give 24 hours written notice before entering the rental unit.
"""


class TestFindFlaggedClauses:
    """Tests for clause pattern matching."""

    def test_flags_expected_clauses(self):
        ids = [fc.clause.id for fc in find_flagged_clauses(RISKY_LEASE)]

        for expected in ["excessive-security-deposit", "non-refundable-deposit",
                         "entry-without-notice", "tenant-pays-all-repairs",
                         "rent-increase-any-time", "no-subletting"]:
            assert expected in ids

    def test_catalogue_order_and_one_match_per_pattern(self):
        flagged = find_flagged_clauses(RISKY_LEASE)
        ids = [fc.clause.id for fc in flagged]
        catalogue = [p.id for p in CLAUSE_PATTERNS]

        assert len(ids) == len(set(ids))
        assert ids == sorted(ids, key=catalogue.index)

    def test_matched_text_and_position(self):
        flagged = {fc.clause.id: fc for fc in find_flagged_clauses(RISKY_LEASE)}
        entry = flagged["entry-without-notice"]

        assert entry.matched_text == "The Landlord may enter the premises at any time for inspection."
        assert RISKY_LEASE[entry.position:].lower().startswith("enter the premises")

    def test_matched_text_bounded(self):
        long_sentence = "The landlord may enter the premises at any time " + "and so on " * 100 + "."
        flagged = find_flagged_clauses(long_sentence)

        assert flagged
        assert all(len(fc.matched_text) <= 300 for fc in flagged)
        assert "enter the premises" in flagged[0].matched_text

    def test_results_own_their_clause(self):
        """Mutating a result never touches the shared catalogue."""
        flagged = find_flagged_clauses(RISKY_LEASE)
        flagged[0].clause.keywords.append("mutated")
        flagged[0].clause.name = "changed"

        original = next(p for p in CLAUSE_PATTERNS if p.id == flagged[0].clause.id)
        assert "mutated" not in original.keywords
        assert original.name != "changed"

    def test_clean_lease_has_no_flags(self):
        assert find_flagged_clauses(CLEAN_LEASE) == []

    def test_keywords_present_on_keyword_path(self):
        assert all(fc.clause.keywords for fc in find_flagged_clauses(RISKY_LEASE))

    def test_keywords_are_readable_phrases(self):
        """Serialized keywords are plain phrases, not regex source."""
        for fc in find_flagged_clauses(RISKY_LEASE):
            for keyword in fc.clause.to_dict()["keywords"]:
                assert not any(ch in keyword for ch in "\\()[]?|+*")

    def test_every_pattern_has_regexes(self):
        assert set(CLAUSE_REGEXES) == {p.id for p in CLAUSE_PATTERNS}
        assert all(CLAUSE_REGEXES[p.id] for p in CLAUSE_PATTERNS)


class TestExtractKeyDetails:
    """Tests for regex key-detail extraction."""

    def test_extracts_known_fields(self):
        details = {kd.label: kd for kd in extract_key_details(RISKY_LEASE)}

        assert details["Monthly Rent"].value == "$2,000"
        assert details["Monthly Rent"].category == ClauseCategory.RENT
        assert details["Security Deposit"].value == "$2,000"
        assert details["Lease Start Date"].value == "September 1, 2025"
        assert details["Lease End Date"].value == "August 31, 2026"
        assert details["Property Address"].value.startswith("123 Main Street")
        assert details["Notice Period"].value == "one month"

    def test_missing_fields_are_not_available(self):
        details = {kd.label: kd.value for kd in extract_key_details("Nothing useful here.")}

        assert len(details) == 7
        assert set(details.values()) == {"N/A"}


class TestScoring:
    """Tests for risk scoring."""

    def test_score_bounds(self):
        flagged = find_flagged_clauses(RISKY_LEASE)
        score = score_flagged_clauses(flagged)
        assert 0 < score <= 100

    def test_score_capped_at_100(self):
        flagged = find_flagged_clauses(RISKY_LEASE) * 5
        assert score_flagged_clauses(flagged) == 100

    def test_empty_score_zero(self):
        assert score_flagged_clauses([]) == 0


class TestAnalyzeContractWithKeywords:
    """Tests for the full keyword analysis."""

    def test_result_shape(self):
        result = analyze_contract_with_keywords(RISKY_LEASE)

        assert result.source == "keyword"
        assert result.flagged_clauses
        assert "keyword" in result.summary.lower() or "pattern" in result.summary.lower()
        assert 1 <= len(result.recommendations) <= 5
        assert result.recommendations[-1] == GENERAL_RECOMMENDATION

    def test_recommendations_unique_and_capped(self):
        result = analyze_contract_with_keywords(RISKY_LEASE)
        assert len(result.recommendations) == len(set(result.recommendations))
        assert len(result.recommendations) <= 5

    def test_clean_lease(self):
        result = analyze_contract_with_keywords(CLEAN_LEASE)

        assert result.flagged_clauses == []
        assert result.overall_risk_score == 0
        assert result.recommendations == [GENERAL_RECOMMENDATION]

    def test_severities_within_taxonomy(self):
        result = analyze_contract_with_keywords(RISKY_LEASE)
        for fc in result.flagged_clauses:
            assert isinstance(fc.clause.severity, Severity)
            assert isinstance(fc.clause.category, ClauseCategory)

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_rejected(self, text):
        with pytest.raises(ValueError):
            analyze_contract_with_keywords(text)
