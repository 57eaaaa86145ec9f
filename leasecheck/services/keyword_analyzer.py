"""
Keyword-based lease analyzer.
Deterministic pattern matching used when Gemini is unavailable.
"""
import re
import logging
from typing import List, Optional, Tuple

from leasecheck.services.clause_taxonomy import (
    ClauseCategory, Severity, KEY_DETAIL_FIELDS, MAX_MATCHED_TEXT_LENGTH,
    MAX_RECOMMENDATIONS, MAX_RISK_SCORE, NOT_AVAILABLE,
)
from leasecheck.services.models import AnalysisResult, ClausePattern, FlaggedClause, KeyDetail

logger = logging.getLogger(__name__)

# Score contribution per flagged clause
SEVERITY_WEIGHTS = {
    Severity.LOW: 5,
    Severity.MEDIUM: 12,
    Severity.HIGH: 20,
}
MALICIOUS_BONUS = 10

CLAUSE_PATTERNS = [
    ClausePattern(
        id="excessive-security-deposit",
        category=ClauseCategory.SECURITY_DEPOSIT,
        name="Excessive security deposit",
        description="Security deposit appears to exceed half of one month's rent.",
        explanation="A landlord may not require a security deposit greater than half of the first month's rent.",
        keywords=["deposit equal to one month's rent", "full month's rent as deposit"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Section 19",
    ),
    ClausePattern(
        id="non-refundable-deposit",
        category=ClauseCategory.SECURITY_DEPOSIT,
        name="Non-refundable deposit or fee",
        description="Deposit or fee described as non-refundable.",
        explanation="Deposits must be returned or dealt with under the Act; non-refundable deposits and most move-in fees are prohibited.",
        keywords=["non-refundable deposit", "non-refundable fee", "deposit forfeited"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Section 20",
    ),
    ClausePattern(
        id="automatic-deposit-deductions",
        category=ClauseCategory.SECURITY_DEPOSIT,
        name="Automatic deposit deductions",
        description="Deductions from the deposit without tenant consent or an order.",
        explanation="A landlord may only keep part of a deposit with the tenant's written agreement or an order from the Residential Tenancy Branch.",
        keywords=["deducted from deposit", "cleaning fee deducted"],
        is_malicious=True,
        severity=Severity.MEDIUM,
        legal_reference="BC RTA Section 38",
    ),
    ClausePattern(
        id="excessive-pet-deposit",
        category=ClauseCategory.PETS,
        name="Pet damage deposit terms",
        description="Pet deposit or pet fee terms.",
        explanation="A pet damage deposit is limited to half of one month's rent regardless of the number of pets; monthly pet fees are not permitted.",
        keywords=["pet deposit of one month", "monthly pet fee"],
        is_malicious=True,
        severity=Severity.MEDIUM,
        legal_reference="BC RTA Section 19",
    ),
    ClausePattern(
        id="entry-without-notice",
        category=ClauseCategory.PRIVACY,
        name="Landlord entry without notice",
        description="Landlord may enter the unit at any time or without notice.",
        explanation="Except in emergencies, a landlord must give at least 24 hours' written notice before entering.",
        keywords=["enter at any time", "enter without notice", "access without notice"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Section 29",
    ),
    ClausePattern(
        id="guest-restrictions",
        category=ClauseCategory.PRIVACY,
        name="Unreasonable guest restrictions",
        description="Restrictions or fees on overnight guests.",
        explanation="A landlord must not unreasonably restrict guests or charge a fee for them.",
        keywords=["no overnight guests", "guest fee", "guests prohibited"],
        is_malicious=True,
        severity=Severity.MEDIUM,
        legal_reference="BC RTA Section 30",
    ),
    ClausePattern(
        id="tenant-pays-all-repairs",
        category=ClauseCategory.MAINTENANCE,
        name="Tenant responsible for all repairs",
        description="Tenant must pay for all repairs or maintenance.",
        explanation="The landlord must maintain the unit in a state of decoration and repair that complies with health, safety and housing standards.",
        keywords=["tenant responsible for all repairs", "repairs at tenant's expense"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Section 32",
    ),
    ClausePattern(
        id="rent-increase-any-time",
        category=ClauseCategory.RENT,
        name="Rent increase at landlord's discretion",
        description="Rent may be increased at any time or without proper notice.",
        explanation="Rent may only be increased once every 12 months, with three full months' notice on the approved form, up to the annual allowable amount.",
        keywords=["increase rent at any time", "rent increase without notice"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Sections 42-43",
    ),
    ClausePattern(
        id="excessive-late-fee",
        category=ClauseCategory.RENT,
        name="Late payment fee",
        description="Fee charged for late rent payment.",
        explanation="Late payment fees are capped at $25 and must be set out in the tenancy agreement.",
        keywords=["late fee", "late payment penalty"],
        is_malicious=False,
        severity=Severity.MEDIUM,
        legal_reference="Residential Tenancy Regulation Section 7",
    ),
    ClausePattern(
        id="no-subletting",
        category=ClauseCategory.SUBLETTING,
        name="Absolute ban on subletting",
        description="Subletting or assignment is prohibited outright.",
        explanation="For fixed-term tenancies of six months or more, the landlord must not unreasonably withhold consent to assign or sublet.",
        keywords=["shall not sublet", "subletting prohibited"],
        is_malicious=False,
        severity=Severity.MEDIUM,
        legal_reference="BC RTA Section 34",
    ),
    ClausePattern(
        id="eviction-without-notice",
        category=ClauseCategory.TERMINATION,
        name="Termination without proper notice",
        description="Landlord may end the tenancy immediately or without notice.",
        explanation="A landlord may only end a tenancy for reasons set out in the Act, using the approved notice form and notice period.",
        keywords=["terminate tenancy immediately", "evict without notice"],
        is_malicious=True,
        severity=Severity.HIGH,
        legal_reference="BC RTA Sections 44-47",
    ),
    ClausePattern(
        id="fixed-term-vacate",
        category=ClauseCategory.TERMINATION,
        name="Vacate clause",
        description="Tenant must move out at the end of the fixed term.",
        explanation="Vacate clauses are only allowed in limited circumstances, such as the landlord or a close family member moving in.",
        keywords=["vacate at end of term", "move out at end of term"],
        is_malicious=False,
        severity=Severity.MEDIUM,
        legal_reference="BC RTA Section 44(1)(b); Residential Tenancy Regulation Section 13.1",
    ),
    ClausePattern(
        id="utilities-unspecified",
        category=ClauseCategory.UTILITIES,
        name="Tenant pays all utilities",
        description="Tenant pays all utilities or utility charges are open-ended.",
        explanation="Utilities included in rent cannot be withdrawn without a rent reduction; make sure shared utilities are split in writing.",
        keywords=["tenant responsible for all utilities", "utilities subject to change"],
        is_malicious=False,
        severity=Severity.LOW,
        legal_reference="BC RTA Section 27",
    ),
]

# Regexes behind each catalogue entry, keyed by clause id
CLAUSE_REGEXES = {
    "excessive-security-deposit": [
        r"deposit\s+(?:equal\s+to|of)\s+(?:one|1|two|2)\s+(?:full\s+)?months?(?:'s|')?\s+(?:of\s+)?rent",
        r"(?:full|one|1|two|2)\s+months?(?:'s|')?\s+rent\s+(?:as\s+(?:a\s+)?)?(?:security\s+)?deposit",
    ],
    "non-refundable-deposit": [
        r"non[-\s]?refundable\s+(?:\w+\s+){0,2}(?:deposit|fee)",
        r"deposit\s+(?:is|shall\s+be|will\s+be)\s+(?:forfeited|non[-\s]?refundable)",
    ],
    "automatic-deposit-deductions": [
        r"(?:automatically|will\s+be)\s+deducted\s+from\s+(?:the\s+)?(?:security\s+)?deposit",
        r"cleaning\s+fee\s+(?:will|shall)\s+be\s+(?:deducted|charged|withheld)",
    ],
    "excessive-pet-deposit": [
        r"pet\s+(?:damage\s+)?deposit\s+(?:equal\s+to|of)\s+(?:one|1)\s+(?:full\s+)?months?",
        r"(?:monthly|per\s+month)\s+pet\s+(?:fee|rent|charge)",
        r"pet\s+(?:fee|rent|charge)\s+of\s+\$?\d+\s+(?:per|each|a)\s+month",
    ],
    "entry-without-notice": [
        r"enter\s+(?:the\s+)?(?:premises|unit|suite|rental\s+unit)?\s*(?:at\s+any\s+time|without\s+(?:prior\s+)?notice)",
        r"(?:access|entry)\s+(?:at\s+any\s+time|without\s+(?:prior\s+)?notice)",
    ],
    "guest-restrictions": [
        r"no\s+(?:overnight\s+)?guests",
        r"guests?\s+(?:fee|charge)",
        r"guests?\s+(?:are\s+)?(?:not\s+permitted|prohibited)",
    ],
    "tenant-pays-all-repairs": [
        r"tenant\s+(?:is|shall\s+be|will\s+be)\s+(?:solely\s+)?responsible\s+for\s+(?:all|any)\s+(?:repairs|maintenance)",
        r"all\s+repairs\s+(?:are|shall\s+be|will\s+be)\s+(?:at\s+)?(?:the\s+)?tenant'?s\s+(?:expense|cost|responsibility)",
    ],
    "rent-increase-any-time": [
        r"(?:increase|raise)\s+(?:the\s+)?rent\s+(?:at\s+any\s+time|at\s+(?:the\s+)?landlord'?s\s+(?:sole\s+)?discretion|without\s+notice)",
        r"rent\s+(?:may|can)\s+be\s+(?:increased|raised)\s+(?:at\s+any\s+time|without\s+notice)",
    ],
    "excessive-late-fee": [
        r"late\s+(?:payment\s+)?(?:fee|charge|penalty)",
    ],
    "no-subletting": [
        r"(?:shall|will|may)\s+not\s+(?:under\s+any\s+circumstances\s+)?(?:sublet|sub-let|assign)",
        r"subletting\s+(?:is\s+)?(?:strictly\s+)?(?:prohibited|not\s+(?:permitted|allowed))",
    ],
    "eviction-without-notice": [
        r"(?:terminate|end)\s+(?:this\s+)?(?:tenancy|lease|agreement)\s+(?:immediately|at\s+any\s+time|without\s+(?:prior\s+)?notice)",
        r"(?:evict|removed?)\s+(?:the\s+tenant\s+)?(?:immediately|without\s+(?:prior\s+)?notice)",
    ],
    "fixed-term-vacate": [
        r"(?:must|shall|will)\s+(?:vacate|move\s+out)\s+(?:at|by|on)\s+the\s+end\s+of\s+the\s+(?:fixed\s+)?term",
    ],
    "utilities-unspecified": [
        r"tenant\s+(?:is|shall\s+be|will\s+be)\s+responsible\s+for\s+all\s+utilities",
        r"utilities\s+(?:are\s+)?(?:subject\s+to\s+change|to\s+be\s+determined)",
    ],
}

RECOMMENDATIONS_BY_CATEGORY = {
    ClauseCategory.SECURITY_DEPOSIT: "Confirm the security deposit is no more than half of one month's rent and that no part of it is non-refundable.",
    ClauseCategory.RENT: "Check that rent increases and late fees follow the Residential Tenancy Act limits.",
    ClauseCategory.TERMINATION: "Make sure the tenancy can only be ended with proper notice on the approved Residential Tenancy Branch forms.",
    ClauseCategory.MAINTENANCE: "Ask the landlord to confirm in writing that they remain responsible for repairs required by the Act.",
    ClauseCategory.PRIVACY: "Ask for landlord entry terms to require at least 24 hours' written notice except in emergencies.",
    ClauseCategory.PETS: "Confirm any pet damage deposit is no more than half of one month's rent and that there are no monthly pet fees.",
    ClauseCategory.SUBLETTING: "Ask how consent to sublet or assign will be handled if your plans change.",
    ClauseCategory.UTILITIES: "Get a written list of which utilities are included in rent and how shared utilities are split.",
}
GENERAL_RECOMMENDATION = (
    "This analysis used keyword matching only; review the full agreement or contact the "
    "Residential Tenancy Branch before signing."
)

_COMPILED_PATTERNS = [
    (pattern, [re.compile(r, re.IGNORECASE) for r in CLAUSE_REGEXES[pattern.id]])
    for pattern in CLAUSE_PATTERNS
]

_MONEY = r"\$\s?\d+(?:,\d{3})*(?:\.\d{2})?"
_DATE = (
    r"(?:\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{2,4}|"
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December)"
    r"\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4})"
)

KEY_DETAIL_PATTERNS = {
    "Monthly Rent": [
        rf"rent\s+(?:of|is|shall\s+be|will\s+be|amount)?\s*:?\s*({_MONEY})",
        rf"({_MONEY})\s+(?:per|a|each)\s+month",
    ],
    "Security Deposit": [
        rf"security\s+deposit\s+(?:of|is|in\s+the\s+amount\s+of)?\s*:?\s*({_MONEY})",
        rf"({_MONEY})\s+(?:as\s+a\s+)?security\s+deposit",
    ],
    "Lease Start Date": [
        rf"(?:commenc\w*|start\w*|begin\w*)\s+(?:on\s+)?(?:date\s*:?\s*)?({_DATE})",
    ],
    "Lease End Date": [
        rf"(?:end\w*|expir\w*|terminat\w*)\s+(?:on\s+)?(?:date\s*:?\s*)?({_DATE})",
    ],
    "Property Address": [
        r"(?:address|premises|rental\s+unit)\s*(?:of\s+the\s+rental\s+unit)?\s*(?:is|at|located\s+at)?\s*:\s*([^\n]{5,120})",
    ],
    "Landlord Name": [
        r"landlord\s*(?:name)?\s*:\s*([^\n,]{2,80})",
        r"between\s+([A-Z][^\n,]{1,80}?)\s*\(?(?:the\s+)?\"?landlord",
    ],
    "Notice Period": [
        r"(\d+|one|two|three|thirty|sixty|ninety)\s*(?:\(\d+\)\s*)?(?:full\s+)?(days?|months?)(?:'s|')?\s+(?:written\s+)?notice",
    ],
}


def _clip_sentence(text: str, start: int, end: int) -> str:
    """Return the sentence around text[start:end], bounded to MAX_MATCHED_TEXT_LENGTH."""
    sentence_start = max(
        text.rfind('.', 0, start), text.rfind('\n', 0, start), text.rfind(';', 0, start)
    ) + 1
    ends = [i for i in (text.find('.', end), text.find('\n', end), text.find(';', end)) if i != -1]
    sentence_end = min(ends) + 1 if ends else len(text)

    sentence = text[sentence_start:sentence_end].strip()
    if len(sentence) <= MAX_MATCHED_TEXT_LENGTH:
        return sentence

    # Keep the match itself in view when the sentence is long
    match_offset = start - sentence_start
    window_start = max(0, min(match_offset - 50, len(sentence) - MAX_MATCHED_TEXT_LENGTH))
    return sentence[window_start:window_start + MAX_MATCHED_TEXT_LENGTH].strip()


def _copy_pattern(pattern: ClausePattern) -> ClausePattern:
    """Each result owns its clause; never hand out the catalogue entry itself."""
    return ClausePattern(
        id=pattern.id,
        category=pattern.category,
        name=pattern.name,
        description=pattern.description,
        explanation=pattern.explanation,
        keywords=list(pattern.keywords),
        is_malicious=pattern.is_malicious,
        severity=pattern.severity,
        legal_reference=pattern.legal_reference,
    )


def find_flagged_clauses(text: str) -> List[FlaggedClause]:
    """First match of each catalogue pattern, in catalogue order."""
    flagged = []
    for pattern, regexes in _COMPILED_PATTERNS:
        match = _first_match(text, regexes)
        if match is None:
            continue
        start, end = match
        flagged.append(FlaggedClause(
            clause=_copy_pattern(pattern),
            matched_text=_clip_sentence(text, start, end),
            position=start,
        ))
        logger.debug(f"Keyword match: {pattern.id} at {start}")
    return flagged


def _first_match(text: str, regexes) -> Optional[Tuple[int, int]]:
    spans = [m.span() for m in (r.search(text) for r in regexes) if m]
    return min(spans) if spans else None


def extract_key_details(text: str) -> List[KeyDetail]:
    details = []
    for label, category in KEY_DETAIL_FIELDS:
        value = NOT_AVAILABLE
        for regex in KEY_DETAIL_PATTERNS.get(label, []):
            match = re.search(regex, text, re.IGNORECASE)
            if match:
                value = " ".join(g for g in match.groups() if g).strip() or NOT_AVAILABLE
                break
        details.append(KeyDetail(label=label, value=value, category=category))
    return details


def score_flagged_clauses(flagged: List[FlaggedClause]) -> int:
    score = 0
    for fc in flagged:
        score += SEVERITY_WEIGHTS[fc.clause.severity]
        if fc.clause.is_malicious:
            score += MALICIOUS_BONUS
    return min(MAX_RISK_SCORE, score)


def _recommendations(flagged: List[FlaggedClause]) -> List[str]:
    recommendations = []
    for fc in flagged:
        rec = RECOMMENDATIONS_BY_CATEGORY.get(fc.clause.category)
        if rec and rec not in recommendations:
            recommendations.append(rec)
    recommendations = recommendations[:MAX_RECOMMENDATIONS - 1]
    recommendations.append(GENERAL_RECOMMENDATION)
    return recommendations


def _summary(flagged: List[FlaggedClause]) -> str:
    if not flagged:
        return (
            "Keyword analysis did not find any of the common problem clauses we check for. "
            "This does not guarantee the agreement complies with the Residential Tenancy Act."
        )
    malicious = sum(1 for fc in flagged if fc.clause.is_malicious)
    return (
        f"Keyword analysis flagged {len(flagged)} clause(s), {malicious} of which may conflict "
        f"with the BC Residential Tenancy Act. Automated AI analysis was unavailable, so results "
        f"are based on pattern matching only."
    )


def analyze_contract_with_keywords(text: str) -> AnalysisResult:
    """
    Analyze a tenancy agreement with keyword and pattern matching.

    Args:
        text: Full contract text.

    Returns:
        AnalysisResult with source 'keyword'.

    Raises:
        ValueError: If text is blank.
    """
    if not text or not text.strip():
        raise ValueError("Contract text cannot be blank")

    flagged = find_flagged_clauses(text)
    result = AnalysisResult(
        summary=_summary(flagged),
        key_details=extract_key_details(text),
        flagged_clauses=flagged,
        overall_risk_score=score_flagged_clauses(flagged),
        recommendations=_recommendations(flagged),
        source="keyword",
    )

    logger.info(
        f"Keyword analysis complete: {len(flagged)} flagged clauses, "
        f"risk score {result.overall_risk_score}"
    )
    return result
