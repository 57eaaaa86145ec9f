"""
Clause taxonomy shared by the Gemini prompt and the result normalizer.
"""
import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
MAX_MATCHED_TEXT_LENGTH = 300
MAX_RECOMMENDATIONS = 5
MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100


class ClauseCategory(str, Enum):
    SECURITY_DEPOSIT = "security_deposit"
    RENT = "rent"
    TERMINATION = "termination"
    MAINTENANCE = "maintenance"
    PRIVACY = "privacy"
    PETS = "pets"
    SUBLETTING = "subletting"
    UTILITIES = "utilities"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Facts the prompt asks Gemini to extract, in display order
KEY_DETAIL_FIELDS = [
    ("Monthly Rent", ClauseCategory.RENT),
    ("Security Deposit", ClauseCategory.SECURITY_DEPOSIT),
    ("Lease Start Date", ClauseCategory.TERMINATION),
    ("Lease End Date", ClauseCategory.TERMINATION),
    ("Property Address", ClauseCategory.OTHER),
    ("Landlord Name", ClauseCategory.OTHER),
    ("Notice Period", ClauseCategory.TERMINATION),
]


def category_choices() -> str:
    """Pipe-separated category values, as written into the prompt schema."""
    return "|".join(c.value for c in ClauseCategory)


def severity_choices() -> str:
    return "|".join(s.value for s in Severity)


def coerce_category(value: Any) -> ClauseCategory:
    """
    Map a raw category value onto the taxonomy.

    Unknown values become ClauseCategory.OTHER so the UI never receives an
    out-of-domain category.
    """
    if isinstance(value, ClauseCategory):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return ClauseCategory(key)
        except ValueError:
            pass
    logger.warning(f"Unknown clause category {value!r}, using 'other'")
    return ClauseCategory.OTHER


def coerce_severity(value: Any) -> Severity:
    """Map a raw severity value onto the taxonomy; unknown values become low."""
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        try:
            return Severity(value.strip().lower())
        except ValueError:
            pass
    logger.warning(f"Unknown severity {value!r}, using 'low'")
    return Severity.LOW
