"""
Pull a JSON object out of free-form model output.
"""
import json
import logging
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


def _balanced_candidates(text: str) -> Iterator[str]:
    """
    Yield each top-level balanced {...} substring, left to right.

    Braces inside JSON string literals are ignored. Scanning resumes after the
    end of each candidate, so objects nested inside it are never yielded on
    their own. An opening brace that is never closed ends the scan.
    """
    start = None
    depth = 0
    in_string = False
    escape_next = False

    for i, c in enumerate(text):
        if start is None:
            # Prose between objects; quotes here are not string delimiters
            if c == '{':
                start, depth = i, 1
            continue

        if escape_next:
            escape_next = False
            continue

        if in_string:
            if c == '\\':
                escape_next = True
            elif c == '"':
                in_string = False
            continue

        if c == '"':
            in_string = True
        elif c == '{':
            depth += 1
        elif c == '}':
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]
                start = None

    if start is not None:
        logger.debug(f"Unclosed JSON object starting at offset {start}")


def extract_json_object(text: str) -> Optional[str]:
    """
    Find the first well-formed JSON object embedded in text.

    Handles prose before/after the object, markdown code fences and nested
    objects. A top-level candidate that is not valid JSON is skipped as a
    whole in favour of the next one; a cut-off object yields nothing.

    Args:
        text: Raw model output.

    Returns:
        The JSON object substring, or None if no candidate parses to an object.
    """
    if not text:
        return None

    for candidate in _balanced_candidates(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return candidate

    logger.debug("No well-formed JSON object found in model output")
    return None
