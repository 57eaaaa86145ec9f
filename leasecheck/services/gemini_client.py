"""
Gemini client for BC tenancy agreement analysis.
"""
import json
import logging
import time
from typing import Optional
import requests
from tenacity import Retrying, stop_after_attempt, stop_after_delay, retry_if_exception_type

from leasecheck.config import GeminiConfig
from leasecheck.services.clause_taxonomy import (
    KEY_DETAIL_FIELDS, MAX_MATCHED_TEXT_LENGTH, MAX_RECOMMENDATIONS, NOT_AVAILABLE,
    category_choices, severity_choices,
)
from leasecheck.services.errors import (
    EndpointError, TransportError, ShapeError, ParseError, ServiceUnavailable,
)
from leasecheck.utils.json_extract import extract_json_object

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = '''Analyze this British Columbia residential tenancy agreement and return a JSON response with the following structure:

{{
  "summary": "A brief summary of the contract (2-3 sentences)",
  "keyDetails": [
{key_details}
  ],
  "flaggedClauses": [
    {{
      "clause": {{
        "id": "unique-id",
        "category": "{categories}",
        "name": "Clause name",
        "description": "Brief description",
        "isMalicious": true/false,
        "severity": "{severities}",
        "legalReference": "BC RTA Section reference if applicable",
        "explanation": "Why this clause is problematic or noteworthy"
      }},
      "matchedText": "Exact text excerpt from the contract (max {max_excerpt} chars)",
      "position": 0
    }}
  ],
  "overallRiskScore": 0-100,
  "recommendations": [{recommendations}]
}}

Focus on identifying:
1. Clauses that violate the BC Residential Tenancy Act (illegal deposits, prohibited terms, etc.)
2. Potentially problematic clauses that may be unenforceable
3. Important details like rent, deposits, dates, notice periods
4. Provide specific BC tenancy law references where applicable

Contract text:
{contract_text}

Return ONLY valid JSON, no other text.'''


def build_prompt(contract_text: str) -> str:
    """
    Build the analysis prompt with the schema generated from the clause taxonomy.

    Args:
        contract_text: Contract text, already truncated by the caller.

    Returns:
        Prompt string with the contract text at the end.
    """
    key_details = ",\n".join(
        f'    {{"label": "{label}", "value": "extracted value or \'{NOT_AVAILABLE}\'", "category": "{category.value}"}}'
        for label, category in KEY_DETAIL_FIELDS
    )
    recommendations = ", ".join(f'"recommendation {i}"' for i in range(1, MAX_RECOMMENDATIONS + 1))

    return PROMPT_TEMPLATE.format(
        key_details=key_details,
        categories=category_choices(),
        severities=severity_choices(),
        max_excerpt=MAX_MATCHED_TEXT_LENGTH,
        recommendations=recommendations,
        contract_text=contract_text,
    )


def build_request_body(prompt: str, config: GeminiConfig) -> dict:
    """Request body for the generateContent API."""
    return {
        "contents": [{
            "parts": [{"text": prompt}]
        }],
        "generationConfig": {
            "temperature": config.temperature,
            "topK": config.top_k,
            "topP": config.top_p,
            "maxOutputTokens": config.max_output_tokens,
        },
    }


def _response_text(data: dict, endpoint: str) -> str:
    """
    Dig the first text part out of a generateContent response.

    Raises:
        ShapeError: If candidates/content/parts/text is missing.
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise ShapeError("Invalid response format from Gemini API", endpoint)

    if not isinstance(text, str):
        raise ShapeError("Gemini response text part is not a string", endpoint)
    return text.strip()


def parse_model_output(text: str, endpoint: Optional[str] = None) -> dict:
    """
    Parse the JSON payload out of model output.

    The first well-formed object is used; if there is none, the whole text is
    parsed as a last resort.

    Raises:
        ParseError: If no JSON object can be parsed.
    """
    json_text = extract_json_object(text)
    if json_text is None:
        json_text = text

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON response from Gemini: {e}", endpoint)

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object from Gemini, got {type(data).__name__}", endpoint)
    return data


class GeminiClient:
    """
    Calls Gemini endpoint variants in order until one returns parseable JSON.

    Holds only configuration, so one instance can serve concurrent requests.
    """

    def __init__(self, config: GeminiConfig):
        self.config = config

    def analyze(self, contract_text: str) -> dict:
        """
        Analyze a contract with the first endpoint variant that succeeds.

        Args:
            contract_text: Contract text, already truncated by the caller.

        Returns:
            Raw analysis dictionary as returned by the model.

        Raises:
            ServiceUnavailable: If every endpoint variant fails or the deadline passes.
        """
        start_time = time.time()
        prompt = build_prompt(contract_text)
        body = build_request_body(prompt, self.config)
        endpoints = self.config.endpoints

        logger.info(f"Analyzing contract with Gemini: {len(contract_text)} chars, {len(endpoints)} endpoints")

        retrying = Retrying(
            stop=stop_after_attempt(len(endpoints)) | stop_after_delay(self.config.deadline),
            retry=retry_if_exception_type(EndpointError),
            reraise=True,
        )

        try:
            for attempt in retrying:
                endpoint = endpoints[attempt.retry_state.attempt_number - 1]
                with attempt:
                    timeout = self._attempt_timeout(start_time)
                    result = self._call_endpoint(endpoint, body, timeout)
                    logger.info(
                        f"Gemini analysis complete: endpoint={_model_name(endpoint)}, "
                        f"attempt={attempt.retry_state.attempt_number}, "
                        f"duration={time.time() - start_time:.2f}s"
                    )
                    return result
        except EndpointError as e:
            logger.error(
                f"All Gemini endpoints failed after {time.time() - start_time:.2f}s: "
                f"{type(e).__name__} - {e}"
            )
            raise ServiceUnavailable("All Gemini API endpoints failed", last_error=e)

        # Only reachable with an empty endpoint list, which GeminiConfig rejects
        raise ServiceUnavailable("No Gemini API endpoints configured")

    def _attempt_timeout(self, start_time: float) -> float:
        """
        Per-request timeout, capped so the attempt cannot outlive the overall deadline.

        Raises:
            TransportError: If the deadline has already passed.
        """
        remaining = self.config.deadline - (time.time() - start_time)
        if remaining <= 0:
            raise TransportError("Gemini analysis deadline exceeded")
        return min(self.config.request_timeout, remaining)

    def _call_endpoint(self, endpoint: str, body: dict, timeout: float) -> dict:
        """
        Make one request to one endpoint variant.

        Raises:
            TransportError: On network errors or non-success status.
            ShapeError: If the response envelope is missing content.
            ParseError: If the content holds no JSON object.
        """
        model = _model_name(endpoint)
        logger.debug(f"Calling Gemini endpoint: {model}")

        try:
            response = requests.post(
                endpoint,
                params={"key": self.config.api_key},
                headers={"Content-Type": "application/json"},
                json=body,
                timeout=timeout,
            )
        except requests.RequestException as e:
            # The exception text can contain the full URL including the key
            logger.warning(f"Gemini request to {model} failed: {type(e).__name__}")
            raise TransportError(f"Gemini request failed: {type(e).__name__}", endpoint)

        if not response.ok:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            logger.warning(f"Gemini endpoint {model} returned {response.status_code} {response.reason}")
            raise TransportError(
                f"Gemini API error: {response.status_code} {response.reason}. {json.dumps(error_data)}",
                endpoint,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Gemini endpoint {model} returned a non-JSON body")
            raise ShapeError("Gemini response body is not JSON", endpoint)

        try:
            text = _response_text(data, endpoint)
            return parse_model_output(text, endpoint)
        except EndpointError as e:
            logger.warning(f"Gemini endpoint {model} returned unusable output: {e}")
            raise


def _model_name(endpoint: str) -> str:
    """Short 'version/model' label for logs, e.g. 'v1beta/gemini-1.5-flash'."""
    parts = endpoint.rstrip('/').split('/')
    if len(parts) >= 3 and parts[-2] == 'models':
        return f"{parts[-3]}/{parts[-1].split(':')[0]}"
    return endpoint
