"""
Configuration for the Gemini analysis client.
Values come from the environment (optionally a .env file) and are handed to
the client explicitly so tests never have to touch os.environ.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Mapping
from dotenv import load_dotenv

from leasecheck.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Endpoint variants of the same logical service, tried strictly in this order
DEFAULT_ENDPOINTS = [
    'https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent',
    'https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-pro:generateContent',
    'https://generativelanguage.googleapis.com/v1/models/gemini-1.5-flash:generateContent',
]

# Generation parameters keep responses compact and close to the schema
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95
DEFAULT_MAX_OUTPUT_TOKENS = 4096

DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds per endpoint attempt
DEFAULT_DEADLINE = 60.0         # seconds across all endpoint attempts

API_KEY_VARIABLES = ('GEMINI_API_KEY', 'VITE_GEMINI_API_KEY')


@dataclass
class GeminiConfig:
    """Everything the Gemini client needs to make a request."""
    api_key: str
    endpoints: List[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    temperature: float = DEFAULT_TEMPERATURE
    top_k: int = DEFAULT_TOP_K
    top_p: float = DEFAULT_TOP_P
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    deadline: float = DEFAULT_DEADLINE

    def __post_init__(self):
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError(
                "Gemini API key is not configured. Please set GEMINI_API_KEY in your environment variables."
            )
        if not self.endpoints:
            raise ConfigurationError("At least one Gemini endpoint must be configured")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'GeminiConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ after loading .env.

        Returns:
            Populated GeminiConfig.

        Raises:
            ConfigurationError: If the API key is missing or a numeric setting is invalid.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        api_key = next((environ.get(name) for name in API_KEY_VARIABLES if environ.get(name)), None)
        if not api_key:
            logger.error("Gemini API key missing from environment")
            raise ConfigurationError(
                "Gemini API key is not configured. Please set GEMINI_API_KEY in your environment variables."
            )

        endpoints = DEFAULT_ENDPOINTS
        raw_endpoints = environ.get('GEMINI_ENDPOINTS', '')
        if raw_endpoints.strip():
            endpoints = [e.strip() for e in raw_endpoints.split(',') if e.strip()]

        config = cls(
            api_key=api_key,
            endpoints=list(endpoints),
            request_timeout=_read_float(environ, 'GEMINI_REQUEST_TIMEOUT', DEFAULT_REQUEST_TIMEOUT),
            deadline=_read_float(environ, 'GEMINI_DEADLINE', DEFAULT_DEADLINE),
        )
        logger.info(
            f"Gemini configuration loaded: {len(config.endpoints)} endpoints, "
            f"timeout={config.request_timeout}s, deadline={config.deadline}s"
        )
        return config


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value
