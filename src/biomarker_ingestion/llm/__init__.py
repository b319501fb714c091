# ============================================================================
# src/biomarker_ingestion/llm/__init__.py
# ============================================================================
"""
Language-model invocation: prompt, HTTP client, retry policy and envelope.
"""

from .retry import RetryPolicy, parse_retry_after, NETWORK_ERRORS
from .envelope import ExtractionEnvelope, normalize_envelope
from .prompts import build_prompts
from .client import ModelInvocationClient, ModelResponse

__all__ = [
    'RetryPolicy',
    'parse_retry_after',
    'NETWORK_ERRORS',
    'ExtractionEnvelope',
    'normalize_envelope',
    'build_prompts',
    'ModelInvocationClient',
    'ModelResponse',
]
