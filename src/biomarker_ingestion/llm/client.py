# ============================================================================
# src/biomarker_ingestion/llm/client.py
# ============================================================================
"""
Model Invocation Client

Calls Azure OpenAI chat completions to turn document text into an
ExtractionEnvelope. This is the only network-bound, retry-bearing stage of
the pipeline; retries are delegated to RetryPolicy.

Config options (each falls back to llm_settings):
    azure_endpoint, azure_api_key, azure_deployment, azure_api_version,
    max_tokens, temperature, request_timeout, repair_json,
    max_recommendations
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp
from json_repair import repair_json

from .envelope import ExtractionEnvelope, normalize_envelope
from .prompts import build_prompts
from .retry import RetryPolicy
from ..core.processing_log import PipelineStep, ProcessingLog
from ..schema import SchemaRegistry, get_registry
from ..utils.exceptions import (
    ConfigurationError,
    FailureReason,
    ModelInvocationFailure,
    ResponseParseFailure,
)

STEP = PipelineStep.AI_PROCESSING


@dataclass
class ModelResponse:
    """Raw HTTP response from the model service."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""


class ModelInvocationClient:

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        from ..config import llm_settings

        self.config = config or {}
        self.registry = registry or get_registry()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(llm_settings)
        self.logger = logging.getLogger(self.__class__.__name__)

        self.endpoint = self.config.get('azure_endpoint', llm_settings.AZURE_OPENAI_ENDPOINT).rstrip('/')
        self.api_key = self.config.get('azure_api_key', llm_settings.AZURE_OPENAI_API_KEY)
        self.deployment = self.config.get('azure_deployment', llm_settings.AZURE_OPENAI_CHAT_MODEL_DEPLOYMENT)
        self.api_version = self.config.get('azure_api_version', llm_settings.AZURE_OPENAI_API_VERSION)

        self.max_tokens = self.config.get('max_tokens', llm_settings.LLM_MAX_TOKENS)
        self.temperature = self.config.get('temperature', llm_settings.LLM_TEMPERATURE)
        self.request_timeout = self.config.get('request_timeout', llm_settings.LLM_REQUEST_TIMEOUT)
        self.repair_json = self.config.get('repair_json', llm_settings.LLM_REPAIR_JSON)
        self.max_recommendations = self.config.get('max_recommendations', llm_settings.LLM_MAX_RECOMMENDATIONS)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def url(self) -> str:
        return (
            f"{self.endpoint}/openai/deployments/{self.deployment}"
            f"/chat/completions?api-version={self.api_version}"
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        if self._session is None or self._session.closed or self._session_loop is not current_loop:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def build_request(self, document_text: str, file_name: Optional[str] = None) -> Dict[str, Any]:
        system_prompt, user_prompt = build_prompts(self.registry.describe(), document_text, file_name)
        return {
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

    async def _post(self, payload: Dict[str, Any]) -> ModelResponse:
        """One HTTP attempt. Network failures propagate for the retry policy."""
        session = await self._get_session()

        async def _do_request():
            async with session.post(
                self.url,
                json=payload,
                headers={"api-key": self.api_key, "Content-Type": "application/json"},
            ) as response:
                return ModelResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=await response.text(),
                )

        return await asyncio.wait_for(_do_request(), timeout=self.request_timeout)

    async def invoke(
        self,
        document_text: str,
        log: Optional[ProcessingLog] = None,
        file_name: Optional[str] = None
    ) -> ExtractionEnvelope:
        """
        Extract an envelope from document text.

        Raises:
            ConfigurationError: endpoint, key or deployment missing
            ModelInvocationFailure: rate limited / network / upstream error
            ResponseParseFailure: response is not a usable JSON envelope
        """
        log = log if log is not None else ProcessingLog()

        if not (self.endpoint and self.api_key and self.deployment):
            log.error(STEP, "Azure OpenAI configuration missing")
            raise ConfigurationError(
                "Azure OpenAI configuration missing "
                "(AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_API_KEY, AZURE_OPENAI_CHAT_MODEL_DEPLOYMENT)"
            )

        payload = self.build_request(document_text, file_name)
        log.processing(
            STEP,
            f"Sending {len(document_text)} characters to {self.deployment}...",
            {"deployment": self.deployment, "max_tokens": self.max_tokens, "temperature": self.temperature},
        )

        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            return await self._post(payload)

        def on_retry(attempt_number: int, delay: float, reason: FailureReason, detail: str):
            log.warning(
                STEP,
                f"{detail}; retrying in {delay:.1f}s (attempt {attempt_number} of {self.retry_policy.max_attempts})",
                {"reason": reason.value, "delay": delay, "attempt": attempt_number},
            )

        try:
            response = await self.retry_policy.run(attempt, on_retry=on_retry)
        except ModelInvocationFailure as e:
            log.error(STEP, f"AI processing failed: {e}", {"reason": e.reason.value, "attempts": e.attempts})
            raise

        if not 200 <= response.status < 300:
            message = f"Model service error ({response.status}): {response.body[:500]}"
            log.error(STEP, message, {"reason": FailureReason.UPSTREAM.value, "status": response.status})
            raise ModelInvocationFailure(
                message, reason=FailureReason.UPSTREAM, status=response.status, attempts=attempts
            )

        try:
            content = self._extract_content(response.body)
            parsed = self._parse_json(content)
            envelope, warnings = normalize_envelope(parsed, self.max_recommendations)
        except ResponseParseFailure as e:
            log.error(STEP, f"Failed to parse AI response: {e}")
            raise

        for warning in warnings:
            log.warning(STEP, warning)

        log.success(
            STEP,
            f"Extracted {envelope.candidate_count} candidate records "
            f"in {len(envelope.extracted_field_groups)} groups "
            f"({envelope.document_type}, confidence {envelope.confidence:.2f})",
            {
                "document_type": envelope.document_type,
                "confidence": envelope.confidence,
                "groups": list(envelope.extracted_field_groups),
                "attempts": attempts,
            },
        )
        return envelope

    def _extract_content(self, body: str) -> str:
        """Message content from a chat-completions response body."""
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ResponseParseFailure(f"Response body is not JSON: {e}", raw_content=body) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResponseParseFailure("No message content in model response", raw_content=body) from e

        if not isinstance(content, str) or not content.strip():
            raise ResponseParseFailure("Empty message content in model response", raw_content=body)
        return content

    def _parse_json(self, content: str) -> Any:
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            if not self.repair_json:
                raise ResponseParseFailure(f"Model output is not valid JSON: {e}", raw_content=content) from e

        repaired = repair_json(content, return_objects=True)
        if not isinstance(repaired, dict) or not repaired:
            raise ResponseParseFailure("Model output is not valid JSON and could not be repaired", raw_content=content)
        self.logger.debug("json_repair fixed model output")
        return repaired
