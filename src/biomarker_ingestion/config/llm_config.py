# ============================================================================
# src/biomarker_ingestion/config/llm_config.py
# ============================================================================
"""
Language-Model Configuration (Azure OpenAI chat completions)
- Endpoint and credentials
- Generation parameters
- Retry / backoff policy
- Response handling
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class LLMSettings(BaseSettings):
    AZURE_OPENAI_ENDPOINT: str = Field(
        default="",
        description="Azure OpenAI resource endpoint, e.g. https://name.openai.azure.com"
    )
    AZURE_OPENAI_API_KEY: str = Field(
        default="",
        description="Azure OpenAI API key"
    )
    AZURE_OPENAI_CHAT_MODEL_DEPLOYMENT: str = Field(
        default="gpt-4o",
        description="Chat model deployment name"
    )
    AZURE_OPENAI_API_VERSION: str = Field(
        default="2024-02-01",
        description="Azure OpenAI REST API version"
    )
    LLM_MAX_TOKENS: int = Field(
        default=4000,
        description="Maximum tokens for the extraction response"
    )
    LLM_TEMPERATURE: float = Field(
        default=0.1,
        description="Sampling temperature (0.1 = very deterministic)"
    )
    LLM_REQUEST_TIMEOUT: float = Field(
        default=120.0,
        description="Per-request timeout (seconds)"
    )
    LLM_MAX_RETRIES: int = Field(
        default=3,
        description="Retries after the first attempt for 429 and network failures"
    )
    LLM_RATE_LIMIT_BASE_DELAY: float = Field(
        default=2.0,
        description="First backoff (seconds) on HTTP 429 without Retry-After; doubles per retry"
    )
    LLM_NETWORK_BASE_DELAY: float = Field(
        default=1.0,
        description="Linear backoff step (seconds) for transient network failures"
    )
    LLM_MAX_TOTAL_BACKOFF: float = Field(
        default=60.0,
        description="Ceiling on cumulative backoff across all retries of one invocation (seconds)"
    )
    LLM_REPAIR_JSON: bool = Field(
        default=False,
        description="Attempt json_repair on malformed model output instead of failing"
    )
    LLM_MAX_RECOMMENDATIONS: int = Field(
        default=10,
        description="Maximum recommendations kept from the envelope"
    )

llm_settings = LLMSettings()
