"""Centralized AI model factory for all LLM operations.

This module provides a single source of truth for creating AI models,
supporting both Gemini and Azure OpenAI providers based on configuration.

Usage:
    from services.ai.model_factory import (
        get_structure_model,
        get_chat_model,
        get_multimodal_model,
        get_genai_client,
    )

    model = get_structure_model()  # Returns pydantic-ai Model
    client = get_genai_client()  # Raw google-genai client (search, images)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any, cast

from httpx import AsyncClient, HTTPStatusError
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import get_settings


if TYPE_CHECKING:
    from google.genai import Client

# OpenAI reasoning models that support reasoning_effort parameter
REASONING_MODELS = {
    "gpt-5-mini",
    "gpt-5-nano",
    "o1-mini",
    "o1-preview",
    "o1",
    "o3-mini",
}

RETRYABLE_STATUS_CODES = (429, 502, 503, 504)

logger = logging.getLogger(__name__)


def _normalize_azure_endpoint(endpoint: str) -> str:
    """Normalize Azure OpenAI endpoint.

    Trailing slashes can lead to `//openai/...` URLs, which Azure may treat as a
    different path and return 404.
    """
    return endpoint.rstrip("/")


def _is_azure_provider() -> bool:
    """Check if Azure OpenAI should be used based on configuration."""
    settings = get_settings()
    return settings.LLM_PROVIDER == "azure_openai"


def _validate_azure_credentials() -> bool:
    """Validate that Azure OpenAI credentials are properly configured."""
    settings = get_settings()
    if (
        not settings.AZURE_OPENAI_ENDPOINT
        or not settings.AZURE_OPENAI_API_KEY
        or not settings.AZURE_OPENAI_API_VERSION
    ):
        logger.warning(
            "LLM_PROVIDER=azure_openai but credentials missing, falling back to Gemini"
        )
        return False
    return True


def _validate_gemini_credentials() -> bool:
    """Validate that Gemini API key is configured."""
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        logger.warning("Gemini API key not configured")
        return False
    return True


def create_resilient_http_client(timeout: float = 120) -> AsyncClient:
    """Create an HTTP client with exponential backoff retries for transient errors.

    Handles API overload (503), rate limits (429), and gateway errors.
    Respects Retry-After headers, falling back to exponential backoff.
    """

    def should_retry_status(response: Any) -> None:
        """Raise exceptions for retryable HTTP status codes."""
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.raise_for_status()

    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type(HTTPStatusError),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(multiplier=2, min=1, max=30),
                max_wait=60,
            ),
            stop=stop_after_attempt(5),
            reraise=True,
        ),
        validate_response=should_retry_status,
    )
    return AsyncClient(transport=transport, timeout=timeout)


def _create_azure_model(
    model_name: str,
    http_client: AsyncClient | None = None,
) -> Model:
    """Create an Azure OpenAI model with the specified deployment name.

    For reasoning models (o1, o3, gpt-5 series), automatically applies
    low reasoning effort for faster, more cost-effective responses.
    """
    settings = get_settings()

    from openai import AsyncAzureOpenAI

    azure_endpoint = _normalize_azure_endpoint(settings.AZURE_OPENAI_ENDPOINT or "")
    azure_client = AsyncAzureOpenAI(
        azure_endpoint=azure_endpoint,
        api_key=settings.AZURE_OPENAI_API_KEY,
        api_version=settings.AZURE_OPENAI_API_VERSION,
        http_client=http_client,
    )

    provider = OpenAIProvider(openai_client=azure_client)

    if model_name in REASONING_MODELS:
        logger.info(f"Applying low reasoning effort for reasoning model: {model_name}")
        return OpenAIChatModel(
            model_name,
            provider=provider,
            settings={"openai_reasoning_effort": "low"},
        )

    return OpenAIChatModel(model_name, provider=provider)


def _create_gemini_model(
    model_name: str,
    http_client: AsyncClient | None = None,
) -> Model:
    """Create a Google Gemini model with the specified model name."""
    settings = get_settings()
    provider = GoogleProvider(
        api_key=settings.GEMINI_API_KEY,
        http_client=http_client,
    )
    return cast(Model, GoogleModel(model_name, provider=provider))


def _create_model(model_name: str, purpose: str, http_client: AsyncClient | None) -> Model:
    if _is_azure_provider() and _validate_azure_credentials():
        logger.info(f"Using Azure OpenAI {purpose} model: {model_name}")
        return _create_azure_model(model_name, http_client)

    # Fallback to Gemini - validate credentials
    if not _validate_gemini_credentials():
        raise ValueError(
            "No valid LLM provider configured. Either set Azure OpenAI "
            "credentials (AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) "
            "or Gemini credentials (GEMINI_API_KEY)."
        )

    logger.info(f"Using Gemini {purpose} model: {model_name}")
    return _create_gemini_model(model_name, http_client)


def get_structure_model(http_client: AsyncClient | None = None) -> Model:
    """Get the model used to segment paper text into structure.

    Args:
        http_client: Optional HTTP client for custom retry logic.
    """
    return _create_model(get_settings().STRUCTURE_MODEL, "structure", http_client)


def get_chat_model(http_client: AsyncClient | None = None) -> Model:
    """Get the chat model used by the research assistant."""
    return _create_model(get_settings().CHAT_MODEL, "chat", http_client)


def get_multimodal_model(http_client: AsyncClient | None = None) -> Model:
    """Get the multimodal model for image analysis."""
    return _create_model(get_settings().MULTIMODAL_MODEL, "multimodal", http_client)


@lru_cache
def get_genai_client() -> Client:
    """Get the cached google-genai client.

    Search grounding and image generation have no provider-neutral
    equivalent, so they always go to Gemini directly.
    """
    if not _validate_gemini_credentials():
        raise ValueError("GEMINI_API_KEY is required for search and image features")

    from google import genai

    return genai.Client(api_key=get_settings().GEMINI_API_KEY)


def clear_genai_client_cache() -> None:
    """Clear the cached google-genai client.

    Useful for testing or when configuration changes at runtime.
    """
    get_genai_client.cache_clear()
