"""
AI Generation

Multi-provider content generation (Anthropic, OpenAI, Google) with
template-based routing, fallback and cost tracking.
"""

from typing import Optional

from config import (
    ANTHROPIC_API_KEY,
    OPENAI_API_KEY,
    GOOGLE_AI_API_KEY,
    ANTHROPIC_MODEL,
    OPENAI_MODEL,
    GOOGLE_MODEL,
    AI_DEFAULT_PROVIDER,
    AI_FALLBACK_ENABLED,
    AI_RATE_LIMIT_PER_MINUTE,
    AI_RATE_LIMIT_PER_HOUR,
    AI_MAX_RETRIES,
    AI_TIMEOUT_MS,
)
from .types import (
    AIProviderError,
    GenerationRequest,
    GenerationResult,
    GenerationAttempt,
    ProviderResponse,
    CostEstimate,
    ProviderHealth,
    TEMPLATE_PROVIDER_MAP,
    AI_PROVIDERS,
)
from .service_manager import AIServiceManager


_ai_service: Optional[AIServiceManager] = None


def get_ai_service() -> AIServiceManager:
    """Shared AIServiceManager built from config on first use."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIServiceManager(
            anthropic_key=ANTHROPIC_API_KEY,
            openai_key=OPENAI_API_KEY,
            google_key=GOOGLE_AI_API_KEY,
            models={"anthropic": ANTHROPIC_MODEL, "openai": OPENAI_MODEL, "google": GOOGLE_MODEL},
            default_provider=AI_DEFAULT_PROVIDER,
            fallback_enabled=AI_FALLBACK_ENABLED,
            rate_limit_per_minute=AI_RATE_LIMIT_PER_MINUTE,
            rate_limit_per_hour=AI_RATE_LIMIT_PER_HOUR,
            max_retries=AI_MAX_RETRIES,
            timeout_ms=AI_TIMEOUT_MS,
        )
    return _ai_service


def reset_ai_service() -> None:
    global _ai_service
    _ai_service = None


__all__ = [
    "AIServiceManager",
    "AIProviderError",
    "GenerationRequest",
    "GenerationResult",
    "GenerationAttempt",
    "ProviderResponse",
    "CostEstimate",
    "ProviderHealth",
    "TEMPLATE_PROVIDER_MAP",
    "AI_PROVIDERS",
    "get_ai_service",
    "reset_ai_service",
]
