"""
AI Types - Shared provider names, error codes, and request/response records
"""

from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# PROVIDERS
# =============================================================================

ANTHROPIC = "anthropic"
OPENAI = "openai"
GOOGLE = "google"

AI_PROVIDERS = (ANTHROPIC, OPENAI, GOOGLE)

# USD per 1k tokens
PROVIDER_COSTS = {
    ANTHROPIC: 0.015,
    OPENAI: 0.03,
    GOOGLE: 0.0005,
}


# =============================================================================
# ERRORS
# =============================================================================

API_KEY_INVALID = "API_KEY_INVALID"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
INSUFFICIENT_QUOTA = "INSUFFICIENT_QUOTA"
MODEL_OVERLOADED = "MODEL_OVERLOADED"
NETWORK_ERROR = "NETWORK_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
TIMEOUT = "TIMEOUT"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

RETRYABLE_ERROR_CODES = frozenset({
    RATE_LIMIT_EXCEEDED,
    MODEL_OVERLOADED,
    NETWORK_ERROR,
    TIMEOUT,
})


class AIProviderError(Exception):
    """Error raised by a provider or the service manager."""

    def __init__(self, code: str, message: str, provider: str, retryable: Optional[bool] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.provider = provider
        self.retryable = code in RETRYABLE_ERROR_CODES if retryable is None else retryable

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "provider": self.provider,
            "retryable": self.retryable,
        }


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class GenerationRequest:
    prompt: str
    options: dict = field(default_factory=dict)
    template: Optional[str] = None
    tone: Optional[str] = None
    length: Optional[str] = None
    keywords: list = field(default_factory=list)


@dataclass
class ProviderResponse:
    content: str
    provider: str
    model: str
    tokens_used: int
    cost: float
    response_time_ms: int
    metadata: dict = field(default_factory=dict)


@dataclass
class GenerationAttempt:
    provider: str
    success: bool
    response_time_ms: int = 0
    error: Optional[str] = None
    tokens_used: int = 0
    cost: float = 0.0
    content: Optional[str] = None
    model: Optional[str] = None


@dataclass
class GenerationResult:
    success: bool
    attempts: list = field(default_factory=list)
    total_cost: float = 0.0
    total_tokens: int = 0
    content: Optional[str] = None
    final_provider: Optional[str] = None
    model: Optional[str] = None
    error: Optional[AIProviderError] = None


@dataclass
class CostEstimate:
    estimated_tokens: int
    estimated_cost: float
    provider: str
    model: str


@dataclass
class ProviderHealth:
    is_healthy: bool
    response_time_ms: int
    last_checked: str
    error_rate: float
    successful_requests: int
    failed_requests: int


# =============================================================================
# TEMPLATE ROUTING
# =============================================================================

TEMPLATE_PROVIDER_MAP = {
    "Product Showcase": {
        "primary": OPENAI,
        "fallback": [ANTHROPIC, GOOGLE],
        "reason": "Persuasive, sales-focused copy",
    },
    "How-to Guide": {
        "primary": ANTHROPIC,
        "fallback": [OPENAI, GOOGLE],
        "reason": "Structured step-by-step instructions",
    },
    "Artist Showcase": {
        "primary": OPENAI,
        "fallback": [ANTHROPIC, GOOGLE],
        "reason": "Creative and cultural content",
    },
    "Buying Guide": {
        "primary": ANTHROPIC,
        "fallback": [OPENAI, GOOGLE],
        "reason": "Analytical comparison and evaluation",
    },
    "Industry Trends": {
        "primary": GOOGLE,
        "fallback": [ANTHROPIC, OPENAI],
        "reason": "Recent information and data",
    },
    "Comparison Article": {
        "primary": ANTHROPIC,
        "fallback": [OPENAI, GOOGLE],
        "reason": "Structured analysis",
    },
    "Review Article": {
        "primary": OPENAI,
        "fallback": [ANTHROPIC, GOOGLE],
        "reason": "Detailed evaluation with nuanced opinions",
    },
    "Seasonal Content": {
        "primary": GOOGLE,
        "fallback": [OPENAI, ANTHROPIC],
        "reason": "Timely content",
    },
    "Problem-Solution": {
        "primary": ANTHROPIC,
        "fallback": [OPENAI, GOOGLE],
        "reason": "Problem analysis and solution presentation",
    },
}
