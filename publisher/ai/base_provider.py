"""
Base AI Provider - Shared retry, timeout, cost and health logic

Concrete providers implement `_call_api` (one request, returning
content/tokens/metadata) and `_ping` (minimal request used to validate keys).
"""

import asyncio
import math
import time
from typing import Optional

from publisher.ai.types import (
    AIProviderError,
    CostEstimate,
    GenerationRequest,
    ProviderHealth,
    ProviderResponse,
    API_KEY_INVALID,
    INSUFFICIENT_QUOTA,
    MODEL_OVERLOADED,
    NETWORK_ERROR,
    RATE_LIMIT_EXCEEDED,
    TIMEOUT,
    UNKNOWN_ERROR,
    VALIDATION_ERROR,
)
from publisher.utils import utc_now_iso


RETRYABLE_MESSAGE_MARKERS = ("rate limit", "timeout", "network", "temporary", "overloaded")

REFUSAL_PHRASES = (
    "i'm sorry, but i can't fulfill this request",
    "i can't help with that",
    "i'm not able to",
    "i cannot provide",
    "i'm unable to",
    "i can't assist with",
    "this request goes against",
    "i'm not comfortable",
    "i'd prefer not to",
)

VALIDATION_TIMEOUT_MS = 5000


class BaseAIProvider:
    name = "base"
    display_name = "Base"
    default_model = ""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_retries: int = 3,
        timeout_ms: int = 30000,
        cost_per_1k_tokens: float = 0.0,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.max_retries = max(1, max_retries)
        self.timeout_ms = timeout_ms
        self.cost_per_1k_tokens = cost_per_1k_tokens
        self.successful_requests = 0
        self.failed_requests = 0
        self.last_response_time_ms: Optional[int] = None

    # =========================================================================
    # PROVIDER HOOKS
    # =========================================================================

    async def _call_api(self, request: GenerationRequest, options: dict) -> tuple[str, int, dict]:
        """
        Make one API request.

        Returns:
            (content, tokens_used, metadata)
        """
        raise NotImplementedError

    async def _ping(self) -> None:
        """Minimal request that fails when the key is invalid."""
        raise NotImplementedError

    def get_default_options(self) -> dict:
        return {"temperature": 0.7, "max_tokens": 2000, "top_p": 1.0}

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def generate_content(self, request: GenerationRequest) -> ProviderResponse:
        """
        Generate text for a request, retrying transient failures.

        Raises:
            AIProviderError: On API failure or a content-policy refusal
        """
        options = {**self.get_default_options(), **(request.options or {})}
        start = time.monotonic()

        try:
            content, tokens_used, metadata = await self.retry_with_backoff(
                lambda: self.with_timeout(self._call_api(request, options))
            )
        except AIProviderError:
            self.failed_requests += 1
            raise
        except Exception as e:
            self.failed_requests += 1
            raise self.handle_api_error(e) from e

        if self.is_content_policy_refusal(content):
            self.failed_requests += 1
            print(f"Warning: {self.display_name} content policy refusal: {content[:100]}...")
            raise self.create_error(
                VALIDATION_ERROR,
                f"Content blocked by {self.display_name} safety filters",
            )

        self.successful_requests += 1
        response_time_ms = int((time.monotonic() - start) * 1000)
        self.last_response_time_ms = response_time_ms

        return ProviderResponse(
            content=content,
            provider=self.name,
            model=self.model,
            tokens_used=tokens_used,
            cost=self.calculate_cost(tokens_used),
            response_time_ms=response_time_ms,
            metadata=metadata,
        )

    # =========================================================================
    # COST
    # =========================================================================

    def estimate_tokens(self, text: str) -> int:
        """Roughly 4 characters per token."""
        return math.ceil(len(text or "") / 4)

    def calculate_cost(self, tokens_used: int) -> float:
        return (tokens_used / 1000) * self.cost_per_1k_tokens

    async def estimate_cost(self, prompt: str, options: Optional[dict] = None) -> CostEstimate:
        max_tokens = (options or {}).get("max_tokens") or self.get_default_options()["max_tokens"]
        tokens = self.estimate_tokens(prompt) + max_tokens
        return CostEstimate(
            estimated_tokens=tokens,
            estimated_cost=self.calculate_cost(tokens),
            provider=self.name,
            model=self.model,
        )

    # =========================================================================
    # VALIDATION AND HEALTH
    # =========================================================================

    async def validate_config(self) -> bool:
        """
        Check the key and model are set, then make a minimal request.

        Raises:
            AIProviderError: API_KEY_INVALID or VALIDATION_ERROR
        """
        if not self.api_key:
            raise self.create_error(API_KEY_INVALID, "API key is required")
        if not self.model:
            raise self.create_error(VALIDATION_ERROR, "Model is required")

        try:
            await self.with_timeout(self._ping(), VALIDATION_TIMEOUT_MS)
        except Exception as e:
            error = e if isinstance(e, AIProviderError) else self.handle_api_error(e)
            # Rate limited means the key itself is valid
            if error.code == RATE_LIMIT_EXCEEDED:
                return True
            raise self.create_error(API_KEY_INVALID, f"Failed to validate {self.display_name} API key") from e
        return True

    async def check_health(self) -> ProviderHealth:
        start = time.monotonic()
        try:
            await self.validate_config()
            healthy = True
        except AIProviderError:
            self.failed_requests += 1
            healthy = False

        total = self.successful_requests + self.failed_requests
        if healthy:
            error_rate = self.failed_requests / total if total else 0.0
        else:
            error_rate = 1.0

        return ProviderHealth(
            is_healthy=healthy,
            response_time_ms=int((time.monotonic() - start) * 1000),
            last_checked=utc_now_iso(),
            error_rate=error_rate,
            successful_requests=self.successful_requests,
            failed_requests=self.failed_requests,
        )

    # =========================================================================
    # ERRORS, RETRIES, TIMEOUTS
    # =========================================================================

    def create_error(self, code: str, message: str) -> AIProviderError:
        return AIProviderError(code, message, self.name)

    def map_status_error(self, status: int, message: str = "") -> AIProviderError:
        """Map an HTTP status from the provider API to an AIProviderError."""
        label = self.display_name
        if status == 401:
            return self.create_error(API_KEY_INVALID, f"Invalid {label} API key")
        if status == 429:
            if "quota" in message.lower():
                return self.create_error(INSUFFICIENT_QUOTA, f"{label} quota exceeded")
            return self.create_error(RATE_LIMIT_EXCEEDED, f"{label} rate limit exceeded")
        if status in (502, 503, 529):
            return self.create_error(MODEL_OVERLOADED, f"{label} model is overloaded")
        if status == 400:
            if "api key" in message.lower():
                return self.create_error(API_KEY_INVALID, f"Invalid {label} API key")
            return self.create_error(VALIDATION_ERROR, f"{label} validation error: {message}")
        return self.create_error(UNKNOWN_ERROR, f"{label} API error: {message or f'HTTP {status}'}")

    def handle_api_error(self, error: Exception) -> AIProviderError:
        """Convert an SDK or transport exception into an AIProviderError."""
        if isinstance(error, AIProviderError):
            return error

        status = getattr(error, "status_code", None) or getattr(error, "status", None)
        if isinstance(status, int):
            return self.map_status_error(status, str(error))

        label = self.display_name
        message = str(error).lower()
        if "rate limit" in message or "429" in message:
            return self.create_error(RATE_LIMIT_EXCEEDED, f"{label} rate limit exceeded")
        if "quota" in message or "insufficient" in message:
            return self.create_error(INSUFFICIENT_QUOTA, f"{label} quota exceeded")
        if "unauthorized" in message or "401" in message:
            return self.create_error(API_KEY_INVALID, f"Invalid {label} API key")
        if "timeout" in message or "timed out" in message:
            return self.create_error(TIMEOUT, f"{label} request timeout")
        if "network" in message or "connection" in message:
            return self.create_error(NETWORK_ERROR, f"Network error connecting to {label}")
        if "overloaded" in message or "503" in message:
            return self.create_error(MODEL_OVERLOADED, f"{label} model is overloaded")
        return self.create_error(UNKNOWN_ERROR, f"{label} API error: {error}")

    def should_retry(self, error: Exception) -> bool:
        message = str(error).lower()
        return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)

    async def retry_with_backoff(self, operation, max_retries: Optional[int] = None):
        """
        Await operation() up to max_retries times.

        Waits 1s, 2s, 4s... between attempts. Errors whose message does not
        look transient are raised immediately.
        """
        max_retries = max_retries or self.max_retries
        for attempt in range(1, max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if attempt == max_retries or not self.should_retry(self.handle_api_error(e)):
                    raise
                await asyncio.sleep(2 ** (attempt - 1))

    async def with_timeout(self, coro, timeout_ms: Optional[int] = None):
        timeout_ms = timeout_ms or self.timeout_ms
        try:
            return await asyncio.wait_for(coro, timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise self.create_error(TIMEOUT, f"Request timeout after {timeout_ms}ms")

    def is_content_policy_refusal(self, content: str) -> bool:
        normalized = (content or "").lower().strip()
        return any(phrase in normalized for phrase in REFUSAL_PHRASES)
