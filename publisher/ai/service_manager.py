"""
AI Service Manager - Provider selection, fallback and service-wide rate limits
"""

import time
from typing import Optional

from publisher.ai.types import (
    AIProviderError,
    CostEstimate,
    GenerationAttempt,
    GenerationRequest,
    GenerationResult,
    ProviderHealth,
    AI_PROVIDERS,
    ANTHROPIC,
    OPENAI,
    GOOGLE,
    PROVIDER_COSTS,
    RATE_LIMIT_EXCEEDED,
    TEMPLATE_PROVIDER_MAP,
    UNKNOWN_ERROR,
)
from publisher.ai.anthropic_provider import AnthropicProvider
from publisher.ai.openai_provider import OpenAIProvider
from publisher.ai.google_provider import GoogleProvider
from publisher.rate_limit import RateLimiter
from publisher.utils import utc_now_iso


PROVIDER_CLASSES = {
    ANTHROPIC: AnthropicProvider,
    OPENAI: OpenAIProvider,
    GOOGLE: GoogleProvider,
}

DEFAULT_SERVICE_CONFIG = {
    "default_provider": ANTHROPIC,
    "fallback_enabled": True,
    "rate_limit_per_minute": 60,
    "rate_limit_per_hour": 1000,
    "max_retries": 3,
    "timeout_ms": 30000,
}


class AIServiceManager:
    """
    Routes generation requests to the best available provider.

    Providers are only created for keys that are set. A failed primary
    falls through to the template's fallback order and then to any other
    configured provider.
    """

    def __init__(
        self,
        anthropic_key: Optional[str] = None,
        openai_key: Optional[str] = None,
        google_key: Optional[str] = None,
        models: Optional[dict] = None,
        **options,
    ):
        self.config = {**DEFAULT_SERVICE_CONFIG, **{k: v for k, v in options.items() if v is not None}}
        self.providers = {}
        self._minute_limiter = RateLimiter(interval_seconds=60)
        self._hour_limiter = RateLimiter(interval_seconds=3600)

        keys = {ANTHROPIC: anthropic_key, OPENAI: openai_key, GOOGLE: google_key}
        for name in AI_PROVIDERS:
            if not keys[name]:
                continue
            self.providers[name] = PROVIDER_CLASSES[name](
                keys[name],
                model=(models or {}).get(name),
                max_retries=self.config["max_retries"],
                timeout_ms=self.config["timeout_ms"],
                cost_per_1k_tokens=PROVIDER_COSTS[name],
            )

    # =========================================================================
    # GENERATION
    # =========================================================================

    def check_rate_limit(self) -> bool:
        """Count a request against the per-minute and per-hour service limits."""
        if self._minute_limiter.remaining(self.config["rate_limit_per_minute"], "service") <= 0:
            return False
        if self._hour_limiter.remaining(self.config["rate_limit_per_hour"], "service") <= 0:
            return False
        self._minute_limiter.check(self.config["rate_limit_per_minute"], "service")
        self._hour_limiter.check(self.config["rate_limit_per_hour"], "service")
        return True

    async def generate_content(
        self,
        request: GenerationRequest,
        preferred_provider: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate content with provider selection and fallback.

        Raises:
            AIProviderError: RATE_LIMIT_EXCEEDED when the service limit is hit
        """
        if not self.check_rate_limit():
            raise AIProviderError(RATE_LIMIT_EXCEEDED, "Service rate limit exceeded", "service-manager", retryable=False)

        primary = preferred_provider or self.get_recommended_provider(request.template)
        order = [primary]
        if self.config["fallback_enabled"]:
            order.extend(self.get_fallback_providers(primary, request.template))

        attempts = []
        total_cost = 0.0
        total_tokens = 0

        for provider_name in order:
            attempt = await self._attempt_generation(provider_name, request)
            attempts.append(attempt)
            total_cost += attempt.cost
            total_tokens += attempt.tokens_used

            if attempt.success:
                return GenerationResult(
                    success=True,
                    attempts=attempts,
                    total_cost=total_cost,
                    total_tokens=total_tokens,
                    content=attempt.content,
                    final_provider=provider_name,
                    model=attempt.model,
                )

        last_error = attempts[-1].error if attempts else "No providers available"
        return GenerationResult(
            success=False,
            attempts=attempts,
            total_cost=total_cost,
            total_tokens=total_tokens,
            error=AIProviderError(
                UNKNOWN_ERROR,
                f"All providers failed: {last_error}",
                "service-manager",
                retryable=False,
            ),
        )

    async def _attempt_generation(self, provider_name: str, request: GenerationRequest) -> GenerationAttempt:
        start = time.monotonic()
        provider = self.providers.get(provider_name)

        if not provider:
            return GenerationAttempt(
                provider=provider_name,
                success=False,
                error="Provider not available",
                response_time_ms=int((time.monotonic() - start) * 1000),
            )

        try:
            response = await provider.generate_content(request)
        except AIProviderError as e:
            return GenerationAttempt(
                provider=provider_name,
                success=False,
                error=e.message,
                response_time_ms=int((time.monotonic() - start) * 1000),
            )

        return GenerationAttempt(
            provider=provider_name,
            success=True,
            response_time_ms=response.response_time_ms,
            tokens_used=response.tokens_used,
            cost=response.cost,
            content=response.content,
            model=response.model,
        )

    # =========================================================================
    # PROVIDER SELECTION
    # =========================================================================

    def get_recommended_provider(self, template: Optional[str] = None) -> str:
        mapping = TEMPLATE_PROVIDER_MAP.get(template or "")
        if not mapping:
            return self.config["default_provider"]

        for candidate in [mapping["primary"], *mapping["fallback"]]:
            if candidate in self.providers:
                return candidate

        return self.config["default_provider"]

    def get_fallback_providers(self, primary: str, template: Optional[str] = None) -> list:
        fallbacks = []
        mapping = TEMPLATE_PROVIDER_MAP.get(template or "")
        if mapping:
            for candidate in mapping["fallback"]:
                if candidate != primary and candidate in self.providers:
                    fallbacks.append(candidate)

        for candidate in self.providers:
            if candidate != primary and candidate not in fallbacks:
                fallbacks.append(candidate)

        return fallbacks

    def get_available_providers(self) -> list:
        return list(self.providers)

    # =========================================================================
    # COSTS AND HEALTH
    # =========================================================================

    async def get_cost_estimates(self, prompt: str) -> list[CostEstimate]:
        """Estimates from every configured provider, cheapest first."""
        estimates = []
        for provider in self.providers.values():
            estimates.append(await provider.estimate_cost(prompt))
        return sorted(estimates, key=lambda e: e.estimated_cost)

    async def get_providers_health(self) -> dict:
        health = {}
        for name, provider in self.providers.items():
            try:
                health[name] = await provider.check_health()
            except Exception as e:
                print(f"Warning: health check for {name} failed: {e}")
                health[name] = ProviderHealth(
                    is_healthy=False,
                    response_time_ms=0,
                    last_checked=utc_now_iso(),
                    error_rate=1.0,
                    successful_requests=0,
                    failed_requests=1,
                )
        return health

    async def validate_all_providers(self) -> dict:
        results = {}
        for name, provider in self.providers.items():
            try:
                results[name] = await provider.validate_config()
            except AIProviderError:
                results[name] = False
        return results
