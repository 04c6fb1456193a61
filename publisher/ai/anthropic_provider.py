"""
Anthropic Provider - Claude via the anthropic SDK
"""

from anthropic import AsyncAnthropic

from config import ANTHROPIC_MODEL
from publisher.ai.base_provider import BaseAIProvider
from publisher.ai.types import GenerationRequest, ANTHROPIC


class AnthropicProvider(BaseAIProvider):
    name = ANTHROPIC
    display_name = "Anthropic"
    default_model = ANTHROPIC_MODEL

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Retries are handled by retry_with_backoff
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0)

    def get_default_options(self) -> dict:
        return {"temperature": 0.7, "max_tokens": 4000, "top_p": 1.0}

    async def _call_api(self, request: GenerationRequest, options: dict) -> tuple[str, int, dict]:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=options.get("max_tokens") or 4000,
            temperature=options.get("temperature"),
            messages=[{"role": "user", "content": request.prompt}],
        )

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        tokens_used = response.usage.input_tokens + response.usage.output_tokens
        metadata = {
            "id": response.id,
            "stop_reason": response.stop_reason,
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        return content, tokens_used, metadata

    async def _ping(self) -> None:
        await self.client.messages.create(
            model=self.model,
            max_tokens=1,
            messages=[{"role": "user", "content": "Hi"}],
        )
