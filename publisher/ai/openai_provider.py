"""
OpenAI Provider - Chat completions via the openai SDK
"""

from openai import AsyncOpenAI

from config import OPENAI_MODEL
from publisher.ai.base_provider import BaseAIProvider
from publisher.ai.types import GenerationRequest, OPENAI


SYSTEM_PROMPT = (
    "You are an expert content writer for an e-commerce blog. "
    "Follow the requested output format exactly."
)


class OpenAIProvider(BaseAIProvider):
    name = OPENAI
    display_name = "OpenAI"
    default_model = OPENAI_MODEL

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = AsyncOpenAI(api_key=self.api_key, max_retries=0)

    async def _call_api(self, request: GenerationRequest, options: dict) -> tuple[str, int, dict]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": request.prompt},
            ],
            max_tokens=options.get("max_tokens"),
            temperature=options.get("temperature"),
            top_p=options.get("top_p"),
        )

        choice = response.choices[0]
        content = choice.message.content or ""
        usage = response.usage
        tokens_used = usage.total_tokens if usage else self.estimate_tokens(request.prompt + content)

        metadata = {
            "id": response.id,
            "finish_reason": choice.finish_reason,
        }
        if usage:
            metadata["prompt_tokens"] = usage.prompt_tokens
            metadata["completion_tokens"] = usage.completion_tokens

        if len(content) < 500:
            print(f"Warning: short OpenAI response ({len(content)} chars): {content[:100]}")

        return content, tokens_used, metadata

    async def _ping(self) -> None:
        await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": "Hi"}],
            max_tokens=1,
        )
