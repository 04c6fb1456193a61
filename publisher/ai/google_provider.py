"""
Google Provider - Gemini generateContent over REST
"""

import aiohttp

from config import GOOGLE_MODEL
from publisher.ai.base_provider import BaseAIProvider
from publisher.ai.types import GenerationRequest, GOOGLE, VALIDATION_ERROR


GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


class GoogleProvider(BaseAIProvider):
    name = GOOGLE
    display_name = "Google"
    default_model = GOOGLE_MODEL

    def get_default_options(self) -> dict:
        return {"temperature": 0.7, "max_tokens": 2048, "top_p": 0.95}

    def _url(self) -> str:
        return f"{GEMINI_API_URL}/models/{self.model}:generateContent"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    async def _post(self, payload: dict) -> dict:
        async with aiohttp.ClientSession() as session:
            async with session.post(self._url(), headers=self._headers(), json=payload) as resp:
                if resp.status != 200:
                    try:
                        data = await resp.json()
                        message = (data.get("error") or {}).get("message") or f"HTTP {resp.status}"
                    except (aiohttp.ContentTypeError, ValueError):
                        message = f"HTTP {resp.status}"
                    raise self.map_status_error(resp.status, message)
                return await resp.json()

    async def _call_api(self, request: GenerationRequest, options: dict) -> tuple[str, int, dict]:
        payload = {
            "contents": [{
                "parts": [{"text": request.prompt}]
            }],
            "generationConfig": {
                "temperature": options.get("temperature"),
                "topP": options.get("top_p"),
                "maxOutputTokens": options.get("max_tokens") or 2048,
                "candidateCount": 1,
            }
        }

        result = await self._post(payload)

        candidates = result.get("candidates") or []
        if not candidates:
            block_reason = (result.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise self.create_error(VALIDATION_ERROR, f"Content blocked by Google safety filters ({block_reason})")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)

        usage = result.get("usageMetadata") or {}
        tokens_used = usage.get("totalTokenCount") or self.estimate_tokens(request.prompt + content)

        metadata = {
            "finish_reason": candidate.get("finishReason"),
            "prompt_token_count": usage.get("promptTokenCount"),
            "candidates_token_count": usage.get("candidatesTokenCount"),
            "safety_ratings": candidate.get("safetyRatings"),
        }
        return content, tokens_used, metadata

    async def _ping(self) -> None:
        await self._post({
            "contents": [{"parts": [{"text": "Hi"}]}],
            "generationConfig": {"maxOutputTokens": 1},
        })
