"""
Gemini Provider - Google's GenAI SDK.

Uses the async surface of the SDK (client.aio) so a slow call can be
cancelled by the caller's asyncio timeout.
"""

import time
import logging
from typing import Optional

from google import genai
from google.genai import types

from app.ai.providers.base import (
    AIProvider,
    AIResponse,
    ImageInput,
    ProviderType,
    TokenUsage,
)

logger = logging.getLogger("linecal.ai.gemini")


class GeminiProvider(AIProvider):
    provider_type = ProviderType.GEMINI

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash"):
        self.model = model
        self.api_key = api_key

        if self.api_key:
            self._client = genai.Client(api_key=self.api_key)
            logger.info(f"Gemini provider initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning("Gemini API key not configured")

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        image: Optional[ImageInput] = None,
        temperature: float = 0.2,
        max_tokens: int = 2048,
        **kwargs
    ) -> AIResponse:
        start_time = time.time()
        if not self._client:
            return self._error("API key missing", start_time)

        try:
            config = types.GenerateContentConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
                response_mime_type="application/json",
                system_instruction=system_prompt,
            )

            contents = [f"{prompt}\n\nIMPORTANT: Respond ONLY with valid JSON."]
            if image is not None:
                contents.insert(0, types.Part.from_bytes(data=image.data, mime_type=image.mime_type))

            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )

            content = (response.text or "").strip()
            if content.startswith("```json"):
                content = content[7:-3].strip()

            return AIResponse(
                content=content,
                provider=self.provider_type,
                model=self.model,
                usage=self._extract_usage(response),
                latency_ms=self._measure_latency(start_time),
                success=True,
            )

        except Exception as e:
            return self._error(str(e), start_time)

    def _extract_usage(self, response):
        prompt_t = response.usage_metadata.prompt_token_count if response.usage_metadata else 0
        comp_t = response.usage_metadata.candidates_token_count if response.usage_metadata else 0
        return TokenUsage(prompt_tokens=prompt_t or 0, completion_tokens=comp_t or 0)

    def _error(self, msg, start_time):
        return self._create_error_response(
            error=msg, model=self.model, latency_ms=self._measure_latency(start_time)
        )
