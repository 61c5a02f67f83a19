"""
Base AI Provider - Abstract interface for the schedule extractor's LLM backend.

Design Pattern: Strategy Pattern
================================
The extraction service only talks to AIProvider. The Gemini implementation
can be swapped for a fake in tests (or another vendor later) without
touching the service.

Example:
    provider = GeminiProvider(api_key=..., model="gemini-2.5-flash")
    response = await provider.generate_json(prompt, system_prompt=SYSTEM)
    if response.success:
        data = json.loads(response.content)
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from enum import Enum
import logging

logger = logging.getLogger("linecal.ai")


class ProviderType(str, Enum):
    """Enum of supported AI providers."""
    GEMINI = "gemini"


@dataclass
class TokenUsage:
    """Token usage statistics for an AI request."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass
class ImageInput:
    """Binary image attached to a request (e.g. a photographed flyer)."""
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class AIResponse:
    """
    Standardized response from any AI provider.

    Attributes:
        content: The generated text (a JSON string for generate_json)
        provider: Which provider generated this response
        model: The specific model used
        usage: Token usage statistics
        latency_ms: How long the request took
        success: Whether the request succeeded
        error: Error message if failed
        created_at: Timestamp of the response
    """
    content: str
    provider: ProviderType
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    Responsibilities:
    - Produce structured (JSON) output from a prompt and optional image
    - Capture provider errors in AIResponse instead of raising
    - Track token usage and latency
    """

    provider_type: ProviderType

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        image: Optional[ImageInput] = None,
        **kwargs
    ) -> AIResponse:
        """
        Generate a JSON response from the AI model.

        Args:
            prompt: The instruction text (including the user's message)
            system_prompt: System instructions with the output schema
            image: Optional image the model should read
            **kwargs: Provider-specific options

        Returns:
            AIResponse with JSON content string

        Raises:
            This method should NOT raise exceptions.
            Errors are captured in AIResponse.error
        """
        pass

    def _measure_latency(self, start_time: float) -> float:
        """Calculate latency in milliseconds."""
        return (time.time() - start_time) * 1000

    def _create_error_response(
        self,
        error: str,
        model: str,
        latency_ms: float = 0.0
    ) -> AIResponse:
        logger.error(f"AI Provider Error [{self.provider_type.value}]: {error}")
        return AIResponse(
            content="",
            provider=self.provider_type,
            model=model,
            latency_ms=latency_ms,
            success=False,
            error=error,
        )
