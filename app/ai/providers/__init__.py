"""
AI Providers Module - LLM clients behind one interface.

    response = await provider.generate_json(prompt, system_prompt=..., image=...)
"""

from app.ai.providers.base import AIProvider, AIResponse, ImageInput
from app.ai.providers.gemini import GeminiProvider

__all__ = [
    "AIProvider",
    "AIResponse",
    "ImageInput",
    "GeminiProvider",
]
