"""
Prompts Module - prompt templates for schedule extraction.
"""

from app.ai.prompts.extraction_prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    TEXT_EXTRACTION_PROMPT,
    IMAGE_EXTRACTION_PROMPT,
)

__all__ = [
    "EXTRACTION_SYSTEM_PROMPT",
    "TEXT_EXTRACTION_PROMPT",
    "IMAGE_EXTRACTION_PROMPT",
]
