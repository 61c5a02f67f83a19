"""
Extraction Service - schedule candidates from a text message or an image.

Extraction is best effort. A provider error, unparsable JSON or a call
that runs past the timeout all produce an empty list, which the webhook
answers with "no schedules found". Individual malformed candidates are
dropped; the rest are kept.

Usage:
    service = ExtractionService(provider=GeminiProvider(api_key=...), timezone_name="Asia/Tokyo")
    candidates = await service.extract_from_text("Dentist tomorrow 10am in Shibuya")
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.ai.prompts.extraction_prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    IMAGE_EXTRACTION_PROMPT,
    TEXT_EXTRACTION_PROMPT,
)
from app.ai.providers.base import AIProvider, ImageInput
from app.schemas.schedule import ExtractionResult, ScheduleCandidate


logger = logging.getLogger("linecal.services.extraction")


class ExtractionService:
    """Wraps an AIProvider with prompt building, parsing and a hard timeout."""

    def __init__(
        self,
        provider: AIProvider,
        timezone_name: str = "Asia/Tokyo",
        timeout_seconds: float = 30.0,
    ):
        self.provider = provider
        self.timezone_name = timezone_name
        self.timeout_seconds = timeout_seconds

    def _current_time(self) -> str:
        return datetime.now(ZoneInfo(self.timezone_name)).isoformat(timespec="seconds")

    async def extract_from_text(self, message: str) -> List[ScheduleCandidate]:
        if not message or not message.strip():
            return []

        prompt = TEXT_EXTRACTION_PROMPT.format(
            current_time=self._current_time(),
            timezone=self.timezone_name,
            message=message,
        )
        return await self._run(prompt)

    async def extract_from_image(self, data: bytes, mime_type: str = "image/jpeg") -> List[ScheduleCandidate]:
        if not data:
            return []

        prompt = IMAGE_EXTRACTION_PROMPT.format(
            current_time=self._current_time(),
            timezone=self.timezone_name,
        )
        return await self._run(prompt, image=ImageInput(data=data, mime_type=mime_type))

    async def _run(self, prompt: str, image: Optional[ImageInput] = None) -> List[ScheduleCandidate]:
        try:
            response = await asyncio.wait_for(
                self.provider.generate_json(
                    prompt=prompt,
                    system_prompt=EXTRACTION_SYSTEM_PROMPT,
                    image=image,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Schedule extraction timed out after {self.timeout_seconds}s")
            return []

        if not response.success:
            logger.warning(f"Schedule extraction failed: {response.error}")
            return []

        candidates = self.parse_candidates(response.content)
        logger.info(
            f"Extracted {len(candidates)} schedule candidate(s)",
            extra={"latency_ms": round(response.latency_ms), "has_image": image is not None},
        )
        return candidates

    def parse_candidates(self, content: str) -> List[ScheduleCandidate]:
        """
        Parse the provider's JSON into validated candidates.

        Accepts either {"schedules": [...]} or a bare list. Anything else
        yields an empty list.
        """
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Extractor returned invalid JSON")
            return []

        if isinstance(data, list):
            data = {"schedules": data}

        try:
            result = ExtractionResult.model_validate(data)
        except ValidationError:
            logger.warning("Extractor JSON has unexpected shape")
            return []

        candidates: List[ScheduleCandidate] = []
        for index, raw in enumerate(result.schedules):
            try:
                candidate = ScheduleCandidate.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping malformed candidate #{index}: {e.error_count()} error(s)")
                continue
            candidates.append(candidate.localized(self.timezone_name))
        return candidates
