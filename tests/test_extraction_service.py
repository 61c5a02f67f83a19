"""
Tests for schedule extraction (provider mocked).
"""

import asyncio
import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from app.ai.providers.base import AIResponse, ImageInput, ProviderType
from app.services.extraction_service import ExtractionService


def _response(content: str, success: bool = True) -> AIResponse:
    return AIResponse(
        content=content,
        provider=ProviderType.GEMINI,
        model="gemini-2.5-flash",
        success=success,
        error=None if success else "quota exceeded",
    )


@pytest.fixture
def provider() -> MagicMock:
    provider = MagicMock()
    provider.generate_json = AsyncMock()
    return provider


@pytest.fixture
def service(provider) -> ExtractionService:
    return ExtractionService(provider=provider, timezone_name="Asia/Tokyo", timeout_seconds=0.5)


class TestExtractFromText:

    @pytest.mark.asyncio
    async def test_parses_schedules(self, service, provider):
        provider.generate_json.return_value = _response(json.dumps({
            "schedules": [
                {
                    "title": "Meeting",
                    "location": "Room A",
                    "startDateTime": "2026-02-04T15:00:00+09:00",
                    "endDateTime": "2026-02-04T16:00:00+09:00",
                },
                {"title": "Dentist", "startDateTime": "2026-02-05T10:00:00+09:00"},
            ]
        }))

        candidates = await service.extract_from_text("Meeting tomorrow 3pm, dentist Thursday 10")

        assert [c.title for c in candidates] == ["Meeting", "Dentist"]
        assert candidates[0].location == "Room A"
        assert candidates[0].start_utc() == datetime(2026, 2, 4, 6, 0, tzinfo=timezone.utc)
        assert candidates[1].end_datetime is None

        prompt = provider.generate_json.await_args.kwargs["prompt"]
        assert "Meeting tomorrow 3pm" in prompt
        assert "Asia/Tokyo" in prompt

    @pytest.mark.asyncio
    async def test_empty_message_skips_provider(self, service, provider):
        assert await service.extract_from_text("   ") == []
        provider.generate_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_schedules(self, service, provider):
        provider.generate_json.return_value = _response('{"schedules": []}')
        assert await service.extract_from_text("good morning") == []

    @pytest.mark.asyncio
    async def test_provider_failure_is_empty(self, service, provider):
        provider.generate_json.return_value = _response("", success=False)
        assert await service.extract_from_text("meeting at 3") == []

    @pytest.mark.asyncio
    async def test_timeout_is_empty(self, service, provider):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        provider.generate_json.side_effect = slow

        assert await service.extract_from_text("meeting at 3") == []


class TestExtractFromImage:

    @pytest.mark.asyncio
    async def test_passes_image_to_provider(self, service, provider):
        provider.generate_json.return_value = _response(
            '{"schedules": [{"title": "Concert", "startDateTime": "2026-03-01T18:30:00+09:00"}]}'
        )

        candidates = await service.extract_from_image(b"\x89PNG", "image/png")

        assert [c.title for c in candidates] == ["Concert"]
        image = provider.generate_json.await_args.kwargs["image"]
        assert image == ImageInput(data=b"\x89PNG", mime_type="image/png")

    @pytest.mark.asyncio
    async def test_empty_image(self, service, provider):
        assert await service.extract_from_image(b"") == []
        provider.generate_json.assert_not_called()


class TestParseCandidates:

    def test_invalid_json(self, service):
        assert service.parse_candidates("not json") == []

    def test_bare_list_accepted(self, service):
        candidates = service.parse_candidates(
            '[{"title": "Gym", "startDateTime": "2026-02-04T07:00:00+09:00"}]'
        )
        assert [c.title for c in candidates] == ["Gym"]

    def test_malformed_candidates_dropped(self, service):
        candidates = service.parse_candidates(json.dumps({"schedules": [
            {"title": "", "startDateTime": "2026-02-04T07:00:00+09:00"},
            {"title": "No date"},
            {"title": "Bad date", "startDateTime": "someday"},
            {"title": "Kept", "startDateTime": "2026-02-04T07:00:00+09:00"},
        ]}))
        assert [c.title for c in candidates] == ["Kept"]

    def test_naive_datetime_gets_default_timezone(self, service):
        candidates = service.parse_candidates(
            '{"schedules": [{"title": "Call", "startDateTime": "2026-02-04T09:00:00"}]}'
        )
        assert candidates[0].start_datetime.utcoffset() == timedelta(hours=9)
        assert candidates[0].start_utc() == datetime(2026, 2, 4, 0, 0, tzinfo=timezone.utc)
