"""Integration tests for grading with retries and fallback."""

import json
import logging

import pytest

from exam_mastery.config import Settings
from exam_mastery.engines.grading.grading_service import GradingService
from exam_mastery.engines.grading.prompt_builder import RETRY_INSTRUCTION
from exam_mastery.exceptions import InputError
from exam_mastery.schemas.grading import GradingRequest
from exam_mastery.schemas.mastery import ItemFormat


def _request(fmt=ItemFormat.WRITTEN):
    return GradingRequest(
        user_id="u1",
        item_id="item-1",
        format=fmt,
        prompt="Advise B on whether a contract was formed.",
        response="No contract: B's reply was a counter-offer.",
    )


class TestGradingService:
    """Retry, timeout and fallback behaviour."""

    @pytest.mark.asyncio
    async def test_valid_first_response(self, settings, scripted_client, valid_grading_json):
        client = scripted_client([valid_grading_json])
        output = await GradingService(client, settings).grade(_request())
        assert output.is_fallback is False
        assert output.score_norm == 0.8
        assert output.generation_attempts == 1
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_three_malformed_responses_fall_back(self, scripted_client, sleep_recorder, caplog):
        """Three bad responses: two retries with growing delay, then fallback 0.5."""
        settings = Settings(grading_retry_delay_seconds=0.5, generation_timeout_seconds=1.0)
        client = scripted_client(["not json", '{"scoreNorm": "high"}', "```json\n{broken\n```"])
        service = GradingService(client, settings, sleep=sleep_recorder)

        with caplog.at_level(logging.WARNING):
            output = await service.grade(_request())

        assert output.is_fallback is True
        assert output.needs_manual_review is True
        assert output.score_norm == 0.5
        assert output.error_tags == ["GRADING_FAILED"]
        assert output.generation_attempts == 3
        assert client.calls == 3
        assert sleep_recorder.delays == [0.5, 1.0]
        assert RETRY_INSTRUCTION not in client.prompts[0]
        assert client.prompts[1].endswith(RETRY_INSTRUCTION)
        assert client.prompts[2].count(RETRY_INSTRUCTION) == 1
        assert any(getattr(r, "fallback", False) for r in caplog.records)

    @pytest.mark.asyncio
    async def test_recovers_on_retry(self, settings, scripted_client, grading_payload):
        client = scripted_client(["Sorry, here you go:", json.dumps(grading_payload(0.4))])
        output = await GradingService(client, settings).grade(_request())
        assert output.is_fallback is False
        assert output.score_norm == 0.4
        assert output.generation_attempts == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, scripted_client, valid_grading_json):
        settings = Settings(grading_retry_delay_seconds=0.0, generation_timeout_seconds=0.01)
        client = scripted_client(["hang", "hang", valid_grading_json])
        output = await GradingService(client, settings).grade(_request())
        assert output.is_fallback is False
        assert output.generation_attempts == 3

    @pytest.mark.asyncio
    async def test_always_hanging_falls_back(self, scripted_client):
        settings = Settings(grading_retry_delay_seconds=0.0, generation_timeout_seconds=0.01)
        output = await GradingService(scripted_client(["hang"]), settings).grade(_request())
        assert output.is_fallback is True
        assert "timed out" in output.failure_reason

    @pytest.mark.asyncio
    async def test_collaborator_errors_fall_back(self, settings, scripted_client):
        client = scripted_client([RuntimeError("connection reset")])
        output = await GradingService(client, settings).grade(_request(ItemFormat.ORAL))
        assert output.is_fallback is True
        assert client.calls == 3
        assert "procedure_sequencing" in [line.category for line in output.rubric_breakdown]

    @pytest.mark.asyncio
    async def test_no_client(self, settings):
        output = await GradingService(None, settings).grade(_request(ItemFormat.DRAFTING))
        assert output.is_fallback is True
        assert output.generation_attempts == 0

    @pytest.mark.asyncio
    async def test_mcq_rejected(self, settings, scripted_client):
        with pytest.raises(InputError):
            await GradingService(scripted_client([]), settings).grade(_request(ItemFormat.MCQ))
