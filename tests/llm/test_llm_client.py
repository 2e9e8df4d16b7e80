"""Tests for the OpenAI chat completion wrapper."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from catalyft.exceptions import LLMError, LLMResponseInvalidError, LLMServiceUnavailableError
from catalyft.llm.providers import LLMClient, ModelType, RetryConfig
from catalyft.llm.prompts import build_live_adjustment_prompt


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_client(create: AsyncMock, max_retries: int = 2) -> LLMClient:
    openai_client = MagicMock()
    openai_client.chat.completions.create = create
    return LLMClient(openai_client=openai_client, retry_config=RetryConfig(max_retries=max_retries, base_delay=0))


class TestCompletion:
    @pytest.mark.asyncio
    async def test_returns_message_text(self):
        create = AsyncMock(return_value=chat_response("# Week"))
        client = make_client(create)

        text = await client.completion(system="sys", user="hello", model=ModelType.FAST, max_tokens=50)

        assert text == "# Week"
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == client.get_model_name(ModelType.FAST)
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["max_tokens"] == 50
        assert client.get_metrics()["successful_requests"] == 1

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=[APIConnectionError(request=request), chat_response("ok")])

        client = make_client(create)

        assert await client.completion(system="s", user="u") == "ok"
        assert create.await_count == 2
        assert client.get_metrics()["retried_requests"] == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=APIConnectionError(request=request))

        with pytest.raises(LLMServiceUnavailableError):
            await make_client(create, max_retries=1).completion(system="s", user="u")
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_content(self):
        create = AsyncMock(return_value=chat_response(""))
        with pytest.raises(LLMResponseInvalidError):
            await make_client(create).completion(system="s", user="u")
        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        create = AsyncMock(side_effect=KeyError("choices"))
        with pytest.raises(LLMError, match="Unexpected LLM error"):
            await make_client(create).completion(system="s", user="u")


class TestConfiguration:
    def test_missing_key(self, monkeypatch):
        from catalyft.llm import providers
        from catalyft.config import Settings

        monkeypatch.setattr(providers, "get_settings", lambda: Settings(_env_file=None, openai_api_key=""))
        with pytest.raises(LLMServiceUnavailableError):
            LLMClient()

    def test_retry_delay_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0)
        assert config.get_delay(0) == 1.0
        assert config.get_delay(1) == 2.0
        assert config.get_delay(10) == 5.0


def test_live_adjustment_prompt():
    text = build_live_adjustment_prompt("hr_drift", 0.125, -0.05)
    assert text.startswith("KAI detected high heart rate drift (12.5%).")
    assert "reduced target load by 5%" in text
