"""
Tests for the chat-completion client.

httpx.AsyncClient is replaced with a mock; no network access.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from commission_assistant.errors import InternalError, UpstreamUnavailable
from commission_assistant.llm_client import LLMClient

MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]


def _response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    return resp


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _mock_client(post):
    """Return a patch context manager that injects a mock httpx.AsyncClient."""
    client = MagicMock(post=post)
    mock_ctx = AsyncMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=client)
    mock_ctx.__aexit__ = AsyncMock(return_value=False)
    return patch("commission_assistant.llm_client.httpx.AsyncClient", return_value=mock_ctx)


@pytest.fixture
def llm():
    return LLMClient(api_key="secret", model="test-model", api_url="https://llm.test/v1/chat", retry_delay=0)


class TestSuccess:
    @pytest.mark.asyncio
    async def test_returns_content(self, llm):
        post = AsyncMock(return_value=_response(json_data=_completion('{"intent": "list_commissions"}')))
        with _mock_client(post):
            assert await llm.complete(MESSAGES) == '{"intent": "list_commissions"}'

    @pytest.mark.asyncio
    async def test_request_shape(self, llm):
        post = AsyncMock(return_value=_response(json_data=_completion("hello")))
        with _mock_client(post):
            await llm.complete(MESSAGES)

        args, kwargs = post.call_args
        assert args[0] == "https://llm.test/v1/chat"
        assert kwargs["headers"] == {"Authorization": "Bearer secret"}
        assert kwargs["json"] == {
            "model": "test-model",
            "messages": MESSAGES,
            "temperature": 0.3,
            "max_tokens": 450,
        }


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_once_on_connect_error(self, llm):
        post = AsyncMock(
            side_effect=[httpx.ConnectError("refused"), _response(json_data=_completion("ok"))]
        )
        with _mock_client(post):
            assert await llm.complete(MESSAGES) == "ok"
        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_once_on_429(self, llm):
        post = AsyncMock(side_effect=[_response(429), _response(json_data=_completion("ok"))])
        with _mock_client(post):
            assert await llm.complete(MESSAGES) == "ok"
        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_second_429(self, llm):
        post = AsyncMock(side_effect=[_response(429), _response(429)])
        with _mock_client(post):
            with pytest.raises(UpstreamUnavailable) as exc:
                await llm.complete(MESSAGES)
        assert exc.value.status_code == 503
        assert exc.value.message == "AI assistant is busy, please try again shortly."
        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_second_connect_error(self, llm):
        post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with _mock_client(post):
            with pytest.raises(UpstreamUnavailable):
                await llm.complete(MESSAGES)
        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_no_retry_on_read_timeout(self, llm):
        post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with _mock_client(post):
            with pytest.raises(UpstreamUnavailable):
                await llm.complete(MESSAGES)
        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_no_retry_on_500(self, llm):
        post = AsyncMock(return_value=_response(500, text="boom"))
        with _mock_client(post):
            with pytest.raises(UpstreamUnavailable) as exc:
                await llm.complete(MESSAGES)
        assert exc.value.message == "Sorry, the AI assistant is currently unavailable or encountered an error."
        assert post.await_count == 1


class TestStatusMessages:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,message",
        [
            (401, "AI assistant authentication failed (check API key)."),
            (400, "There was an issue with the request to the AI assistant (e.g., content policy)."),
            (503, "Sorry, the AI assistant is currently unavailable or encountered an error."),
        ],
    )
    async def test_status_mapping(self, llm, status, message):
        post = AsyncMock(return_value=_response(status))
        with _mock_client(post):
            with pytest.raises(UpstreamUnavailable) as exc:
                await llm.complete(MESSAGES)
        assert exc.value.public_message == message


class TestMalformedBodies:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"error": {"message": "internal"}},
            {"choices": []},
            {"id": "x"},
            {"choices": [{"message": {}}]},
            _completion(""),
            ValueError("not json"),
        ],
    )
    async def test_internal_error(self, llm, body):
        post = AsyncMock(return_value=_response(json_data=body))
        with _mock_client(post):
            with pytest.raises(InternalError) as exc:
                await llm.complete(MESSAGES)
        assert exc.value.public_message == "Sorry, an internal error occurred. Please try again later."


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        llm = LLMClient(api_key="", model="m", api_url="https://llm.test")
        with pytest.raises(UpstreamUnavailable) as exc:
            await llm.complete(MESSAGES)
        assert exc.value.message == "Chatbot service is not configured."

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "k")
        monkeypatch.setenv("GROQ_MODEL", "llama-x")
        monkeypatch.setenv("GROQ_TIMEOUT", "12")
        llm = LLMClient.from_config()
        assert llm.api_key == "k"
        assert llm.model == "llama-x"
        assert llm.timeout == 12.0
        assert llm.retry_delay == 0.2
