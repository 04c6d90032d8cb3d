"""
Tests for the HTTP surface, using httpx's ASGI transport.
"""

from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from commission_assistant import Chatbot
from commission_assistant.api import create_app, get_current_user
from commission_assistant.errors import Unauthenticated
from commission_assistant.storage.database import get_session


@pytest.fixture
def llm():
    return AsyncMock()


@pytest_asyncio.fixture
async def client(session_factory, llm):
    app = create_app(Chatbot(llm=llm))

    async def override_session():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def stored(session, alice, make_commission, make_meeting, make_pv):
    finance = await make_commission("Finance", alice)
    meeting = await make_meeting(finance, "Budget Review", datetime(2026, 3, 9, 10, 0))
    pv = await make_pv(meeting, "Budget approved.")
    await session.commit()
    return {"alice": alice, "pv": pv}


class TestChatEndpoint:
    @pytest.mark.asyncio
    async def test_plain_reply(self, client, llm, stored):
        llm.complete.return_value = "Hi there!"
        resp = await client.post(
            "/api/chatbot",
            json={"message": "hello", "history": None},
            headers={"X-User-Id": str(stored["alice"].id)},
        )
        assert resp.status_code == 200
        assert resp.json() == {"reply": "Hi there!"}

    @pytest.mark.asyncio
    async def test_status_passed_through(self, client, llm, stored):
        llm.complete.return_value = '{"action": {"type": "navigate", "target": "/unknown-page"}}'
        resp = await client.post(
            "/api/chatbot",
            json={"message": "go"},
            headers={"X-User-Id": str(stored["alice"].id)},
        )
        assert resp.status_code == 403
        assert resp.json() == {"reply": "I cannot navigate to that location."}

    @pytest.mark.asyncio
    async def test_history_forwarded(self, client, llm, stored):
        llm.complete.return_value = "ok"
        await client.post(
            "/api/chatbot",
            json={"message": "and now?", "history": [{"sender": "user", "text": "earlier"}]},
            headers={"X-User-Id": str(stored["alice"].id)},
        )
        messages = llm.complete.call_args[0][0]
        assert {"role": "user", "content": "earlier"} in messages

    @pytest.mark.asyncio
    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "abc"}, {"X-User-Id": "9999"}])
    async def test_unauthenticated(self, client, llm, stored, headers):
        resp = await client.post("/api/chatbot", json={"message": "hello"}, headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"reply": "Unauthenticated."}
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_ascii_digit_header(self, client, llm, stored):
        resp = await client.post(
            "/api/chatbot",
            json={"message": "hello"},
            headers={"X-User-Id": "²".encode("latin-1")},
        )
        assert resp.status_code == 401
        assert resp.json() == {"reply": "Unauthenticated."}
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["²", "٣", "1¹"])
    async def test_current_user_rejects_non_ascii_digits(self, session, value):
        with pytest.raises(Unauthenticated):
            await get_current_user(session, value)

    @pytest.mark.asyncio
    async def test_current_user_strips_whitespace(self, session, stored):
        user = await get_current_user(session, f" {stored['alice'].id} ")
        assert user.id == stored["alice"].id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"message": ""},
            {"message": "x" * 2001},
            {"message": "hi", "history": [{"sender": "robot", "text": "x"}]},
        ],
    )
    async def test_invalid_body(self, client, llm, stored, body):
        resp = await client.post(
            "/api/chatbot", json=body, headers={"X-User-Id": str(stored["alice"].id)}
        )
        assert resp.status_code == 422
        data = resp.json()
        assert data["reply"] == "Invalid message provided."
        assert data["errors"]
        llm.complete.assert_not_called()


class TestPvTextEndpoint:
    @pytest.mark.asyncio
    async def test_download(self, client, stored):
        pv = stored["pv"]
        resp = await client.get(f"/api/pvs/{pv.id}/text")
        assert resp.status_code == 200
        assert resp.text == "Meeting Title: Budget Review\n\nContent:\nBudget approved.\n"
        assert resp.headers["content-disposition"] == f'attachment; filename="pv_{pv.id}.txt"'
        assert resp.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_unknown(self, client, stored):
        resp = await client.get("/api/pvs/999/text")
        assert resp.status_code == 404
        assert resp.json() == {"reply": "I couldn't find a PV with ID 999."}
