"""
FSM Reports — WhatsApp dispatcher tests (SAK gateway mocked with httpx.MockTransport)
Run: cd backend && pytest tests/test_whatsapp_dispatcher.py -v
"""

import json

import httpx
import pytest

from config import normalize_whatsapp_phone
from services import whatsapp_dispatcher
from services.whatsapp_dispatcher import SendFailure, WhatsAppDispatcher, mask_phone
from tests.fakes import run_async


def _dispatcher(handler, min_interval=0.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppDispatcher(
        base_url="http://wapi.example.test/",
        api_key="key-123",
        session_id="session-9",
        min_interval=min_interval,
        client=client,
    )


class TestPhoneNormalization:

    def test_plus_and_spaces_stripped(self):
        assert normalize_whatsapp_phone("+91 95376 53927") == "919537653927"

    def test_blank(self):
        assert normalize_whatsapp_phone(None) == ""
        assert normalize_whatsapp_phone("   ") == ""

    def test_mask(self):
        assert mask_phone("+91 95376 53927") == "***3927"
        assert mask_phone("12") == "***"


class TestSend:

    def test_request_format(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"messageId": "wamid-1"}})

        dispatcher = _dispatcher(handler)
        message_id = run_async(dispatcher.send("+91 95376 53927", "hello"))

        assert message_id == "wamid-1"
        assert seen["url"] == "http://wapi.example.test/api/v1/messages/send"
        assert seen["headers"]["x-api-key"] == "key-123"
        assert seen["headers"]["x-session-id"] == "session-9"
        assert seen["body"] == {"to": "919537653927", "text": "hello"}

    def test_missing_message_id(self):
        dispatcher = _dispatcher(lambda request: httpx.Response(200, json={"success": True}))
        assert run_async(dispatcher.send("919537653927", "hi")) == ""

    def test_provider_rejection(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": {"message": "Session not connected"}})

        with pytest.raises(SendFailure, match="Session not connected"):
            run_async(_dispatcher(handler).send("919537653927", "hi"))

    def test_http_error_without_body_message(self):
        dispatcher = _dispatcher(lambda request: httpx.Response(502, json={}))
        with pytest.raises(SendFailure, match="HTTP 502"):
            run_async(dispatcher.send("919537653927", "hi"))

    def test_malformed_body(self):
        dispatcher = _dispatcher(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(SendFailure, match="Transport error"):
            run_async(dispatcher.send("919537653927", "hi"))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(SendFailure, match="Timeout"):
            run_async(_dispatcher(handler).send("919537653927", "hi"))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SendFailure) as exc:
            run_async(_dispatcher(handler).send("+91 95376 53927", "hi"))
        assert exc.value.phone == "919537653927"

    def test_closed_client_is_a_send_failure(self):
        dispatcher = _dispatcher(lambda request: httpx.Response(200, json={"success": True}))

        async def send_after_close():
            await dispatcher._client.aclose()
            await dispatcher.send("+91 1234", "hi")

        with pytest.raises(SendFailure, match="Send error"):
            run_async(send_after_close())

    def test_empty_phone_never_hits_the_network(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"success": True})

        with pytest.raises(SendFailure, match="phone"):
            run_async(_dispatcher(handler).send("  ", "hi"))
        assert calls == []


class TestPacing:

    def test_consecutive_sends_are_spaced(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(whatsapp_dispatcher.asyncio, "sleep", fake_sleep)
        dispatcher = _dispatcher(lambda request: httpx.Response(200, json={"success": True}), min_interval=2.0)

        async def two_sends():
            await dispatcher.send("919537653927", "one")
            await dispatcher.send("919537653927", "two")

        run_async(two_sends())
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 2.0

    def test_failed_send_still_counts_for_pacing(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(whatsapp_dispatcher.asyncio, "sleep", fake_sleep)

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        dispatcher = _dispatcher(handler, min_interval=2.0)

        async def two_sends():
            for text in ("one", "two"):
                with pytest.raises(SendFailure):
                    await dispatcher.send("919537653927", text)

        run_async(two_sends())
        assert len(sleeps) == 1
