"""
WhatsApp sending service (SAK gateway)

API format:
- Endpoint: POST {base}/api/v1/messages/send
- Auth: headers x-api-key + x-session-id
- Body: {"to": "<digits>", "text": "<message>"}
- Success: {"success": true, "data": {"messageId": "..."}}
- Failure: {"success": false, "error": {"message": "..."}}

Provider-reported failures and transport failures (network, timeout,
malformed body, closed client) all surface as SendFailure: callers only
care about "sent" vs "not sent".
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

import config
from config import normalize_whatsapp_phone

logger = logging.getLogger("whatsapp_dispatcher")

SEND_PATH = "/api/v1/messages/send"


class SendFailure(Exception):
    """Message not sent, for whatever reason"""

    def __init__(self, message: str, phone: str = ""):
        super().__init__(message)
        self.phone = phone


def mask_phone(phone: str) -> str:
    digits = normalize_whatsapp_phone(phone)
    return f"***{digits[-4:]}" if len(digits) > 4 else "***"


class WhatsAppDispatcher:
    """
    One provider session. Consecutive sends through the same instance are
    spaced by at least `min_interval` seconds (cooperative sleep, not a lock).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session_id: str,
        min_interval: float = 2.0,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = base_url.rstrip("/") + SEND_PATH
        self.api_key = api_key
        self.session_id = session_id
        self.min_interval = min_interval
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._last_sent_at: Optional[float] = None

    @classmethod
    def from_config(cls) -> "WhatsAppDispatcher":
        if not config.SAK_API_KEY or not config.SAK_SESSION_ID:
            logger.warning("[DISPATCH] SAK_API_KEY / SAK_SESSION_ID not configured, sends will fail")
        return cls(
            base_url=config.SAK_BASE_URL,
            api_key=config.SAK_API_KEY,
            session_id=config.SAK_SESSION_ID,
            min_interval=config.WHATSAPP_MIN_INTERVAL_SECONDS,
            timeout=config.WHATSAPP_TIMEOUT_SECONDS,
        )

    async def _pace(self):
        if self._last_sent_at is None or self.min_interval <= 0:
            return
        wait = self.min_interval - (time.monotonic() - self._last_sent_at)
        if wait > 0:
            await asyncio.sleep(wait)

    async def send(self, phone: str, text: str) -> str:
        """
        Send one message.

        Returns:
            provider message id ("" when the provider omits it)
        Raises:
            SendFailure
        """
        to = normalize_whatsapp_phone(phone)
        if not to:
            raise SendFailure("Missing or empty phone number", phone or "")

        await self._pace()
        try:
            resp = await self._client.post(
                self.url,
                json={"to": to, "text": text},
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.api_key,
                    "x-session-id": self.session_id,
                },
                timeout=self.timeout,
            )
            data = resp.json()
        except httpx.TimeoutException:
            logger.error(f"[DISPATCH] timeout sending to {mask_phone(to)}")
            raise SendFailure("Timeout - provider did not respond", to)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[DISPATCH] transport error sending to {mask_phone(to)}: {e}")
            raise SendFailure(f"Transport error: {e}", to)
        except Exception as e:
            # e.g. a closed client: still a failed send, not a failed run
            logger.exception(f"[DISPATCH] unexpected error sending to {mask_phone(to)}: {e}")
            raise SendFailure(f"Send error: {e}", to) from e
        finally:
            self._last_sent_at = time.monotonic()

        if not isinstance(data, dict) or data.get("success") is not True:
            error = data.get("error") if isinstance(data, dict) else None
            if isinstance(error, dict):
                error = error.get("message")
            message = str(error) if error else f"Send failed (HTTP {resp.status_code})"
            logger.error(f"[DISPATCH] provider rejected message to {mask_phone(to)}: {message}")
            raise SendFailure(message, to)

        payload = data.get("data")
        message_id = str(payload.get("messageId") or "") if isinstance(payload, dict) else ""
        logger.info(f"[DISPATCH] sent to {mask_phone(to)} (id={message_id or 'n/a'})")
        return message_id

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
