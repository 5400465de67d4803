"""
WhatsApp Service
Sends system messages through the WhatsApp-Go server with session auto-recovery
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..config import WHATSAPP_SERVER_API, WHATSAPP_USER_TOKEN
from ..shared.validators import normalize_phone_number

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
RECONNECT_WAIT_SECONDS = 2


class WhatsAppResult(BaseModel):
    """Outcome of a WhatsApp-Go call"""

    success: bool
    data: Optional[Any] = None
    error_type: Optional[str] = None  # NETWORK_ERROR, TIMEOUT, AUTH_ERROR, SERVER_ERROR, CONFIG_ERROR
    message: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def failure(cls, error_type: str, message: str, status_code: Optional[int] = None) -> "WhatsAppResult":
        return cls(success=False, error_type=error_type, message=message, status_code=status_code)


class WhatsAppService:
    """Client for the system WhatsApp session"""

    def __init__(self, base_url: str = WHATSAPP_SERVER_API, user_token: Optional[str] = WHATSAPP_USER_TOKEN):
        self.base_url = (base_url or "").rstrip("/")
        self.user_token = user_token or ""
        if not self.user_token:
            logger.warning("⚠️ WHATSAPP_USER_TOKEN not set - WhatsApp notifications disabled")

    def is_configured(self) -> bool:
        return bool(self.base_url and self.user_token)

    def _headers(self) -> dict:
        return {"token": self.user_token, "Content-Type": "application/json"}

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> WhatsAppResult:
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                response = await client.request(method, f"{self.base_url}{path}", json=payload, headers=self._headers())
        except httpx.TimeoutException:
            return WhatsAppResult.failure("TIMEOUT", "Request timeout after 30 seconds")
        except httpx.HTTPError as e:
            logger.error(f"❌ WhatsApp server unreachable: {e}")
            return WhatsAppResult.failure("NETWORK_ERROR", "Unable to connect to WhatsApp server")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            error_type = "AUTH_ERROR" if response.status_code in (401, 403) else "SERVER_ERROR"
            message = (body or {}).get("message") if isinstance(body, dict) else None
            return WhatsAppResult.failure(
                error_type, message or f"HTTP {response.status_code}", status_code=response.status_code
            )

        return WhatsAppResult(success=True, data=body, status_code=response.status_code)

    async def send_text_message(self, phone: str, body: str) -> WhatsAppResult:
        if not self.user_token:
            return WhatsAppResult.failure("CONFIG_ERROR", "WhatsApp user token not configured")

        return await self._request(
            "POST", "/chat/send/text", {"Phone": normalize_phone_number(phone), "Body": body}
        )

    async def get_session_status(self) -> WhatsAppResult:
        if not self.user_token:
            return WhatsAppResult.failure("CONFIG_ERROR", "WhatsApp user token not configured")
        return await self._request("GET", "/session/status")

    async def connect_session(self) -> WhatsAppResult:
        if not self.user_token:
            return WhatsAppResult.failure("CONFIG_ERROR", "WhatsApp user token not configured")
        return await self._request("POST", "/session/connect", {"Subscribe": ["Message", "ReadReceipt"], "Immediate": True})

    @staticmethod
    def is_session_active(status: WhatsAppResult) -> bool:
        """connected and loggedIn, possibly nested under data.data"""
        data = status.data if isinstance(status.data, dict) else {}
        session = data.get("data") if isinstance(data.get("data"), dict) else data
        return session.get("connected") is True and session.get("loggedIn") is True

    async def send_system_message(self, phone: str, body: str) -> WhatsAppResult:
        """Send a message, reconnecting the system session once if it dropped"""
        if not self.user_token:
            return WhatsAppResult.failure("CONFIG_ERROR", "WhatsApp user token not configured")

        result = await self.send_text_message(phone, body)
        if result.success:
            return result

        logger.warning(f"⚠️ WhatsApp send failed ({result.message}), checking session status")
        status = await self.get_session_status()
        if not status.success:
            logger.error(f"❌ Could not read WhatsApp session status: {status.message}")
            return result

        if self.is_session_active(status):
            logger.warning("⚠️ WhatsApp session is connected but the message still failed")
            return result

        logger.info("📱 WhatsApp session disconnected, reconnecting")
        reconnect = await self.connect_session()
        if not reconnect.success:
            logger.error(f"❌ WhatsApp reconnect failed: {reconnect.message}")
            return WhatsAppResult.failure("SERVER_ERROR", "WhatsApp session reconnection failed")

        await asyncio.sleep(RECONNECT_WAIT_SECONDS)

        status = await self.get_session_status()
        if not status.success:
            return result
        if not self.is_session_active(status):
            logger.error("❌ WhatsApp session still disconnected after reconnect")
            return WhatsAppResult.failure("SERVER_ERROR", "WhatsApp session could not be restored")

        result = await self.send_text_message(phone, body)
        if result.success:
            logger.info("✅ WhatsApp message sent after session recovery")
        else:
            logger.error(f"❌ WhatsApp message still failed after recovery: {result.message}")
        return result


whatsapp_service = WhatsAppService()
