from typing import Any, Dict, Optional
import logging
import httpx

from app.core.config import settings
from app.core.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)

class PushClient:
    """
    Minimal async client for the push provider. Env-driven configuration to avoid hardcoding secrets.
    Transient failures raise NotificationDeliveryError so the calling task can retry.
    """
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.enabled: bool = settings.PUSH_NOTIFICATIONS_ENABLED
        self.api_url: Optional[str] = settings.PUSH_API_URL
        self.api_key: Optional[str] = settings.PUSH_API_KEY
        self.transport = transport

    async def send(self, external_user_id: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> dict:
        if not self.enabled:
            logger.info("Push sending disabled; skipping actual call.")
            return {"status": "disabled", "recipient": external_user_id, "message": body}

        if not (self.api_url and self.api_key):
            logger.error("Push configuration missing (api_url/api_key).")
            return {"status": "error", "error": "missing_configuration"}

        payload = {
            "include_external_user_ids": [external_user_id],
            "headings": {"en": title},
            "contents": {"en": body},
            "data": data or {},
        }
        headers = {"Authorization": f"Basic {self.api_key}"}

        timeout = httpx.Timeout(10.0, connect=10.0)
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            try:
                r = await client.post(self.api_url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                logger.warning("Push send transport error: %s", e)
                raise NotificationDeliveryError(str(e)) from e

            data = r.json() if r.headers.get("content-type", "").startswith("application/json") else {"text": r.text}
            if r.is_success:
                return {"status": "ok", "provider_response": data}
            if r.status_code >= 500 or r.status_code == 429:
                logger.warning("Push send failed, will retry: %s | %s", r.status_code, data)
                raise NotificationDeliveryError(f"Push provider returned {r.status_code}")

            logger.error("Push send rejected: %s | %s", r.status_code, data)
            return {"status": "error", "code": r.status_code, "provider_response": data}
