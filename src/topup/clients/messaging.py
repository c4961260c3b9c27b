"""WhatsApp notification client."""

from __future__ import annotations

import logging
from functools import lru_cache

import httpx

from ..core.config import get_settings
from ..services.errors import DependencyFailure

logger = logging.getLogger(__name__)


class WhatsAppClient:
    """Sends plain text messages through the WhatsApp Cloud API."""

    def __init__(self, base_url: str, token: str, phone_id: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> None:
        self.phone_id = phone_id
        self.client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    def notify(self, phone_number: str, message: str) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "to": phone_number,
            "type": "text",
            "text": {"body": message},
        }
        try:
            response = self.client.post(f"/{self.phone_id}/messages", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("whatsapp send to %s timed out", phone_number)
            raise DependencyFailure("Messaging service timed out.", reason="messaging_timeout") from exc
        except httpx.HTTPError as exc:
            logger.error("whatsapp send to %s failed", phone_number, exc_info=True)
            raise DependencyFailure("Messaging service unavailable.", reason="messaging_unavailable") from exc

    def close(self) -> None:
        self.client.close()


@lru_cache(maxsize=1)
def get_messenger() -> WhatsAppClient:
    settings = get_settings()
    return WhatsAppClient(
        base_url=settings.whatsapp_api_url,
        token=settings.whatsapp_api_token,
        phone_id=settings.whatsapp_phone_id,
        timeout=settings.http_timeout_seconds,
    )
