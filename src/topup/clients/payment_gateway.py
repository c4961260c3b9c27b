"""Payment gateway client (Midtrans Snap style API)."""

from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from functools import lru_cache

import httpx

from ..core.config import get_settings
from ..services.errors import DependencyFailure
from ..utils.money import to_whole_units

logger = logging.getLogger(__name__)


class PaymentGatewayClient:
    """Creates hosted payment pages and verifies webhook signatures.

    Uses the server key as the HTTP basic-auth user, as the gateway expects.
    """

    def __init__(self, base_url: str, server_key: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> None:
        self.server_key = server_key
        self.client = httpx.Client(
            base_url=base_url,
            auth=(server_key, ""),
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def create_payment_request(self, transaction_code: str, amount: Decimal, method: str) -> str:
        """Return the hosted payment URL for a transaction."""

        payload = {
            "transaction_details": {
                "order_id": transaction_code,
                "gross_amount": int(to_whole_units(amount)),
            },
            "enabled_payments": [method],
        }
        try:
            response = self.client.post("/snap/v1/transactions", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("payment gateway timed out for %s", transaction_code)
            raise DependencyFailure("Payment gateway timed out.", reason="payment_gateway_timeout") from exc
        except httpx.HTTPStatusError as exc:
            logger.error("payment gateway rejected %s: %s", transaction_code, exc.response.text)
            raise DependencyFailure("Payment gateway rejected the request.", reason="payment_gateway_error") from exc
        except httpx.RequestError as exc:
            logger.error("network error talking to payment gateway for %s", transaction_code, exc_info=True)
            raise DependencyFailure("Payment gateway unreachable.", reason="payment_gateway_unreachable") from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error("payment gateway sent a non-JSON body for %s: %s", transaction_code, response.text[:200])
            raise DependencyFailure("Payment gateway returned an unreadable response.", reason="payment_gateway_error") from exc

        redirect_url = body.get("redirect_url") if isinstance(body, dict) else None
        if not redirect_url:
            raise DependencyFailure("Payment gateway returned no payment URL.", reason="payment_gateway_error")
        return redirect_url

    def verify_signature(self, order_id: str, status_code: str, gross_amount: str, signature: str) -> bool:
        raw = f"{order_id}{status_code}{gross_amount}{self.server_key}".encode()
        expected = hashlib.sha512(raw).hexdigest()
        return hmac.compare_digest(expected, signature or "")

    def close(self) -> None:
        self.client.close()


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGatewayClient:
    settings = get_settings()
    return PaymentGatewayClient(
        base_url=settings.payment_gateway_url,
        server_key=settings.payment_gateway_server_key,
        timeout=settings.http_timeout_seconds,
    )
