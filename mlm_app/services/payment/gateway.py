"""
Payment gateway client.

Creates checkout orders and verifies the signature the gateway returns
when a payment succeeds (HMAC-SHA256 over "<order_id>|<payment_id>").
"""

import hashlib
import hmac
from decimal import Decimal
from typing import Any

import aiohttp
from loguru import logger

from mlm_app.config.settings import Settings
from mlm_app.utils.exceptions import PaymentGatewayError
from mlm_app.utils.money import to_subunits


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of "order_id|payment_id" keyed with the secret."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGatewayClient:
    """Async client for the payment gateway's orders API."""

    def __init__(self, config: Settings) -> None:
        self.base_url = config.payment_gateway_url.rstrip("/")
        self.key_id = config.payment_key_id or ""
        self.key_secret = config.payment_key_secret or ""
        self.currency = config.payment_currency
        self.timeout = aiohttp.ClientTimeout(total=config.payment_timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                auth=aiohttp.BasicAuth(self.key_id, self.key_secret),
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def create_order(
        self,
        amount: Decimal,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Create a checkout order.

        Args:
            amount: Amount in currency units (sent in subunits)
            receipt: Our reference for the order
            notes: Free-form key/values stored with the order

        Returns:
            Gateway order payload (contains "id")

        Raises:
            PaymentGatewayError: Transport failure or non-2xx response
        """
        url = f"{self.base_url}/orders"
        payload = {
            "amount": to_subunits(amount),
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
        }

        session = await self._get_session()
        try:
            async with session.post(url, json=payload) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.error(
                        f"Payment gateway error {response.status}: {error_text}",
                        extra={"receipt": receipt},
                    )
                    raise PaymentGatewayError(
                        f"Order creation failed with HTTP {response.status}",
                        status=response.status,
                    )
                data = await response.json()
        except aiohttp.ClientError as e:
            logger.error(
                f"Payment gateway unreachable: {type(e).__name__}: {e}",
                extra={"receipt": receipt},
            )
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e
        except TimeoutError as e:
            logger.error("Payment gateway timed out", extra={"receipt": receipt})
            raise PaymentGatewayError("Payment gateway timed out") from e

        if "id" not in data:
            raise PaymentGatewayError("Order response carries no id", response=data)

        logger.info(
            "Payment order created",
            extra={"order_id": data["id"], "receipt": receipt, "amount": str(amount)},
        )
        return data

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check a payment signature in constant time."""
        if not (order_id and payment_id and signature and self.key_secret):
            return False
        expected = compute_signature(order_id, payment_id, self.key_secret)
        return hmac.compare_digest(expected, signature)
