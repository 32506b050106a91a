import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from app.exceptions import GatewayUnavailable
from app.gateways.base import BaseGateway, check_signature, to_minor_units

logger = logging.getLogger(__name__)


class RazorpayGateway(BaseGateway):
    """
    Razorpay Orders API client.
    Auth: HTTP basic with key id / key secret
    Amounts: smallest currency unit
    Order status values: created / attempted / paid
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def gateway_name(self) -> str:
        return "razorpay"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise GatewayUnavailable(f"Razorpay: {method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise GatewayUnavailable(
                f"Razorpay: {response.status_code} on {method} {path}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise GatewayUnavailable(f"Razorpay: invalid JSON from {method} {path}") from e

    async def create_order(self, amount: Decimal, currency: str, receipt_id: str) -> str:
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt_id,
            "notes": {"platform": "donorbox", "type": "donation"},
        }
        logger.info("Creating Razorpay order for %s %s, receipt %s", amount, currency, receipt_id)
        body = await self._request("POST", "/orders", json=payload)
        order_id = body.get("id")
        if not order_id:
            raise GatewayUnavailable("Razorpay: order response has no id")
        return order_id

    async def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return check_signature(self.key_secret, order_id, payment_id, signature)

    async def get_order_status(self, order_id: str) -> str:
        body = await self._request("GET", f"/orders/{order_id}")
        status = body.get("status", "")
        logger.debug("Razorpay order %s status: %s", order_id, status)
        return status
