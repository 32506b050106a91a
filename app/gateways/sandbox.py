import asyncio
import random
import uuid
from decimal import Decimal
from typing import Dict, Tuple

from app.exceptions import GatewayUnavailable
from app.gateways.base import BaseGateway, check_signature, sign_payment


class SandboxGateway(BaseGateway):
    """
    In-process gateway mock for development.
    Orders start as "created"; tests and operators move them with set_status().
    Latency: up to max_latency seconds
    Error rate: configurable, 0 by default
    """

    def __init__(self, secret: str = "sandbox-secret", max_latency: float = 0.0, error_rate: float = 0.0):
        self.secret = secret
        self.max_latency = max_latency
        self.error_rate = error_rate
        self.orders: Dict[str, Tuple[Decimal, str, str]] = {}
        self.statuses: Dict[str, str] = {}

    @property
    def gateway_name(self) -> str:
        return "sandbox"

    async def _simulate_network(self) -> None:
        if self.max_latency:
            await asyncio.sleep(random.uniform(0, self.max_latency))
        if self.error_rate and random.random() < self.error_rate:
            raise GatewayUnavailable("Sandbox: 503 Service Unavailable")

    async def create_order(self, amount: Decimal, currency: str, receipt_id: str) -> str:
        await self._simulate_network()
        order_id = f"order_{uuid.uuid4().hex[:14]}"
        self.orders[order_id] = (Decimal(amount), currency, receipt_id)
        self.statuses[order_id] = "created"
        return order_id

    async def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return check_signature(self.secret, order_id, payment_id, signature)

    async def get_order_status(self, order_id: str) -> str:
        await self._simulate_network()
        if order_id not in self.statuses:
            raise GatewayUnavailable(f"Sandbox: 404 order {order_id} not found")
        return self.statuses[order_id]

    def set_status(self, order_id: str, status: str) -> None:
        self.statuses[order_id] = status

    def sign(self, order_id: str, payment_id: str) -> str:
        """Signature a client would receive after paying ``order_id``."""
        return sign_payment(self.secret, order_id, payment_id)
