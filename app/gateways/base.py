import hashlib
import hmac
from abc import ABC, abstractmethod
from decimal import Decimal


class BaseGateway(ABC):
    """Abstract base for payment gateway clients."""

    @abstractmethod
    async def create_order(self, amount: Decimal, currency: str, receipt_id: str) -> str:
        """Create a payment order and return the gateway-assigned order id."""
        pass

    @abstractmethod
    async def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        pass

    @abstractmethod
    async def get_order_status(self, order_id: str) -> str:
        """
        Return the gateway's raw order status ("paid", "created", "attempted", ...).
        Raises GatewayUnavailable when the gateway cannot be reached.
        """
        pass

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        pass


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 over "<order_id>|<payment_id>", hex encoded."""
    payload = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def check_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    if not (order_id and payment_id and signature):
        return False
    expected = sign_payment(secret, order_id, payment_id)
    return hmac.compare_digest(expected, signature)


def to_minor_units(amount: Decimal) -> int:
    """Amount in the smallest currency unit (paise, cents)."""
    return int((Decimal(amount) * 100).to_integral_value())
