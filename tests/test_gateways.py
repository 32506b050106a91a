"""
Unit tests for app/gateways/.

The Razorpay client runs against httpx.MockTransport, so no network is used.
Covers: order creation payload, status lookup, error translation,
signature verification, sandbox behaviour.
"""
import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from app.exceptions import GatewayUnavailable
from app.gateways.base import check_signature, to_minor_units
from app.gateways.razorpay import RazorpayGateway
from app.gateways.sandbox import SandboxGateway


def razorpay_with(handler):
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(handler),
    )


class TestRazorpayGateway:
    async def test_create_order_sends_minor_units(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_Nx1", "status": "created"})

        order_id = await razorpay_with(handler).create_order(Decimal("500.50"), "INR", "donation_7")

        assert order_id == "order_Nx1"
        assert seen["method"] == "POST"
        assert seen["path"] == "/v1/orders"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"] == {
            "amount": 50050,
            "currency": "INR",
            "receipt": "donation_7",
            "notes": {"platform": "donorbox", "type": "donation"},
        }

    async def test_get_order_status_returns_raw_status(self):
        def handler(request):
            assert request.url.path == "/v1/orders/order_Nx1"
            return httpx.Response(200, json={"id": "order_Nx1", "status": "attempted"})

        assert await razorpay_with(handler).get_order_status("order_Nx1") == "attempted"

    async def test_http_error_status_raises_gateway_unavailable(self):
        def handler(request):
            return httpx.Response(503, text="Service Unavailable")

        with pytest.raises(GatewayUnavailable, match="503"):
            await razorpay_with(handler).get_order_status("order_Nx1")

    async def test_client_error_raises_gateway_unavailable(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "bad id"}})

        with pytest.raises(GatewayUnavailable, match="400"):
            await razorpay_with(handler).get_order_status("nope")

    async def test_network_error_raises_gateway_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayUnavailable, match="connection refused"):
            await razorpay_with(handler).create_order(Decimal("1.00"), "INR", "r1")

    async def test_order_response_without_id(self):
        def handler(request):
            return httpx.Response(200, json={"status": "created"})

        with pytest.raises(GatewayUnavailable, match="no id"):
            await razorpay_with(handler).create_order(Decimal("1.00"), "INR", "r1")

    async def test_verify_signature(self):
        gateway = razorpay_with(lambda request: httpx.Response(500))
        good = hmac.new(b"rzp_test_secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

        assert await gateway.verify_signature("order_1", "pay_1", good) is True
        assert await gateway.verify_signature("order_1", "pay_2", good) is False
        assert await gateway.verify_signature("order_1", "pay_1", "") is False


class TestHelpers:
    def test_to_minor_units(self):
        assert to_minor_units(Decimal("500.00")) == 50000
        assert to_minor_units(Decimal("0.01")) == 1
        assert to_minor_units(Decimal("19.999")) == 2000

    def test_check_signature_requires_all_parts(self):
        assert check_signature("s", "", "pay", "sig") is False


class TestSandboxGateway:
    async def test_new_orders_are_created(self):
        gateway = SandboxGateway()
        order_id = await gateway.create_order(Decimal("10.00"), "USD", "donation_1")
        assert order_id.startswith("order_")
        assert await gateway.get_order_status(order_id) == "created"

    async def test_unknown_order_is_unavailable(self):
        with pytest.raises(GatewayUnavailable, match="404"):
            await SandboxGateway().get_order_status("order_missing")

    async def test_error_rate_simulates_outage(self):
        gateway = SandboxGateway(error_rate=1.0)
        with pytest.raises(GatewayUnavailable, match="503"):
            await gateway.create_order(Decimal("10.00"), "USD", "donation_1")

    async def test_sign_round_trips_through_verify(self):
        gateway = SandboxGateway(secret="abc")
        assert await gateway.verify_signature("o", "p", gateway.sign("o", "p")) is True
