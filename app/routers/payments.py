from fastapi import APIRouter, Depends

from app.dependencies import get_gateway, get_manager
from app.gateways.base import BaseGateway
from app.schemas.requests import PaymentVerificationRequest
from app.schemas.responses import VerificationResponse
from app.services.lifecycle import DonationLifecycleManager

router = APIRouter()


@router.post("/verify", response_model=VerificationResponse)
async def verify_payment(
    request: PaymentVerificationRequest,
    manager: DonationLifecycleManager = Depends(get_manager),
    gateway: BaseGateway = Depends(get_gateway),
):
    """
    Verify the signed payment confirmation a client receives from the gateway.

    A valid signature completes the matching donation. The response only
    reports the signature check; donation updates that fail here are picked
    up by the next reconciliation sweep.
    """
    verified = await manager.verify_payment(
        request.order_id, request.payment_id, request.signature, gateway
    )
    return VerificationResponse(verified=verified)
