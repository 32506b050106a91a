from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_gateway, get_manager
from app.exceptions import StoreFailure
from app.gateways.base import BaseGateway
from app.schemas.requests import DonationRequest
from app.schemas.responses import DonationResponse, OrderResponse
from app.services.lifecycle import DonationLifecycleManager

router = APIRouter()


@router.post("", response_model=DonationResponse, status_code=201)
def create_donation(request: DonationRequest, manager: DonationLifecycleManager = Depends(get_manager)):
    """Record a new donation in PENDING state."""
    try:
        donation = manager.create_donation(**request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return DonationResponse.model_validate(donation)


@router.get("/{donation_id}", response_model=DonationResponse)
def get_donation(donation_id: int, manager: DonationLifecycleManager = Depends(get_manager)):
    try:
        donation = manager.store.get_donation(donation_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DonationResponse.model_validate(donation)


@router.post("/{donation_id}/order", response_model=OrderResponse, status_code=201)
async def create_order(
    donation_id: int,
    manager: DonationLifecycleManager = Depends(get_manager),
    gateway: BaseGateway = Depends(get_gateway),
):
    """
    Create the payment gateway order for a donation.

    The donation must already exist; its amount and currency are sent to the
    gateway and the returned order id is attached to the donation.
    """
    try:
        donation = await manager.create_order(donation_id, gateway)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=502, detail=f"Gateway error: {str(e)}")

    return OrderResponse(
        donation_id=donation.id,
        order_id=donation.order_id,
        amount=donation.amount,
        currency=donation.currency,
        gateway=gateway.gateway_name,
    )
