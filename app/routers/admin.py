from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from app.dependencies import get_manager, get_reconciler
from app.exceptions import StoreFailure
from app.schemas.requests import StatusUpdateRequest
from app.schemas.responses import DonationResponse, ForceCheckResponse, NotificationResponse
from app.services.lifecycle import DonationLifecycleManager
from app.services.normalizer import parse_status
from app.services.reconciliation import STATUS_SWEEP, ReconciliationService

router = APIRouter()


@router.get("/donations", response_model=List[DonationResponse])
def list_donations(
    status: Optional[str] = None,
    manager: DonationLifecycleManager = Depends(get_manager),
):
    """List donations, newest first, optionally filtered by status."""
    try:
        status_filter = parse_status(status) if status else None
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    donations = manager.store.list_donations(status_filter)
    return [DonationResponse.model_validate(d) for d in donations]

@router.put("/donations/{donation_id}/status", response_model=DonationResponse)
def update_donation_status(
    donation_id: int,
    request: StatusUpdateRequest,
    manager: DonationLifecycleManager = Depends(get_manager),
):
    """
    Set a donation's status and notify the donor and the organization.

    Notifications are always sent from here, even when the status is unchanged.
    """
    try:
        donation = manager.transition(
            donation_id,
            request.status,
            payment_id=request.payment_id,
            order_id=request.order_id,
            notify_address=request.org_email,
            force_notify=True,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return DonationResponse.model_validate(donation)


@router.post("/donations/{donation_id}/resend-notification", response_model=NotificationResponse)
def resend_notification(
    donation_id: int,
    org_email: Optional[str] = None,
    manager: DonationLifecycleManager = Depends(get_manager),
):
    try:
        sent = manager.resend_notification(donation_id, org_email)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return NotificationResponse(donation_id=donation_id, messages_sent=sent)


@router.post("/donations/force-check", response_model=ForceCheckResponse, status_code=202)
def force_check(
    background_tasks: BackgroundTasks,
    reconciler: ReconciliationService = Depends(get_reconciler),
):
    """Re-check every donation against the gateway in the background."""
    if reconciler.is_running(STATUS_SWEEP):
        return ForceCheckResponse(
            status="already_running",
            message="A status check is already in progress; no new check was started",
        )
    background_tasks.add_task(reconciler.force_check_all)
    return ForceCheckResponse(
        status="scheduled",
        message="Status check for all donations started",
    )
