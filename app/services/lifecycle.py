"""
Donation lifecycle manager.

The single authority for changing a donation's status and its cause's running
total. Both the synchronous signature-verification path and the
reconciliation sweep converge on transition():

1. Persist the new status (conditional UPDATE, see DonationStore.apply_status)
2. On an edge into COMPLETED, atomically add the amount to the cause total
   (on an edge out of COMPLETED, take it back out)
3. Commit, then hand the donation to the notification dispatcher

A re-applied status is not an edge: the cause total is left alone and no
notification goes out unless the caller forces one.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import DonationError, StoreFailure
from app.gateways.base import BaseGateway
from app.models import Donation, DonationStatus
from app.repository import DonationStore
from app.senders.base import BaseSender
from app.services.dispatcher import DEFAULT_RECHECK_DELAY, NotificationDispatcher
from app.services.normalizer import is_terminal

logger = logging.getLogger(__name__)


class DonationLifecycleManager:
    def __init__(
        self,
        db: Session,
        sender: BaseSender,
        default_notify_address: str,
        recheck_delay: timedelta = DEFAULT_RECHECK_DELAY,
    ):
        self.store = DonationStore(db)
        self.dispatcher = NotificationDispatcher(self.store, sender, recheck_delay)
        self.default_notify_address = default_notify_address

    def create_donation(
        self,
        donor_name: str,
        donor_email: str,
        amount: Decimal,
        currency: str = "INR",
        cause_id: Optional[int] = None,
        donor_phone: Optional[str] = None,
        message: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Donation:
        """Persist a new PENDING donation. Raises CauseNotFound for an unknown cause."""
        if cause_id is not None:
            self.store.get_cause(cause_id)

        donation = Donation(
            donor_name=donor_name,
            donor_email=donor_email,
            donor_phone=donor_phone,
            amount=amount,
            currency=currency,
            cause_id=cause_id,
            message=message,
            payment_method=payment_method,
            status=DonationStatus.PENDING,
            followup_email_count=0,
        )
        try:
            self.store.add_donation(donation)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            raise StoreFailure(f"Could not create donation: {e}") from e
        logger.info("Created donation %s: %s %s for cause %s", donation.id, currency, amount, cause_id)
        return donation

    async def create_order(self, donation_id: int, gateway: BaseGateway) -> Donation:
        """Create the gateway order for an existing donation and attach its id."""
        donation = await asyncio.to_thread(self.store.get_donation, donation_id)
        order_id = await gateway.create_order(donation.amount, donation.currency, f"donation_{donation.id}")
        await asyncio.to_thread(self._attach_order, donation, order_id)
        logger.info("Attached %s order %s to donation %s", gateway.gateway_name, order_id, donation.id)
        return donation

    def _attach_order(self, donation: Donation, order_id: str) -> None:
        try:
            self.store.attach_order(donation.id, order_id)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            raise StoreFailure(f"Could not attach order {order_id} to donation {donation.id}: {e}") from e
        self.store.db.refresh(donation)

    def transition(
        self,
        donation_id: int,
        new_status: DonationStatus,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
        notify_address: Optional[str] = None,
        force_notify: bool = False,
        now: Optional[datetime] = None,
    ) -> Donation:
        """
        Move a donation to ``new_status``.

        Raises:
            DonationNotFound: the donation does not exist
            StoreFailure: the status/aggregation write failed; nothing was
                committed and no notification was sent
        """
        donation = self.store.get_donation(donation_id)

        try:
            previous = self.store.apply_status(donation, new_status, payment_id, order_id)
            if is_terminal(new_status):
                self.store.cancel_checks(donation_id)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            raise StoreFailure(f"Could not update donation {donation_id}: {e}") from e

        changed = previous is not None
        if changed:
            logger.info("Donation %s: %s -> %s", donation_id, previous.value, new_status.value)
        else:
            logger.debug("Donation %s already %s", donation_id, new_status.value)

        if changed or force_notify or new_status == DonationStatus.PENDING:
            address = notify_address or self.default_notify_address
            try:
                self.dispatcher.dispatch(donation, address, now=now)
            except Exception:
                logger.exception("Notification dispatch failed for donation %s", donation_id)

        return donation

    async def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        gateway: BaseGateway,
    ) -> bool:
        """
        Verify a client's signed payment confirmation and complete the donation.

        The result reflects the signature check only. A failure to update the
        donation is logged; the reconciliation sweep will pick it up later.
        """
        if not await gateway.verify_signature(order_id, payment_id, signature):
            logger.warning("Invalid payment signature for order %s", order_id)
            return False

        # Store writes and mail delivery stay off the event loop
        await asyncio.to_thread(self._complete_verified, order_id, payment_id)
        return True

    def _complete_verified(self, order_id: str, payment_id: str) -> None:
        donation = self.store.find_by_order_id(order_id)
        if donation is None:
            logger.warning("Verified payment %s for unknown order %s", payment_id, order_id)
            return

        try:
            self.transition(
                donation.id,
                DonationStatus.COMPLETED,
                payment_id=payment_id,
                order_id=order_id,
            )
        except DonationError:
            logger.exception("Error updating donation status for order %s", order_id)

    def resend_notification(self, donation_id: int, notify_address: Optional[str] = None) -> int:
        donation = self.store.get_donation(donation_id)
        return self.dispatcher.notify(donation, notify_address or self.default_notify_address)
