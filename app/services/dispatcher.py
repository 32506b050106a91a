"""
Notification dispatch policy.

Decides, from a donation's current status, what to send:
  COMPLETED / FAILED / REFUNDED → donor + organization message immediately
  PENDING                       → donor + organization message immediately,
                                  plus one deferred re-check row
Deferred re-check (fired by the background poller once due):
  status moved away from PENDING → send the message for the new status
  still PENDING                  → nothing (long-term reminders belong to
                                  the follow-up sweep)
Delivery is best-effort: a failing sender is logged, never retried, and never
reaches the caller.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.exceptions import DonationNotFound
from app.models import Donation, DonationStatus, utcnow
from app.repository import DonationStore
from app.senders.base import BaseSender
from app.services.messages import donor_message, org_message, reminder

logger = logging.getLogger(__name__)

DEFAULT_RECHECK_DELAY = timedelta(minutes=10)


class NotificationDispatcher:
    def __init__(
        self,
        store: DonationStore,
        sender: BaseSender,
        recheck_delay: timedelta = DEFAULT_RECHECK_DELAY,
    ):
        self.store = store
        self.sender = sender
        self.recheck_delay = recheck_delay

    def dispatch(self, donation: Donation, notify_address: str, now: Optional[datetime] = None) -> int:
        """Apply the policy for ``donation.status``; returns the number of messages delivered."""
        sent = self.notify(donation, notify_address)
        if donation.status == DonationStatus.PENDING:
            self._schedule_recheck(donation, notify_address, now or utcnow())
        return sent

    def notify(self, donation: Donation, notify_address: str) -> int:
        """Send the donor-facing and organization-facing message for the current status."""
        sent = self._deliver(donation.donor_email, *donor_message(donation))
        sent += self._deliver(notify_address, *org_message(donation))
        return sent

    def send_followup(self, donation: Donation, notify_address: str) -> int:
        sent = self._deliver(donation.donor_email, *reminder(donor_message(donation)))
        sent += self._deliver(notify_address, *reminder(org_message(donation)))
        return sent

    def run_due_checks(self, now: Optional[datetime] = None) -> int:
        """
        Fire every deferred re-check whose due time has passed.

        Each check is claimed (SCHEDULED → FIRED) and committed before anything
        is sent, so a check fires at most once even across restarts.
        Returns the number of checks that produced a notification.
        """
        now = now or utcnow()
        notified = 0
        for check in self.store.due_checks(now):
            check_id, donation_id, address = check.id, check.donation_id, check.notify_address
            try:
                claimed = self.store.claim_check(check_id, now)
                self.store.commit()
            except SQLAlchemyError:
                self.store.rollback()
                logger.exception("Could not claim deferred check %s", check_id)
                continue
            if not claimed:
                continue

            try:
                donation = self.store.get_donation(donation_id)
            except DonationNotFound:
                logger.warning("Deferred check %s refers to missing donation %s", check_id, donation_id)
                continue
            if donation.status == DonationStatus.PENDING:
                logger.debug("Donation %s still PENDING at re-check; nothing sent", donation_id)
                continue

            logger.info("Donation %s resolved to %s before re-check; notifying", donation_id, donation.status.value)
            self.notify(donation, address)
            notified += 1
        return notified

    def _schedule_recheck(self, donation: Donation, notify_address: str, now: datetime) -> None:
        try:
            self.store.schedule_check(donation.id, notify_address, now + self.recheck_delay)
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception("Could not schedule re-check for donation %s", donation.id)

    def _deliver(self, address: str, subject: str, body: str) -> int:
        if not address:
            logger.warning("No address for notification '%s'; skipped", subject)
            return 0
        try:
            self.sender.send(address, subject, body)
        except Exception:
            logger.exception("Notification '%s' to %s failed", subject, address)
            return 0
        return 1
