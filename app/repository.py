"""SQLAlchemy-backed donation store."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.exceptions import CauseNotFound, DonationNotFound
from app.models import Cause, CheckState, DeferredCheck, Donation, DonationStatus, utcnow


class DonationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # -- point reads ---------------------------------------------------------

    def get_donation(self, donation_id: int) -> Donation:
        donation = self.db.get(Donation, donation_id)
        if donation is None:
            raise DonationNotFound(f"Donation {donation_id} not found")
        return donation

    def get_cause(self, cause_id: int) -> Cause:
        cause = self.db.get(Cause, cause_id)
        if cause is None:
            raise CauseNotFound(f"Cause {cause_id} not found")
        return cause

    def find_by_order_id(self, order_id: str) -> Optional[Donation]:
        stmt = select(Donation).where(Donation.order_id == order_id)
        return self.db.execute(stmt).scalars().first()

    # -- scans ---------------------------------------------------------------

    def pending_with_order(self) -> List[Donation]:
        stmt = (
            select(Donation)
            .where(
                Donation.status == DonationStatus.PENDING,
                Donation.order_id.is_not(None),
                Donation.order_id != "",
            )
            .order_by(Donation.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def created_since(self, cutoff: datetime) -> List[Donation]:
        stmt = select(Donation).where(Donation.created_at > cutoff).order_by(Donation.id)
        return list(self.db.execute(stmt).scalars().all())

    def all_donations(self) -> List[Donation]:
        stmt = select(Donation).order_by(Donation.id)
        return list(self.db.execute(stmt).scalars().all())

    def list_donations(self, status: Optional[DonationStatus] = None) -> List[Donation]:
        """Newest first, optionally restricted to one status."""
        stmt = select(Donation).order_by(Donation.created_at.desc(), Donation.id.desc())
        if status is not None:
            stmt = stmt.where(Donation.status == status)
        return list(self.db.execute(stmt).scalars().all())

    def pending_for_followup(self, cutoff: datetime, max_count: int) -> List[Donation]:
        """PENDING donations created before ``cutoff`` with fewer than ``max_count`` follow-ups."""
        stmt = (
            select(Donation)
            .where(
                Donation.status == DonationStatus.PENDING,
                Donation.created_at < cutoff,
                Donation.followup_email_count < max_count,
            )
            .order_by(Donation.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    # -- writes --------------------------------------------------------------

    def add_donation(self, donation: Donation) -> Donation:
        self.db.add(donation)
        self.db.flush()
        return donation

    def attach_order(self, donation_id: int, order_id: str) -> None:
        result = self.db.execute(
            update(Donation)
            .where(Donation.id == donation_id)
            .values(order_id=order_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise DonationNotFound(f"Donation {donation_id} not found")

    def apply_status(
        self,
        donation: Donation,
        new_status: DonationStatus,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Optional[DonationStatus]:
        """
        Write ``new_status`` and keep the cause total in step, without committing.

        Every status change is a conditional UPDATE so that two writers racing
        on the same donation cannot both observe the same edge. Returns the
        status the donation left, or None when it already had ``new_status``.
        """
        values = {"status": new_status, "updated_at": utcnow()}
        if payment_id is not None:
            values["payment_id"] = payment_id
        if order_id is not None:
            values["order_id"] = order_id

        previous = None
        if new_status != DonationStatus.COMPLETED:
            # Leaving COMPLETED takes the amount back out of the cause total
            if self._conditional_update(donation.id, values, Donation.status == DonationStatus.COMPLETED):
                previous = DonationStatus.COMPLETED
                self._add_to_cause(donation, -Decimal(donation.amount))

        if previous is None:
            old_status = donation.status
            if self._conditional_update(donation.id, values, Donation.status != new_status):
                previous = old_status
                if new_status == DonationStatus.COMPLETED:
                    self._add_to_cause(donation, Decimal(donation.amount))
            else:
                # Same status re-applied: refresh identifiers and updated_at only
                values.pop("status")
                self._conditional_update(donation.id, values)

        self.db.expire(donation)
        return previous

    def _conditional_update(self, donation_id: int, values: dict, *criteria) -> bool:
        result = self.db.execute(
            update(Donation)
            .where(Donation.id == donation_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def _add_to_cause(self, donation: Donation, delta: Decimal) -> None:
        if donation.cause_id is None:
            return
        # Atomic add at the database; never read-modify-write the total here
        self.db.execute(
            update(Cause)
            .where(Cause.id == donation.cause_id)
            .values(current_amount=Cause.current_amount + delta, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    def claim_followup(self, donation_id: int, max_count: int) -> bool:
        """Atomically bump the follow-up counter if the donation is still eligible."""
        result = self.db.execute(
            update(Donation)
            .where(
                Donation.id == donation_id,
                Donation.status == DonationStatus.PENDING,
                Donation.followup_email_count < max_count,
            )
            .values(
                followup_email_count=Donation.followup_email_count + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    # -- deferred checks -----------------------------------------------------

    def schedule_check(self, donation_id: int, notify_address: str, due_at: datetime) -> DeferredCheck:
        check = DeferredCheck(
            donation_id=donation_id,
            notify_address=notify_address,
            due_at=due_at,
            state=CheckState.SCHEDULED,
        )
        self.db.add(check)
        self.db.flush()
        return check

    def cancel_checks(self, donation_id: int) -> int:
        result = self.db.execute(
            update(DeferredCheck)
            .where(
                DeferredCheck.donation_id == donation_id,
                DeferredCheck.state == CheckState.SCHEDULED,
            )
            .values(state=CheckState.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def due_checks(self, now: datetime) -> List[DeferredCheck]:
        stmt = (
            select(DeferredCheck)
            .where(DeferredCheck.state == CheckState.SCHEDULED, DeferredCheck.due_at <= now)
            .order_by(DeferredCheck.due_at, DeferredCheck.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def claim_check(self, check_id: int, now: datetime) -> bool:
        """Mark a scheduled check FIRED; False if another run already took it."""
        result = self.db.execute(
            update(DeferredCheck)
            .where(DeferredCheck.id == check_id, DeferredCheck.state == CheckState.SCHEDULED)
            .values(state=CheckState.FIRED, fired_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    # -- unit of work --------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
