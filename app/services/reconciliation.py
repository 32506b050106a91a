"""
Donation reconciliation service.

Status sweep (every 5 minutes):
1. PENDING donations that already have a gateway order id
2. Every donation created in the last 24 hours, as a cross-check
3. Ask the gateway for each order's status and map it to a DonationStatus
4. Feed any difference into DonationLifecycleManager.transition()

Follow-up sweep (every 30 minutes):
  PENDING donations older than 2 hours with fewer than 2 follow-ups get one
  reminder each; the counter is bumped atomically before sending.

Deferred checks (every 30 seconds):
  Fire the one-shot re-checks the dispatcher scheduled for PENDING notices.

A failure on one donation is logged and recorded in the report; the rest of
the batch carries on. Database work and mail delivery run in worker threads,
one session per call, so the event loop keeps serving requests during a sweep.
Each sweep kind is single-flight: a run that starts while the previous run of
the same kind is still going is skipped.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings
from app.exceptions import DonationError
from app.gateways.base import BaseGateway
from app.models import Donation, DonationStatus, utcnow
from app.repository import DonationStore
from app.senders.base import BaseSender
from app.services.lifecycle import DonationLifecycleManager
from app.services.normalizer import map_gateway_status

logger = logging.getLogger(__name__)

# (donation id, gateway order id, stored status) read before the gateway call
Candidate = Tuple[int, Optional[str], DonationStatus]


STATUS_SWEEP = "status"
FOLLOWUP_SWEEP = "followup"
DEFERRED_SWEEP = "deferred"


class SweepReport:
    def __init__(self, kind: str, started_at: datetime, skipped: bool = False):
        self.kind = kind
        self.started_at = started_at
        self.skipped = skipped
        self.candidates = 0
        self.checked = 0
        self.updated = 0
        self.errors: List[Tuple[int, str]] = []
        self.finished_at: Optional[datetime] = None

    def __repr__(self):
        return (
            f"<SweepReport {self.kind} candidates={self.candidates} checked={self.checked} "
            f"updated={self.updated} errors={len(self.errors)} skipped={self.skipped}>"
        )


class ReconciliationService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: BaseGateway,
        sender: BaseSender,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.sender = sender
        self.notify_address = settings.admin_email

        scheduler = settings.scheduler
        self.recent_window = timedelta(hours=scheduler.recent_window_hours)
        self.followup_age = timedelta(hours=scheduler.followup_age_hours)
        self.max_followups = scheduler.max_followup_emails
        self.recheck_delay = timedelta(seconds=scheduler.deferred_check_delay_seconds)

        self._locks: Dict[str, asyncio.Lock] = {
            STATUS_SWEEP: asyncio.Lock(),
            FOLLOWUP_SWEEP: asyncio.Lock(),
            DEFERRED_SWEEP: asyncio.Lock(),
        }

    def is_running(self, kind: str) -> bool:
        return self._locks[kind].locked()

    def _manager(self, db: Session) -> DonationLifecycleManager:
        return DonationLifecycleManager(db, self.sender, self.notify_address, self.recheck_delay)

    # -- status reconciliation -------------------------------------------------

    async def sweep_statuses(self, now: Optional[datetime] = None) -> SweepReport:
        """Reconcile pending and recent donations against the gateway."""
        now = now or utcnow()
        lock = self._locks[STATUS_SWEEP]
        if lock.locked():
            logger.warning("Status sweep already running; skipping this run")
            return SweepReport(STATUS_SWEEP, now, skipped=True)

        async with lock:
            report = SweepReport(STATUS_SWEEP, now)
            candidates = await asyncio.to_thread(self._status_candidates, now)
            report.candidates = len(candidates)
            await self._reconcile(candidates, report, now)
            report.finished_at = utcnow()
            logger.info("Status sweep finished: %r", report)
            return report

    async def force_check_all(self) -> SweepReport:
        """Run the status sweep logic over every donation."""
        now = utcnow()
        lock = self._locks[STATUS_SWEEP]
        if lock.locked():
            logger.warning("Status sweep already running; force check skipped")
            return SweepReport(STATUS_SWEEP, now, skipped=True)

        async with lock:
            logger.info("Force checking all donation statuses...")
            report = SweepReport(STATUS_SWEEP, now)
            candidates = await asyncio.to_thread(self._status_candidates, now, True)
            report.candidates = len(candidates)
            await self._reconcile(candidates, report, now)
            report.finished_at = utcnow()
            logger.info("Force check finished: %r", report)
            return report

    def _status_candidates(self, now: datetime, everything: bool = False) -> List[Candidate]:
        with self.session_factory() as db:
            store = DonationStore(db)
            if everything:
                donations = store.all_donations()
            else:
                pending = store.pending_with_order()
                if pending:
                    logger.info("Found %d pending donations. Checking statuses...", len(pending))
                donations = _unique(pending + store.created_since(now - self.recent_window))
            return [(d.id, d.order_id, d.status) for d in donations]

    async def _reconcile(self, candidates: List[Candidate], report: SweepReport, now: datetime) -> None:
        for donation_id, order_id, current in candidates:
            if not order_id or not order_id.strip():
                continue

            try:
                raw_status = await self.gateway.get_order_status(order_id)
            except Exception as e:
                logger.error("Error checking payment status for donation %s: %s", donation_id, e)
                report.errors.append((donation_id, str(e)))
                continue

            report.checked += 1
            new_status = map_gateway_status(raw_status)
            if new_status == current:
                continue

            try:
                await asyncio.to_thread(self._transition, donation_id, new_status, now)
            except DonationError as e:
                logger.exception("Error processing donation %s", donation_id)
                report.errors.append((donation_id, str(e)))
                continue

            report.updated += 1
            logger.info(
                "Auto-updated donation %s from %s to %s",
                donation_id, current.value, new_status.value,
            )

    def _transition(self, donation_id: int, new_status: DonationStatus, now: datetime) -> None:
        with self.session_factory() as db:
            self._manager(db).transition(donation_id, new_status, notify_address=self.notify_address, now=now)

    # -- follow-ups ------------------------------------------------------------

    async def sweep_followups(self, now: Optional[datetime] = None) -> SweepReport:
        """Send capped reminders for donations stuck in PENDING."""
        now = now or utcnow()
        lock = self._locks[FOLLOWUP_SWEEP]
        if lock.locked():
            logger.warning("Follow-up sweep already running; skipping this run")
            return SweepReport(FOLLOWUP_SWEEP, now, skipped=True)

        async with lock:
            report = SweepReport(FOLLOWUP_SWEEP, now)
            candidates = await asyncio.to_thread(self._followup_candidates, now)
            report.candidates = len(candidates)

            for donation_id in candidates:
                try:
                    sent = await asyncio.to_thread(self._send_followup, donation_id)
                except SQLAlchemyError as e:
                    logger.exception("Error claiming follow-up for donation %s", donation_id)
                    report.errors.append((donation_id, str(e)))
                    continue
                report.checked += 1
                if sent:
                    report.updated += 1
            report.finished_at = utcnow()
            logger.info("Follow-up sweep finished. %d reminders sent.", report.updated)
            return report

    def _followup_candidates(self, now: datetime) -> List[int]:
        with self.session_factory() as db:
            donations = DonationStore(db).pending_for_followup(now - self.followup_age, self.max_followups)
            return [d.id for d in donations]

    def _send_followup(self, donation_id: int) -> bool:
        """Claim one follow-up slot for the donation and send the reminder. False if the cap was hit."""
        with self.session_factory() as db:
            manager = self._manager(db)
            store = manager.store
            try:
                claimed = store.claim_followup(donation_id, self.max_followups)
                store.commit()
            except SQLAlchemyError:
                store.rollback()
                raise
            if not claimed:
                return False

            donation = store.get_donation(donation_id)
            manager.dispatcher.send_followup(donation, self.notify_address)
            logger.info(
                "Sent follow-up #%d for pending donation %s (created: %s)",
                donation.followup_email_count, donation_id, donation.created_at,
            )
            if donation.followup_email_count >= self.max_followups:
                logger.info("Donation %s has reached maximum follow-ups (%d)", donation_id, self.max_followups)
            return True

    # -- deferred re-checks ----------------------------------------------------

    async def run_deferred_checks(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utcnow()
        lock = self._locks[DEFERRED_SWEEP]
        if lock.locked():
            return SweepReport(DEFERRED_SWEEP, now, skipped=True)

        async with lock:
            report = SweepReport(DEFERRED_SWEEP, now)
            report.updated = await asyncio.to_thread(self._run_due_checks, now)
            report.finished_at = utcnow()
            return report

    def _run_due_checks(self, now: datetime) -> int:
        with self.session_factory() as db:
            return self._manager(db).dispatcher.run_due_checks(now)




def _unique(donations: List[Donation]) -> List[Donation]:
    seen = set()
    result = []
    for donation in donations:
        if donation.id not in seen:
            seen.add(donation.id)
            result.append(donation)
    return result
