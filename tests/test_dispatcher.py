"""
Unit tests for app/services/dispatcher.py and app/services/messages.py.

Covers: per-status policy, deferred re-check firing rules, at-most-once
firing, best-effort delivery.
"""
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from app.models import CheckState, DeferredCheck, DonationStatus, utcnow
from app.repository import DonationStore
from app.services.dispatcher import NotificationDispatcher
from app.services.messages import donor_message, org_message
from tests.conftest import DONOR_EMAIL, ORG_EMAIL, FailingSender, make_cause, make_donation


def dispatcher_for(db, sender):
    return NotificationDispatcher(DonationStore(db), sender, recheck_delay=timedelta(minutes=10))


def checks(db):
    db.expire_all()
    return db.execute(select(DeferredCheck)).scalars().all()


class TestImmediatePolicy:
    def test_resolved_statuses_send_donor_and_org_message(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        for status in (DonationStatus.COMPLETED, DonationStatus.FAILED, DonationStatus.REFUNDED):
            sender.sent.clear()
            donation = make_donation(db, status=status)
            assert dispatcher.dispatch(donation, ORG_EMAIL) == 2
            assert len(sender.to(DONOR_EMAIL)) == 1
            assert len(sender.to(ORG_EMAIL)) == 1
        assert checks(db) == []

    def test_pending_sends_now_and_schedules_one_recheck(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        donation = make_donation(db)
        now = utcnow()

        assert dispatcher.dispatch(donation, ORG_EMAIL, now=now) == 2

        [check] = checks(db)
        assert check.donation_id == donation.id
        assert check.due_at == now + timedelta(minutes=10)
        assert check.state == CheckState.SCHEDULED

    def test_failing_sender_is_swallowed(self, db):
        failing = FailingSender()
        dispatcher = dispatcher_for(db, failing)
        donation = make_donation(db, status=DonationStatus.COMPLETED)
        assert dispatcher.dispatch(donation, ORG_EMAIL) == 0
        assert failing.attempts == 2

    def test_missing_address_is_skipped(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        donation = make_donation(db, status=DonationStatus.FAILED)
        assert dispatcher.dispatch(donation, "") == 1
        assert len(sender.to(DONOR_EMAIL)) == 1


class TestDeferredChecks:
    def test_not_fired_before_due(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        now = utcnow()
        dispatcher.dispatch(make_donation(db), ORG_EMAIL, now=now)
        sender.sent.clear()

        assert dispatcher.run_due_checks(now + timedelta(minutes=5)) == 0
        assert checks(db)[0].state == CheckState.SCHEDULED
        assert sender.sent == []

    def test_still_pending_sends_nothing(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        now = utcnow()
        dispatcher.dispatch(make_donation(db), ORG_EMAIL, now=now)
        sender.sent.clear()

        assert dispatcher.run_due_checks(now + timedelta(minutes=11)) == 0
        assert sender.sent == []
        assert checks(db)[0].state == CheckState.FIRED

    def test_status_moved_on_sends_new_status_message(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        now = utcnow()
        donation = make_donation(db)
        dispatcher.dispatch(donation, ORG_EMAIL, now=now)
        sender.sent.clear()

        # Resolved by something other than a transition, so the check was not cancelled
        donation.status = DonationStatus.FAILED
        db.commit()

        assert dispatcher.run_due_checks(now + timedelta(minutes=11)) == 1
        [donor_msg] = sender.to(DONOR_EMAIL)
        assert donor_msg[1] == "Action Required: Your Donation Failed"

    def test_fires_at_most_once(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        now = utcnow()
        donation = make_donation(db)
        dispatcher.dispatch(donation, ORG_EMAIL, now=now)
        donation.status = DonationStatus.COMPLETED
        db.commit()
        sender.sent.clear()

        later = now + timedelta(minutes=11)
        assert dispatcher.run_due_checks(later) == 1
        assert dispatcher.run_due_checks(later + timedelta(minutes=30)) == 0
        assert len(sender.to(DONOR_EMAIL)) == 1

    def test_cancelled_check_is_ignored(self, db, sender):
        store = DonationStore(db)
        dispatcher = NotificationDispatcher(store, sender)
        now = utcnow()
        donation = make_donation(db)
        dispatcher.dispatch(donation, ORG_EMAIL, now=now)
        store.cancel_checks(donation.id)
        donation.status = DonationStatus.COMPLETED
        db.commit()
        sender.sent.clear()

        assert dispatcher.run_due_checks(now + timedelta(hours=1)) == 0
        assert sender.sent == []

    def test_followup_messages_are_marked_as_reminders(self, db, sender):
        dispatcher = dispatcher_for(db, sender)
        assert dispatcher.send_followup(make_donation(db), ORG_EMAIL) == 2
        assert all(subject.startswith("Reminder: ") for _, subject, _ in sender.sent)


class TestMessages:
    def test_org_subject_includes_amount_and_donor(self, db):
        donation = make_donation(db, amount=Decimal("500.00"))
        subject, body = org_message(donation)
        assert subject == "Pending Donation: INR 500.00 from Asha Rao"
        assert DONOR_EMAIL in body

    def test_donor_body_names_cause(self, db):
        cause = make_cause(db, title="Clean Water")
        donation = make_donation(db, cause=cause, status=DonationStatus.COMPLETED)
        subject, body = donor_message(donation)
        assert subject == "Your Donation is Complete - Thank You!"
        assert "Clean Water" in body
        assert "Dear Asha Rao" in body

    def test_refund_subject_has_donation_id(self, db):
        donation = make_donation(db, status=DonationStatus.REFUNDED)
        subject, _ = org_message(donation)
        assert subject.endswith(f"(ID: {donation.id})")
