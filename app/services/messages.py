"""
Donor-facing and organization-facing notification copy, per donation status.

Each builder returns a (subject, html_body) tuple ready for a sender.
"""
from typing import Tuple

from app.models import Donation, DonationStatus


STATUS_COLORS = {
    DonationStatus.COMPLETED: "#28a745",
    DonationStatus.FAILED: "#dc3545",
    DonationStatus.PENDING: "#ffc107",
    DonationStatus.REFUNDED: "#17a2b8",
}

DONOR_SUBJECTS = {
    DonationStatus.COMPLETED: "Your Donation is Complete - Thank You!",
    DonationStatus.PENDING: "Your Donation is Pending",
    DonationStatus.FAILED: "Action Required: Your Donation Failed",
    DonationStatus.REFUNDED: "Your Donation Has Been Refunded",
}

DONOR_HEADINGS = {
    DonationStatus.COMPLETED: "Donation Confirmed - Thank You!",
    DonationStatus.PENDING: "Your Donation is Pending",
    DonationStatus.FAILED: "Donation Unsuccessful",
    DonationStatus.REFUNDED: "Donation Refunded",
}

DONOR_LINES = {
    DonationStatus.COMPLETED: "We are delighted to confirm that your donation has been successfully received.",
    DonationStatus.PENDING: "Your donation is currently pending. We will notify you once the payment is confirmed.",
    DonationStatus.FAILED: "Unfortunately, your donation could not be processed. Please try again or contact support.",
    DonationStatus.REFUNDED: "Your donation has been refunded. For further details, please contact support.",
}

ORG_HEADINGS = {
    DonationStatus.COMPLETED: "New Donation Received!",
    DonationStatus.PENDING: "New Pending Donation",
    DonationStatus.FAILED: "Donation Attempt Failed",
    DonationStatus.REFUNDED: "Donation Refunded",
}

REMINDER_PREFIX = "Reminder: "


def _amount(donation: Donation) -> str:
    return f"{donation.currency} {donation.amount}"


def _org_subject(donation: Donation) -> str:
    status = donation.status
    if status == DonationStatus.COMPLETED:
        return f"New Donation: {_amount(donation)} Received!"
    if status == DonationStatus.PENDING:
        return f"Pending Donation: {_amount(donation)} from {donation.donor_name}"
    if status == DonationStatus.FAILED:
        return f"Failed Donation: {_amount(donation)} from {donation.donor_name}"
    return f"Donation Refunded: {_amount(donation)} (ID: {donation.id})"


def _details(donation: Donation, include_donor: bool) -> str:
    rows = []
    if include_donor:
        rows.append(f"<p><strong>Donor Name:</strong> {donation.donor_name}</p>")
        rows.append(f"<p><strong>Donor Email:</strong> {donation.donor_email}</p>")
        rows.append(f"<p><strong>Donor Phone:</strong> {donation.donor_phone or 'Not provided'}</p>")
    rows.append(f"<p><strong>Amount:</strong> {_amount(donation)}</p>")
    rows.append(f"<p><strong>Cause:</strong> {donation.cause_title}</p>")
    rows.append(f"<p><strong>Status:</strong> {donation.status.value}</p>")
    if donation.payment_id:
        rows.append(f"<p><strong>Payment ID:</strong> {donation.payment_id}</p>")
    rows.append(f"<p><strong>Date:</strong> {donation.created_at:%b %d, %Y %H:%M} UTC</p>")
    if include_donor and donation.message:
        rows.append(f"<p><strong>Message:</strong> {donation.message}</p>")
    return "\n".join(rows)


def _wrap(color: str, heading: str, inner: str) -> str:
    return (
        "<html><body style='font-family: Arial, sans-serif; line-height: 1.6; color: #333;'>"
        "<div style='max-width: 600px; margin: 0 auto; padding: 20px;'>"
        f"<h1 style='color: {color}; text-align: center;'>{heading}</h1>"
        f"{inner}"
        "</div></body></html>"
    )


def donor_message(donation: Donation) -> Tuple[str, str]:
    status = donation.status
    inner = (
        f"<p>Dear {donation.donor_name},</p>"
        f"<p>{DONOR_LINES[status]}</p>"
        f"{_details(donation, include_donor=False)}"
        "<p>With heartfelt gratitude,<br>The DonorBox Team</p>"
    )
    return DONOR_SUBJECTS[status], _wrap(STATUS_COLORS[status], DONOR_HEADINGS[status], inner)


def org_message(donation: Donation) -> Tuple[str, str]:
    status = donation.status
    inner = (
        f"{_details(donation, include_donor=True)}"
        "<p>Please log into the admin dashboard to view more details and manage this donation.</p>"
    )
    return _org_subject(donation), _wrap(STATUS_COLORS[status], ORG_HEADINGS[status], inner)


def reminder(message: Tuple[str, str]) -> Tuple[str, str]:
    subject, body = message
    return REMINDER_PREFIX + subject, body
