"""
Normalizes payment gateway order statuses to the internal donation status.

Gateways report order state in their own vocabulary ("paid", "attempted",
"captured", ...), and that vocabulary grows over time. The mapping here is
total: anything not recognised is treated as still PENDING rather than
raising, so a new gateway state never breaks a reconciliation sweep.
"""
from typing import Optional

from app.models import DonationStatus


# Gateway vocabulary → internal status
GATEWAY_STATES = {
    "paid": DonationStatus.COMPLETED,
    "success": DonationStatus.COMPLETED,
    "completed": DonationStatus.COMPLETED,
    "failed": DonationStatus.FAILED,
    "error": DonationStatus.FAILED,
    "refunded": DonationStatus.REFUNDED,
}

# Statuses that end the donor's payment flow
TERMINAL_STATUSES = frozenset({
    DonationStatus.COMPLETED,
    DonationStatus.FAILED,
    DonationStatus.REFUNDED,
})


def map_gateway_status(raw_status: Optional[str]) -> DonationStatus:
    """
    Map a gateway status string to a DonationStatus.

    Matching is case-insensitive and ignores surrounding whitespace.
    "created", "attempted", None and unknown values all map to PENDING.
    """
    if not raw_status:
        return DonationStatus.PENDING
    return GATEWAY_STATES.get(raw_status.strip().lower(), DonationStatus.PENDING)


def parse_status(value: str) -> DonationStatus:
    """Parse a caller-supplied status name; raises ValueError for unknown names."""
    try:
        return DonationStatus(value.strip().upper())
    except ValueError:
        valid = ", ".join(s.value for s in DonationStatus)
        raise ValueError(f"Invalid status '{value}'. Valid values: {valid}")


def is_terminal(status: DonationStatus) -> bool:
    return status in TERMINAL_STATUSES
