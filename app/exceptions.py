"""Donation engine exceptions."""


class DonationError(Exception):
    """Base class for donation engine errors."""


class DonationNotFound(DonationError, ValueError):
    """Raised when a donation id or order id does not resolve."""


class CauseNotFound(DonationError, ValueError):
    """Raised when a cause id does not resolve."""


class GatewayUnavailable(DonationError, RuntimeError):
    """Raised on network errors, timeouts or error responses from the gateway."""


class StoreFailure(DonationError, RuntimeError):
    """Raised when a status/aggregation write could not be committed."""


class NotificationFailure(DonationError):
    """Raised by senders when a message could not be delivered."""
