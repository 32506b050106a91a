from abc import ABC, abstractmethod


class BaseSender(ABC):
    """Abstract base for notification delivery backends."""

    @abstractmethod
    def send(self, address: str, subject: str, body: str) -> None:
        """
        Deliver one message. Best-effort: implementations raise
        NotificationFailure on delivery errors and never retry.
        """
        pass

    @property
    @abstractmethod
    def sender_name(self) -> str:
        pass
