import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DonationStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class CheckState(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    FIRED = "FIRED"
    CANCELLED = "CANCELLED"


class Cause(Base):
    __tablename__ = "causes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    target_amount = Column(Numeric(12, 2), nullable=True)
    current_amount = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    donations = relationship("Donation", back_populates="cause")


class Donation(Base):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    donor_name = Column(String, nullable=False)
    donor_email = Column(String, nullable=False)
    donor_phone = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=True, index=True)
    message = Column(Text, nullable=True)
    payment_method = Column(String, nullable=True)

    status = Column(
        Enum(DonationStatus, native_enum=False, length=16),
        nullable=False,
        default=DonationStatus.PENDING,
        index=True,
    )
    payment_id = Column(String, nullable=True)
    order_id = Column(String, nullable=True, unique=True)
    followup_email_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    cause = relationship("Cause", back_populates="donations")

    @property
    def cause_title(self) -> str:
        return self.cause.title if self.cause is not None else "General Fund"


class DeferredCheck(Base):
    """One-shot re-check of a donation that was notified while PENDING."""

    __tablename__ = "deferred_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    donation_id = Column(Integer, ForeignKey("donations.id"), nullable=False, index=True)
    notify_address = Column(String, nullable=False)
    due_at = Column(DateTime, nullable=False, index=True)
    state = Column(
        Enum(CheckState, native_enum=False, length=16),
        nullable=False,
        default=CheckState.SCHEDULED,
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)
    fired_at = Column(DateTime, nullable=True)
