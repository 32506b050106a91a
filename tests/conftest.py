"""
Shared pytest fixtures for all test modules.

Uses an in-memory SQLite database (StaticPool) so every test
function gets a clean, isolated database with no disk I/O, no state leakage.
"""
import time

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from typing import Optional

from app.config import Settings
from app.database import Base, get_db
from app.exceptions import NotificationFailure
from app.gateways.sandbox import SandboxGateway
from app.models import Cause, Donation, DonationStatus, utcnow
from app.senders.base import BaseSender
from app.services.lifecycle import DonationLifecycleManager
from app.services.reconciliation import ReconciliationService


ORG_EMAIL = "org@example.org"
DONOR_EMAIL = "asha@example.org"

# ---------------------------------------------------------------------------
# In-memory database engine shared across all fixtures in a test session.
# StaticPool forces all SQLAlchemy connections to reuse the same underlying
# sqlite3 connection, which is required for in-memory SQLite.
# ---------------------------------------------------------------------------
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE)


class RecordingSender(BaseSender):
    """Keeps every message instead of delivering it."""

    def __init__(self):
        self.sent = []

    @property
    def sender_name(self) -> str:
        return "recording"

    def send(self, address: str, subject: str, body: str) -> None:
        self.sent.append((address, subject, body))

    def to(self, address: str):
        return [m for m in self.sent if m[0] == address]


class FailingSender(BaseSender):
    def __init__(self):
        self.attempts = 0

    @property
    def sender_name(self) -> str:
        return "failing"

    def send(self, address: str, subject: str, body: str) -> None:
        self.attempts += 1
        raise NotificationFailure(f"SMTP down while sending to {address}")


class SlowSender(RecordingSender):
    """Blocks the calling thread on every send, like a slow SMTP server."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    def send(self, address: str, subject: str, body: str) -> None:
        time.sleep(self.delay)
        super().send(address, subject, body)


@pytest.fixture(autouse=True)
def reset_db():
    """Drop and recreate all tables before each test for full isolation."""
    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db(reset_db):
    """Yield a SQLAlchemy session backed by the in-memory test database."""
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(admin_email=ORG_EMAIL)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def gateway():
    return SandboxGateway(secret="test-secret")


@pytest.fixture
def manager(db, sender):
    return DonationLifecycleManager(db, sender, ORG_EMAIL)


@pytest.fixture
def reconciler(gateway, sender, settings):
    return ReconciliationService(TestingSession, gateway, sender, settings)


@pytest.fixture
def client(db, sender, gateway, reconciler):
    """
    FastAPI TestClient with the real DB dependency overridden to use
    the in-memory test session.  The TestClient is NOT used as a context
    manager so the lifespan hook (tables, background scheduler) is skipped.
    """
    from app.main import app
    from app.config import get_settings
    from app.dependencies import get_gateway, get_reconciler, get_sender

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sender] = lambda: sender
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_settings] = lambda: Settings(admin_email=ORG_EMAIL)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers, not fixtures, so any test file can import and call them directly.
# ---------------------------------------------------------------------------
def make_cause(
    db,
    title: str = "Clean Water",
    current_amount: Decimal = Decimal("0.00"),
) -> Cause:
    cause = Cause(title=title, current_amount=current_amount, target_amount=Decimal("100000.00"))
    db.add(cause)
    db.commit()
    db.refresh(cause)
    return cause


def make_donation(
    db,
    amount: Decimal = Decimal("500.00"),
    currency: str = "INR",
    cause: Optional[Cause] = None,
    status: DonationStatus = DonationStatus.PENDING,
    order_id: Optional[str] = None,
    created_at: Optional[datetime] = None,   # defaults to 1 hour ago
    followup_email_count: int = 0,
    donor_email: str = DONOR_EMAIL,
) -> Donation:
    if created_at is None:
        created_at = utcnow() - timedelta(hours=1)
    donation = Donation(
        donor_name="Asha Rao",
        donor_email=donor_email,
        donor_phone="+91 98450 00000",
        amount=amount,
        currency=currency,
        cause_id=cause.id if cause is not None else None,
        message="For the well project",
        status=status,
        order_id=order_id,
        followup_email_count=followup_email_count,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(donation)
    db.commit()
    db.refresh(donation)
    return donation


def cause_total(db, cause_id: int) -> Decimal:
    db.expire_all()
    return Decimal(db.get(Cause, cause_id).current_amount)
