from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models import DonationStatus


class DonationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    donor_name: str
    donor_email: str
    amount: Decimal
    currency: str
    cause_id: Optional[int]
    cause_title: str
    status: DonationStatus
    payment_id: Optional[str]
    order_id: Optional[str]
    followup_email_count: int
    created_at: datetime
    updated_at: datetime


class OrderResponse(BaseModel):
    donation_id: int
    order_id: str
    amount: Decimal
    currency: str
    gateway: str


class VerificationResponse(BaseModel):
    verified: bool


class NotificationResponse(BaseModel):
    donation_id: int
    messages_sent: int


class ForceCheckResponse(BaseModel):
    status: str
    message: str
