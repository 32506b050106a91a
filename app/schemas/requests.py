from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models import DonationStatus
from app.services.normalizer import parse_status


class DonationRequest(BaseModel):
    donor_name: str = Field(min_length=1)
    donor_email: str = Field(min_length=3)
    donor_phone: Optional[str] = None
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    cause_id: Optional[int] = None
    message: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("donor_email")
    @classmethod
    def validate_email(cls, v):
        if "@" not in v:
            raise ValueError("A valid email is required")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()


class PaymentVerificationRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class StatusUpdateRequest(BaseModel):
    status: DonationStatus
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    org_email: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, str):
            return parse_status(v)
        return v
