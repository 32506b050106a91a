from datetime import timedelta
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import SessionLocal, get_db
from app.gateways.base import BaseGateway
from app.gateways.razorpay import RazorpayGateway
from app.gateways.sandbox import SandboxGateway
from app.senders.base import BaseSender
from app.senders.log import LogSender
from app.senders.smtp import SmtpSender
from app.services.lifecycle import DonationLifecycleManager
from app.services.reconciliation import ReconciliationService


@lru_cache()
def get_gateway() -> BaseGateway:
    gateway = get_settings().gateway
    if gateway.provider == "razorpay":
        return RazorpayGateway(
            key_id=gateway.key_id,
            key_secret=gateway.key_secret,
            base_url=gateway.base_url,
            timeout=gateway.timeout_seconds,
        )
    return SandboxGateway(secret=gateway.key_secret)


@lru_cache()
def get_sender() -> BaseSender:
    mail = get_settings().mail
    if mail.backend == "smtp":
        return SmtpSender(
            host=mail.host,
            port=mail.port,
            from_address=mail.from_address,
            username=mail.username,
            password=mail.password,
            use_tls=mail.use_tls,
        )
    return LogSender()


@lru_cache()
def get_reconciler() -> ReconciliationService:
    return ReconciliationService(SessionLocal, get_gateway(), get_sender(), get_settings())


def get_manager(
    db: Session = Depends(get_db),
    sender: BaseSender = Depends(get_sender),
    settings: Settings = Depends(get_settings),
) -> DonationLifecycleManager:
    return DonationLifecycleManager(
        db,
        sender,
        settings.admin_email,
        recheck_delay=timedelta(seconds=settings.scheduler.deferred_check_delay_seconds),
    )
