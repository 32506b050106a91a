import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app import models
from app.config import get_settings
from app.database import engine
from app.dependencies import get_reconciler
from app.services.scheduler import BackgroundScheduler

settings = get_settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_scheduler() -> BackgroundScheduler:
    reconciler = get_reconciler()
    intervals = settings.scheduler
    scheduler = BackgroundScheduler()
    scheduler.every(intervals.reconciliation_interval_seconds, reconciler.sweep_statuses, "status-reconciliation")
    scheduler.every(intervals.followup_interval_seconds, reconciler.sweep_followups, "pending-followups")
    scheduler.every(intervals.deferred_poll_seconds, reconciler.run_deferred_checks, "deferred-checks")
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    models.Base.metadata.create_all(bind=engine)
    scheduler = None
    if settings.scheduler.enabled:
        scheduler = build_scheduler()
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title=settings.project_name,
    description="Tracks donation payment status, reconciles it with the payment gateway "
                "and keeps cause totals and donor notifications consistent",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "donation-reconciliation-api"}


from app.routers import admin, donations, payments  # noqa: E402
app.include_router(donations.router, prefix=f"{settings.api_prefix}/donations", tags=["donations"])
app.include_router(payments.router, prefix=f"{settings.api_prefix}/payments", tags=["payments"])
app.include_router(admin.router, prefix=f"{settings.api_prefix}/admin", tags=["admin"])
