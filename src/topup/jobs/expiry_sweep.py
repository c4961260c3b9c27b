"""Background scheduler for the transaction expiry sweep."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import session_scope
from ..services.expiry_service import expire_overdue_transactions

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


def run_sweep_once(current_time: datetime | None = None) -> dict[str, int]:
    """Run the sweep synchronously; also used by the scheduled job."""

    with session_scope() as session:
        return expire_overdue_transactions(session, current_time=current_time)


async def _scheduled_job() -> None:
    try:
        summary = run_sweep_once(datetime.now(timezone.utc))
        logger.info("expiry sweep completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        logger.exception("expiry sweep job failed")
        raise


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.running:
            _scheduler.add_job(
                _scheduled_job,
                "interval",
                minutes=get_settings().expiry_sweep_minutes,
                id="expiry_sweep",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            _scheduler.start()
            logger.info("expiry sweep scheduler started")

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("expiry sweep scheduler stopped")
