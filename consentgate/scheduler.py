import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from consentgate.config import settings
from consentgate.utils.audit_retention import install_retention_policy

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)


def start_scheduler() -> None:
    """Install the recurring jobs and start the shared scheduler."""
    install_retention_policy(
        scheduler,
        retention_days=settings.audit_retention_days,
        interval_hours=settings.audit_retention_interval_hours,
    )
    if not scheduler.running:
        scheduler.start()
        logger.info(f"[Scheduler] Started with {len(scheduler.get_jobs())} job(s)")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Stopped")
