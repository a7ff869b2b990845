"""
Consent Log Retention Policy

Prunes consent_logs rows older than the configured retention period.
Runs as a recurring APScheduler job, so requests pay nothing for it.
"""

import logging

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from consentgate import database

logger = logging.getLogger(__name__)

JOB_ID = "consent_log_retention"


async def prune_old_consent_logs(retention_days: int) -> int:
    """
    Delete consent log rows older than retention_days.

    Opens its own DB session. Returns the count of deleted rows, or 0 on
    failure.
    """
    # Deferred import avoids circular dependency between utils and services
    from consentgate.services.audit_service import enforce_retention

    async with database.AsyncSessionLocal() as db:
        try:
            return await enforce_retention(retention_days, db)
        except SQLAlchemyError as exc:
            logger.warning("audit_retention: prune failed: %s", exc)
            return 0


def install_retention_policy(
    scheduler,
    retention_days: int,
    interval_hours: int = 24,
) -> bool:
    """
    Register the consent-log retention job with the shared APScheduler instance.

    Args:
        scheduler: The application's AsyncIOScheduler (from consentgate.scheduler).
        retention_days: Rows older than this many days are deleted; 0 disables pruning.
        interval_hours: How often to run (default: once daily).

    Returns:
        bool: True if the job was installed
    """
    if retention_days <= 0:
        logger.info("audit_retention: disabled")
        return False

    scheduler.add_job(
        prune_old_consent_logs,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[retention_days],
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "audit_retention: installed (retention=%d days, interval=%dh)",
        retention_days,
        interval_hours,
    )
    return True
