"""
Consent Audit Service

Queries over the consent_logs table for GDPR requests (Articles 7, 15, 17)
and for operations: lookup, erasure, export, statistics and retention.
All functions are async and accept an injected AsyncSession.

IP lookups hash the given address exactly like ConsentLogger does
(anonymize, salt, SHA-256), so an erasure request by IP matches what was
stored.
"""

import csv
import io
import json
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from consentgate.config import settings
from consentgate.consent.logger import hash_ip
from consentgate.constants import SAVE_ACTIONS, ActionType
from consentgate.exceptions import ValidationError
from consentgate.models.consent_log import ConsentLog
from consentgate.utils.security import sanitize_csv_field

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_LIMIT = 100
MAX_EXPORT_LIMIT = 10000

EXPORT_FIELDS = ["consent_id", "action_type", "policy_version", "categories", "created_at"]
LOOKUP_FIELDS = ["id", "consent_id", "ip_hash", "action_type", "policy_version", "categories", "user_agent", "created_at"]


def _utcnow() -> datetime:
    # created_at is stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _lookup_clause(consent_id: str | None, ip: str | None, secret: str | None):
    if not consent_id and not ip:
        raise ValidationError("Provide a consent_id or an ip to search", field="consent_id")

    clauses = []
    if consent_id:
        clauses.append(ConsentLog.consent_id == consent_id)
    if ip:
        clauses.append(ConsentLog.ip_hash == hash_ip(ip, secret if secret is not None else settings.ip_salt))
    return or_(*clauses)


async def find_logs(
    db: AsyncSession,
    consent_id: str | None = None,
    ip: str | None = None,
    secret: str | None = None,
) -> list[ConsentLog]:
    """
    Return every row matching the consent id OR the (hashed) IP, newest first.

    Raises:
        ValidationError: If neither criterion is given
    """
    result = await db.execute(
        select(ConsentLog)
        .where(_lookup_clause(consent_id, ip, secret))
        .order_by(ConsentLog.created_at.desc(), ConsentLog.id.desc())
    )
    return list(result.scalars().all())


async def erase_logs(
    db: AsyncSession,
    consent_id: str | None = None,
    ip: str | None = None,
    secret: str | None = None,
) -> int:
    """Delete every row matching the consent id OR the (hashed) IP (erasure request)."""
    result = await db.execute(delete(ConsentLog).where(_lookup_clause(consent_id, ip, secret)))
    await db.commit()
    logger.info("Consent logs erased: %d row(s)", result.rowcount)
    return result.rowcount


async def export_logs(
    db: AsyncSession,
    days: int | None = None,
    limit: int | None = DEFAULT_EXPORT_LIMIT,
) -> list[ConsentLog]:
    """
    Return the most recent rows, optionally restricted to the last ``days`` days.

    The limit is capped at MAX_EXPORT_LIMIT.
    """
    if limit is None:
        limit = DEFAULT_EXPORT_LIMIT
    elif limit > MAX_EXPORT_LIMIT:
        logger.warning(f"Export limit {limit} exceeds maximum {MAX_EXPORT_LIMIT}, capping")
        limit = MAX_EXPORT_LIMIT

    query = select(ConsentLog).order_by(ConsentLog.created_at.desc(), ConsentLog.id.desc()).limit(limit)
    if days:
        query = query.where(ConsentLog.created_at >= _utcnow() - timedelta(days=days))

    result = await db.execute(query)
    return list(result.scalars().all())


async def consent_stats(db: AsyncSession, days: int = 30) -> dict[str, Any]:
    """
    Totals and per-action counts.

    Rates are percentages of the rows in the window, rounded to one decimal,
    and None when the window is empty.
    """
    since = _utcnow() - timedelta(days=days)

    total = (await db.execute(select(func.count(ConsentLog.id)))).scalar_one()
    recent = (await db.execute(select(func.count(ConsentLog.id)).where(ConsentLog.created_at >= since))).scalar_one()

    rows = await db.execute(
        select(ConsentLog.action_type, func.count(ConsentLog.id))
        .where(ConsentLog.created_at >= since)
        .group_by(ConsentLog.action_type)
    )
    actions = {action.value: 0 for action in ActionType if action in SAVE_ACTIONS}
    for action_type, count in rows.all():
        actions[action_type] = count

    accept_rate = reject_rate = None
    if recent:
        accept_rate = round(actions[ActionType.ACCEPT_ALL.value] / recent * 100, 1)
        reject_rate = round(actions[ActionType.REJECT_ALL.value] / recent * 100, 1)

    return {
        "days": days,
        "total": total,
        "recent": recent,
        "actions": actions,
        "accept_rate": accept_rate,
        "reject_rate": reject_rate,
    }


async def clear_logs(db: AsyncSession, older_than_days: int | None = None) -> int:
    """Delete all rows, or only rows older than ``older_than_days``."""
    statement = delete(ConsentLog)
    if older_than_days:
        statement = statement.where(ConsentLog.created_at < _utcnow() - timedelta(days=older_than_days))

    result = await db.execute(statement)
    await db.commit()
    logger.info("Consent logs cleared: %d row(s) (older_than=%s)", result.rowcount, older_than_days)
    return result.rowcount


async def enforce_retention(retention_days: int, db: AsyncSession) -> int:
    """
    Delete rows older than retention_days using a single Core-level DELETE.

    Returns the count of deleted rows.
    """
    cutoff = _utcnow() - timedelta(days=retention_days)
    result = await db.execute(delete(ConsentLog).where(ConsentLog.created_at < cutoff))
    await db.commit()
    logger.info(
        "audit_retention: deleted %d consent log rows older than %s (%d days)",
        result.rowcount,
        cutoff.isoformat(),
        retention_days,
    )
    return result.rowcount


# ── Serialization ────────────────────────────────────────────────────────────


def row_to_dict(row: ConsentLog, fields: Iterable[str] = LOOKUP_FIELDS) -> dict[str, Any]:
    data = row.to_dict()
    return {field: data[field] for field in fields}


def rows_to_json(rows: Iterable[ConsentLog], fields: Iterable[str] = LOOKUP_FIELDS) -> str:
    fields = list(fields)
    items = []
    for row in rows:
        item = row_to_dict(row, fields)
        if "categories" in item:
            try:
                item["categories"] = json.loads(item["categories"])
            except (TypeError, ValueError):
                logger.debug(f"Consent log {item.get('id')} has unreadable categories; exported as text")
        items.append(item)
    return json.dumps(items, indent=2)


def rows_to_csv(rows: Iterable[ConsentLog], fields: Iterable[str] = LOOKUP_FIELDS) -> str:
    """Render rows as CSV; every field is sanitized against formula injection."""
    fields = list(fields)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(fields)
    for row in rows:
        data = row_to_dict(row, fields)
        writer.writerow([sanitize_csv_field(data[field]) for field in fields])
    return output.getvalue()
