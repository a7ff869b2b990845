"""
Consent Audit Routes (admin)

GDPR tooling over the consent audit log, guarded by the admin API key:
- Lookup by consent id and/or IP (right of access)
- Erasure by consent id and/or IP (right to be forgotten)
- Export of recent rows
- Aggregate statistics
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from consentgate.auth import require_admin
from consentgate.database import get_db
from consentgate.exceptions import ConsentLogNotFoundError
from consentgate.schemas.audit import ConsentLogList, ConsentLogOut, ConsentStats, ErasureResponse
from consentgate.services import audit_service

router = APIRouter(prefix="/admin/consent-logs", tags=["Consent Audit"], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)

FORMAT_PATTERN = "^(json|csv)$"


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("", response_model=ConsentLogList)
async def lookup_consent_logs(
    consent_id: str | None = None,
    ip: str | None = None,
    format: str = Query("json", pattern=FORMAT_PATTERN),
    db: AsyncSession = Depends(get_db),
):
    """
    Find the audit rows of one visitor.

    **Parameters**:
    - consent_id: Consent id from the visitor's cookie
    - ip: Visitor IP; anonymized and hashed the same way as when logged
    - format: json (default) or csv

    Rows matching either criterion are returned, newest first.
    """
    rows = await audit_service.find_logs(db, consent_id=consent_id, ip=ip)
    if not rows:
        raise ConsentLogNotFoundError(consent_id)

    if format == "csv":
        return _csv_response(audit_service.rows_to_csv(rows), "consent_lookup.csv")

    return ConsentLogList(total=len(rows), logs=[ConsentLogOut.model_validate(row) for row in rows])


@router.delete("", response_model=ErasureResponse)
async def erase_consent_logs(
    consent_id: str | None = None,
    ip: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Delete the audit rows of one visitor (erasure request)."""
    deleted = await audit_service.erase_logs(db, consent_id=consent_id, ip=ip)
    logger.info(f"Erasure request processed: {deleted} consent log row(s) deleted")
    return ErasureResponse(deleted=deleted)


@router.get("/export", response_model=ConsentLogList)
async def export_consent_logs(
    days: int | None = Query(None, ge=1),
    limit: int = Query(audit_service.DEFAULT_EXPORT_LIMIT, ge=1),
    format: str = Query("json", pattern=FORMAT_PATTERN),
    db: AsyncSession = Depends(get_db),
):
    """
    Export the most recent audit rows.

    **Parameters**:
    - days: Only rows from the last N days
    - limit: Maximum number of rows (capped)
    - format: json (default) or csv
    """
    rows = await audit_service.export_logs(db, days=days, limit=limit)

    if format == "csv":
        return _csv_response(audit_service.rows_to_csv(rows, audit_service.EXPORT_FIELDS), "consent_export.csv")

    return ConsentLogList(total=len(rows), logs=[ConsentLogOut.model_validate(row) for row in rows])


@router.get("/stats", response_model=ConsentStats)
async def get_consent_stats(
    days: int = Query(30, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Consent totals, per-action counts and accept/reject rates over the last N days."""
    return ConsentStats(**await audit_service.consent_stats(db, days=days))
