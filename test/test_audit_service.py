"""
Tests for the consent audit service and the retention policy
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from consentgate.consent.logger import hash_ip
from consentgate.exceptions import ValidationError
from consentgate.models.consent_log import ConsentLog
from consentgate.services import audit_service
from consentgate.utils.audit_retention import JOB_ID, install_retention_policy, prune_old_consent_logs
from consentgate.utils.security import sanitize_csv_field

SECRET = "test-salt"


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _log(consent_id, ip="203.0.113.57", action="accept_all", age_days=0, user_agent="Mozilla/5.0"):
    return ConsentLog(
        consent_id=consent_id,
        ip_hash=hash_ip(ip, SECRET),
        categories=json.dumps({"necessary": True, "analytics": action == "accept_all"}),
        policy_version="1.0",
        action_type=action,
        user_agent=user_agent,
        created_at=_now() - timedelta(days=age_days),
    )


@pytest.fixture
async def seeded_db(test_db):
    test_db.add_all(
        [
            _log("a", action="accept_all", age_days=40),
            _log("b", action="reject_all", age_days=2),
            _log("c", ip="198.51.100.9", action="customize", age_days=1),
            _log("d", ip="198.51.100.9", action="accept_all"),
        ]
    )
    await test_db.commit()
    return test_db


async def _count(db) -> int:
    return (await db.execute(select(func.count(ConsentLog.id)))).scalar_one()


class TestLookupAndErasure:
    """Test GDPR lookup and erasure"""

    async def test_find_by_ip_newest_first(self, seeded_db):
        rows = await audit_service.find_logs(seeded_db, ip="203.0.113.1", secret=SECRET)
        assert [row.consent_id for row in rows] == ["b", "a"]

    async def test_find_by_consent_id(self, seeded_db):
        rows = await audit_service.find_logs(seeded_db, consent_id="c", secret=SECRET)
        assert [row.consent_id for row in rows] == ["c"]

    async def test_find_ors_criteria(self, seeded_db):
        rows = await audit_service.find_logs(seeded_db, consent_id="d", ip="203.0.113.57", secret=SECRET)
        assert {row.consent_id for row in rows} == {"a", "b", "d"}

    async def test_find_requires_a_criterion(self, seeded_db):
        with pytest.raises(ValidationError):
            await audit_service.find_logs(seeded_db)

    async def test_wrong_salt_matches_nothing(self, seeded_db):
        assert await audit_service.find_logs(seeded_db, ip="203.0.113.57", secret="other") == []

    async def test_erase_by_ip(self, seeded_db):
        deleted = await audit_service.erase_logs(seeded_db, ip="198.51.100.9", secret=SECRET)

        assert deleted == 2
        assert await _count(seeded_db) == 2


class TestExport:
    """Test exports and serialization"""

    async def test_export_window_and_limit(self, seeded_db):
        assert [row.consent_id for row in await audit_service.export_logs(seeded_db)] == ["d", "c", "b", "a"]
        assert len(await audit_service.export_logs(seeded_db, days=30)) == 3
        assert len(await audit_service.export_logs(seeded_db, limit=1)) == 1

    async def test_export_limit_is_capped(self, seeded_db, monkeypatch):
        monkeypatch.setattr(audit_service, "MAX_EXPORT_LIMIT", 2)
        assert len(await audit_service.export_logs(seeded_db, limit=500)) == 2

    async def test_rows_to_json_parses_categories(self, seeded_db):
        rows = await audit_service.find_logs(seeded_db, consent_id="a", secret=SECRET)

        items = json.loads(audit_service.rows_to_json(rows, audit_service.EXPORT_FIELDS))

        assert items[0]["categories"] == {"necessary": True, "analytics": True}
        assert set(items[0]) == set(audit_service.EXPORT_FIELDS)

    async def test_rows_to_csv_sanitizes_user_agent(self, test_db):
        test_db.add(_log("x", user_agent="=cmd|' /C calc'!A0"))
        await test_db.commit()

        rows = await audit_service.find_logs(test_db, consent_id="x", secret=SECRET)
        output = audit_service.rows_to_csv(rows)

        assert "'=cmd|" in output

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("=SUM(A1:A10)", "'=SUM(A1:A10)"),
            ("+1", "'+1"),
            ("@import", "'@import"),
            ("normal text", "normal text"),
            ("line\nbreak", "line break"),
            (None, ""),
            (42, "42"),
        ],
    )
    def test_sanitize_csv_field(self, value, expected):
        assert sanitize_csv_field(value) == expected


class TestStatsAndClearing:
    """Test stats, clearing and retention"""

    async def test_stats(self, seeded_db):
        stats = await audit_service.consent_stats(seeded_db, days=30)

        assert stats["total"] == 4
        assert stats["recent"] == 3
        assert stats["actions"] == {"accept_all": 1, "reject_all": 1, "customize": 1}
        assert stats["accept_rate"] == 33.3
        assert stats["reject_rate"] == 33.3

    async def test_stats_empty_window(self, test_db):
        stats = await audit_service.consent_stats(test_db, days=7)

        assert stats["recent"] == 0
        assert stats["accept_rate"] is None
        assert stats["reject_rate"] is None

    async def test_clear_older_than(self, seeded_db):
        assert await audit_service.clear_logs(seeded_db, older_than_days=30) == 1
        assert await _count(seeded_db) == 3

    async def test_clear_all(self, seeded_db):
        assert await audit_service.clear_logs(seeded_db) == 4
        assert await _count(seeded_db) == 0

    async def test_enforce_retention(self, seeded_db):
        assert await audit_service.enforce_retention(30, seeded_db) == 1
        remaining = {row.consent_id for row in await audit_service.export_logs(seeded_db)}
        assert remaining == {"b", "c", "d"}

    async def test_prune_job_opens_its_own_session(self, seeded_db):
        assert await prune_old_consent_logs(30) == 1
        assert await _count(seeded_db) == 3


class TestRetentionPolicy:
    """Test scheduler registration"""

    def test_disabled_with_zero_days(self):
        scheduler = MagicMock()
        assert install_retention_policy(scheduler, retention_days=0) is False
        scheduler.add_job.assert_not_called()

    def test_installs_interval_job(self):
        scheduler = MagicMock()

        assert install_retention_policy(scheduler, retention_days=90, interval_hours=6) is True

        scheduler.add_job.assert_called_once()
        kwargs = scheduler.add_job.call_args.kwargs
        assert scheduler.add_job.call_args.args[0] is prune_old_consent_logs
        assert kwargs["args"] == [90]
        assert kwargs["id"] == JOB_ID
        assert kwargs["replace_existing"] is True
