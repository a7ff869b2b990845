"""
CLI tests for the consentgate Typer commands
"""

import asyncio
import json

import pytest
from typer.testing import CliRunner

from consentgate import database
from consentgate.cli import DOMAIN_ERROR_EXIT_CODE, USAGE_ERROR_EXIT_CODE, app
from consentgate.consent.logger import ConsentLogger
from consentgate.constants import ActionType

runner = CliRunner()


def _seed(*entries):
    """Write audit rows the way the save endpoint does: (consent_id, ip, action)."""

    async def seed():
        async with database.AsyncSessionLocal() as db:
            for consent_id, ip, action in entries:
                audit = ConsentLogger(db, ip, user_agent="pytest")
                await audit.log(consent_id, {"necessary": True, "analytics": True}, action, "1.0")

    asyncio.run(seed())


@pytest.fixture
def seeded(setup_test_database):
    _seed(
        ("cid-1", "203.0.113.57", ActionType.ACCEPT_ALL),
        ("cid-2", "203.0.113.57", ActionType.REJECT_ALL),
        ("cid-3", "198.51.100.9", ActionType.CUSTOMIZE),
    )


class TestSettingsCommands:
    """Test option management"""

    def test_set_get_and_reset(self, setup_test_database):
        result = runner.invoke(app, ["settings", "set", "policy_version", "2.0"])
        assert result.exit_code == 0
        assert "Success: Setting 'policy_version' updated." in result.output

        result = runner.invoke(app, ["settings", "get", "policy_version"])
        assert result.exit_code == 0
        assert result.output.strip() == "2.0"

        result = runner.invoke(app, ["settings", "reset"])
        assert result.exit_code == 0
        assert runner.invoke(app, ["settings", "get", "policy_version"]).output.strip() == "1.0"

    def test_set_boolean(self, setup_test_database):
        assert runner.invoke(app, ["settings", "set", "gcm_enabled", "yes"]).exit_code == 0
        assert runner.invoke(app, ["settings", "get", "gcm_enabled"]).output.strip() == "true"

    def test_list_json_marks_overrides(self, setup_test_database):
        runner.invoke(app, ["settings", "set", "consent_duration", "30"])

        result = runner.invoke(app, ["settings", "list", "--format", "json"])

        assert result.exit_code == 0
        items = {item["key"]: item for item in json.loads(result.output)}
        assert items["consent_duration"]["value"] == "30"
        assert items["consent_duration"]["is_default"] == "no"
        assert items["policy_version"]["is_default"] == "yes"

    def test_unknown_setting(self, setup_test_database):
        result = runner.invoke(app, ["settings", "get", "no_such_option"])
        assert result.exit_code == USAGE_ERROR_EXIT_CODE
        assert "Unknown setting" in result.output

        result = runner.invoke(app, ["settings", "set", "no_such_option", "1"])
        assert result.exit_code == USAGE_ERROR_EXIT_CODE

    def test_invalid_value(self, setup_test_database):
        result = runner.invoke(app, ["settings", "set", "consent_duration", "forever"])
        assert result.exit_code == USAGE_ERROR_EXIT_CODE
        assert "Invalid value for consent_duration" in result.output

    def test_value_rejected_by_validation(self, setup_test_database):
        result = runner.invoke(app, ["settings", "set", "consent_duration", "0"])
        assert result.exit_code == DOMAIN_ERROR_EXIT_CODE
        assert result.output.startswith("Error:")

    def test_keys_csv(self):
        result = runner.invoke(app, ["keys", "--format", "csv"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "key,default,description"
        assert any(line.startswith("policy_version,1.0,") for line in lines)


class TestAuditCommands:
    """Test stats, export and GDPR lookups"""

    def test_stats_table(self, seeded):
        result = runner.invoke(app, ["stats", "--days", "7"])

        assert result.exit_code == 0
        assert "Total consents (all time)" in result.output
        assert "Accept All (last 7 days)" in result.output
        assert "33.3%" in result.output

    def test_stats_json_without_rows(self, setup_test_database):
        result = runner.invoke(app, ["stats", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total"] == 0
        assert data["accept_rate"] is None

    def test_export_csv(self, seeded):
        result = runner.invoke(app, ["export", "--format", "csv", "--limit", "2"])

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0] == "consent_id,action_type,policy_version,categories,created_at"
        assert len(lines) == 3
        assert lines[1].startswith("cid-3,customize,1.0,")

    def test_export_empty(self, setup_test_database):
        result = runner.invoke(app, ["export"])
        assert result.exit_code == 0
        assert "Warning: No consent logs found." in result.output

    def test_consent_lookup_by_ip(self, seeded):
        result = runner.invoke(app, ["consent", "--ip", "203.0.113.99", "--format", "json"])

        assert result.exit_code == 0
        assert "Success: Found 2 consent record(s)." in result.output
        assert '"consent_id": "cid-1"' in result.output
        assert '"consent_id": "cid-3"' not in result.output

    def test_consent_lookup_requires_criterion(self, setup_test_database):
        result = runner.invoke(app, ["consent"])
        assert result.exit_code == USAGE_ERROR_EXIT_CODE

    def test_consent_lookup_without_matches(self, seeded):
        result = runner.invoke(app, ["consent", "--consent-id", "missing"])
        assert result.exit_code == 0
        assert "Warning: No consent records found." in result.output

    def test_consent_delete_asks_for_confirmation(self, seeded):
        result = runner.invoke(app, ["consent", "--consent-id", "cid-3", "--delete"], input="n\n")

        assert result.exit_code == 1
        assert "Deleted" not in result.output
        assert "cid-3" in runner.invoke(app, ["consent", "--consent-id", "cid-3"]).output

    def test_consent_delete(self, seeded):
        result = runner.invoke(app, ["consent", "--ip", "203.0.113.57", "--delete", "--yes"])

        assert result.exit_code == 0
        assert "Success: Deleted 2 consent record(s)." in result.output
        assert "Warning" in runner.invoke(app, ["consent", "--ip", "203.0.113.57"]).output

    def test_clear_logs(self, seeded):
        result = runner.invoke(app, ["clear-logs", "--yes"])

        assert result.exit_code == 0
        assert "Success: Deleted 3 consent log(s)." in result.output

    def test_clear_logs_older_than_keeps_recent_rows(self, seeded):
        result = runner.invoke(app, ["clear-logs", "--older-than", "30"], input="y\n")

        assert result.exit_code == 0
        assert "Success: Deleted 0 consent log(s)." in result.output
