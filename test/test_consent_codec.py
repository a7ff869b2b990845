"""
Tests for the consent cookie codec and ConsentRecord
"""

import base64
import json

import pytest

from consentgate.consent import codec
from consentgate.consent.record import ConsentRecord, as_bool, normalize_categories


class TestCodec:
    """Test encode/decode of the cookie value"""

    def test_round_trip_preserves_payload(self):
        payload = {
            "id": "0b7c3f5e-1111-4222-8333-944445555666",
            "version": "1.0",
            "timestamp": 1700000000,
            "categories": {"necessary": True, "functional": False, "analytics": True, "marketing": False},
        }
        assert codec.decode(codec.encode(payload)) == payload

    def test_encoded_value_is_cookie_safe(self):
        value = codec.encode({"categories": {"analytics": True}, "note": "ünïcode ✓"})
        assert value.isascii()
        for forbidden in (";", ",", " ", '"', "=", "+", "/"):
            assert forbidden not in value

    def test_decode_accepts_standard_base64(self):
        """Values written with btoa() in the browser use the standard alphabet"""
        payload = {"id": "abc", "categories": {"marketing": True}}
        value = base64.b64encode(json.dumps(payload).encode()).decode()
        assert codec.decode(value) == payload

    def test_decode_accepts_url_quoted_value(self):
        payload = {"id": "abc"}
        value = base64.b64encode(json.dumps(payload).encode()).decode().replace("=", "%3D")
        assert codec.decode(value) == payload

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "not base64 at all!",
            "%%%",
            base64.urlsafe_b64encode(b"this is not json").decode(),
            base64.urlsafe_b64encode(b"[1, 2, 3]").decode(),
            base64.urlsafe_b64encode(b'"just a string"').decode(),
            base64.urlsafe_b64encode(b"\xff\xfe\xfd").decode(),
        ],
    )
    def test_decode_garbage_returns_none(self, value):
        assert codec.decode(value) is None


class TestNormalizeCategories:
    """Test category whitelisting"""

    def test_unknown_keys_dropped_and_necessary_forced(self):
        result = normalize_categories({"analytics": True, "necessary": False, "tracking": True})
        assert result == {"necessary": True, "functional": False, "analytics": True, "marketing": False}

    def test_none_gives_fail_closed_map(self):
        assert normalize_categories(None) == {
            "necessary": True,
            "functional": False,
            "analytics": False,
            "marketing": False,
        }

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (1, True), ("yes", True), ("on", True), (False, False), (0, False), ("no", False), (None, False)],
    )
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected


class TestConsentRecord:
    """Test record creation and payload mapping"""

    def test_create_stamps_fresh_id_each_time(self):
        first = ConsentRecord.create({"analytics": True}, "1.0")
        second = ConsentRecord.create({"analytics": True}, "1.0")

        assert first.id != second.id
        assert first.policy_version == "1.0"
        assert first.timestamp > 0
        assert first.categories["analytics"] is True
        assert first.categories["necessary"] is True

    def test_payload_round_trip(self):
        record = ConsentRecord.create({"marketing": True}, "2.1")
        assert ConsentRecord.from_payload(record.to_payload()) == record

    def test_from_payload_tolerates_missing_fields(self):
        record = ConsentRecord.from_payload({"categories": "oops", "timestamp": "yesterday"})
        assert record.id == ""
        assert record.policy_version == ""
        assert record.timestamp == 0
        assert record.categories == {}
