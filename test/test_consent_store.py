"""
Tests for ConsentStore cookie transport
"""

from starlette.responses import Response

from consentgate.config import ConsentConfig
from consentgate.consent import codec
from consentgate.consent.record import ConsentRecord
from consentgate.consent.store import ConsentStore
from consentgate.constants import CONSENT_COOKIE_NAME


def _set_cookie_headers(response: Response) -> list[str]:
    return [value.decode("latin-1") for key, value in response.raw_headers if key == b"set-cookie"]


class TestConsentStoreLoad:
    """Test reading the consent cookie"""

    def test_missing_cookie_loads_none(self):
        store = ConsentStore({}, None, ConsentConfig())
        assert store.load() is None

    def test_corrupt_cookie_loads_none(self):
        store = ConsentStore({CONSENT_COOKIE_NAME: "garbage!!"}, None, ConsentConfig())
        assert store.load() is None

    def test_valid_cookie_loads_record(self):
        record = ConsentRecord.create({"analytics": True}, "1.0")
        store = ConsentStore({CONSENT_COOKIE_NAME: codec.encode(record.to_payload())}, None, ConsentConfig())
        assert store.load() == record


class TestConsentStoreSave:
    """Test writing the consent cookie"""

    def test_save_sets_cookie_attributes(self):
        response = Response()
        config = ConsentConfig(consent_duration=30, cookie_path="/shop", cookie_domain="example.com")
        store = ConsentStore({}, response, config, secure=True)

        assert store.save(ConsentRecord.create({}, "1.0")) is True

        (header,) = _set_cookie_headers(response)
        assert header.startswith(f"{CONSENT_COOKIE_NAME}=")
        assert "Path=/shop" in header
        assert "Domain=example.com" in header
        assert "Secure" in header
        assert "SameSite=lax" in header
        assert "HttpOnly" not in header
        assert "expires=" in header

    def test_save_without_tls_is_not_secure(self):
        response = Response()
        store = ConsentStore({}, response, ConsentConfig(), secure=False)
        store.save(ConsentRecord.create({}, "1.0"))

        (header,) = _set_cookie_headers(response)
        assert "Secure" not in header

    def test_saved_value_decodes_to_record(self):
        response = Response()
        record = ConsentRecord.create({"marketing": True}, "1.0")
        ConsentStore({}, response, ConsentConfig()).save(record)

        (header,) = _set_cookie_headers(response)
        value = header.split(";", 1)[0].split("=", 1)[1]
        assert ConsentRecord.from_payload(codec.decode(value)) == record

    def test_save_without_response_fails(self):
        store = ConsentStore({}, None, ConsentConfig())
        assert store.save(ConsentRecord.create({}, "1.0")) is False

    def test_delete_expires_cookie(self):
        response = Response()
        store = ConsentStore({}, response, ConsentConfig())

        assert store.delete() is True

        (header,) = _set_cookie_headers(response)
        assert header.startswith(f'{CONSENT_COOKIE_NAME}="";') or header.startswith(f"{CONSENT_COOKIE_NAME}=;")
        assert "expires=" in header
