"""
Tests for the browser-side consent bridge, its channel, page and reporter
"""

import httpx
import pytest

from consentgate.blocking.engine import GatingEngine
from consentgate.bridge import ConsentBridge, ConsentChannel, ConsentEvent, ConsentReporter, Page, newly_enables
from consentgate.config import ConsentConfig
from consentgate.consent import codec
from consentgate.consent.manager import ConsentSnapshot
from consentgate.consent.record import ConsentRecord
from consentgate.constants import CONSENT_COOKIE_NAME, CSRF_HEADER_NAME
from consentgate.exceptions import InvalidActionTypeError
from consentgate.main import app
from consentgate.schemas.consent import BridgeConfig

PAGE = (
    "<html><head>"
    '<script src="https://www.google-analytics.com/analytics.js"></script>'
    "</head><body>"
    '<iframe src="https://www.youtube.com/embed/abc123" width="560" height="315"></iframe>'
    '<iframe src="https://player.vimeo.com/video/42"></iframe>'
    "</body></html>"
)


def _gated_page() -> Page:
    return Page(GatingEngine(ConsentSnapshot(), ConsentConfig()).process_html(PAGE))


class TestConsentChannel:
    """Test publish/subscribe delivery"""

    def test_subscribers_run_in_order(self):
        channel = ConsentChannel()
        calls = []
        channel.subscribe(lambda event: calls.append(("first", event.action_type)))
        channel.subscribe(lambda event: calls.append(("second", event.action_type)))

        delivered = channel.publish(ConsentEvent(categories={}, action_type="accept_all"))

        assert delivered == 2
        assert calls == [("first", "accept_all"), ("second", "accept_all")]

    def test_failing_subscriber_does_not_stop_others(self):
        channel = ConsentChannel()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)

        event = ConsentEvent(categories={"necessary": True}, action_type="reject_all")
        assert channel.publish(event) == 1
        assert seen == [event]

    def test_unsubscribe(self):
        channel = ConsentChannel()
        seen = []
        unsubscribe = channel.subscribe(seen.append)

        unsubscribe()
        unsubscribe()

        assert channel.publish(ConsentEvent(categories={}, action_type="customize")) == 0
        assert seen == []


class TestNewlyEnables:
    """Test the reload decision"""

    @pytest.mark.parametrize(
        ("previous", "current", "expected"),
        [
            ({}, {"analytics": True}, True),
            ({}, {"marketing": True}, True),
            ({"analytics": True}, {"analytics": True}, False),
            ({}, {"functional": True}, False),
            ({"marketing": True}, {"marketing": False}, False),
        ],
    )
    def test_newly_enables(self, previous, current, expected):
        assert newly_enables(previous, current) is expected


class TestConsentBridge:
    """Test the bridge state, cookie writes and signals"""

    def test_fresh_visitor_shows_banner_and_denies_optional(self):
        bridge = ConsentBridge(BridgeConfig(), {})

        assert bridge.banner_visible is True
        assert bridge.has_consent() is False
        assert bridge.is_allowed("necessary") is True
        assert bridge.is_allowed("analytics") is False
        assert bridge.is_allowed("no_such_category") is False

    def test_invalid_config_categories_are_ignored(self):
        config = BridgeConfig(is_valid=False, categories={"necessary": True, "marketing": True})
        bridge = ConsentBridge(config, {})
        assert bridge.is_allowed("marketing") is False

    def test_accept_all_writes_cookie_signals_and_reload(self):
        jar = {}
        signals = []
        bridge = ConsentBridge(BridgeConfig(), jar, signal_sink=signals.append)

        outcome = bridge.accept_all()

        record = ConsentRecord.from_payload(codec.decode(jar[CONSENT_COOKIE_NAME]))
        assert record == outcome.record
        assert record.policy_version == "1.0"
        assert bridge.banner_visible is False
        assert bridge.is_allowed("marketing") is True
        assert outcome.reload is True
        assert outcome.report_task is None
        assert [signal.target for signal in signals] == ["dataLayer.push", "gtag", "fbq"]
        assert signals[2].args == ("consent", "grant")

    def test_save_publishes_event_after_state_update(self):
        channel = ConsentChannel()
        bridge = ConsentBridge(BridgeConfig(), {}, channel=channel)
        seen = []
        channel.subscribe(lambda event: seen.append((event.action_type, bridge.is_allowed("functional"))))

        bridge.customize({"functional": True})

        assert seen == [("customize", True)]

    def test_functional_only_does_not_reload(self):
        bridge = ConsentBridge(BridgeConfig(), {})
        assert bridge.customize({"functional": True}).reload is False

    def test_failing_signal_sink_is_isolated(self):
        def sink(signal):
            raise RuntimeError("gtag missing")

        bridge = ConsentBridge(BridgeConfig(), {}, signal_sink=sink)
        outcome = bridge.reject_all()

        assert len(outcome.signals) == 3
        assert bridge.is_allowed("necessary") is True

    def test_action_type_decides_categories(self):
        bridge = ConsentBridge(BridgeConfig(), {})

        assert all(bridge.save_consent({"marketing": False}, "accept_all").record.categories.values())
        assert bridge.save_consent({"marketing": True}, "reject_all").record.categories["marketing"] is False

    def test_invalid_action_is_rejected(self):
        bridge = ConsentBridge(BridgeConfig(), {})
        with pytest.raises(InvalidActionTypeError):
            bridge.save_consent({}, "revoke")

    def test_open_preferences_prefills_from_stale_prior_choices(self):
        config = BridgeConfig(
            has_consent=True,
            is_valid=False,
            prior_categories={"necessary": True, "functional": False, "analytics": True, "marketing": False},
        )
        bridge = ConsentBridge(config, {CONSENT_COOKIE_NAME: "stale"})

        checkboxes = bridge.open_preferences()

        assert checkboxes == {"functional": False, "analytics": True, "marketing": False}
        assert bridge.is_allowed("analytics") is False
        assert bridge.preferences_open is True
        assert bridge.banner_visible is False

    def test_save_preferences_uses_checkbox_states(self):
        bridge = ConsentBridge(BridgeConfig(), {})
        bridge.open_preferences()

        outcome = bridge.save_preferences({"marketing": True})

        assert outcome.record.categories == {
            "necessary": True,
            "functional": False,
            "analytics": False,
            "marketing": True,
        }
        assert bridge.preferences_open is False
        assert bridge.banner_visible is False

    def test_closing_preferences_without_consent_shows_banner(self):
        bridge = ConsentBridge(BridgeConfig(), {})
        bridge.open_preferences()
        bridge.close_preferences()
        assert bridge.banner_visible is True

    def test_revoke_deletes_every_cookie(self):
        jar = {CONSENT_COOKIE_NAME: "x", "_ga": "GA1.1", "session": "abc"}
        bridge = ConsentBridge(BridgeConfig(is_valid=True, has_consent=True, categories={"analytics": True}), jar)

        assert bridge.revoke() is True

        assert jar == {}
        assert bridge.banner_visible is True
        assert bridge.is_allowed("analytics") is False


class TestPageRevival:
    """Test page updates driven by consent events"""

    def test_marketing_revives_embeds_and_keeps_analytics_blocked(self):
        page = _gated_page()
        bridge = ConsentBridge(BridgeConfig(), {}, page=page)
        assert len(page.placeholders()) == 2

        bridge.customize({"marketing": True})

        assert page.placeholders() == []
        assert '<iframe src="https://www.youtube.com/embed/abc123" width="560" height="315"' in page.html
        assert '<iframe src="https://player.vimeo.com/video/42"' in page.html
        assert 'data-consent-category="analytics"' in page.html

    def test_click_placeholder_grants_category_and_loads_embed(self):
        page = _gated_page()
        jar = {}
        bridge = ConsentBridge(BridgeConfig(), jar, page=page)

        assert page.click_placeholder("https://www.youtube.com/embed/abc123") is True

        assert bridge.is_allowed("marketing") is True
        assert CONSENT_COOKIE_NAME in jar
        assert page.placeholders() == []

    def test_click_unknown_placeholder(self):
        page = _gated_page()
        ConsentBridge(BridgeConfig(), {}, page=page)
        assert page.click_placeholder("https://example.org/nothing") is False
        assert len(page.placeholders()) == 2


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestConsentReporter:
    """Test server reporting"""

    async def test_report_posts_decision_with_csrf_header(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"success": True})

        async with _mock_client(handler) as client:
            reporter = ConsentReporter("http://testserver/api/v1/consent", csrf_token="tok", client=client)
            assert await reporter.report({"necessary": True}, "reject_all") is True

        (request,) = requests
        assert request.method == "POST"
        assert request.headers[CSRF_HEADER_NAME] == "tok"
        assert b'"action_type":"reject_all"' in request.content.replace(b" ", b"")

    async def test_rejected_report_returns_false(self):
        async with _mock_client(lambda request: httpx.Response(403)) as client:
            reporter = ConsentReporter("http://testserver/api/v1/consent", client=client)
            assert await reporter.report({}, "accept_all") is False

    async def test_timeout_returns_false(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _mock_client(handler) as client:
            reporter = ConsentReporter("http://testserver/api/v1/consent", client=client)
            assert await reporter.report({}, "accept_all") is False
            assert await reporter.report_revoke() is False

    async def test_failed_report_keeps_bridge_state(self):
        async with _mock_client(lambda request: httpx.Response(500)) as client:
            reporter = ConsentReporter("http://testserver/api/v1/consent", client=client)
            jar = {}
            bridge = ConsentBridge(BridgeConfig(), jar, reporter=reporter)

            outcome = bridge.accept_all()
            assert await outcome.report_task is False

        assert bridge.is_allowed("analytics") is True
        assert CONSENT_COOKIE_NAME in jar


class TestBridgeAgainstServer:
    """Run the bridge against the real application"""

    async def test_bridge_save_reaches_server(self, setup_test_database):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            config_response = await client.get("/api/v1/consent/config")
            assert config_response.status_code == 200
            config = BridgeConfig.model_validate(config_response.json())
            assert config.csrf_token

            reporter = ConsentReporter(config.save_url, csrf_token=config.csrf_token, client=client)
            bridge = ConsentBridge(config, {}, reporter=reporter)

            outcome = bridge.customize({"analytics": True})
            assert await outcome.report_task is True

            state = (await client.get("/api/v1/consent")).json()

        assert state["has_consent"] is True
        assert state["categories"]["analytics"] is True
        assert state["categories"]["marketing"] is False
