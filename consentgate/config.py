import json
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from consentgate.constants import CATEGORY_ORDER, Category

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "consentgate"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str

    # Security settings
    secret_key: str
    # Salt mixed into anonymized IPs before hashing; falls back to secret_key
    ip_hash_secret: str | None = None
    admin_api_key: str | None = None
    csrf_token_expiry: int = 3600

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Audit log retention (0 disables pruning)
    audit_retention_days: int = 0
    audit_retention_interval_hours: int = 24

    # Public save endpoint limit (slowapi syntax)
    save_consent_rate_limit: str = "30/minute"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def ip_salt(self) -> str:
        return self.ip_hash_secret or self.secret_key


settings = Settings()


class DeclaredCookie(BaseModel):
    """A cookie disclosed to visitors in the cookie declaration."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    provider: str = ""
    purpose: str = ""
    duration: str = ""
    category: Category = Category.NECESSARY
    type: str = "http"


class ConsentConfig(BaseModel):
    """
    Immutable snapshot of the consent options.

    Built fresh for every request from the defaults plus the stored option
    overrides. To pick up changed options, build a new snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # General
    enabled: bool = True
    privacy_policy_url: str = ""
    policy_version: str = "1.0"

    # Cookie transport
    consent_duration: int = Field(default=365, ge=1)
    cookie_path: str = "/"
    cookie_domain: str | None = None

    # Appearance
    primary_color: str = "#2271b1"

    # Categories
    cat_functional_name: str = "Functional"
    cat_functional_desc: str = "These cookies enable enhanced functionality and personalization."
    cat_analytics_name: str = "Analytics"
    cat_analytics_desc: str = "These cookies help us understand how visitors interact with our website."
    cat_marketing_name: str = "Marketing"
    cat_marketing_desc: str = "These cookies are used to deliver relevant advertisements."

    # Texts
    banner_title: str = "We value your privacy"
    banner_message: str = "We use cookies to enhance your browsing experience and analyze our traffic."
    btn_accept_all: str = "Accept All"
    btn_reject_all: str = "Reject All"
    btn_customize: str = "Customize"
    btn_save: str = "Save Preferences"
    blocked_content_message: str = "Content from {host} is blocked until you accept cookies."
    blocked_content_button: str = "Accept & Load Content"

    # Advanced
    script_blocking: bool = True
    content_blocking: bool = True
    gcm_enabled: bool = False
    log_revocations: bool = False

    declared_cookies: tuple[DeclaredCookie, ...] = ()

    def category_labels(self) -> dict[str, dict[str, Any]]:
        """Return category metadata (name, description, required) in display order."""
        labels: dict[str, dict[str, Any]] = {
            Category.NECESSARY.value: {
                "name": "Necessary",
                "description": "Essential cookies required for the website to function.",
                "required": True,
            }
        }
        for category in CATEGORY_ORDER[1:]:
            labels[category.value] = {
                "name": getattr(self, f"cat_{category.value}_name"),
                "description": getattr(self, f"cat_{category.value}_desc"),
                "required": False,
            }
        return labels


# Human-readable descriptions of every option key (CLI `keys` command)
OPTION_DESCRIPTIONS: dict[str, str] = {
    "enabled": "Enable/disable consent handling",
    "privacy_policy_url": "Privacy policy URL",
    "policy_version": "Current policy version",
    "consent_duration": "Consent cookie duration (days)",
    "cookie_path": "Consent cookie path",
    "cookie_domain": "Consent cookie domain (empty for host-only)",
    "primary_color": "Primary button color",
    "cat_functional_name": "Functional category name",
    "cat_functional_desc": "Functional category description",
    "cat_analytics_name": "Analytics category name",
    "cat_analytics_desc": "Analytics category description",
    "cat_marketing_name": "Marketing category name",
    "cat_marketing_desc": "Marketing category description",
    "banner_title": "Banner title text",
    "banner_message": "Banner message text",
    "btn_accept_all": "Accept All button text",
    "btn_reject_all": "Reject All button text",
    "btn_customize": "Customize button text",
    "btn_save": "Save Preferences button text",
    "blocked_content_message": "Placeholder text for blocked embeds ({host} is replaced)",
    "blocked_content_button": "Placeholder button text for blocked embeds",
    "script_blocking": "Enable script blocking",
    "content_blocking": "Enable iframe/embed blocking",
    "gcm_enabled": "Enable Google Consent Mode defaults",
    "log_revocations": "Write an audit row when consent is revoked",
    "declared_cookies": "Declared cookies (JSON list)",
}


def option_defaults() -> dict[str, Any]:
    """Return the default value of every consent option."""
    return ConsentConfig().model_dump(mode="json")


def coerce_option_value(key: str, raw: str) -> Any:
    """
    Convert a raw string (from the CLI) to the type of the option's default.

    Args:
        key: Option key
        raw: Raw string value

    Returns:
        The converted value

    Raises:
        KeyError: If the key is not a known option
        ValueError: If the value cannot be converted
    """
    defaults = option_defaults()
    if key not in defaults:
        raise KeyError(key)

    default = defaults[key]
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, list):
        value = json.loads(raw)
        if not isinstance(value, list):
            raise ValueError(f"{key} must be a JSON list")
        return value
    if default is None:
        return raw or None
    return raw
