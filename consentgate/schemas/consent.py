from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from consentgate.config import DeclaredCookie
from consentgate.constants import CONSENT_COOKIE_NAME, default_category_map


class ConsentSaveRequest(BaseModel):
    categories: dict[str, Any] = Field(default_factory=dict)
    action_type: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "categories": {"functional": True, "analytics": False, "marketing": False},
                "action_type": "customize",
            }
        }
    )


class ConsentSaveResponse(BaseModel):
    success: bool
    consent_id: str
    persisted: bool
    logged: bool
    categories: dict[str, bool]


class ConsentStateResponse(BaseModel):
    has_consent: bool
    is_valid: bool
    state: str
    consent_id: str | None = None
    policy_version: str
    categories: dict[str, bool]


class ConsentRevokeResponse(BaseModel):
    revoked: bool


class CategoryStatusResponse(BaseModel):
    category: str
    allowed: bool


class BridgeConfig(BaseModel):
    """
    Configuration the browser bridge starts from.

    Serialized with camelCase aliases, the shape page scripts consume.
    """

    model_config = ConfigDict(populate_by_name=True)

    has_consent: bool = Field(default=False, alias="hasConsent")
    is_valid: bool = Field(default=False, alias="isValid")
    categories: dict[str, bool] = Field(default_factory=default_category_map)
    # Stored choices of a stale record; pre-fills the preferences form only
    prior_categories: dict[str, bool] = Field(default_factory=default_category_map, alias="priorCategories")
    policy_version: str = Field(default="1.0", alias="policyVersion")
    save_url: str = Field(default="/api/v1/consent", alias="saveUrl")
    csrf_token: str | None = Field(default=None, alias="csrfToken")
    consent_duration: int = Field(default=365, alias="consentDuration")
    cookie_name: str = Field(default=CONSENT_COOKIE_NAME, alias="cookieName")
    category_labels: dict[str, dict[str, Any]] = Field(default_factory=dict, alias="categoryLabels")
    texts: dict[str, str] = Field(default_factory=dict)


class DeclaredCookieGroup(BaseModel):
    category: str
    name: str
    description: str
    cookies: list[DeclaredCookie]
