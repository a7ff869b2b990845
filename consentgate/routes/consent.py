"""
Consent Routes

Visitor-facing endpoints behind the browser bridge:
- Current consent state and single-category checks
- Bridge configuration (with CSRF token)
- Saving and revoking consent
- The public cookie declaration
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from consentgate.config import ConsentConfig, settings
from consentgate.consent.manager import ConsentManager
from consentgate.constants import ActionType
from consentgate.dependencies import get_consent_config, get_consent_manager, get_consent_queries
from consentgate.integrations.hooks import ConsentQueries
from consentgate.middleware.csrf import get_csrf_token
from consentgate.middleware.rate_limit import limiter
from consentgate.schemas.consent import (
    BridgeConfig,
    CategoryStatusResponse,
    ConsentRevokeResponse,
    ConsentSaveRequest,
    ConsentSaveResponse,
    ConsentStateResponse,
    DeclaredCookieGroup,
)
from consentgate.services.options_service import declared_cookie_groups

router = APIRouter(prefix="/consent", tags=["Consent"])

logger = logging.getLogger(__name__)

BANNER_TEXT_KEYS = (
    "banner_title",
    "banner_message",
    "btn_accept_all",
    "btn_reject_all",
    "btn_customize",
    "btn_save",
    "blocked_content_message",
    "blocked_content_button",
    "privacy_policy_url",
    "primary_color",
)


def _state_response(manager: ConsentManager) -> ConsentStateResponse:
    return ConsentStateResponse(
        has_consent=manager.has_consent(),
        is_valid=manager.is_valid(),
        state=manager.state.value,
        consent_id=manager.consent_id(),
        policy_version=manager.config.policy_version,
        categories=manager.allowed_categories(),
    )


@router.get("", response_model=ConsentStateResponse)
async def get_consent(manager: ConsentManager = Depends(get_consent_manager)):
    """Return the consent state carried by the request's cookie (fail-closed)."""
    return _state_response(manager)


@router.get("/config", response_model=BridgeConfig)
async def get_bridge_config(
    request: Request,
    manager: ConsentManager = Depends(get_consent_manager),
    config: ConsentConfig = Depends(get_consent_config),
):
    """
    Return the configuration the browser bridge starts from.

    Also issues the CSRF cookie; the same token is returned as ``csrfToken``
    and must be echoed in the X-CSRF-Token header when saving.
    """
    return BridgeConfig(
        has_consent=manager.has_consent(),
        is_valid=manager.is_valid(),
        categories=manager.allowed_categories(),
        prior_categories=manager.prior_categories(),
        policy_version=config.policy_version,
        save_url=str(request.url_for("save_consent")),
        csrf_token=get_csrf_token(request),
        consent_duration=config.consent_duration,
        category_labels=config.category_labels(),
        texts={key: str(getattr(config, key)) for key in BANNER_TEXT_KEYS},
    )


@router.post("", response_model=ConsentSaveResponse)
@limiter.limit(settings.save_consent_rate_limit)
async def save_consent(
    request: Request,
    response: Response,
    payload: ConsentSaveRequest,
    manager: ConsentManager = Depends(get_consent_manager),
):
    """
    Save a consent decision.

    Re-issues the consent cookie with a fresh id and writes the audit row.
    Only customize uses the submitted categories.
    The audit write is best effort and reported in ``logged``.

    **Errors**: 400 for an action type other than accept_all, reject_all or customize
    """
    if payload.action_type == ActionType.ACCEPT_ALL:
        result = await manager.accept_all()
    elif payload.action_type == ActionType.REJECT_ALL:
        result = await manager.reject_all()
    else:
        # customize; anything else is rejected by the manager
        result = await manager.save_consent(payload.categories, payload.action_type)
    return ConsentSaveResponse(
        success=result.success,
        consent_id=result.record.id,
        persisted=result.persisted,
        logged=result.logged,
        categories=result.record.categories,
    )


@router.delete("", response_model=ConsentRevokeResponse)
async def revoke_consent(manager: ConsentManager = Depends(get_consent_manager)):
    """Withdraw consent: the cookie is expired and every optional category is denied again."""
    return ConsentRevokeResponse(revoked=await manager.revoke())


@router.get("/categories/{category}", response_model=CategoryStatusResponse)
async def get_category_status(category: str, queries: ConsentQueries = Depends(get_consent_queries)):
    """Check a single category. Unknown categories are reported as not allowed."""
    return CategoryStatusResponse(category=category, allowed=queries.is_category_allowed(category))


@router.get("/declaration", response_model=list[DeclaredCookieGroup])
async def get_cookie_declaration(config: ConsentConfig = Depends(get_consent_config)):
    """Declared cookies grouped by category, for the public cookie policy page."""
    return declared_cookie_groups(config)
