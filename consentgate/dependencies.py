"""FastAPI dependencies that build the per-request consent objects."""

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from consentgate.config import ConsentConfig
from consentgate.consent.logger import ConsentLogger
from consentgate.consent.manager import ConsentManager
from consentgate.consent.store import ConsentStore
from consentgate.database import get_db
from consentgate.integrations.hooks import ConsentQueries
from consentgate.services.options_service import load_consent_config


async def get_consent_config(db: AsyncSession = Depends(get_db)) -> ConsentConfig:
    return await load_consent_config(db)


async def get_consent_manager(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    config: ConsentConfig = Depends(get_consent_config),
) -> ConsentManager:
    """
    Manager bound to this request's cookie and response.

    Cookies set through the store land on the injected Response, which
    FastAPI merges into whatever the route returns.
    """
    manager = ConsentManager(
        store=ConsentStore.from_request(request, response, config),
        config=config,
        audit_logger=ConsentLogger.from_request(request, db),
    )
    request.state.consent_state = manager.state.value
    return manager


async def get_consent_queries(manager: ConsentManager = Depends(get_consent_manager)) -> ConsentQueries:
    return ConsentQueries(manager)
