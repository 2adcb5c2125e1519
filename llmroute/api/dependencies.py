"""FastAPI dependencies for caller authentication and pipeline access.

Callers authenticate with an API key sent as a Bearer token. The key is
resolved through the IdentityProvider stored on ``app.state``; how keys are
issued is outside this service.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from llmroute.accounts.identity import CallerIdentity, IdentityProvider
from llmroute.errors import UnauthorizedError
from llmroute.pipeline import ChatPipeline
from llmroute.routing.catalog import ModelCatalog
from llmroute.telemetry.logging import bind_caller_context

log = structlog.get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_pipeline(request: Request) -> ChatPipeline:
    return request.app.state.pipeline


def get_catalog(request: Request) -> ModelCatalog:
    return request.app.state.catalog


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> CallerIdentity:
    """Resolve the Bearer API key to a caller.

    Raises:
        UnauthorizedError: Missing, malformed or unknown key
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required. Provide an API key as a Bearer token.")

    caller = await identity_provider.lookup(credentials.credentials)
    if caller is None:
        log.warning("auth.unknown_api_key")
        raise UnauthorizedError("Invalid API key.")

    bind_caller_context(caller.caller_id, caller.tier.value)
    return caller
