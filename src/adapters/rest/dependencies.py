"""
Shared FastAPI dependencies.

- get_factory(): returns the initialized ServiceFactory (set at startup).
- get_current_user(): JWT bearer token extraction and validation.
- get_request_ctx(): per-request RequestContext for the services.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from factory import ServiceFactory
from domain.exceptions import AuthenticationError
from application.context import RequestContext

# Module-level reference set by app lifespan
_factory: ServiceFactory | None = None


def set_factory(factory: ServiceFactory) -> None:
    global _factory
    _factory = factory


def get_factory() -> ServiceFactory:
    if _factory is None:
        raise RuntimeError("ServiceFactory not initialized.")
    return _factory


# --- JWT Bearer ---

_bearer_scheme = HTTPBearer()


@dataclass
class CurrentUser:
    """Extracted from JWT payload. Passed to route handlers."""
    customer_id: int
    email: str


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    factory: ServiceFactory = Depends(get_factory),
) -> CurrentUser:
    """Validate JWT and return CurrentUser. Raises 401 on failure."""
    auth_service = factory.create_authentication_service()
    try:
        payload = auth_service.verify_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        customer_id=payload["customer_id"],
        email=payload.get("email", ""),
    )


async def get_request_ctx(
    user: CurrentUser = Depends(get_current_user),
) -> RequestContext:
    return RequestContext(customer_id=user.customer_id, email=user.email)
