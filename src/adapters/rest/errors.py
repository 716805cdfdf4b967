"""
Domain error -> HTTP response mapping.

Registered on the app once, so routers raise domain errors and never
build error responses themselves. Provider errors on the chat path are
not handled here: the orchestrator turns them into a fallback result.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from domain.exceptions import (
    AuthenticationError,
    DomainError,
    DuplicateLoginError,
    GatewayNotConfiguredError,
    InsufficientCreditsError,
    NotFoundError,
    ProviderError,
    RepositoryError,
    SignatureInvalidError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
_STATUS_MAP: list[tuple[type[DomainError], int, str]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR"),
    (InsufficientCreditsError, status.HTTP_402_PAYMENT_REQUIRED, "INSUFFICIENT_CREDITS"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (GatewayNotConfiguredError, status.HTTP_501_NOT_IMPLEMENTED, "GATEWAY_NOT_CONFIGURED"),
    (SignatureInvalidError, status.HTTP_400_BAD_REQUEST, "SIGNATURE_INVALID"),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED"),
    (DuplicateLoginError, status.HTTP_409_CONFLICT, "CONFLICT"),
    (ProviderError, status.HTTP_502_BAD_GATEWAY, "PROVIDER_ERROR"),
    (RepositoryError, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"),
]


def _describe(exc: DomainError) -> tuple[int, str]:
    for cls, code, name in _STATUS_MAP:
        if isinstance(exc, cls):
            return code, name
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code, code = _describe(exc)
    body = {"success": False, "code": code, "message": str(exc)}

    if isinstance(exc, ValidationError):
        body["errors"] = [{"field": e.field, "message": e.message} for e in exc.errors]
    elif isinstance(exc, ProviderError):
        # Raw gateway errors stay in the log
        body["message"] = "Payment provider unavailable. Please try again."
    elif isinstance(exc, RepositoryError):
        body["message"] = "Internal server error"

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.debug("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
