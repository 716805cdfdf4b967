"""Auth endpoints: register, login and token refresh."""

from fastapi import APIRouter, Depends, HTTPException, status

from factory import ServiceFactory
from domain.exceptions import AuthenticationError, DuplicateLoginError
from application.dto import AuthToken
from application.validation import validate_login, validate_signup
from adapters.rest.dependencies import get_factory
from adapters.rest.schemas import RegisterBody, LoginBody, TokenResponse, RefreshBody

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(token: AuthToken) -> TokenResponse:
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        customer_id=token.customer_id,
        credits=token.credits,
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterBody,
    factory: ServiceFactory = Depends(get_factory),
):
    request = validate_signup(body.model_dump())
    auth_service = factory.create_authentication_service()
    try:
        token = await auth_service.register(request)
    except DuplicateLoginError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        )
    return _token_response(token)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginBody,
    factory: ServiceFactory = Depends(get_factory),
):
    request = validate_login(body.model_dump())
    auth_service = factory.create_authentication_service()
    try:
        token = await auth_service.login(request)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        )
    return _token_response(token)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshBody,
    factory: ServiceFactory = Depends(get_factory),
):
    """Re-issue a new JWT using an existing (possibly expired) token."""
    auth_service = factory.create_authentication_service()
    try:
        token = await auth_service.refresh_token(body.token)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        )
    return _token_response(token)
