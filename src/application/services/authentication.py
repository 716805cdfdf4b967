"""
application.services.authentication - Customer signup and login.

Handles password hashing (bcrypt), JWT creation/verification and the
welcome credit grant. The customer id inside the token is the identity
every other endpoint acts for.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt as _bcrypt
from jose import jwt, JWTError

from domain.entities import Customer
from domain.ports import CustomerRepository
from domain.exceptions import AuthenticationError, DuplicateLoginError
from application.dto import RegisterRequest, LoginRequest, AuthToken

logger = logging.getLogger(__name__)


class AuthenticationService:
    """Handles signup, login, and JWT management."""

    def __init__(
        self,
        customer_repo: CustomerRepository,
        jwt_secret: str,
        jwt_expiry_hours: int = 24,
        welcome_credits: int = 10,
        jwt_algorithm: str = "HS256",
    ):
        self._customer_repo = customer_repo
        self._jwt_secret = jwt_secret
        self._jwt_expiry_hours = jwt_expiry_hours
        self._welcome_credits = welcome_credits
        self._jwt_algorithm = jwt_algorithm
        # bcrypt is used directly (passlib is incompatible with bcrypt >= 4.0)

    async def register(self, request: RegisterRequest) -> AuthToken:
        """Create a customer with the welcome grant, return JWT."""
        existing = await self._customer_repo.get_by_email(request.email)
        if existing is not None:
            raise DuplicateLoginError(
                f"An account with email '{request.email}' already exists."
            )

        customer = Customer(
            email=request.email,
            password_hash=_bcrypt.hashpw(
                request.password.encode(), _bcrypt.gensalt(),
            ).decode(),
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
            credits=self._welcome_credits,
        )
        customer_id = await self._customer_repo.save(customer)

        logger.info(
            "Registered customer %d (%d welcome credits)",
            customer_id, self._welcome_credits,
        )
        return self._create_token(customer_id, request.email, self._welcome_credits)

    async def login(self, request: LoginRequest) -> AuthToken:
        """Verify credentials and return JWT."""
        customer = await self._customer_repo.get_by_email(request.email)
        if customer is None or not customer.password_hash:
            raise AuthenticationError("Invalid email or password.")

        if not _bcrypt.checkpw(
            request.password.encode(), customer.password_hash.encode(),
        ):
            raise AuthenticationError("Invalid email or password.")

        await self._customer_repo.touch_login(customer.id)
        logger.info("Customer %d logged in", customer.id)
        return self._create_token(customer.id, customer.email, customer.credits)

    def verify_token(self, token: str) -> dict[str, Any]:
        """Decode and validate a JWT. Returns the payload dict."""
        try:
            payload = jwt.decode(
                token, self._jwt_secret, algorithms=[self._jwt_algorithm],
            )
            if payload.get("customer_id") is None:
                raise AuthenticationError("Invalid token payload.")
            return payload
        except JWTError as exc:
            raise AuthenticationError(f"Token verification failed: {exc}")

    async def refresh_token(self, token: str) -> AuthToken:
        """Issue a fresh token from an existing one (even if expired).

        The customer must still exist; soft-deleted accounts cannot refresh.
        """
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[self._jwt_algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise AuthenticationError(f"Token refresh failed: {exc}")

        customer_id = payload.get("customer_id")
        if not customer_id:
            raise AuthenticationError("Invalid token payload.")

        customer = await self._customer_repo.get_by_id(customer_id)
        if customer is None:
            raise AuthenticationError("Customer no longer exists.")

        logger.info("Token refreshed for customer %d", customer_id)
        return self._create_token(customer.id, customer.email, customer.credits)

    def _create_token(self, customer_id: int, email: str, credits: int) -> AuthToken:
        expire = datetime.now(timezone.utc) + timedelta(hours=self._jwt_expiry_hours)
        payload = {
            "customer_id": customer_id,
            "email": email,
            "exp": expire,
        }
        token = jwt.encode(payload, self._jwt_secret, algorithm=self._jwt_algorithm)
        return AuthToken(access_token=token, customer_id=customer_id, credits=credits)
