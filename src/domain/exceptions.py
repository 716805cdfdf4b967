"""
domain.exceptions - Custom exception hierarchy for the recipe assistant.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed. Adapters translate provider- and
storage-specific failures into these types; nothing above the
infrastructure layer inspects a provider's own error shapes.
"""

from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class ValidationError(DomainError):
    """Raised when input is rejected at the boundary, before any side effect."""

    def __init__(self, errors: list):
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(summary or "Invalid input.")


class InsufficientCreditsError(DomainError):
    """Raised when the conditional debit finds a zero balance."""


class ProviderError(DomainError):
    """Raised when a third-party provider (LLM or payment gateway) fails.

    fallback_text is filled in by the AI completion client so the caller
    can still answer the user with something useful.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        fallback_text: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.fallback_text = fallback_text

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class ProviderTransientError(ProviderError):
    """429, 5xx, timeout or connection failure. Safe to retry."""


class ProviderPermanentError(ProviderError):
    """Bad request, bad credentials or missing configuration. Never retried."""


class SignatureInvalidError(DomainError):
    """Raised when a webhook payload fails signature verification."""


class NotFoundError(DomainError):
    """Base for unknown customer / session / transaction lookups."""


class CustomerNotFoundError(NotFoundError):
    """Raised when a customer id does not exist (or is soft-deleted)."""


class SessionNotFoundError(NotFoundError):
    """Raised when a chat session is unknown or owned by someone else."""


class TransactionNotFoundError(NotFoundError):
    """Raised when a payment transaction id is unknown."""


class GatewayNotConfiguredError(DomainError):
    """Raised when a payment gateway has no credentials configured."""

    def __init__(self, gateway: str):
        super().__init__(f"Payment gateway '{gateway}' is not configured.")
        self.gateway = gateway


class RepositoryError(DomainError):
    """Raised when a database operation fails."""


class AuthenticationError(DomainError):
    """Raised when authentication fails (bad credentials, expired token)."""


class DuplicateLoginError(DomainError):
    """Raised when attempting to sign up with an email that already exists."""
