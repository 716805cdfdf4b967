"""
application.services.profile - Customer cooking profile management.

The stored profile is what the chat prompt uses when a request does not
carry its own user_profile.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.entities import Customer
from domain.exceptions import CustomerNotFoundError
from domain.models import UserProfile
from domain.ports import CustomerRepository
from application.context import RequestContext

logger = logging.getLogger(__name__)


def to_user_profile(customer: Customer) -> UserProfile:
    """Project the stored customer record onto the prompt profile."""
    return UserProfile(
        skill_level=customer.skill_level or "",
        dietary_preferences=list(customer.dietary_preferences),
        allergies=list(customer.allergies),
        likes=list(customer.favorite_ingredients),
        dislikes=list(customer.disliked_ingredients),
    )


class ProfileService:
    """Reads and updates the customer's profile fields."""

    def __init__(self, customer_repo: CustomerRepository):
        self._customer_repo = customer_repo

    async def get_profile(self, ctx: RequestContext) -> Customer:
        customer = await self._customer_repo.get_by_id(ctx.customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Customer {ctx.customer_id} not found.")
        return customer

    async def update_profile(self, ctx: RequestContext, fields: dict) -> Customer:
        """Apply already-validated *fields* and return the updated record."""
        await self.get_profile(ctx)
        await self._customer_repo.update_profile(ctx.customer_id, fields)
        logger.debug(
            "Updated profile for customer %d: %s", ctx.customer_id, sorted(fields),
        )
        return await self.get_profile(ctx)

    async def load_user_profile(self, customer_id: int) -> Optional[UserProfile]:
        """Stored profile for the prompt, or None when nothing is set."""
        customer = await self._customer_repo.get_by_id(customer_id)
        if customer is None:
            return None
        profile = to_user_profile(customer)
        return None if profile.is_empty else profile

    async def delete_account(self, ctx: RequestContext) -> None:
        await self.get_profile(ctx)
        await self._customer_repo.soft_delete(ctx.customer_id)
        logger.info("Customer %d deleted their account", ctx.customer_id)
