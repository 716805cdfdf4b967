"""Protected profile endpoints."""

from fastapi import APIRouter, Depends

from factory import ServiceFactory
from domain.entities import Customer
from application.context import RequestContext
from application.validation import validate_profile_update
from adapters.rest.dependencies import get_factory, get_request_ctx
from adapters.rest.schemas import ProfileOut, ProfileUpdateBody

router = APIRouter(prefix="/profile", tags=["profile"])


def _profile_out(customer: Customer) -> ProfileOut:
    return ProfileOut(
        customer_id=customer.id,
        email=customer.email,
        first_name=customer.first_name,
        last_name=customer.last_name,
        phone_number=customer.phone_number,
        skill_level=customer.skill_level,
        dietary_preferences=customer.dietary_preferences,
        allergies=customer.allergies,
        favorite_ingredients=customer.favorite_ingredients,
        disliked_ingredients=customer.disliked_ingredients,
        credits=customer.credits,
    )


@router.get("", response_model=ProfileOut)
async def get_profile(
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    customer = await factory.create_profile_service().get_profile(ctx)
    return _profile_out(customer)


@router.put("", response_model=ProfileOut)
async def update_profile(
    body: ProfileUpdateBody,
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    fields = validate_profile_update(body.model_dump(exclude_unset=True))
    customer = await factory.create_profile_service().update_profile(ctx, fields)
    return _profile_out(customer)


@router.delete("", status_code=204)
async def delete_account(
    ctx: RequestContext = Depends(get_request_ctx),
    factory: ServiceFactory = Depends(get_factory),
):
    await factory.create_profile_service().delete_account(ctx)
