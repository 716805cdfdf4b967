"""Pydantic models for REST API request/response shapes.

Request bodies only describe the wire shape; semantic checks live in
application.validation so they are shared with the CLI and tests.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# --- Auth ---

class RegisterBody(BaseModel):
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""


class LoginBody(BaseModel):
    email: str
    password: str


class RefreshBody(BaseModel):
    token: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    customer_id: int
    credits: int


# --- Profile ---

class ProfileUpdateBody(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    skill_level: Optional[str] = None
    dietary_preferences: Optional[list[str]] = None
    allergies: Optional[list[str]] = None
    favorite_ingredients: Optional[list[str]] = None
    disliked_ingredients: Optional[list[str]] = None


class ProfileOut(BaseModel):
    customer_id: int
    email: str
    first_name: str
    last_name: str
    phone_number: str
    skill_level: str
    dietary_preferences: list[str]
    allergies: list[str]
    favorite_ingredients: list[str]
    disliked_ingredients: list[str]
    credits: int


# --- Chat ---

class HistoryItem(BaseModel):
    sender: str
    message: str


class UserProfileBody(BaseModel):
    skill_level: Optional[str] = None
    dietary_preferences: Optional[list[str]] = None
    allergies: Optional[list[str]] = None
    likes: Optional[list[str]] = None
    dislikes: Optional[list[str]] = None


class ChatBody(BaseModel):
    message: str
    session_id: Optional[str] = None
    conversation_history: Optional[list[HistoryItem]] = None
    user_profile: Optional[UserProfileBody] = None


class ChatOut(BaseModel):
    success: bool
    message: Optional[str] = None
    fallback_response: Optional[str] = None
    error: Optional[str] = None
    credits_remaining: int
    session_id: Optional[str] = None
    tokens_used: int = 0


class RecipeBody(BaseModel):
    ingredients: list[str] = Field(default_factory=list)
    preferences: Optional[str] = None
    skill_level: Optional[str] = None
    cooking_time: Optional[str] = None


class RecipeOut(BaseModel):
    success: bool
    recipe: Optional[str] = None
    fallback_response: Optional[str] = None
    error: Optional[str] = None
    credits_remaining: int
    tokens_used: int = 0


# --- Sessions ---

class SessionOut(BaseModel):
    session_id: str
    title: str
    keywords: list[str]
    food_names: list[str]
    message_count: int
    preview: str = ""
    created_at: str
    last_message_at: str


class MessageOut(BaseModel):
    id: Optional[int]
    text: str
    sender: str
    timestamp: str
    recipe_generated: bool
    recipe_id: Optional[str] = None
    is_fallback: bool


class RenameBody(BaseModel):
    title: str


# --- Payments ---

class CheckoutBody(BaseModel):
    credits: Any = None


class CheckoutOut(BaseModel):
    success: bool = True
    transaction_id: str
    redirect_url: str
    gateway: str
    credits: int
    amount: int
    currency: str


class GatewayOut(BaseModel):
    name: str
    currency: str
    prices: dict[int, int]


class PaymentConfigOut(BaseModel):
    gateways: list[GatewayOut]
    packs: list[int]


class TransactionOut(BaseModel):
    transaction_id: str
    status: str
    credits: int
    amount: int
    currency: str
    gateway: str
    created_at: str
    completed_at: str = ""


class WebhookAck(BaseModel):
    received: bool = True
    action: str
