"""
application.validation - Boundary validation for every inbound request.

Pure functions from raw request data (dicts as decoded from JSON) to the
frozen DTOs the services accept. Each function collects every offending
field and raises a single ValidationError, before any side effect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from domain.entities import Sender
from domain.exceptions import ValidationError
from domain.models import (
    CREDIT_PACKS,
    DIETARY_PREFERENCES,
    SKILL_LEVELS,
    HistoryTurn,
    PricingTable,
    UserProfile,
)
from application.dto import (
    ChatRequest,
    CheckoutRequest,
    LoginRequest,
    RecipeRequest,
    RegisterRequest,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

MIN_PASSWORD_LENGTH = 8
MAX_NAME_LENGTH = 50
MAX_TITLE_LENGTH = 100
MAX_LIST_ITEMS = 30
MAX_ITEM_LENGTH = 60
MAX_HISTORY_TURNS = 100

_SENDER_ALIASES = {"user": Sender.USER, "ai": Sender.AI, "assistant": Sender.AI}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class _Errors:
    """Collects field errors; raise_if_any() throws them all at once."""

    def __init__(self):
        self.items: list[FieldError] = []

    def add(self, field: str, message: str) -> None:
        self.items.append(FieldError(field, message))

    def raise_if_any(self) -> None:
        if self.items:
            raise ValidationError(self.items)


def _optional_text(
    raw: dict, key: str, errors: _Errors, max_length: int,
) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        errors.add(key, "must be a string")
        return ""
    value = value.strip()
    if len(value) > max_length:
        errors.add(key, f"must be at most {max_length} characters")
    return value


def _string_list(
    raw: dict, key: str, errors: _Errors, allowed: Optional[tuple] = None,
) -> list[str]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        errors.add(key, "must be a list of strings")
        return []
    if len(value) > MAX_LIST_ITEMS:
        errors.add(key, f"must contain at most {MAX_LIST_ITEMS} items")
        return []

    cleaned: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            errors.add(key, "items must be non-empty strings")
            return []
        item = item.strip().lower() if allowed else item.strip()
        if len(item) > MAX_ITEM_LENGTH:
            errors.add(key, f"items must be at most {MAX_ITEM_LENGTH} characters")
            return []
        if allowed and item not in allowed:
            errors.add(key, f"'{item}' is not one of: {', '.join(allowed)}")
            continue
        if item.lower() not in (c.lower() for c in cleaned):
            cleaned.append(item)
    return cleaned


def _parse_profile(raw: Any, errors: _Errors) -> Optional[UserProfile]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.add("user_profile", "must be an object")
        return None

    sub = _Errors()
    skill = _optional_text(raw, "skill_level", sub, 20).lower()
    if skill and skill not in SKILL_LEVELS:
        sub.add("skill_level", f"must be one of: {', '.join(SKILL_LEVELS)}")
    profile = UserProfile(
        skill_level=skill,
        dietary_preferences=_string_list(raw, "dietary_preferences", sub, DIETARY_PREFERENCES),
        allergies=_string_list(raw, "allergies", sub),
        likes=_string_list(raw, "likes", sub),
        dislikes=_string_list(raw, "dislikes", sub),
    )
    for e in sub.items:
        errors.add(f"user_profile.{e.field}", e.message)
    return profile


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

def validate_chat_request(raw: dict, max_chars: int = 2000) -> ChatRequest:
    errors = _Errors()

    message = raw.get("message")
    if not isinstance(message, str) or not message.strip():
        errors.add("message", "is required")
        message = ""
    elif len(message.strip()) > max_chars:
        errors.add("message", f"must be at most {max_chars} characters")
    message = message.strip()

    session_id = raw.get("session_id")
    if session_id is not None:
        if not isinstance(session_id, str) or not _SESSION_ID_RE.match(session_id):
            errors.add("session_id", "is not a valid session id")
            session_id = None

    history: list[HistoryTurn] = []
    raw_history = raw.get("conversation_history")
    if raw_history is not None:
        if not isinstance(raw_history, list):
            errors.add("conversation_history", "must be a list")
        elif len(raw_history) > MAX_HISTORY_TURNS:
            errors.add(
                "conversation_history",
                f"must contain at most {MAX_HISTORY_TURNS} messages",
            )
        else:
            for i, turn in enumerate(raw_history):
                if not isinstance(turn, dict):
                    errors.add(f"conversation_history[{i}]", "must be an object")
                    continue
                sender = _SENDER_ALIASES.get(str(turn.get("sender", "")).lower())
                text = turn.get("message", turn.get("text"))
                if sender is None:
                    errors.add(f"conversation_history[{i}].sender", "must be 'user' or 'ai'")
                if not isinstance(text, str):
                    errors.add(f"conversation_history[{i}].message", "must be a string")
                if sender is not None and isinstance(text, str):
                    history.append(HistoryTurn(sender=sender, text=text))

    profile = _parse_profile(raw.get("user_profile"), errors)

    errors.raise_if_any()
    return ChatRequest(
        message=message,
        session_id=session_id,
        conversation_history=tuple(history),
        user_profile=profile,
    )


def validate_recipe_request(raw: dict) -> RecipeRequest:
    errors = _Errors()
    ingredients = _string_list(raw, "ingredients", errors)
    if not ingredients and not any(e.field == "ingredients" for e in errors.items):
        errors.add("ingredients", "at least one ingredient is required")
    preferences = _optional_text(raw, "preferences", errors, 200)
    skill_level = _optional_text(raw, "skill_level", errors, 20)
    cooking_time = _optional_text(raw, "cooking_time", errors, 50)
    errors.raise_if_any()
    return RecipeRequest(
        ingredients=tuple(ingredients),
        preferences=preferences,
        skill_level=skill_level,
        cooking_time=cooking_time,
    )


def validate_rename(raw: dict) -> str:
    errors = _Errors()
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.add("title", "is required")
    elif len(title.strip()) > MAX_TITLE_LENGTH:
        errors.add("title", f"must be at most {MAX_TITLE_LENGTH} characters")
    errors.raise_if_any()
    return title.strip()


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def _email(raw: dict, errors: _Errors) -> str:
    email = raw.get("email")
    if not isinstance(email, str) or not _EMAIL_RE.match(email.strip()):
        errors.add("email", "must be a valid email address")
        return ""
    return email.strip().lower()


def validate_signup(raw: dict) -> RegisterRequest:
    errors = _Errors()
    email = _email(raw, errors)
    password = raw.get("password")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.add("password", f"must be at least {MIN_PASSWORD_LENGTH} characters")
        password = ""
    first_name = _optional_text(raw, "first_name", errors, MAX_NAME_LENGTH)
    last_name = _optional_text(raw, "last_name", errors, MAX_NAME_LENGTH)
    phone = _optional_text(raw, "phone_number", errors, 16)
    if phone and not _PHONE_RE.match(phone):
        errors.add("phone_number", "must be 10-15 digits")
    errors.raise_if_any()
    return RegisterRequest(
        email=email, password=password,
        first_name=first_name, last_name=last_name, phone_number=phone,
    )


def validate_login(raw: dict) -> LoginRequest:
    errors = _Errors()
    email = _email(raw, errors)
    password = raw.get("password")
    if not isinstance(password, str) or not password:
        errors.add("password", "is required")
    errors.raise_if_any()
    return LoginRequest(email=email, password=password)


_PROFILE_TEXT_FIELDS = {"first_name": MAX_NAME_LENGTH, "last_name": MAX_NAME_LENGTH}
_PROFILE_LIST_FIELDS = ("allergies", "favorite_ingredients", "disliked_ingredients")


def validate_profile_update(raw: dict) -> dict:
    """Return only the fields present in *raw*, normalized for storage."""
    errors = _Errors()
    known = (
        set(_PROFILE_TEXT_FIELDS) | set(_PROFILE_LIST_FIELDS)
        | {"phone_number", "skill_level", "dietary_preferences"}
    )
    for key in raw:
        if key not in known:
            errors.add(key, "is not an editable profile field")

    fields: dict[str, Any] = {}
    for key, limit in _PROFILE_TEXT_FIELDS.items():
        if key in raw:
            fields[key] = _optional_text(raw, key, errors, limit)
    if "phone_number" in raw:
        phone = _optional_text(raw, "phone_number", errors, 16)
        if phone and not _PHONE_RE.match(phone):
            errors.add("phone_number", "must be 10-15 digits")
        fields["phone_number"] = phone
    if "skill_level" in raw:
        skill = _optional_text(raw, "skill_level", errors, 20).lower()
        if skill not in SKILL_LEVELS:
            errors.add("skill_level", f"must be one of: {', '.join(SKILL_LEVELS)}")
        fields["skill_level"] = skill
    if "dietary_preferences" in raw:
        fields["dietary_preferences"] = _string_list(
            raw, "dietary_preferences", errors, DIETARY_PREFERENCES,
        )
    for key in _PROFILE_LIST_FIELDS:
        if key in raw:
            fields[key] = _string_list(raw, key, errors)

    errors.raise_if_any()
    return fields


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def validate_payment_request(
    gateway: str, raw: dict, pricing: PricingTable,
) -> CheckoutRequest:
    """Check the requested pack exists and has a price on *gateway*."""
    errors = _Errors()
    credits = raw.get("credits")
    if isinstance(credits, str) and credits.strip().isdigit():
        credits = int(credits.strip())
    if isinstance(credits, bool) or not isinstance(credits, int):
        errors.add("credits", "must be an integer")
    elif credits not in CREDIT_PACKS:
        errors.add(
            "credits",
            f"must be one of: {', '.join(str(p) for p in CREDIT_PACKS)}",
        )
    elif pricing.price_for(credits) is None:
        errors.add("credits", f"the {credits} credit pack is not available on {gateway}")
    errors.raise_if_any()
    return CheckoutRequest(gateway=gateway, credits=credits)
