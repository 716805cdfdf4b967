"""
Boundary validation: every offending field is reported at once.
"""
import pytest

from domain.entities import Sender
from domain.exceptions import ValidationError
from domain.models import PricingTable
from application.validation import (
    validate_chat_request,
    validate_payment_request,
    validate_profile_update,
    validate_recipe_request,
    validate_rename,
    validate_signup,
)


def _fields(exc_info) -> set:
    return {e.field for e in exc_info.value.errors}


def test_chat_request_minimal():
    request = validate_chat_request({"message": "  hello  "})
    assert request.message == "hello"
    assert request.session_id is None
    assert request.conversation_history == ()
    assert request.user_profile is None


def test_chat_request_full():
    request = validate_chat_request({
        "message": "more please",
        "session_id": "abc123",
        "conversation_history": [
            {"sender": "user", "message": "hi"},
            {"sender": "assistant", "text": "hello"},
        ],
        "user_profile": {"skill_level": "Advanced", "dietary_preferences": ["Vegan"]},
    })
    assert [t.sender for t in request.conversation_history] == [Sender.USER, Sender.AI]
    assert request.user_profile.skill_level == "advanced"
    assert request.user_profile.dietary_preferences == ["vegan"]


def test_chat_request_reports_every_problem():
    with pytest.raises(ValidationError) as exc_info:
        validate_chat_request({
            "message": "",
            "session_id": "../etc/passwd",
            "conversation_history": [{"sender": "robot", "message": 3}],
            "user_profile": {"skill_level": "wizard"},
        })
    assert _fields(exc_info) == {
        "message",
        "session_id",
        "conversation_history[0].sender",
        "conversation_history[0].message",
        "user_profile.skill_level",
    }


def test_chat_message_length_limit():
    with pytest.raises(ValidationError):
        validate_chat_request({"message": "x" * 11}, max_chars=10)


def test_recipe_request_needs_ingredients():
    with pytest.raises(ValidationError) as exc_info:
        validate_recipe_request({"ingredients": []})
    assert _fields(exc_info) == {"ingredients"}
    assert validate_recipe_request({"ingredients": [" rice "]}).ingredients == ("rice",)


def test_signup_rules():
    with pytest.raises(ValidationError) as exc_info:
        validate_signup({"email": "nope", "password": "short", "phone_number": "12"})
    assert _fields(exc_info) == {"email", "password", "phone_number"}

    request = validate_signup({"email": " Cook@Example.com ", "password": "longenough"})
    assert request.email == "cook@example.com"


def test_profile_update_only_known_fields():
    with pytest.raises(ValidationError) as exc_info:
        validate_profile_update({"credits": 1000, "skill_level": "expert"})
    assert _fields(exc_info) == {"credits", "skill_level"}

    fields = validate_profile_update({"allergies": ["Peanuts", "peanuts"], "skill_level": "beginner"})
    assert fields == {"allergies": ["Peanuts"], "skill_level": "beginner"}


def test_rename():
    assert validate_rename({"title": "  Tacos  "}) == "Tacos"
    with pytest.raises(ValidationError):
        validate_rename({"title": "x" * 101})


def test_payment_request_pack_and_price():
    pricing = PricingTable(currency="usd", prices={20: 499, 60: 1299})

    assert validate_payment_request("stripe", {"credits": 60}, pricing).credits == 60
    with pytest.raises(ValidationError):
        validate_payment_request("stripe", {"credits": 25}, pricing)
    with pytest.raises(ValidationError):
        validate_payment_request("stripe", {"credits": 150}, pricing)
    with pytest.raises(ValidationError):
        validate_payment_request("stripe", {"credits": True}, pricing)
    with pytest.raises(ValidationError):
        validate_payment_request("stripe", {}, pricing)
