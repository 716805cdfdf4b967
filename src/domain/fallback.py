"""
domain.fallback - Deterministic canned replies for when the model is unavailable.

The first matching rule wins, so the order of _RULES matters.
"""

from __future__ import annotations

_RULES: list[tuple[tuple[str, ...], str]] = [
    (
        ("pasta", "spaghetti"),
        "🍝 Great choice! I can help you make delicious pasta. Do you prefer a "
        "classic tomato-based sauce, creamy alfredo, or something with pesto? "
        "Also, let me know if you have any dietary restrictions!",
    ),
    (
        ("chicken", "meat"),
        "🍗 Chicken is versatile! Are you in the mood for something grilled, "
        "baked, or perhaps a curry? What's your skill level - beginner, "
        "intermediate, or advanced?",
    ),
    (
        ("vegetarian", "vegan"),
        "🥗 Excellent! I have many plant-based recipes. What ingredients do you "
        "have on hand? Some common ones like beans, lentils, tofu, or vegetables?",
    ),
    (
        ("quick", "fast"),
        "⚡ I understand you're short on time! I can suggest recipes that take "
        "30 minutes or less. What ingredients do you have available?",
    ),
    (
        ("dessert", "sweet"),
        "🍰 Sweet tooth calling! Are you interested in cakes, cookies, puddings, "
        "or something refreshing like ice cream? Do you have baking supplies?",
    ),
]

DEFAULT_FALLBACK = (
    "I'm here to help you create amazing recipes! To give you the best "
    "suggestions, please tell me:\n\n"
    "1. What ingredients do you have?\n"
    "2. Any dietary preferences or restrictions?\n"
    "3. Your cooking skill level?\n"
    "4. How much time do you have?\n\n"
    "Let's create something delicious together! 🍳"
)


def canned_response(user_message: str | None) -> str:
    """Return the keyword-matched fallback reply for *user_message*."""
    text = (user_message or "").lower()
    for needles, reply in _RULES:
        if any(n in text for n in needles):
            return reply
    return DEFAULT_FALLBACK
