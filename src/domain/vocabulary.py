"""
domain.vocabulary - Food-name / keyword extraction for chat sessions.

Pure functions over fixed vocabularies. Used by the session store to
recompute derived fields (keywords, food names, title) whenever a user
message is appended.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from domain.entities import DEFAULT_SESSION_TITLE

FOOD_NAMES = (
    "chicken", "beef", "pork", "fish", "salmon", "tuna", "shrimp", "pasta", "rice",
    "noodles", "bread", "pizza", "burger", "sandwich", "salad", "soup", "curry",
    "stew", "steak", "vegetable", "potato", "tomato", "onion", "garlic", "cheese",
    "egg", "milk", "butter", "oil", "dessert", "cake", "cookie", "pie", "pancake",
    "bacon", "sausage", "turkey", "lamb", "lobster", "crab", "squid", "tofu",
    "beans", "lentils", "quinoa", "mushroom", "broccoli", "carrot", "spinach",
    "avocado", "cucumber", "pepper", "chili", "ginger", "cilantro", "basil",
)

KEYWORDS = (
    "vegetarian", "vegan", "gluten-free", "dairy-free", "keto", "paleo", "halal",
    "kosher", "quick", "easy", "healthy", "spicy", "sweet", "savory", "sour",
    "baked", "grilled", "fried", "steamed", "boiled", "roasted", "raw",
    "breakfast", "lunch", "dinner", "snack", "appetizer", "main course", "side dish",
)


def _term_pattern(term: str) -> re.Pattern:
    # whole word, optional plural ("eggs", "tomatoes")
    return re.compile(rf"(?<![\w-]){re.escape(term)}(?:s|es)?(?![\w-])", re.IGNORECASE)


_FOOD_PATTERNS = [(t, _term_pattern(t)) for t in FOOD_NAMES]
_KEYWORD_PATTERNS = [(t, _term_pattern(t)) for t in KEYWORDS]


@dataclass(frozen=True)
class DerivedTerms:
    keywords: list[str]
    food_names: list[str]
    title: str


def match_terms(text: str, patterns: list[tuple[str, re.Pattern]]) -> list[str]:
    """Return vocabulary terms found in *text*, in vocabulary order."""
    return [term for term, pattern in patterns if pattern.search(text)]


def build_title(food_names: list[str], keywords: list[str]) -> str:
    """First two food names plus the first keyword, e.g. 'Chicken Spicy Recipe'."""
    parts = (food_names[:2] + keywords[:1])[:3]
    if not parts:
        return DEFAULT_SESSION_TITLE
    return " ".join(p[:1].upper() + p[1:] for p in parts) + " Recipe"


def derive_terms(
    message: str,
    keywords: list[str],
    food_names: list[str],
    title: str,
    title_renamed: bool,
) -> DerivedTerms:
    """Merge the terms of a new user message into a session's derived fields.

    Existing terms keep their position; new ones are appended. The title is
    regenerated until the owner renames the session explicitly.
    """
    merged_foods = list(food_names)
    for term in match_terms(message, _FOOD_PATTERNS):
        if term not in merged_foods:
            merged_foods.append(term)

    merged_keywords = list(keywords)
    for term in match_terms(message, _KEYWORD_PATTERNS):
        if term not in merged_keywords:
            merged_keywords.append(term)

    if not title_renamed and (merged_foods or merged_keywords):
        title = build_title(merged_foods, merged_keywords)

    return DerivedTerms(
        keywords=merged_keywords,
        food_names=merged_foods,
        title=title,
    )


_RECIPE_HINTS = (
    re.compile(r"\bingredients?\b", re.IGNORECASE),
    re.compile(r"\b(instructions?|steps?|method|directions)\b", re.IGNORECASE),
)


def looks_like_recipe(text: str) -> bool:
    """Heuristic for the recipe_generated flag on AI messages."""
    return all(p.search(text) for p in _RECIPE_HINTS)
