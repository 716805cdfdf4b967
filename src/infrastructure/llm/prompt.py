"""
infrastructure.llm.prompt - Prompt templates for the recipe assistant.

The chat prompt is a single text block: persona, optional profile block,
prior turns as "User:" / "Assistant:" lines, then the new message and an
open "Assistant:" turn for the model to complete.
"""

from __future__ import annotations

from typing import Optional

from domain.entities import Sender
from domain.models import HistoryTurn, UserProfile

PERSONA = """You are a professional chef and recipe assistant. Your role is to:
- Help users create delicious recipes based on their ingredients
- Provide cooking instructions that are clear and easy to follow
- Suggest ingredient substitutions when needed
- Accommodate dietary restrictions and preferences
- Offer cooking tips and techniques
- Be enthusiastic and encouraging about cooking

Always respond in a friendly, helpful manner. When providing recipes, include:
1. Ingredient list with measurements
2. Step-by-step instructions
3. Cooking time and difficulty level
4. Optional tips or variations

Keep responses concise but informative. Use emojis occasionally to make the conversation engaging.
"""


def _profile_block(profile: Optional[UserProfile]) -> str:
    if profile is None or profile.is_empty:
        return ""

    lines = ["About this user:"]
    if profile.skill_level:
        lines.append(f"- Cooking skill level: {profile.skill_level}")
    if profile.dietary_preferences:
        lines.append(f"- Dietary preferences: {', '.join(profile.dietary_preferences)}")
    if profile.likes:
        lines.append(f"- Likes: {', '.join(profile.likes)}")
    if profile.dislikes:
        lines.append(f"- Dislikes (avoid when possible): {', '.join(profile.dislikes)}")
    if profile.allergies:
        allergens = ", ".join(profile.allergies)
        lines.append(
            f"- ALLERGIES (STRICT): {allergens}. Never include these ingredients "
            "or anything derived from them, not even as an optional garnish or "
            "substitution. If a request cannot be met without them, say so."
        )
    return "\n".join(lines) + "\n"


def build_chat_prompt(
    profile: Optional[UserProfile],
    history: list[HistoryTurn],
    user_message: str,
    max_history: int = 20,
) -> str:
    """Assemble the full chat prompt.

    Only the last *max_history* turns are included.
    """
    parts = [PERSONA]

    block = _profile_block(profile)
    if block:
        parts.append(block)

    turns = history[-max_history:] if max_history > 0 else []
    lines = [
        f"{'User' if turn.sender is Sender.USER else 'Assistant'}: {turn.text}"
        for turn in turns
    ]
    lines.append(f"User: {user_message}")
    lines.append("Assistant:")
    parts.append("\n".join(lines))

    return "\n".join(parts)


def build_recipe_prompt(
    ingredients: list[str],
    preferences: str = "",
    skill_level: str = "",
    cooking_time: str = "",
    allergies: Optional[list[str]] = None,
) -> str:
    """Prompt for a single complete recipe from a list of ingredients."""
    allergy_line = ""
    if allergies:
        allergy_line = (
            f"Allergies (STRICT, never use): {', '.join(allergies)}\n"
        )

    return f"""Create a detailed recipe using these ingredients: {', '.join(ingredients)}.

Preferences: {preferences or 'None'}
Skill Level: {skill_level or 'Intermediate'}
Time Available: {cooking_time or '30-60 minutes'}
{allergy_line}
Please provide:
1. Recipe Title
2. Servings
3. Prep Time and Cook Time
4. Complete ingredient list with measurements
5. Detailed step-by-step instructions
6. Nutritional information (approximate)
7. Chef's tips or variations

Format the response in a clear, easy-to-read structure."""
