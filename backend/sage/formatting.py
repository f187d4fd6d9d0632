"""
Reply Formatting
Code-fence cleanup, recipe rescue from JSON-looking text, and card replies
"""

import json
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sage.models import Recipe
from sage.signals import extract_meal_time

_FENCED_BLOCK = re.compile(r"```[a-zA-Z0-9]*\n([\s\S]*?)```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_RECIPE_KEYS = ("ingredients", "recipe_name", "steps")


def strip_code_fences(text) -> str:
    """Remove markdown code fences and stray backticks"""
    if not text:
        return ""
    cleaned = _FENCED_BLOCK.sub(r"\1", str(text))
    return cleaned.replace("```", "").replace("`", "").strip()


@dataclass
class RecipeParseResult:
    """Outcome of rescuing a recipe from free text"""
    ok: bool
    recipes: list[Recipe] = field(default_factory=list)
    error: Optional[str] = None
    span: Optional[tuple[int, int]] = None


def _clean(text) -> str:
    """Fence-free text with trailing commas removed (a common model slip)"""
    return _TRAILING_COMMA.sub(r"\1", strip_code_fences(text))


def _json_objects(text: str):
    """Yield (start, end, obj) for every decodable JSON object in text"""
    decoder = json.JSONDecoder()
    pos = text.find("{")
    while pos != -1:
        try:
            obj, end = decoder.raw_decode(text, pos)
        except ValueError:
            pos = text.find("{", pos + 1)
            continue
        yield pos, end, obj
        pos = text.find("{", end)


def extract_recipe_from_json_text(text) -> RecipeParseResult:
    """Recover a recipe object embedded in prose. Never raises."""
    if not text:
        return RecipeParseResult(ok=False, error="empty text")
    source = _clean(text)
    if not any(f'"{key}"' in source for key in _RECIPE_KEYS):
        return RecipeParseResult(ok=False, error="no recipe-shaped JSON found")

    for start, end, obj in _json_objects(source):
        if isinstance(obj, dict) and isinstance(obj.get("recipes"), list):
            candidates = [r for r in obj["recipes"] if isinstance(r, dict)]
        elif isinstance(obj, dict):
            candidates = [obj]
        else:
            continue

        recipes = []
        for raw in candidates:
            if not any(key in raw for key in _RECIPE_KEYS):
                continue
            if not isinstance(raw.get("ingredients"), list):
                continue
            recipe = Recipe.from_dict({**raw, "autogenerated": True})
            if recipe.ingredients:
                recipes.append(recipe)
        if recipes:
            return RecipeParseResult(ok=True, recipes=recipes, span=(start, end))

    return RecipeParseResult(ok=False, error="JSON did not describe a recipe with ingredients")


def strip_json_artifacts(text: str) -> str:
    """Drop JSON blobs from a reply, keeping the surrounding prose"""
    source = _clean(text)
    pieces, cursor = [], 0
    for start, end, _ in _json_objects(source):
        pieces.append(source[cursor:start])
        cursor = end
    pieces.append(source[cursor:])
    return re.sub(r"\n{3,}", "\n\n", "".join(pieces)).strip()


_TOPIC_LABELS = {
    "dessert": ("dessert", "desserts"),
    "snack": ("snack", "snacks"),
    "breakfast": ("breakfast", "breakfast options"),
    "lunch": ("lunch", "lunch ideas"),
    "dinner": ("dinner", "dinner ideas"),
}


def build_reply_from_suggestions(
    message: str,
    recipes: Sequence,
    last_query: Optional[str] = None,
    *,
    is_more: bool = False,
    exhausted: bool = False,
) -> str:
    """Deterministic reply naming exactly the cards being returned"""
    names = [r.name for r in recipes or [] if r.name]
    topic = extract_meal_time(last_query or "") or extract_meal_time(message or "")
    singular, plural = _TOPIC_LABELS.get(topic, (topic, f"{topic} ideas")) if topic else ("option", "options")

    if exhausted or not names:
        about = plural if topic else "this topic"
        return (
            f"Looks like we've reached the end of suggestions for {about}. "
            "Try a different request or type 'reset' to start over."
        )

    if len(names) == 1:
        if is_more and topic:
            return f"Here's another {singular} option: {names[0]}. Want me to add the ingredients or see more?"
        return f"Here's a recipe you might like: {names[0]}. Want me to add the ingredients or see more options?"

    if len(names) == 2:
        label = f"two {plural}" if topic else "two options"
        verb = " to try" if topic else ""
        return f"Here are {label}{verb}: {names[0]} and {names[1]}. Add ingredients or ask for more."

    listed = ", ".join(names[:3])
    if topic:
        return f"Here are some {plural} to consider: {listed}. Add ingredients to your list or ask for more."
    return f"Here are some ideas: {listed}. Add ingredients to your list or ask for more."


_NUMBERED_NAME = re.compile(r"\d+\.\s+\**([A-Z][^.!?\n*]{5,60}?)\**(?:\s+[–—-]\s+|:\s*|\s*\n|$)", re.MULTILINE)
_TITLE_PHRASE = re.compile(r"\b([A-Z][a-z]+(?:[\s-][A-Z][a-z]+){1,5})\b")


def extract_listed_names(text: str) -> list[str]:
    """Recipe names mentioned in a previous reply (numbered list, else Title Case phrases)"""
    names = [m.group(1).strip() for m in _NUMBERED_NAME.finditer(text or "")]
    if names:
        return names
    return [m.group(1).strip() for m in _TITLE_PHRASE.finditer(text or "") if len(m.group(1).strip()) > 10]


def with_reasoning(reply: str, reasoning: Optional[str]) -> str:
    if reasoning and reasoning.strip():
        return f"{reply}\n\n💡 {reasoning.strip()}"
    return reply
