"""
Conversation Signals
Extracts preferences and constraints from recent user messages
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config import CUISINE_KEYWORDS, SIGNAL_WINDOW


@dataclass
class UserPreferences:
    """Likes and dislikes mentioned anywhere in the history"""
    favorite_ingredients: list[str] = field(default_factory=list)
    avoided_ingredients: list[str] = field(default_factory=list)


@dataclass
class ConversationSignals:
    """What the recent conversation tells us about the user's wishes"""
    last_cuisine: Optional[str] = None
    time_of_day: Optional[str] = None
    preferences: list[str] = field(default_factory=list)
    avoided_ingredients: list[str] = field(default_factory=list)
    guest_count: Optional[int] = None
    dietary_restrictions: list[str] = field(default_factory=list)
    wants_quick: bool = False
    wants_budget: bool = False
    wants_healthy: bool = False
    time_limit_minutes: Optional[int] = None
    focus_meal_type: Optional[str] = None


def extract_cuisine(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    for cuisine, keywords in CUISINE_KEYWORDS.items():
        if any(kw in lowered for kw in keywords):
            return cuisine
    return None


def extract_meal_time(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    if "breakfast" in lowered or "morning" in lowered:
        return "breakfast"
    if "lunch" in lowered or "noon" in lowered:
        return "lunch"
    if "dinner" in lowered or "evening" in lowered:
        return "dinner"
    if "snack" in lowered or "appetizer" in lowered:
        return "snack"
    if "dessert" in lowered or "sweet" in lowered:
        return "dessert"
    return None


def extract_diet_type(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    if "keto" in lowered:
        return "keto-friendly"
    if "vegan" in lowered:
        return "vegan"
    if "vegetarian" in lowered:
        return "vegetarian"
    if "paleo" in lowered:
        return "paleo"
    if "low carb" in lowered:
        return "low-carb"
    return None


_LIKE_WORD = re.compile(r"(love|like|enjoy)\b")
_LIKE_PREFIX = re.compile(r"^(love|like|enjoy)")
_NO_PHRASE = re.compile(r"no\s+([a-z\s]+?)(,|\.|$)")
_DISLIKE_PHRASE = re.compile(r"(?:don't like|dislike|allergic to)\s+([a-z\s]+?)(,|\.|$)")
_LIST_SPLIT = re.compile(r"\s+and\s+|,|\s+")
_GUESTS = re.compile(r"(\d+)\s+(people|persons|guests?|friends?|serve|servings?)")
_UNDER_MINUTES = re.compile(r"under\s*(\d{1,3})\s*(min|mins|minutes)")
_IN_MINUTES = re.compile(r"in\s*(\d{1,3})\s*(min|mins|minutes)")
_QUICK = re.compile(r"(quick|fast|easy|under\s*\d+\s*min)")
_BUDGET = re.compile(r"(cheap|budget|affordable|inexpensive|low cost|low-cost)")
_HEALTHY = re.compile(r"(healthy|diet|light|low calorie|low-calorie|nutritious)")
_NON_ALPHA = re.compile(r"[^a-z]")


def _split_list(phrase: str) -> list[str]:
    return [t.strip() for t in _LIST_SPLIT.split(phrase) if t and t.strip()]


def _user_texts(messages: Iterable[dict]) -> list[str]:
    return [(m.get("text") or "").lower() for m in messages if m.get("from") == "user"]


def analyze_conversation_context(context) -> ConversationSignals:
    """Scan the last few messages of a conversation for user signals.

    Later messages override earlier ones for single-valued signals; list
    signals accumulate.
    """
    signals = ConversationSignals()
    messages = getattr(context, "messages", None) if context is not None else None
    if not messages:
        return signals

    for text in _user_texts(messages[-SIGNAL_WINDOW:]):
        cuisine = extract_cuisine(text)
        if cuisine:
            signals.last_cuisine = cuisine

        meal_time = extract_meal_time(text)
        if meal_time:
            signals.time_of_day = meal_time
            if not signals.focus_meal_type:
                signals.focus_meal_type = meal_time

        if _LIKE_WORD.search(text):
            words = text.split()
            idx = next((i for i, w in enumerate(words) if _LIKE_PREFIX.match(w)), -1)
            if 0 <= idx < len(words) - 1:
                liked = _NON_ALPHA.sub("", words[idx + 1])
                if liked:
                    signals.preferences.append(liked)

        no_match = _NO_PHRASE.search(text)
        if no_match:
            signals.avoided_ingredients.extend(_split_list(no_match.group(1)))
        dislike = _DISLIKE_PHRASE.search(text)
        if dislike:
            signals.avoided_ingredients.extend(_split_list(dislike.group(1)))

        guests = _GUESTS.search(text)
        if guests:
            signals.guest_count = int(guests.group(1))

        if "vegetarian" in text or "vegan" in text:
            signals.dietary_restrictions.append("vegetarian")
        if "gluten free" in text or "gluten-free" in text:
            signals.dietary_restrictions.append("gluten-free")

        limit = _UNDER_MINUTES.search(text) or _IN_MINUTES.search(text)
        if limit:
            signals.time_limit_minutes = min(180, int(limit.group(1)))

        if _QUICK.search(text):
            signals.wants_quick = True
        if _BUDGET.search(text):
            signals.wants_budget = True
        if _HEALTHY.search(text):
            signals.wants_healthy = True

    return signals


def extract_user_preferences(history: Iterable[dict]) -> UserPreferences:
    """Favourite and avoided words from "I love X" / "no X" style messages"""
    prefs = UserPreferences()
    for text in _user_texts(history or []):
        words = text.split()
        if "love" in text or "like" in text:
            idx = next((i for i, w in enumerate(words) if "love" in w or "like" in w), -1)
            if 0 <= idx < len(words) - 1:
                liked = _NON_ALPHA.sub("", words[idx + 1])
                if liked:
                    prefs.favorite_ingredients.append(liked)

        if any(w in text for w in ("hate", "dislike", "don't like", "no ")):
            idx = next(
                (i for i, w in enumerate(words) if "hate" in w or "dislike" in w or w == "no"),
                -1,
            )
            if 0 <= idx < len(words) - 1:
                avoided = _NON_ALPHA.sub("", words[idx + 1])
                if len(avoided) > 2:
                    prefs.avoided_ingredients.append(avoided)
    return prefs
