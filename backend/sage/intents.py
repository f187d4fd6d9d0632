"""
Intent Classifier
Fast regex heuristics mapping a raw message (plus context) to an intent
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from sage.signals import extract_cuisine


class Intent(str, Enum):
    FLOW_TRIGGER = "flow_trigger"
    SHOPPING_ACTION = "shopping_action"
    SELECTION = "selection"
    PRODUCT_QUERY = "product_query"
    PRODUCT_FOLLOW_UP = "product_follow_up"
    RECIPE_CARDS = "recipe_cards"
    CONVERSATION = "conversation"


FLOW_TRIGGERS = {
    "__NUTRITION_START__": "nutrition",
    "__BUDGET_START__": "budget",
    "__TIME_START__": "time",
    "__PANTRY_START__": "pantry",
    "__MEAL_PREP_START__": "meal_prep",
    "__HEALTHY_START__": "healthy",
    "__DAILY_MENU_START__": "daily_menu",
}


@dataclass
class IntentResult:
    intent: Intent
    flow: Optional[str] = None      # flow kind for FLOW_TRIGGER


class IntentClassifier(Protocol):
    """Anything that can route a message. Swap in a model-backed one if needed."""

    def classify(self, text: str, context) -> IntentResult:
        ...

    def wants_recipe_cards(self, user_text: str, reply_text: str) -> bool:
        ...


SHOPPING_ACTION = re.compile(
    r"add( to)? shopping|add( to)? list|shopping list|\bcart\b|\bbuy\b|purchase|add ingredients",
    re.IGNORECASE,
)

SELECTION = re.compile(
    r"(which\s+is\s+(the\s+)?best|which\s+one\s+is\s+best|best\s+one|best\s+recipe|pick\s+one"
    r"|choose\s+one|recommend\s+one|top\s+choice|favorite|favourite)",
    re.IGNORECASE,
)

PRODUCT_QUERY = re.compile(
    r"(do you (have|carry|sell)|how much (is|are|does|do)|price of|what does .+ cost"
    r"|in stock|which products|show (me )?(the )?products|find (me )?products"
    r"|(cheapest|cheaper|priciest) (brand|product|option)s?\b)",
    re.IGNORECASE,
)

PRODUCT_FOLLOW_UP = re.compile(
    r"\b(it|they|them|those|these|that one|which one)\b.*\b(cost|price|cheap|cheaper|cheapest|sort|under|expensive)\b"
    r"|^\s*(sort|order) (them|by price)|^\s*(cheapest|cheaper|under \$?\d+)\s*\??\s*$",
    re.IGNORECASE,
)

_MORE_EXACT = re.compile(r"^(more|show me more|give me more)$", re.IGNORECASE)

_CARD_PHRASES = [
    re.compile(
        r"\b(give|show|suggest|find|recommend|list|generate|create)\b[^\n]*\b(recipes?|recipe\s+ideas?|recipe\s+suggestions?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(more|other|another|additional|new|few)\b[^\n]*\b(recipes?|recipe\s+ideas?|recipe\s+suggestions?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(recipes?|dishes?|meals?)\b[^\n]*\b(with|using|for|that\s+use|based\s+on|containing|include|featuring)\b",
        re.IGNORECASE,
    ),
    re.compile(r"^\s*more(\s+recipes?)?\s*$", re.IGNORECASE),
    re.compile(
        r"\b(give|show)\s+me\b[^\n]*\b(for|but|in|as|with)\b[^\n]*(mexican|italian|chinese|indian|thai|french|greek"
        r"|japanese|korean|spanish|mediterranean|asian|european|latin|american|southern|cajun|style|dish|version|variant)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(what\s+(can|should)\s+i\s+(make|cook)|help\s+me\s+(plan|make|cook)|ideas?\s+for)\b", re.IGNORECASE),
]

_REPLY_OFFERS_RECIPES = re.compile(
    r"(here are (\d+|some|several) recipes?|i('ll| will) suggest|let me recommend|i found|i('ve| have) got.*recipes?)",
    re.IGNORECASE,
)

JSON_ARTIFACT = re.compile(r"[\{\[][\s\S]*\"(recipe_name|name|ingredients)\"[\s\S]*[\}\]]", re.IGNORECASE)

_DISH_WORD = re.compile(r"(dish|dishes|meal|meals|recipe|recipes)", re.IGNORECASE)
_PROTEIN_WORD = re.compile(
    r"(chicken|beef|pork|fish|salmon|tuna|shrimp|turkey|tofu|egg|eggs|yogurt|lamb)", re.IGNORECASE
)
_COOK_VERB = re.compile(r"(with|using|containing|include|make|cook)")

_THEMED = [
    re.compile(
        r"(halloween|christmas|thanksgiving|easter|valentine|romantic|spooky|scary|festive|party|celebration"
        r"|birthday|anniversary|themed|creative|fancy|gourmet|fusion|unique|unusual|weird|fun)\s+(recipe|dish|meal|food|idea)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(recipe|dish|meal|food|idea)\s+(for|themed|style)\s+(halloween|christmas|thanksgiving|easter|valentine"
        r"|party|celebration|birthday|anniversary)",
        re.IGNORECASE,
    ),
]

_GROUNDED = re.compile(
    r"(only\s+(use\s+)?(store|catalog|available|in\s+stock|my\s+list|product)s?)"
    r"|(use\s+only\s+(what|ingredients)\s+(i\s+have|we\s+carry))|\bgrounded\b|\bonly\s+from\s+(the\s+)?catalog\b",
    re.IGNORECASE,
)

_FORMATTING_VERB = re.compile(r"\b(give|show|create|make|format)\b[^\n]*\b(the\s+)?(recipe|card|these|those|them)\b", re.IGNORECASE)
_FORMATTING_REF = re.compile(r"\b(of\s+)?(these|those|them|that|the\s+ones?)\b", re.IGNORECASE)

NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

# A count must be followed (within a few words) by a recipe noun, so "$15" or
# "30 minutes" never read as "give me 15 recipes".
_COUNT = re.compile(
    r"\b(\d+|one|two|three|four|five|six|seven|eight|nine|ten)\b(?:\s+[a-z\-]+){0,3}?\s+"
    r"(recipes?|ideas?|options?|dishes?|meals?|suggestions?|more)\b",
    re.IGNORECASE,
)


def is_more_request(text: str) -> bool:
    """Bare "more" style follow-ups"""
    return bool(_MORE_EXACT.match((text or "").strip()))


def is_themed_request(text: str) -> bool:
    return any(p.search(text or "") for p in _THEMED)


def is_grounded_request(text: str) -> bool:
    return bool(_GROUNDED.search(text or ""))


def is_formatting_request(text: str) -> bool:
    """ "give me the recipe of these" style requests about the previous reply"""
    text = text or ""
    return bool(_FORMATTING_VERB.search(text) and _FORMATTING_REF.search(text))


def has_json_artifacts(text: str) -> bool:
    return bool(JSON_ARTIFACT.search(text or ""))


def parse_requested_count(text: str) -> Optional[int]:
    """Explicit recipe count in text, or None. Capped at 10.

    >>> parse_requested_count("give me 2 dinner recipes")
    2
    """
    match = _COUNT.search(text or "")
    if not match:
        return None
    raw = match.group(1).lower()
    count = NUMBER_WORDS.get(raw) if not raw.isdigit() else int(raw)
    if not count:
        return None
    return min(count, 10)


def flow_trigger(text: str) -> Optional[str]:
    stripped = (text or "").strip()
    return FLOW_TRIGGERS.get(stripped)


class HeuristicClassifier:
    """Default regex-based classifier"""

    def classify(self, text: str, context=None) -> IntentResult:
        text = text or ""

        flow = flow_trigger(text)
        if flow:
            return IntentResult(Intent.FLOW_TRIGGER, flow=flow)

        if SHOPPING_ACTION.search(text):
            return IntentResult(Intent.SHOPPING_ACTION)

        if SELECTION.search(text):
            return IntentResult(Intent.SELECTION)

        has_previous_search = bool(context is not None and getattr(context, "last_product_query", None))
        if has_previous_search and PRODUCT_FOLLOW_UP.search(text):
            return IntentResult(Intent.PRODUCT_FOLLOW_UP)
        if PRODUCT_QUERY.search(text):
            return IntentResult(Intent.PRODUCT_QUERY)

        if is_more_request(text) or self.user_asks_for_cards(text):
            return IntentResult(Intent.RECIPE_CARDS)

        return IntentResult(Intent.CONVERSATION)

    def user_asks_for_cards(self, text: str) -> bool:
        """Phrasing in the user's own message that calls for recipe cards"""
        text = text or ""
        if any(p.search(text) for p in _CARD_PHRASES):
            return True

        lowered = text.lower()
        mentions_cuisine = extract_cuisine(lowered) is not None
        mentions_protein = bool(_PROTEIN_WORD.search(lowered))
        if mentions_cuisine and (mentions_protein or _DISH_WORD.search(lowered)):
            return True
        return mentions_protein and bool(_COOK_VERB.search(lowered))

    def wants_recipe_cards(self, user_text: str, reply_text: str) -> bool:
        """Decide after the conversational reply whether cards must also be produced"""
        return (
            bool(_REPLY_OFFERS_RECIPES.search(reply_text or ""))
            or self.user_asks_for_cards(user_text)
            or has_json_artifacts(reply_text)
        )
