"""
User Input Parser
Extracts measurements, budgets, times, pantry items and preferences from
the short free-text answers users give inside guided flows
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from config import DEFAULT_SERVINGS, PANTRY_MAX_ITEMS
from sage.budget import parse_budget_cap
from sage.matching import normalize, singular

_NUMBER = r"(\d+(?:\.\d+)?)"


@dataclass
class BodyMeasurements:
    """Height and weight in metric units, plus optional age and sex"""
    height_cm: float
    weight_kg: float
    age: Optional[int] = None
    sex: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "height_cm": round(self.height_cm, 1),
            "weight_kg": round(self.weight_kg, 1),
            "age": self.age,
            "sex": self.sex,
        }


@dataclass
class BudgetRequest:
    budget: float
    servings: int = DEFAULT_SERVINGS

    @property
    def per_serving(self) -> float:
        return self.budget / max(1, self.servings)


CM_PATTERN = re.compile(_NUMBER + r"\s*(?:cm|centimet(?:er|re)s?)\b")
M_PATTERN = re.compile(r"(\d(?:\.\d+)?)\s*(?:m|meters?|metres?)\b")
FEET_PATTERN = re.compile(
    r"(\d)\s*(?:'|ft\b|feet\b|foot\b)\s*,?\s*(?:(\d{1,2}(?:\.\d+)?)(?!\d)\s*(?:\"|''|in\b|inch(?:es)?\b)?)?"
)
KG_PATTERN = re.compile(_NUMBER + r"\s*(?:kg|kgs|kilo(?:gram)?s?)\b")
LB_PATTERN = re.compile(_NUMBER + r"\s*(?:lbs?|pounds?)\b")
AGE_PATTERN = re.compile(r"(\d{1,3})\s*(?:years?(?:\s*old)?|yrs?|yo|y/o)\b|\bage[d]?\s*(?:is\s*)?(\d{1,3})\b")
SEX_PATTERN = re.compile(r"(?<![\w'])(male|man|female|woman|m|f)(?![\w'])")

HEIGHT_RANGE_CM = (100.0, 250.0)
WEIGHT_RANGE_KG = (25.0, 350.0)

CM_PER_INCH = 2.54
KG_PER_LB = 0.45359237


def _in_range(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def _parse_age_sex(text: str) -> tuple[Optional[int], Optional[str], str]:
    """Pull age and sex out of text, returning the remainder for measurement parsing"""
    age = None
    match = AGE_PATTERN.search(text)
    if match:
        value = int(match.group(1) or match.group(2))
        if 10 <= value <= 110:
            age = value
        text = text[:match.start()] + " " + text[match.end():]

    sex = None
    for m in SEX_PATTERN.finditer(text):
        word = m.group(1)
        # a lone "m" right after a number is metres
        if word == "m" and re.search(r"\d\s*$", text[:m.start()]):
            continue
        sex = "male" if word in ("male", "man", "m") else "female"
        break
    return age, sex, text


def parse_height_weight(text: str) -> Optional[BodyMeasurements]:
    """Parse height and weight from metric, imperial, shorthand or bare numbers.

    Returns None unless both values are found and plausible.
    """
    if not text:
        return None
    lowered = text.lower().replace("’", "'").replace("”", '"')
    age, sex, rest = _parse_age_sex(lowered)

    height_cm = weight_kg = None
    imperial = False

    cm = CM_PATTERN.search(rest)
    metres = M_PATTERN.search(rest)
    feet = FEET_PATTERN.search(rest)
    if cm:
        height_cm = float(cm.group(1))
    elif metres:
        height_cm = float(metres.group(1)) * 100
    elif feet:
        inches = float(feet.group(2)) if feet.group(2) else 0.0
        height_cm = (int(feet.group(1)) * 12 + inches) * CM_PER_INCH
        imperial = True

    kg = KG_PATTERN.search(rest)
    lb = LB_PATTERN.search(rest)
    if kg:
        weight_kg = float(kg.group(1))
    elif lb:
        weight_kg = float(lb.group(1)) * KG_PER_LB
        imperial = True

    if height_cm is None or weight_kg is None:
        # Bare numbers: "170 70" (metric) or "5 7 150" (imperial)
        consumed = [m.span() for m in (cm, metres, feet, kg, lb) if m]
        numbers = [
            float(m.group(1)) for m in re.finditer(_NUMBER, rest)
            if not any(start <= m.start() < end for start, end in consumed)
        ]
        if height_cm is None and numbers:
            first = numbers.pop(0)
            if _in_range(first, HEIGHT_RANGE_CM):
                height_cm = first
            elif 1.0 <= first <= 2.5:
                height_cm = first * 100
            elif 4 <= first <= 7:
                inches = numbers.pop(0) if numbers and numbers[0] < 12 else 0.0
                height_cm = (first * 12 + inches) * CM_PER_INCH
                imperial = True
        if weight_kg is None and numbers:
            value = numbers.pop(0)
            weight_kg = value * KG_PER_LB if imperial else value

    if height_cm is None or weight_kg is None:
        return None
    if not _in_range(height_cm, HEIGHT_RANGE_CM) or not _in_range(weight_kg, WEIGHT_RANGE_KG):
        return None
    return BodyMeasurements(height_cm=height_cm, weight_kg=weight_kg, age=age, sex=sex)


DOLLAR_PATTERN = re.compile(r"\$\s*(\d+(?:\.\d{1,2})?)")
DOLLAR_WORD_PATTERN = re.compile(r"(\d+(?:\.\d{1,2})?)\s*(?:dollars?|bucks|usd)\b")
SERVINGS_PATTERN = re.compile(r"(\d{1,2})\s*(?:servings?|people|persons?|portions?|guests?|meals?)\b")
FOR_N_PATTERN = re.compile(r"\bfor\s+(\d{1,2})\b(?!\s*(?:dollars?|bucks|usd|\.\d))")


def parse_budget_and_servings(text: str) -> Optional[BudgetRequest]:
    """Parse "$25 for 4 servings", "30 dollars for 3", "under $15" (servings default 2)"""
    if not text:
        return None
    lowered = text.lower()

    budget = None
    for pattern in (DOLLAR_PATTERN, DOLLAR_WORD_PATTERN):
        match = pattern.search(lowered)
        if match:
            budget = float(match.group(1))
            break
    if budget is None:
        budget = parse_budget_cap(lowered)
    if budget is None:
        bare = re.fullmatch(r"\s*(\d+(?:\.\d{1,2})?)\s*", lowered)
        if bare:
            budget = float(bare.group(1))
    if budget is None or budget <= 0:
        return None

    servings = DEFAULT_SERVINGS
    match = SERVINGS_PATTERN.search(lowered) or FOR_N_PATTERN.search(lowered)
    if match and int(match.group(1)) > 0:
        servings = int(match.group(1))
    return BudgetRequest(budget=budget, servings=servings)


HOURS_PATTERN = re.compile(_NUMBER + r"\s*(?:hours?|hrs?|h)\b")
MINUTES_PATTERN = re.compile(r"(\d{1,3})\s*(?:minutes?|mins?|m)\b")


def parse_minutes(text: str) -> Optional[int]:
    """Minutes available for cooking, from "30 minutes", "under 20", "45", "1 hour" ..."""
    if not text:
        return None
    lowered = text.lower()

    if "half an hour" in lowered or "half hour" in lowered:
        return 30
    if "quarter of an hour" in lowered or "quarter hour" in lowered:
        return 15

    total = None
    hours = HOURS_PATTERN.search(lowered)
    if hours:
        total = round(float(hours.group(1)) * 60)
        rest = lowered[hours.end():]
        minutes = MINUTES_PATTERN.search(rest)
        if minutes:
            total += int(minutes.group(1))
    elif re.search(r"\ban hour\b", lowered):
        total = 60
    else:
        minutes = MINUTES_PATTERN.search(lowered) or re.search(r"\b(\d{1,3})\b", lowered)
        if minutes:
            total = int(minutes.group(1))

    if total is None or not 1 <= total <= 600:
        return None
    return total


# Ordered: more specific phrasings first
ACTIVITY_KEYWORDS = [
    ("extra_active", ("extremely", "extra active", "athlete", "physical job", "twice a day", "5")),
    ("very_active", ("very active", "very", "hard exercise", "6-7", "4")),
    ("moderate", ("moderate", "moderately", "3-5", "3")),
    ("light", ("light", "lightly", "1-3", "2")),
    ("sedentary", ("sedentary", "desk", "little", "no exercise", "none", "1")),
    ("very_active", ("active",)),
]


def parse_activity_level(text: str) -> Optional[str]:
    """Map an answer (word or 1-5 menu number) to an activity level key"""
    lowered = (text or "").lower().strip()
    if not lowered:
        return None
    # "not active" must not read as active
    if "not active" in lowered or "inactive" in lowered:
        return "sedentary"
    words = set(re.findall(r"[a-z0-9\-]+", lowered))
    for level, keys in ACTIVITY_KEYWORDS:
        for key in keys:
            if key.isdigit():
                if lowered == key:
                    return level
            elif (" " in key and key in lowered) or key in words:
                return level
    return None


YES_WORDS = {"yes", "y", "yeah", "yep", "yup", "sure", "ok", "okay", "please", "definitely", "absolutely", "go ahead", "sounds good", "why not"}
NO_WORDS = {"no", "n", "nope", "nah", "not now", "no thanks", "skip", "maybe later", "later"}


def parse_yes_no(text: str) -> Optional[bool]:
    lowered = re.sub(r"[^a-z\s]", "", (text or "").lower()).strip()
    if not lowered:
        return None
    for phrase in sorted(NO_WORDS, key=len, reverse=True):
        if lowered == phrase or lowered.startswith(phrase + " "):
            return False
    for phrase in sorted(YES_WORDS, key=len, reverse=True):
        if lowered == phrase or lowered.startswith(phrase + " "):
            return True
    return None


PANTRY_SPLIT = re.compile(r",|\n| and | & |;|\(|\)")
PANTRY_PREFIX = re.compile(r"^(?:i have|ive got|i got|i only have|only have|we have|there is|there are|some|a few)\s+")


def parse_pantry_items(text: str, limit: int = PANTRY_MAX_ITEMS) -> list[str]:
    """Split a pantry list into normalized, de-duplicated items (at most `limit`)"""
    if not text:
        return []
    items = []
    for raw in PANTRY_SPLIT.split(text.lower()):
        item = PANTRY_PREFIX.sub("", normalize(raw))
        if item and item not in items:
            items.append(item)
        if len(items) >= limit:
            break
    return items


MEAL_PREP_OPTIONS = {
    "1": "balanced",
    "2": "high protein",
    "3": "vegetarian",
    "4": "low carb",
    "5": "budget-friendly",
}

MEAL_PREP_KEYWORDS = {
    "balanced": ("balanced", "mix", "variety", "anything"),
    "high protein": ("protein", "muscle", "gains"),
    "vegetarian": ("vegetarian", "veggie", "vegan", "plant", "meatless"),
    "low carb": ("low carb", "low-carb", "keto", "no carb"),
    "budget-friendly": ("budget", "cheap", "affordable", "inexpensive"),
}


def parse_meal_prep_preference(text: str) -> Optional[str]:
    """1-5 menu choice, a known keyword, or free text of at least three letters"""
    stripped = (text or "").strip().lower()
    if stripped in MEAL_PREP_OPTIONS:
        return MEAL_PREP_OPTIONS[stripped]
    for preference, keywords in MEAL_PREP_KEYWORDS.items():
        if any(kw in stripped for kw in keywords):
            return preference
    letters = re.sub(r"[^a-z]", "", stripped)
    if len(letters) >= 3:
        return normalize(stripped)
    return None


GENERIC_HEALTHY = re.compile(
    r"\b(eat(ing)? (healthier|better|healthy|clean)|be healthier|healthy (eating|diet|lifestyle)"
    r"|lose weight|in general|overall|everything|not sure|no idea|general)\b"
)


def parse_healthy_topic(text: str) -> tuple[bool, Optional[str]]:
    """(is_generic, specific food) for the healthy options flow"""
    lowered = (text or "").lower().strip()
    if not lowered or GENERIC_HEALTHY.search(lowered):
        return True, None
    topic = re.sub(r"^(i (love|like|eat|want)|my|about|healthier|healthy|swap(s)? for|alternatives? (to|for))\s+", "", lowered)
    topic = normalize(topic)
    if len(topic) < 3:
        return True, None
    return False, topic


INGREDIENT_LIST_INTRO = re.compile(r"(?:i have|i've got|i got|ingredients?:|have only|only have)\s*:?\s*(.*)", re.IGNORECASE | re.DOTALL)
SENTENCE_HINT = re.compile(r"\b(give|make|recipe|based|only|just|some|cook|want)\b", re.IGNORECASE)
LIST_SPLIT = re.compile(r",|\n| and | & |;|\(|\)")


def parse_ingredients_from_text(text: str, products: Sequence = ()) -> list[str]:
    """Ingredient mentions in a message, mapped to catalog product names where possible"""
    if not text:
        return []
    match = INGREDIENT_LIST_INTRO.search(text.lower())
    list_text = match.group(1) if match else None
    if not list_text and ("," in text or "\n" in text):
        list_text = text
    if not list_text:
        return []

    if SENTENCE_HINT.search(list_text) and products:
        text_norm = normalize(text)
        text_words = set(text_norm.split())
        found = []
        for product in products:
            name = product.normalized_name
            if not name:
                continue
            if name in text_norm or any(len(w) >= 3 and w in text_words for w in name.split()):
                if name not in found:
                    found.append(name)
        if found:
            return found

    tokens = [normalize(t) for t in LIST_SPLIT.split(list_text)]
    tokens = [t for t in tokens if t]
    if products:
        known = {p.normalized_name for p in products}
        exact = [t for t in tokens if t in known]
        if exact:
            return exact
    return tokens


MESSAGE_STOPWORDS = {
    "i", "have", "only", "just", "can", "you", "me", "some", "recipe", "recipes", "give",
    "want", "with", "and", "for", "based", "on", "my", "ingredients", "please", "suggest",
    "make", "cook", "quick", "healthy", "dinner", "lunch", "breakfast", "snack", "more",
    "the", "a", "an", "to", "of", "it", "that", "this", "those", "these", "add", "list",
    "shopping", "cart", "buy", "purchase",
}


def extract_ingredients_from_message(message: str, known_ingredients: Iterable[str]) -> list[str]:
    """Known ingredient names mentioned anywhere in a message"""
    if not message:
        return []
    known = [k for k in dict.fromkeys(known_ingredients) if k]
    candidates = [
        tok for tok in re.split(r"[^a-z0-9]+", message.lower())
        if len(tok) >= 3 and tok not in MESSAGE_STOPWORDS
    ]
    result = []
    for cand in candidates:
        for ing in known:
            if ing in result:
                continue
            if ing == cand or cand in ing or ing in cand or singular(ing) == singular(cand):
                result.append(ing)
    return result
