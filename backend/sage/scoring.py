"""
Recipe Scoring & Selection
Ranks catalog recipes against a free-text query and picks a single best recipe
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from config import MAX_RECIPE_CARDS, RELEVANCE_FLOOR, SEEN_PENALTY
from sage.budget import estimate_recipe_cost
from sage.intents import is_more_request, parse_requested_count
from sage.models import EnrichedRecipe, Recipe, step_count
from sage.signals import ConversationSignals, extract_cuisine, extract_user_preferences

log = logging.getLogger(__name__)

STOPWORDS = {
    "the", "a", "an", "to", "for", "me", "i", "you", "please", "give", "something",
    "make", "cook", "want", "just", "one", "more", "recipe", "recipes", "what", "can",
    "should", "would", "need", "some", "that", "show",
}

# (trigger words in the query, hint words in the recipe text, points per hint)
CONTEXT_BOOSTS = [
    (("quick", "easy", "fast", "simple"),
     ("omelette", "stir", "smoothie", "parfait", "sandwich", "tacos", "bowl", "salad", "pizza", "wrap"), 60),
    (("healthy", "diet", "nutritious", "light", "fitness"),
     ("salad", "quinoa", "spinach", "tofu", "yogurt", "berries", "banana", "veggie", "fish", "salmon", "parfait"), 60),
    (("girlfriend", "date", "romantic", "special", "impress", "fancy"),
     ("salmon", "pasta", "parmesan", "quinoa", "elegant", "gourmet"), 70),
    (("party", "guests", "gathering", "crowd", "friends"),
     ("tacos", "sandwich", "bowl", "appetizer", "finger"), 60),
    (("comfort", "cozy", "warm", "hearty"),
     ("stew", "pasta", "beef", "potato", "cheese"), 60),
    (("breakfast", "morning"),
     ("egg", "omelette", "yogurt", "smoothie", "parfait"), 70),
    (("lunch",),
     ("sandwich", "salad", "bowl", "taco"), 70),
    (("dinner", "evening", "supper"),
     ("chicken", "fish", "pasta", "beef", "stew", "salmon", "stir"), 70),
    (("dessert", "desert", "sweet", "treat"),
     ("yogurt", "parfait", "smoothie", "berries", "honey", "banana", "ice cream", "chocolate"), 80),
]

PROTEIN_KEYWORDS = {
    "chicken": ("chicken",),
    "beef": ("beef",),
    "fish": ("fish", "salmon"),
    "salmon": ("salmon",),
    "shrimp": ("shrimp",),
    "turkey": ("turkey",),
    "tofu": ("tofu",),
    "yogurt": ("yogurt",),
    "egg": ("egg",),
}
PROTEIN_BOOST = 120

CUISINE_HINTS = {
    "italian": ("pasta", "marinara", "parmesan", "spaghetti"),
    "mexican": ("taco", "tortilla"),
    "asian": ("soy", "rice", "stir"),
    "mediterranean": ("quinoa", "salmon", "olive"),
}
CUISINE_BOOST = 80

_NON_WORD = re.compile(r"\W+")


@dataclass
class ScoredRecipe:
    recipe: Recipe
    score: float


def tokenize_query(text: str) -> list[str]:
    """Meaningful lowercase tokens of a query (stopwords and short words dropped)"""
    return [
        t for t in _NON_WORD.split((text or "").lower())
        if t and t not in STOPWORDS and len(t) > 2
    ]


def _recipe_text(recipe) -> tuple[str, list[str], str]:
    name = (recipe.name or "").lower()
    ingredient_names = [(ing.name or "").lower() for ing in recipe.ingredients]
    return name, ingredient_names, " ".join([name, *ingredient_names])


def score_recipe(recipe, tokens: Sequence[str], query: str, raw_message: str, seen: set) -> float:
    """Additive relevance score of one recipe for a tokenized query"""
    name, ingredient_names, all_text = _recipe_text(recipe)
    score = 0.0

    name_words = name.split()
    for tk in tokens:
        if tk in name_words:
            score += 100
        elif tk in name:
            score += 60

    for ing in ingredient_names:
        ing_words = ing.split()
        for tk in tokens:
            if tk in ing_words:
                score += 80
            elif tk in ing:
                score += 50

    for triggers, hints, points in CONTEXT_BOOSTS:
        if any(t in query for t in triggers):
            score += points * sum(1 for h in hints if h in all_text)

    for protein, keywords in PROTEIN_KEYWORDS.items():
        if protein in raw_message and any(kw in all_text for kw in keywords):
            score += PROTEIN_BOOST

    cuisine = extract_cuisine(query)
    if cuisine:
        score += CUISINE_BOOST * sum(1 for h in CUISINE_HINTS.get(cuisine, ()) if h in all_text)

    if recipe.name in seen:
        score -= SEEN_PENALTY
    return score


def find_recipes_for_occasion(
    message: str,
    recipes: Sequence[Recipe],
    seen: Optional[set] = None,
    history: Optional[Iterable[dict]] = None,
    *,
    treat_as_more: bool = False,
    query_for_scoring: Optional[str] = None,
) -> list[Recipe]:
    """Rank the catalog against a query.

    For "more" requests only unseen recipes are considered and an empty list
    means the topic is exhausted. Fresh queries keep recipes scoring at least
    RELEVANCE_FLOOR, preferring unseen ones, and fall back to the best scorers
    when nothing clears the floor.
    """
    seen = seen or set()
    msg = (message or "").lower()
    query = (query_for_scoring or message or "").lower()

    explicit_count = parse_requested_count(msg)
    requested = min(explicit_count or MAX_RECIPE_CARDS, MAX_RECIPE_CARDS)

    more = treat_as_more or is_more_request(msg)
    available = [r for r in recipes if r.name not in seen] if more else list(recipes)

    tokens = tokenize_query(query)
    log.debug("Query tokens: %s", tokens)

    if not tokens:
        prefs = extract_user_preferences(history or [])
        if prefs.favorite_ingredients:
            with_favorites = [
                r for r in available
                if any(fav and fav in ing.name.lower() for ing in r.ingredients for fav in prefs.favorite_ingredients)
            ]
            if with_favorites:
                return with_favorites[:requested]
        return available[:requested]

    scored = [ScoredRecipe(r, score_recipe(r, tokens, query, msg, seen)) for r in available]
    scored.sort(key=lambda s: s.score, reverse=True)
    for item in scored[:10]:
        log.debug("  %s: %s points %s", item.recipe.name, item.score, "(seen)" if item.recipe.name in seen else "(new)")

    result: list[Recipe] = []
    if more:
        unseen = [s for s in scored if s.recipe.name not in seen]
        top = unseen[0].score if unseen else 0
        if top >= 200:
            min_score = math.floor(top * 0.4)
        elif top >= 100:
            min_score = math.floor(top * 0.5)
        else:
            min_score = 10
        result = [s.recipe for s in unseen if s.score >= min_score][:requested]
        log.debug("More request: min_score=%s, returning %d", min_score, len(result))
    else:
        unseen = [s for s in scored if s.recipe.name not in seen and s.score >= RELEVANCE_FLOOR]
        seen_items = [s for s in scored if s.recipe.name in seen and s.score >= RELEVANCE_FLOOR]
        top = scored[0].score if scored else 0

        count = requested
        if explicit_count is None:
            if top >= 200:
                count = max(1, min(2, sum(1 for s in unseen if s.score >= top * 0.7)))
            elif top >= 100:
                count = max(1, min(3, sum(1 for s in unseen if s.score >= top * 0.6)))
            else:
                count = MAX_RECIPE_CARDS
        log.debug("Dynamic count %d (top score %s)", count, top)

        for item in unseen + seen_items:
            if len(result) >= count:
                break
            result.append(item.recipe)

    if result:
        return result

    if more:
        log.debug("No on-topic results for more request; topic exhausted")
        return []

    log.debug("Nothing cleared the relevance floor, using best scorers")
    unseen_fallback = [s.recipe for s in scored if s.recipe.name not in seen][:requested]
    if unseen_fallback:
        return unseen_fallback
    return [s.recipe for s in scored[:requested]]


# Best-of selection uses its own, smaller weight scale.
QUICK_HINTS = ("omelette", "stir", "smoothie", "parfait", "sandwich", "wrap", "tacos", "salad", "bowl", "pizza")
QUICK_NAME_HINTS = ("quick", "easy", "simple", "stir", "salad", "bowl", "wrap", "tacos", "omelette", "parfait", "sandwich")
HEALTHY_HINTS = ("salad", "quinoa", "spinach", "tofu", "yogurt", "berries", "banana", "veggie", "fish", "salmon", "parfait")
MEAL_TYPE_HINTS = {
    "breakfast": ("egg", "omelette", "yogurt", "smoothie", "parfait"),
    "lunch": ("sandwich", "salad", "bowl", "wrap", "taco"),
    "dinner": ("chicken", "fish", "pasta", "beef", "stew", "salmon", "stir"),
}
_DESSERT_TEXT = re.compile(r"dessert|sweet|banana|chocolate|parfait|ice cream")


def _is_short(recipe) -> bool:
    return step_count(recipe.steps) <= 4


def best_choice_score(recipe: EnrichedRecipe, signals: ConversationSignals) -> float:
    _, _, text = _recipe_text(recipe)
    score = recipe.coverage() * 100

    if signals.wants_quick:
        if _is_short(recipe):
            score += 40
        if any(h in text for h in QUICK_HINTS):
            score += 30

    if signals.wants_healthy and any(h in text for h in HEALTHY_HINTS):
        score += 30

    if signals.wants_budget:
        cost = estimate_recipe_cost(recipe)
        score += max(0.0, 60 - min(60.0, cost))

    meal = signals.focus_meal_type
    if meal:
        if meal == "dessert" and _DESSERT_TEXT.search(text):
            score += 25
        if any(h in text for h in MEAL_TYPE_HINTS.get(meal, ())):
            score += 25

    for liked in {p.lower() for p in signals.preferences if p}:
        if liked in text:
            score += 20
    for avoided in {a.lower() for a in signals.avoided_ingredients if a}:
        if avoided in text:
            score -= 50
    return score


def choose_best_recipe(
    candidates: Sequence[EnrichedRecipe],
    signals: ConversationSignals,
) -> Optional[EnrichedRecipe]:
    """Highest best-of score wins; ties keep the first candidate."""
    best, best_score = None, -math.inf
    for recipe in candidates or []:
        score = best_choice_score(recipe, signals)
        if score > best_score:
            best, best_score = recipe, score
    return best


def explain_best_choice(recipe: Optional[EnrichedRecipe], signals: ConversationSignals) -> str:
    """Short "because it ..." rationale built from at most three traits"""
    if recipe is None:
        return ""
    traits = []

    if recipe.coverage() >= 0.6:
        traits.append("uses ingredients that are available")

    name = recipe.name.lower()
    if signals.wants_quick and (_is_short(recipe) or any(h in name for h in QUICK_NAME_HINTS)):
        traits.append("is quick to make")

    ing_text = " ".join(recipe.get_ingredient_names())
    if signals.wants_healthy and any(h in name or h in ing_text for h in HEALTHY_HINTS):
        traits.append("leans healthy")

    if signals.wants_budget:
        cost = estimate_recipe_cost(recipe)
        if cost > 0:
            traits.append(f"is budget-friendly (~${round(cost)} total)")
        else:
            traits.append("keeps costs reasonable")

    if signals.focus_meal_type:
        traits.append(f"fits {signals.focus_meal_type}")

    if not traits:
        return ""
    traits = traits[:3]
    if len(traits) == 1:
        summary = traits[0]
    else:
        summary = ", ".join(traits[:-1]) + " and " + traits[-1]
    return f"because it {summary}"


def estimate_prep_minutes(recipe) -> int:
    """Rough prep time: five minutes per step plus five to get going"""
    return 5 * max(1, step_count(recipe.steps)) + 5
