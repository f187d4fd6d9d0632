"""
Budget Engine
Parsing budget caps from text and enforcing them on recipes
"""

import math
import re
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from config import BUDGET_EPSILON, MAX_RECIPE_CARDS
from sage.models import EnrichedRecipe

# "under 20 minutes" is a time limit, not a price
_NOT_TIME = r"(?!\d|\.\d|\s*(?:min|mins|minutes?|hrs?|hours?)\b)"
_AMOUNT = r"\$?\s*(\d+(?:\.\d{1,2})?)" + _NOT_TIME

# Most explicit phrasings first; the bare "to N" form is last to limit false positives
BUDGET_PATTERNS = [
    re.compile(r"under\s*" + _AMOUNT),
    re.compile(r"less\s*than\s*" + _AMOUNT),
    re.compile(r"below\s*" + _AMOUNT),
    re.compile(r"max(?:imum)?\s*" + _AMOUNT),
    re.compile(r"\$\s*(\d+(?:\.\d{1,2})?)\s*(?:or\s*less|and\s*under)"),
    re.compile(r"budget\s*(?:of\s*)?" + _AMOUNT),
    re.compile(r"(?:relax|expand|raise|increase|up\s*to|to)\s*" + _AMOUNT),
]

RELAX_PATTERN = re.compile(r"\b(relax|expand|raise|increase|bump)\b")


def parse_budget_cap(text: Optional[str]) -> Optional[float]:
    """Return the first budget amount found in text, or None.

    >>> parse_budget_cap("under $20")
    20.0
    """
    if not text:
        return None
    lowered = str(text).lower()
    for pattern in BUDGET_PATTERNS:
        match = pattern.search(lowered)
        if match and match.group(1):
            return float(match.group(1))
    return None


def is_budget_relaxation(text: str) -> bool:
    """True for follow-ups like "relax the budget to $25"."""
    return bool(RELAX_PATTERN.search((text or "").lower())) and parse_budget_cap(text) is not None


def estimate_recipe_cost(recipe) -> float:
    """Estimated cost of a recipe.

    An explicit finite total_price wins; otherwise ingredient prices are
    summed with missing prices counted as 0. A missing recipe yields NaN.
    """
    if recipe is None:
        return math.nan
    total = getattr(recipe, "total_price", None)
    if total is not None:
        try:
            total = float(total)
        except (TypeError, ValueError):
            total = None
        if total is not None and math.isfinite(total) and total >= 0:
            return total

    cost = 0.0
    for ing in getattr(recipe, "ingredients", ()) or ():
        price = getattr(ing, "price", None)
        try:
            price = float(price)
        except (TypeError, ValueError):
            continue
        if math.isfinite(price):
            cost += price
    return cost


def filter_recipes_by_budget(recipes: Sequence, cap: Optional[float]) -> list:
    """Recipes whose estimated cost is within cap (with float epsilon)"""
    if cap is None or not math.isfinite(cap):
        return []
    kept = []
    for recipe in recipes or []:
        cost = estimate_recipe_cost(recipe)
        if math.isfinite(cost) and cost <= cap + BUDGET_EPSILON:
            kept.append(recipe)
    return kept


def sort_by_cheapest(recipes: Sequence) -> list:
    """Ascending by estimated cost; undeterminable costs sort last (stable)"""
    def key(recipe):
        cost = estimate_recipe_cost(recipe)
        if not math.isfinite(cost):
            return (1, 0.0)
        return (0, cost)

    return sorted(recipes or [], key=key)


@dataclass
class BudgetSelection:
    """Outcome of the strict-then-closest budget policy"""
    recipes: list[EnrichedRecipe] = field(default_factory=list)
    cap: Optional[float] = None
    within_budget: bool = True


def apply_budget(
    recipes: Sequence[EnrichedRecipe],
    cap: Optional[float],
    limit: int = MAX_RECIPE_CARDS,
) -> BudgetSelection:
    """Keep recipes within cap; if none qualify, return the cheapest ones flagged as over budget."""
    if cap is None:
        return BudgetSelection(recipes=list(recipes)[:limit], cap=None, within_budget=True)

    within = filter_recipes_by_budget(recipes, cap)
    if within:
        return BudgetSelection(recipes=sort_by_cheapest(within)[:limit], cap=cap, within_budget=True)

    closest = [replace(r, exceeds_budget=True) for r in sort_by_cheapest(recipes)[:limit]]
    return BudgetSelection(recipes=closest, cap=cap, within_budget=False)


def budget_note(selection: BudgetSelection) -> str:
    """Short explanation to prepend to a reply when a cap was applied"""
    if selection.cap is None:
        return ""
    if not selection.recipes:
        return f"I couldn't find anything priced for a ${selection.cap:g} budget yet."
    if selection.within_budget:
        return f"All of these come in at or under ${selection.cap:g}."
    cheapest = estimate_recipe_cost(selection.recipes[0])
    return (
        f"Nothing fits under ${selection.cap:g} right now, so here are the closest options "
        f"(starting around ${cheapest:.2f}). They go over your budget, so you may want to "
        f"raise it a little or swap a pricier ingredient."
    )
