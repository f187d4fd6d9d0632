"""
Recipe Enrichment
Attaches product availability, unit price and calories to recipe ingredients
"""

import math
from typing import Iterable, Sequence, Union

from sage.matching import match_product
from sage.models import EnrichedIngredient, EnrichedRecipe, Product, Recipe


def _finite(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def enrich_ingredient(name: str, products: Sequence[Product]) -> EnrichedIngredient:
    product = match_product(name, products)
    if product is None:
        return EnrichedIngredient(name=name, found=False)
    return EnrichedIngredient(
        name=name,
        found=True,
        matched_product=product,
        calories=_finite(product.nutrition.calories),
        price=product.unit_price,
        unit=product.unit or None,
    )


def enrich_recipe(
    recipe: Union[Recipe, EnrichedRecipe],
    products: Sequence[Product],
    exceeds_budget: bool = False,
) -> EnrichedRecipe:
    """Enrich one recipe against the product catalog.

    Pure: neither the recipe nor the catalog is modified. Enriching an
    already-enriched recipe re-derives everything from ingredient names, so
    repeated calls give identical output for an unchanged catalog.
    """
    ingredients = tuple(enrich_ingredient(ing.name, products) for ing in recipe.ingredients)
    total_calories = sum(_finite(ing.calories) for ing in ingredients if ing.found)
    total_price = sum(_finite(ing.price) for ing in ingredients if ing.found)
    return EnrichedRecipe(
        name=recipe.name,
        ingredients=ingredients,
        steps=recipe.steps,
        meal_type=recipe.meal_type,
        autogenerated=recipe.autogenerated,
        total_calories=total_calories,
        total_price=total_price,
        exceeds_budget=exceeds_budget,
    )


def enrich_recipes(
    recipes: Iterable[Union[Recipe, EnrichedRecipe]],
    products: Sequence[Product],
) -> list[EnrichedRecipe]:
    return [enrich_recipe(recipe, products) for recipe in recipes]
