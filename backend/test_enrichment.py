"""
Test recipe enrichment against the product catalog
"""

import math

import pytest

from conftest import make_recipe
from sage.enrichment import enrich_recipe, enrich_recipes
from sage.models import Nutrition, Product


def test_enrich_marks_availability_and_totals(products, recipes):
    omelette = enrich_recipe(recipes[0], products)

    assert omelette.name == "Veggie Omelette"
    assert all(ing.found for ing in omelette.ingredients)
    assert omelette.ingredients[0].matched_product.name == "Eggs"
    assert omelette.total_price == pytest.approx(3.49 + 2.49 + 0.89 + 4.29)
    assert omelette.total_calories == pytest.approx(70 + 23 + 22 + 113)
    assert omelette.coverage() == 1.0


def test_missing_ingredients_are_not_counted(products, recipes):
    brownies = enrich_recipe(recipes[1], products)
    found = {ing.name: ing.found for ing in brownies.ingredients}

    assert found == {"Dark Chocolate": True, "Butter": False, "Sugar": False, "Flour": False}
    assert brownies.ingredients[1].price is None
    assert brownies.total_price == pytest.approx(2.79)
    assert brownies.coverage() == pytest.approx(0.25)


def test_enrichment_is_pure_and_idempotent(products, recipes):
    before = tuple(products)
    first = enrich_recipe(recipes[0], products)
    second = enrich_recipe(first, products)

    assert first == second
    assert tuple(products) == before
    assert recipes[0].ingredients[0].name == "Eggs"


def test_non_finite_product_values_count_as_zero():
    products = [
        Product("Saffron", unit_price=float("nan")),
        Product("Rice", unit_price=2.0, nutrition=Nutrition(calories=float("inf"))),
    ]
    enriched = enrich_recipe(make_recipe("Saffron Rice", ["Saffron", "Rice"]), products)

    assert enriched.total_price == 2.0
    assert enriched.total_calories == 0.0
    assert math.isfinite(enriched.total_price)


def test_enrich_recipes_keeps_order(products, recipes):
    names = [r.name for r in enrich_recipes(recipes, products)]
    assert names == [r.name for r in recipes]


def test_enriched_card_serializes(products, recipes):
    card = enrich_recipe(recipes[3], products).to_dict()
    assert card["name"] == "Berry Yogurt Parfait"
    assert card["total_price"] == round(1.25 + 3.99 + 4.99, 2)
    assert card["ingredients"][0]["product"]["name"] == "Greek Yogurt"
    assert card["exceeds_budget"] is False
