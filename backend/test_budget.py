"""
Test budget parsing, cost estimation and the strict-then-closest policy
"""

import math
from types import SimpleNamespace

import pytest

from sage.budget import (
    apply_budget,
    budget_note,
    estimate_recipe_cost,
    filter_recipes_by_budget,
    is_budget_relaxation,
    parse_budget_cap,
    sort_by_cheapest,
)
from sage.models import EnrichedRecipe


def priced(name, total):
    return EnrichedRecipe(name=name, total_price=total)


@pytest.mark.parametrize("text, expected", [
    ("recipes under $20", 20.0),
    ("something less than 15 please", 15.0),
    ("dinner below $8.50", 8.5),
    ("$12 or less", 12.0),
    ("I have a budget of 30", 30.0),
    ("relax the budget to $25", 25.0),
    ("quick healthy breakfast", None),
    ("dinner under 5 minutes", None),
    ("something ready in less than 15 mins", None),
    ("cut it down to 1 hour", None),
    ("under $10 and under 20 minutes", 10.0),
    ("dinner under $12.", 12.0),
    ("", None),
    (None, None),
])
def test_parse_budget_cap(text, expected):
    assert parse_budget_cap(text) == expected


def test_budget_relaxation():
    assert is_budget_relaxation("relax the budget to $25")
    assert is_budget_relaxation("can you raise it to 30")
    assert not is_budget_relaxation("under $20")
    assert not is_budget_relaxation("relax, I'm just browsing")


def test_estimate_prefers_explicit_total():
    assert estimate_recipe_cost(priced("Toast", 7.5)) == 7.5


def test_estimate_sums_ingredients_when_total_missing():
    recipe = SimpleNamespace(
        total_price=None,
        ingredients=[SimpleNamespace(price=1.0), SimpleNamespace(price=None), SimpleNamespace(price=2.5)],
    )
    assert estimate_recipe_cost(recipe) == pytest.approx(3.5)


def test_estimate_ignores_non_finite_total():
    recipe = SimpleNamespace(total_price=float("nan"), ingredients=[SimpleNamespace(price=4.0)])
    assert estimate_recipe_cost(recipe) == 4.0


def test_estimate_missing_recipe_is_nan():
    assert math.isnan(estimate_recipe_cost(None))


def test_filter_is_inclusive_with_epsilon():
    recipes = [priced("A", 5.0), priced("B", 10.0 + 1e-12), priced("C", 10.01)]
    kept = filter_recipes_by_budget(recipes, 10.0)
    assert [r.name for r in kept] == ["A", "B"]


def test_filter_without_cap_keeps_nothing():
    assert filter_recipes_by_budget([priced("A", 1.0)], None) == []
    assert filter_recipes_by_budget([priced("A", 1.0)], float("nan")) == []


def test_sort_by_cheapest_puts_unknown_costs_last():
    r5, r10 = priced("Five", 5.0), priced("Ten", 10.0)
    assert sort_by_cheapest([r10, None, r5]) == [r5, r10, None]


def test_sort_by_cheapest_is_stable():
    first, second = priced("First", 4.0), priced("Second", 4.0)
    assert sort_by_cheapest([first, second]) == [first, second]


def test_apply_budget_keeps_recipes_within_cap():
    selection = apply_budget([priced("A", 18.0), priced("B", 9.0), priced("C", 12.0)], 15)
    assert selection.within_budget
    assert [r.name for r in selection.recipes] == ["B", "C"]
    assert not any(r.exceeds_budget for r in selection.recipes)
    assert "under $15" in budget_note(selection)


def test_apply_budget_falls_back_to_closest_flagged():
    selection = apply_budget([priced("A", 30.0), priced("B", 21.0), priced("C", 25.0)], 15)
    assert not selection.within_budget
    assert [r.name for r in selection.recipes] == ["B", "C", "A"]
    assert all(r.exceeds_budget for r in selection.recipes)
    assert "closest options" in budget_note(selection)


def test_apply_budget_without_cap_passes_through():
    recipes = [priced(str(i), float(i)) for i in range(5)]
    selection = apply_budget(recipes, None, limit=3)
    assert selection.recipes == recipes[:3]
    assert budget_note(selection) == ""
