"""
Test catalog ranking, "more" paging and best-of selection
"""

from sage.enrichment import enrich_recipes
from sage.scoring import (
    choose_best_recipe,
    estimate_prep_minutes,
    explain_best_choice,
    find_recipes_for_occasion,
    tokenize_query,
)
from sage.signals import ConversationSignals


def test_tokenize_drops_stopwords_and_short_words():
    assert tokenize_query("Give me a quick, healthy breakfast!") == ["quick", "healthy", "breakfast"]
    assert tokenize_query("show me something") == []


def test_quick_healthy_breakfast_ranks_omelette_above_dessert(recipes):
    omelette, brownies = recipes[0], recipes[1]
    results = find_recipes_for_occasion("quick healthy breakfast", [brownies, omelette])
    assert results[0].name == "Veggie Omelette"
    assert "Chocolate Fudge Brownies" not in [r.name for r in results]


def test_protein_mention_boosts_matching_recipe(recipes):
    results = find_recipes_for_occasion("something with chicken", recipes)
    assert results[0].name == "Chicken Stir Fry"


def test_explicit_count_limits_results(recipes):
    results = find_recipes_for_occasion("give me 1 chicken recipe", recipes)
    assert len(results) == 1


def test_nothing_relevant_falls_back_to_best_scorers(recipes):
    results = find_recipes_for_occasion("zzz qqq", recipes)
    assert len(results) == 3


def test_empty_query_uses_favorites_from_history(recipes):
    history = [{"from": "user", "text": "I love salmon"}]
    results = find_recipes_for_occasion("give me something", recipes, history=history)
    assert [r.name for r in results] == ["Salmon Rice Bowl"]


def test_more_requests_never_repeat_until_exhausted(recipes):
    query = "give me dinner recipes"
    seen = {r.name for r in find_recipes_for_occasion(query, recipes)}
    assert seen

    for _ in range(len(recipes) + 1):
        page = find_recipes_for_occasion("more", recipes, seen, treat_as_more=True, query_for_scoring=query)
        if not page:
            break
        names = {r.name for r in page}
        assert not names & seen
        seen |= names
    else:
        raise AssertionError("more requests never ran out")


def test_fresh_query_can_repeat_seen_recipes(recipes):
    seen = {"Chicken Stir Fry"}
    results = find_recipes_for_occasion("something with chicken", recipes, seen)
    assert "Chicken Stir Fry" in [r.name for r in results]


def test_choose_best_prefers_available_quick_healthy(products, recipes):
    candidates = enrich_recipes(recipes, products)
    signals = ConversationSignals(wants_quick=True, wants_healthy=True)
    assert choose_best_recipe(candidates, signals).name == "Veggie Omelette"


def test_choose_best_penalizes_avoided_ingredients(products, recipes):
    stir_fry, bowl = enrich_recipes([recipes[2], recipes[4]], products)
    signals = ConversationSignals(avoided_ingredients=["chicken"])
    assert choose_best_recipe([stir_fry, bowl], signals).name == "Salmon Rice Bowl"


def test_choose_best_ties_keep_first(products, recipes):
    stir_fry, bowl = enrich_recipes([recipes[2], recipes[4]], products)
    assert choose_best_recipe([stir_fry, bowl], ConversationSignals()) is stir_fry
    assert choose_best_recipe([], ConversationSignals()) is None


def test_explanation_uses_at_most_three_traits(products, recipes):
    omelette = enrich_recipes([recipes[0]], products)[0]
    signals = ConversationSignals(
        wants_quick=True, wants_healthy=True, wants_budget=True, focus_meal_type="breakfast"
    )
    assert explain_best_choice(omelette, signals) == (
        "because it uses ingredients that are available, is quick to make and leans healthy"
    )


def test_explanation_mentions_budget_and_meal(products, recipes):
    parfait = enrich_recipes([recipes[3]], products)[0]
    signals = ConversationSignals(wants_budget=True, focus_meal_type="breakfast")
    assert explain_best_choice(parfait, signals) == (
        "because it uses ingredients that are available, is budget-friendly (~$10 total) and fits breakfast"
    )
    assert explain_best_choice(None, signals) == ""


def test_prep_minutes_grow_with_steps(recipes):
    assert estimate_prep_minutes(recipes[3]) == 15
    assert estimate_prep_minutes(recipes[0]) == 20
