"""
Test the conversation core: routing, recipe cards, "more", budgets and recovery
"""

import asyncio

from conftest import FakeBackend
from sage.context import ConversationContext
from sage.conversation import (
    CHAT_APOLOGY,
    EMPTY_REPLY,
    ERROR_REPLY,
    RESET_REPLY,
    Orchestrator,
    process_message,
)
from sage.suggestions import THEMED_DECLINE


class ExplodingClassifier:
    def classify(self, text, context):
        raise RuntimeError("boom")

    def wants_recipe_cards(self, user_text, reply_text):
        return False


def run(say, *messages, **kwargs):
    results, context = [], None
    for message in messages:
        result = say(message, context, **kwargs)
        context = result.context
        results.append(result)
    return results


def test_greeting_gets_chat_reply_without_cards(say):
    backend = FakeBackend(chat_reply="Hi there! What are you in the mood for?")
    result = say("hello", backend_override=backend)
    assert result.reply == "Hi there! What are you in the mood for?"
    assert result.recipes == []
    assert [m["from"] for m in result.context.messages] == ["user", "bot"]


def test_chat_failure_apologizes(say):
    result = say("hello", backend_override=FakeBackend(fail_chat=True))
    assert result.reply == CHAT_APOLOGY
    assert result.recipes == []


def test_missing_backend_still_answers(catalog):
    result = asyncio.run(process_message("give me dinner recipes", catalog))
    assert result.recipes
    none_result = asyncio.run(process_message("hello", catalog))
    assert none_result.reply == CHAT_APOLOGY


def test_empty_message(say):
    assert say("   ").reply == EMPTY_REPLY


def test_unexpected_error_becomes_apology(catalog):
    result = asyncio.run(process_message("hello", catalog, classifier=ExplodingClassifier()))
    assert result.reply == ERROR_REPLY
    assert result.recipes == []


def test_recipe_request_then_more_until_exhausted(say):
    first, second, third = run(say, "give me dinner recipes", "more", "more")

    assert [r.name for r in first.recipes] == ["Chicken Stir Fry"]
    assert [r.name for r in second.recipes] == ["Salmon Rice Bowl"]
    assert second.context.last_non_more_query == "give me dinner recipes"

    assert third.recipes == []
    assert "reached the end of suggestions" in third.reply
    assert third.context.seen_recipe_names == {"Chicken Stir Fry", "Salmon Rice Bowl"}


def test_more_filters_backend_repeats(say):
    backend = FakeBackend(suggestions=[
        {"reply": "Try these!", "recipes": [{"name": "Lemon Chicken", "ingredients": ["chicken"]}]},
        {"reply": "More ideas!", "recipes": [
            {"name": "lemon chicken", "ingredients": ["chicken"]},
            {"name": "Garlic Shrimp", "ingredients": ["shrimp"]},
        ]},
    ])
    first, second = run(say, "give me dinner recipes", "more", backend_override=backend)
    assert [r.name for r in first.recipes] == ["Lemon Chicken"]
    assert [r.name for r in second.recipes] == ["Garlic Shrimp"]
    assert "Lemon Chicken" in backend.suggest_calls[1].message


def test_reasoning_is_appended(say):
    backend = FakeBackend(suggestions=[
        {"reply": "Here you go.", "reasoning": "Both are quick.", "recipes": [{"name": "Toast", "ingredients": ["bread"]}]},
    ])
    result = say("give me breakfast recipes", backend_override=backend)
    assert result.reply == "Here you go.\n\n💡 Both are quick."


def test_reset_clears_everything(say):
    first = say("give me dinner recipes")
    result = say("Start over", first.context)
    assert result.reply == RESET_REPLY
    assert result.context is not first.context
    assert result.context.seen_recipe_names == set()
    assert len(result.context.messages) == 1


def test_budget_request_then_relaxation(say):
    strict, relaxed = run(say, "give me dinner recipes under $12", "relax the budget to $15")

    assert "closest options" in strict.reply
    assert [r.name for r in strict.recipes] == ["Chicken Stir Fry"]
    assert all(r.exceeds_budget for r in strict.recipes)

    assert [r.name for r in relaxed.recipes] == ["Salmon Rice Bowl"]
    assert not relaxed.recipes[0].exceeds_budget
    assert "at or under $15" in relaxed.reply
    assert relaxed.context.profile["budget"] == 15


def test_themed_request_is_declined_not_filled_from_catalog(say):
    result = say("give me spooky halloween recipe ideas")
    assert result.reply == THEMED_DECLINE
    assert result.recipes == []


def test_grounded_mode_is_sticky_and_filters(say):
    first, second = run(say, "show me dessert recipes, only use store products", "give me chocolate recipes")
    assert first.context.grounded_only
    assert second.context.grounded_only
    assert "Chocolate Fudge Brownies" not in [r.name for r in first.recipes + second.recipes]


def test_json_reply_is_rescued_into_cards(say):
    backend = FakeBackend(chat_reply='Sure: {"name": "Egg Fried Rice", "ingredients": ["eggs", "white rice"]}')
    result = say("hmm what about leftovers", backend_override=backend)
    assert [r.name for r in result.recipes] == ["Egg Fried Rice"]
    assert "{" not in result.reply


def test_format_previous_reply_into_cards(say):
    backend = FakeBackend(
        chat_reply="Some ideas:\n1. Lemon Herb Chicken - zesty\n2. Creamy Tomato Pasta - rich",
        suggestions=[{"recipes": [
            {"name": "Lemon Herb Chicken", "ingredients": ["chicken", "lemon"]},
            {"name": "Creamy Tomato Pasta", "ingredients": ["pasta", "tomato"]},
        ]}],
    )
    first, cards = run(say, "any dinner thoughts?", "give me the recipe of these", backend_override=backend)
    assert first.recipes == []
    assert [r.name for r in cards.recipes] == ["Lemon Herb Chicken", "Creamy Tomato Pasta"]
    assert "Lemon Herb Chicken" in backend.suggest_calls[0].message


def test_product_question_and_follow_up(say):
    found, cheapest = run(say, "how much are eggs and milk?", "which one is cheaper?")
    assert {p.name for p in found.products} >= {"Eggs", "Milk"}
    assert found.context.last_product_query == "eggs milk"
    assert [p.name for p in cheapest.products] == ["Milk"]
    assert "$2.99" in cheapest.reply


def test_shopping_action_reports_items_without_adding(say):
    result = say("add eggs and spinach to my shopping list")
    assert "eggs, spinach" in result.reply
    assert [p.name for p in result.products] == ["Eggs", "Spinach"]
    assert result.recipes == []


def test_shopping_action_uses_latest_suggestion(say):
    first, added = run(say, "give me dinner recipes", "add those to my cart")
    assert {p.name for p in added.products} == {"Chicken Breast", "Broccoli", "Soy Sauce", "White Rice"}


def test_pick_best_from_recent_suggestions(say):
    _, best = run(say, "give me 3 quick breakfast recipes", "which one is best?")
    assert best.reply.startswith("I'd pick ")
    assert len(best.recipes) == 1
    assert best.recipes[0].name in best.context.seen_recipe_names


def test_pick_best_without_history_generates_candidates(say):
    result = say("which one is best?")
    assert len(result.recipes) == 1


def test_serialized_context_round_trips_through_a_turn(say):
    first = say("give me dinner recipes")
    second = say("more", first.context.to_dict())
    assert isinstance(second.context, ConversationContext)
    assert [r.name for r in second.recipes] == ["Salmon Rice Bowl"]


def test_orchestrator_sessions(catalog):
    orchestrator = Orchestrator(catalog, FakeBackend())

    session_id, first = asyncio.run(orchestrator.chat("hello"))
    same_id, second = asyncio.run(orchestrator.chat("hello again", session_id))
    assert same_id == session_id
    assert len(second.context.messages) == 4

    new_id, _ = asyncio.run(orchestrator.chat("hello", "not-a-session"))
    assert new_id != "not-a-session"

    orchestrator.reset(session_id)
    fresh_id, _ = asyncio.run(orchestrator.chat("hello", session_id))
    assert fresh_id != session_id


def test_more_after_budgeted_request_never_repeats(say):
    first, second = run(say, "give me salmon recipes under $30", "more")
    assert [r.name for r in first.recipes] == ["Salmon Rice Bowl"]
    assert not {r.name for r in first.recipes} & {r.name for r in second.recipes}
    if not second.recipes:
        assert "reached the end of suggestions" in second.reply
        assert "at or under" not in second.reply


def test_malformed_context_starts_fresh(catalog):
    backend = FakeBackend(chat_reply="Hi!")
    for broken in ({"active_flow": {"kind": "bogus", "state": "x"}}, {"messages": 5}):
        result = asyncio.run(process_message("hello", catalog, broken, backend=backend))
        assert result.reply == "Hi!"
        assert result.context.active_flow is None
        assert len(result.context.messages) == 2


def test_time_limit_is_not_a_budget(say):
    result = say("give me dinner recipes under 5 minutes")
    assert result.recipes
    assert not any(r.exceeds_budget for r in result.recipes)
    assert "budget" not in result.context.profile
    assert "$5" not in result.reply


def test_requested_count_reaches_backend_but_cards_stay_capped(say):
    backend = FakeBackend(suggestions=[{"recipes": [
        {"name": f"Egg Dish {i}", "ingredients": ["eggs"]} for i in range(1, 6)
    ]}])
    result = say("give me 5 recipes with eggs", backend_override=backend)
    assert backend.suggest_calls[0].requested_count == 5
    assert [r.name for r in result.recipes] == ["Egg Dish 1", "Egg Dish 2", "Egg Dish 3"]
