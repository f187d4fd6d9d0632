"""
Test intent routing and request parsing helpers
"""

import pytest

from sage.context import ConversationContext
from sage.intents import (
    FLOW_TRIGGERS,
    HeuristicClassifier,
    Intent,
    has_json_artifacts,
    is_formatting_request,
    is_grounded_request,
    is_more_request,
    is_themed_request,
    parse_requested_count,
)

classifier = HeuristicClassifier()


@pytest.mark.parametrize("trigger, flow", list(FLOW_TRIGGERS.items()))
def test_flow_triggers(trigger, flow):
    routed = classifier.classify(trigger, ConversationContext())
    assert routed.intent == Intent.FLOW_TRIGGER
    assert routed.flow == flow


@pytest.mark.parametrize("text, intent", [
    ("add eggs to my shopping list", Intent.SHOPPING_ACTION),
    ("which one is best?", Intent.SELECTION),
    ("do you have greek yogurt?", Intent.PRODUCT_QUERY),
    ("how much is milk", Intent.PRODUCT_QUERY),
    ("more", Intent.RECIPE_CARDS),
    ("give me dinner recipes", Intent.RECIPE_CARDS),
    ("what can I make with chicken?", Intent.RECIPE_CARDS),
    ("hello", Intent.CONVERSATION),
    ("thanks, that was great", Intent.CONVERSATION),
])
def test_classify(text, intent):
    assert classifier.classify(text, ConversationContext()).intent == intent


def test_price_follow_up_needs_a_previous_search():
    context = ConversationContext()
    assert classifier.classify("which one is cheapest?", context).intent == Intent.CONVERSATION

    context.last_product_query = "yogurt"
    assert classifier.classify("which one is cheapest?", context).intent == Intent.PRODUCT_FOLLOW_UP
    assert classifier.classify("sort them by price", context).intent == Intent.PRODUCT_FOLLOW_UP


@pytest.mark.parametrize("text, expected", [
    ("give me 2 dinner recipes", 2),
    ("three ideas for lunch", 3),
    ("give me 20 recipes", 10),
    ("dinner under $15", None),
    ("something in 30 minutes", None),
    ("give me dinner recipes", None),
])
def test_parse_requested_count(text, expected):
    assert parse_requested_count(text) == expected


def test_more_requests():
    assert is_more_request("more")
    assert is_more_request("  Show me more ")
    assert not is_more_request("more chicken recipes")


def test_request_flags():
    assert is_themed_request("spooky halloween recipe ideas")
    assert is_themed_request("a meal for thanksgiving")
    assert not is_themed_request("chicken dinner")

    assert is_grounded_request("only use store products")
    assert is_grounded_request("recipes only from the catalog")
    assert not is_grounded_request("dinner with rice")

    assert is_formatting_request("give me the recipe of these")
    assert not is_formatting_request("give me dinner recipes")


def test_reply_driven_cards():
    assert classifier.wants_recipe_cards("hello", "Here are 3 recipes you could try tonight.")
    assert classifier.wants_recipe_cards("tell me about italian pasta dishes", "Sure!")
    assert not classifier.wants_recipe_cards("hello", "Hi there! How can I help?")


def test_json_artifacts():
    assert has_json_artifacts('Try this: {"name": "Toast", "ingredients": ["bread"]}')
    assert not has_json_artifacts("Plain prose about {curly} things")
