"""
Shared fixtures: a small in-memory catalog and a scripted language backend
"""

import asyncio

import pytest

from sage.catalog import Catalog
from sage.conversation import process_message
from sage.llm import APIError, SuggestResponse
from sage.models import IngredientRef, Nutrition, Product, Recipe


def make_product(name, price, unit="each", calories=0.0, category="Grocery"):
    return Product(name=name, category=category, unit_price=price, unit=unit, nutrition=Nutrition(calories=calories))


def make_recipe(name, ingredients, steps=("Prep.", "Cook.", "Serve.")):
    return Recipe(
        name=name,
        ingredients=tuple(IngredientRef(i) for i in ingredients),
        steps=list(steps) if isinstance(steps, tuple) else steps,
    )


PRODUCTS = (
    make_product("Eggs", 3.49, "dozen", 70, "Dairy"),
    make_product("Spinach", 2.49, "bag", 23, "Produce"),
    make_product("Milk", 2.99, "gallon", 103, "Dairy"),
    make_product("Tomato", 0.89, "each", 22, "Produce"),
    make_product("Cheddar Cheese", 4.29, "block", 113, "Dairy"),
    make_product("Greek Yogurt", 1.25, "cup", 100, "Dairy"),
    make_product("Frozen Berries", 3.99, "bag", 70, "Frozen"),
    make_product("Honey", 4.99, "jar", 64, "Pantry"),
    make_product("Chicken Breast", 7.99, "lb", 165, "Meat"),
    make_product("Broccoli", 1.99, "head", 55, "Produce"),
    make_product("Soy Sauce", 2.49, "bottle", 10, "Pantry"),
    make_product("White Rice", 2.49, "bag", 205, "Pantry"),
    make_product("Dark Chocolate", 2.79, "bar", 170, "Snacks"),
    make_product("Banana", 0.25, "each", 105, "Produce"),
    make_product("Salmon Fillet", 9.99, "lb", 208, "Seafood"),
)

RECIPES = (
    make_recipe(
        "Veggie Omelette",
        ["Eggs", "Spinach", "Tomato", "Cheddar Cheese"],
        ("Beat the eggs.", "Cook the vegetables.", "Add the eggs, fold and serve."),
    ),
    make_recipe(
        "Chocolate Fudge Brownies",
        ["Dark Chocolate", "Butter", "Sugar", "Flour"],
        "Melt the chocolate with the butter. Stir in sugar and flour. Bake for 25 minutes.",
    ),
    make_recipe("Chicken Stir Fry", ["Chicken Breast", "Broccoli", "Soy Sauce", "White Rice"]),
    make_recipe(
        "Berry Yogurt Parfait",
        ["Greek Yogurt", "Frozen Berries", "Honey"],
        ("Layer yogurt and berries.", "Drizzle with honey."),
    ),
    make_recipe("Salmon Rice Bowl", ["Salmon Fillet", "White Rice", "Spinach"]),
)


class FakeBackend:
    """Language backend with canned replies.

    `suggestions` is a queue of structured replies (dicts or SuggestResponse).
    When it runs dry, suggest() fails like an unreachable provider.
    """

    def __init__(self, chat_reply="Happy to help! What are you in the mood for?", suggestions=None,
                 fail_chat=False):
        self.chat_reply = chat_reply
        self.suggestions = list(suggestions or [])
        self.fail_chat = fail_chat
        self.chat_calls = []
        self.suggest_calls = []

    async def chat(self, message, history, recipe_summaries, product_summaries):
        self.chat_calls.append(message)
        if self.fail_chat:
            raise APIError("chat unavailable")
        return self.chat_reply

    async def suggest(self, request):
        self.suggest_calls.append(request)
        if not self.suggestions:
            raise APIError("suggest unavailable")
        item = self.suggestions.pop(0)
        return item if isinstance(item, SuggestResponse) else SuggestResponse.from_dict(item)


@pytest.fixture
def products():
    return PRODUCTS


@pytest.fixture
def recipes():
    return RECIPES


@pytest.fixture
def catalog():
    return Catalog(products=PRODUCTS, recipes=RECIPES)


@pytest.fixture
def pricey_catalog():
    """No recipe here costs $15 or less"""
    products = (
        make_product("Saffron", 12.50, "jar"),
        make_product("Truffle Oil", 18.00, "bottle"),
        make_product("Lobster Tail", 24.99, "each"),
        make_product("Wagyu Beef", 39.99, "lb"),
    )
    recipes = (
        make_recipe("Wagyu Steak", ["Wagyu Beef", "Truffle Oil"]),
        make_recipe("Lobster Risotto", ["Lobster Tail", "Saffron"]),
        make_recipe("Saffron Truffle Rice", ["Saffron", "Truffle Oil"]),
    )
    return Catalog(products=products, recipes=recipes)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def say(catalog, backend):
    """Send one message through the conversation core and return the result"""
    def _say(message, context=None, *, catalog_override=None, backend_override=None):
        return asyncio.run(process_message(
            message,
            catalog_override or catalog,
            context,
            backend=backend_override or backend,
        ))
    return _say
