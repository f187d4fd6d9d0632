"""
Test product search and price follow-ups
"""

from sage.search import (
    extract_product_terms,
    find_by_names,
    format_product_reply,
    refine_products,
    search_products,
    summarize_query,
)


def test_extract_product_terms():
    assert extract_product_terms("Do you have Greek yogurt?") == ["greek", "yogurt"]
    assert extract_product_terms("how much are eggs and milk") == ["eggs", "milk"]
    assert extract_product_terms("do you have any?") == []


def test_search_exact_phrase_first(products):
    results = search_products("do you have greek yogurt?", products)
    assert results[0].name == "Greek Yogurt"


def test_search_by_word(products):
    names = [p.name for p in search_products("price of cheese", products)]
    assert names == ["Cheddar Cheese"]


def test_search_tolerates_typos(products):
    names = [p.name for p in search_products("do you sell spinnach", products)]
    assert "Spinach" in names


def test_search_nothing(products):
    assert search_products("do you have", products) == []
    assert search_products("do you have kumquats", products) == []


def test_refine_cheapest_and_sorting(products):
    found = [p for p in products if p.name in ("Eggs", "Milk", "Cheddar Cheese")]
    assert [p.name for p in refine_products("which one is cheapest?", found)] == ["Milk"]
    assert [p.name for p in refine_products("sort them by price", found)] == ["Milk", "Eggs", "Cheddar Cheese"]
    assert [p.name for p in refine_products("most expensive first", found)] == ["Cheddar Cheese", "Eggs", "Milk"]
    assert [p.name for p in refine_products("under $3.50", found)] == ["Milk", "Eggs"]


def test_find_by_names_keeps_requested_order(products):
    assert [p.name for p in find_by_names(["Milk", "Nope", "Eggs"], products)] == ["Milk", "Eggs"]


def test_product_reply(products):
    milk = [p for p in products if p.name == "Milk"]
    assert format_product_reply("milk", milk) == "Here's what I found:\n- Milk: $2.99 gallon"
    assert format_product_reply("milk", milk, follow_up=True).startswith("That would be:")
    assert "couldn't find" in format_product_reply("kumquats", [])


def test_summarize_query():
    assert summarize_query("how much is greek yogurt") == "greek yogurt"
    assert summarize_query("do you have") is None
