"""
Test the free-text answer parsers used by the guided flows
"""

import pytest

from sage.parser import (
    extract_ingredients_from_message,
    parse_activity_level,
    parse_budget_and_servings,
    parse_healthy_topic,
    parse_height_weight,
    parse_meal_prep_preference,
    parse_minutes,
    parse_pantry_items,
    parse_yes_no,
    parse_ingredients_from_text,
)


def test_metric_height_weight():
    parsed = parse_height_weight("170 cm, 70 kg")
    assert parsed.height_cm == 170
    assert parsed.weight_kg == 70
    assert parsed.age is None and parsed.sex is None


def test_imperial_height_weight():
    parsed = parse_height_weight("5'7\", 150 lbs")
    assert parsed.height_cm == pytest.approx(170.18)
    assert parsed.weight_kg == pytest.approx(68.04, abs=0.01)

    spelled = parse_height_weight("5 feet 7 inches and 150 pounds")
    assert spelled.height_cm == pytest.approx(170.18)


def test_bare_numbers_and_metres():
    assert parse_height_weight("180 75").height_cm == 180
    assert parse_height_weight("1.8 m 80 kg").height_cm == pytest.approx(180)


def test_age_and_sex_are_optional_extras():
    parsed = parse_height_weight("180cm 80kg, 35 years old, male")
    assert (parsed.age, parsed.sex) == (35, "male")


@pytest.mark.parametrize("text", ["tall and heavy", "", "170 cm", "170 cm 900 kg"])
def test_unusable_measurements(text):
    assert parse_height_weight(text) is None


@pytest.mark.parametrize("text, budget, servings", [
    ("$15 for 2 servings", 15, 2),
    ("$25 for 4", 25, 4),
    ("30 dollars for 3 people", 30, 3),
    ("under $12", 12, 2),
    ("40", 40, 2),
])
def test_budget_and_servings(text, budget, servings):
    parsed = parse_budget_and_servings(text)
    assert (parsed.budget, parsed.servings) == (budget, servings)


def test_budget_missing():
    assert parse_budget_and_servings("not much really") is None
    assert parse_budget_and_servings("$0") is None


@pytest.mark.parametrize("text, minutes", [
    ("30 minutes", 30),
    ("under 20", 20),
    ("45", 45),
    ("half an hour", 30),
    ("1 hour", 60),
    ("1 hour 15 minutes", 75),
    ("an hour", 60),
])
def test_parse_minutes(text, minutes):
    assert parse_minutes(text) == minutes


def test_parse_minutes_rejects_non_numeric():
    assert parse_minutes("whenever") is None
    assert parse_minutes("0") is None


@pytest.mark.parametrize("text, level", [
    ("sedentary", "sedentary"),
    ("I'm lightly active", "light"),
    ("3", "moderate"),
    ("very active", "very_active"),
    ("I'm an athlete", "extra_active"),
    ("not active at all", "sedentary"),
])
def test_activity_level(text, level):
    assert parse_activity_level(text) == level


def test_activity_level_unknown():
    assert parse_activity_level("purple") is None


def test_yes_no():
    assert parse_yes_no("Yes please!") is True
    assert parse_yes_no("sure") is True
    assert parse_yes_no("no thanks") is False
    assert parse_yes_no("nope") is False
    assert parse_yes_no("maybe") is None


def test_pantry_items_are_normalized_and_capped():
    assert parse_pantry_items("Eggs, spinach and MILK") == ["eggs", "spinach", "milk"]
    assert parse_pantry_items("I have rice, rice, beans") == ["rice", "beans"]
    many = ", ".join(f"item{i}" for i in range(20))
    assert len(parse_pantry_items(many)) == 12


def test_meal_prep_preference():
    assert parse_meal_prep_preference("2") == "high protein"
    assert parse_meal_prep_preference("something veggie") == "vegetarian"
    assert parse_meal_prep_preference("mediterranean") == "mediterranean"
    assert parse_meal_prep_preference("x") is None


def test_healthy_topic():
    assert parse_healthy_topic("I want to eat healthier in general") == (True, None)
    assert parse_healthy_topic("pasta") == (False, "pasta")
    assert parse_healthy_topic("alternatives to chips") == (False, "chips")


def test_ingredients_from_list_text(products):
    assert parse_ingredients_from_text("I have: eggs, spinach, milk", products) == ["eggs", "spinach", "milk"]
    assert parse_ingredients_from_text("just chatting", products) == []


def test_ingredients_mentioned_in_message():
    known = ["eggs", "spinach", "cheddar cheese"]
    assert extract_ingredients_from_message("add the egg and cheese please", known) == ["eggs", "cheddar cheese"]
