"""
Template Recipes
Deterministic recipes built from what the catalog stocks, used when the
language backend is unavailable and the catalog has nothing suitable
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from sage.matching import normalize
from sage.models import IngredientRef, Product, Recipe


@dataclass(frozen=True)
class Template:
    name: str
    needs: tuple[str, ...]
    base: tuple[str, ...]
    steps: tuple[str, ...]
    # (catalog token, ingredient label) added when the catalog has the token
    extras: tuple[tuple[str, str], ...] = field(default_factory=tuple)


DESSERT_TEMPLATES = (
    Template(
        "Ice Cream Sundae", ("ice cream",), ("Ice Cream",),
        ("Scoop ice cream into a bowl or cup.",
         "Top with your favorite add-ins like nuts, granola, honey, or shaved chocolate."),
        (("peanuts", "Peanuts"), ("granola bar", "Granola Bar"), ("honey", "Honey"),
         ("dark chocolate", "Dark Chocolate"), ("banana", "Banana")),
    ),
    Template(
        "Berry Yogurt Parfait", ("greek yogurt", "frozen berries"), ("Greek Yogurt", "Frozen Berries"),
        ("Layer yogurt and berries in a glass.", "Top with crumbled granola bar and a drizzle of honey."),
        (("granola bar", "Granola Bar"), ("honey", "Honey")),
    ),
    Template(
        "Chocolate Peanut Bark", ("dark chocolate", "peanuts"), ("Dark Chocolate", "Peanuts"),
        ("Melt dark chocolate gently.", "Stir in peanuts, spread thin on parchment, and chill until set."),
    ),
    Template(
        "Frozen Banana Pops", ("banana",), ("Banana",),
        ("Peel bananas and insert sticks; freeze until firm.",
         "Dip in melted chocolate and sprinkle with crushed peanuts."),
        (("dark chocolate", "Dark Chocolate"), ("peanuts", "Peanuts")),
    ),
    Template(
        "Honey Yogurt Fruit Bowl", ("greek yogurt",), ("Greek Yogurt",),
        ("Spoon yogurt into a bowl and top with fruit.", "Finish with honey and a sprinkle of crumbled granola."),
        (("frozen berries", "Frozen Berries"), ("banana", "Banana"), ("honey", "Honey"), ("granola bar", "Granola Bar")),
    ),
)

TOPIC_TEMPLATES = {
    "breakfast": (
        Template(
            "Veggie Omelette (Quick)", ("eggs",), ("Eggs",),
            ("Beat eggs and season.", "Cook with chopped veggies in a pan.", "Fold and serve."),
            (("spinach", "Spinach"), ("tomato", "Tomato"), ("cheddar", "Cheddar Cheese")),
        ),
        Template(
            "Protein Smoothie (Breakfast)", ("banana",), ("Banana",),
            ("Blend until smooth.",),
            (("frozen berries", "Frozen Berries"), ("greek yogurt", "Greek Yogurt"), ("honey", "Honey")),
        ),
        Template(
            "Peanut Butter Banana Toast", ("banana",), ("Bread", "Banana", "Peanut Butter"),
            ("Toast bread.", "Spread with peanut butter, top with banana and honey."),
            (("honey", "Honey"),),
        ),
    ),
    "lunch": (
        Template(
            "Turkey Veggie Sandwich (Quick)", ("turkey",), ("Bread", "Turkey"),
            ("Layer ingredients between bread slices.",),
            (("cheddar", "Cheddar Cheese"), ("tomato", "Tomato"), ("lettuce", "Lettuce")),
        ),
        Template(
            "Simple Salad Bowl", ("spinach",), ("Spinach",),
            ("Toss greens with veggies and olive oil.",),
            (("tomato", "Tomato"), ("olive oil", "Olive Oil")),
        ),
        Template(
            "Egg and Cheese Wrap", ("eggs",), ("Eggs", "Tortilla"),
            ("Scramble eggs, wrap with fillings.",),
            (("cheddar", "Cheddar Cheese"), ("spinach", "Spinach")),
        ),
    ),
    "dinner": (
        Template(
            "Quick Chicken Stir-Fry", ("chicken", "soy sauce"), ("Chicken", "Soy Sauce"),
            ("Stir-fry chicken, add veggies and soy sauce, serve with rice.",),
            (("broccoli", "Broccoli"), ("carrot", "Carrot"), ("rice", "White Rice")),
        ),
        Template(
            "Simple Marinara Pasta", ("pasta",), ("Pasta",),
            ("Boil pasta.", "Simmer quick tomato-olive oil sauce.", "Combine and serve."),
            (("tomato", "Tomato"), ("olive oil", "Olive Oil"), ("cheddar", "Cheese")),
        ),
        Template(
            "One-Pan Beef and Potatoes", ("beef",), ("Beef",),
            ("Brown beef, add potatoes and onion, cook until tender.",),
            (("potato", "Potato"), ("onion", "Onion")),
        ),
        Template(
            "Tofu Veggie Rice Bowl (Quick)", ("tofu",), ("Tofu",),
            ("Stir-fry tofu and veggies, serve over rice.",),
            (("broccoli", "Broccoli"), ("carrot", "Carrot"), ("rice", "White Rice"), ("soy sauce", "Soy Sauce")),
        ),
    ),
    "snack": (
        Template("Apple Peanut Bites", ("apple", "peanuts"), ("Apple", "Peanuts"),
                 ("Slice apple and top with crushed peanuts.",)),
        Template(
            "Yogurt Berry Cup", ("greek yogurt", "frozen berries"), ("Greek Yogurt", "Frozen Berries"),
            ("Layer yogurt and berries, drizzle honey.",),
            (("honey", "Honey"),),
        ),
        Template("Granola Yogurt Bites", ("granola bar", "greek yogurt"), ("Granola Bar", "Greek Yogurt"),
                 ("Dip granola chunks into yogurt and chill briefly.",)),
    ),
}


def catalog_has(products: Sequence[Product], token: str) -> bool:
    needle = normalize(token)
    return bool(needle) and any(needle in p.normalized_name for p in products)


def _build(template: Template, products: Sequence[Product], meal_type: Optional[str]) -> Recipe:
    names = list(template.base)
    names += [label for token, label in template.extras if catalog_has(products, token)]
    return Recipe(
        name=template.name,
        ingredients=tuple(IngredientRef(n) for n in names),
        steps=list(template.steps),
        meal_type=meal_type,
        autogenerated=True,
    )


def _from_templates(templates, products, seen, max_count, meal_type) -> list[Recipe]:
    results = []
    for template in templates:
        if len(results) >= max_count:
            break
        if template.name in seen:
            continue
        if not all(catalog_has(products, need) for need in template.needs):
            continue
        results.append(_build(template, products, meal_type))
        seen.add(template.name)
    return results


def generate_dessert_ideas(
    products: Sequence[Product],
    seen_names: Iterable[str] = (),
    max_count: int = 3,
) -> list[Recipe]:
    """Quick desserts the catalog can supply, skipping names already shown"""
    return _from_templates(DESSERT_TEMPLATES, products, set(seen_names), max_count, "dessert")


def generate_topic_ideas(
    products: Sequence[Product],
    seen_names: Iterable[str] = (),
    topic: Optional[str] = None,
    max_count: int = 3,
) -> list[Recipe]:
    """Template ideas for a meal type; unknown topics use dinner templates then desserts"""
    seen = set(seen_names)
    if topic == "dessert":
        return generate_dessert_ideas(products, seen, max_count)

    results = _from_templates(TOPIC_TEMPLATES.get(topic or "", TOPIC_TEMPLATES["dinner"]), products, seen, max_count, topic)
    if len(results) < max_count and not topic:
        results += _from_templates(DESSERT_TEMPLATES, products, seen, max_count - len(results), "dessert")
    return results


_SYNTH_STEPS = {
    "omelette": (
        "Beat the eggs with a pinch of salt and pepper.",
        "Heat a small amount of oil or butter in a pan.",
        "Add the chopped ingredients and cook briefly.",
        "Pour in the eggs, cook until set, fold and serve.",
    ),
    "parfait": (
        "Layer yogurt with fruit, or blend it all into a smoothie.",
        "Top with a drizzle of honey.",
    ),
    "stir-fry": (
        "Cut protein and vegetables into bite-sized pieces.",
        "Heat oil on high, add garlic or onion if available, add protein and brown.",
        "Add vegetables and a splash of soy sauce, stir until cooked through.",
        "Serve over rice or grains if available.",
    ),
    "sandwich": (
        "Toast the bread if you like.",
        "Layer the fillings, season, and serve.",
    ),
    "salad": (
        "Toss greens and chopped vegetables in a bowl.",
        "Add a simple dressing of olive oil with vinegar or lemon, salt and pepper.",
        "Top with protein or cheese if available, and serve.",
    ),
    "bowl": (
        "Combine the ingredients you have into a simple bowl.",
        "Season to taste and serve.",
    ),
}


def synthesize_recipe_from_ingredients(items: Sequence[str], meal_type: Optional[str] = None) -> Recipe:
    """A simple recipe that uses every given item and nothing else"""
    unique = list(dict.fromkeys(normalize(i) for i in items if normalize(i)))

    def has(term: str) -> bool:
        return any(term in tok for tok in unique)

    if has("egg"):
        kind = "omelette"
    elif has("banana") or has("berries") or has("yogurt"):
        kind = "parfait"
    elif has("tofu") or has("chicken") or has("shrimp"):
        kind = "stir-fry"
    elif has("bread") or has("turkey") or has("cheese"):
        kind = "sandwich"
    elif has("lettuce") or has("spinach") or has("tomato"):
        kind = "salad"
    else:
        kind = "bowl"

    return Recipe(
        name=f"Quick {kind} with your ingredients",
        ingredients=tuple(IngredientRef(i) for i in unique),
        steps=list(_SYNTH_STEPS[kind]),
        meal_type=meal_type,
        autogenerated=True,
    )
