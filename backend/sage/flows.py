"""
Guided Flows
Seven multi-turn wizards (nutrition coach, budget planner, time saver,
pantry helper, meal prep, healthy options, daily menu).

Each flow keeps its position in context.active_flow. A trigger always starts
a fresh flow, replacing whatever was running. Every later message consumes
one state: unparseable input re-prompts without moving, good input advances,
and the last state clears the flow.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from config import HISTORY_WINDOW, MAX_RECIPE_CARDS, PANTRY_STAPLES
from sage.budget import apply_budget, budget_note
from sage.context import ConversationContext, FlowKind
from sage.enrichment import enrich_recipes
from sage.formatting import strip_json_artifacts
from sage.llm import LLMError
from sage.matching import ingredient_matches, normalize
from sage.models import EnrichedRecipe, Recipe
from sage.nutrition import (
    ACTIVITY_LABELS,
    MACRO_SPLIT,
    bmi,
    bmi_category,
    bmr,
    macro_targets,
    per_meal_calories,
    tdee,
)
from sage.parser import (
    BodyMeasurements,
    parse_activity_level,
    parse_budget_and_servings,
    parse_healthy_topic,
    parse_meal_prep_preference,
    parse_minutes,
    parse_pantry_items,
    parse_height_weight,
    parse_yes_no,
)
from sage.scoring import estimate_prep_minutes, find_recipes_for_occasion
from sage.suggestions import RecipeSuggester
from sage.templates import generate_topic_ideas, synthesize_recipe_from_ingredients

log = logging.getLogger(__name__)

ESCAPE_WORDS = {"cancel", "stop", "exit", "quit"}
MEALS = ("breakfast", "lunch", "dinner")
MEAT_WORDS = ("chicken", "beef", "pork", "turkey", "salmon", "shrimp", "fish", "tuna", "bacon", "ham", "lamb")


def is_escape(text: str) -> bool:
    return normalize(text) in ESCAPE_WORDS


def has_meat(recipe: Recipe) -> bool:
    text = " ".join(recipe.get_ingredient_names())
    return any(m in text for m in MEAT_WORDS)


@dataclass
class FlowReply:
    reply: str
    recipes: list[EnrichedRecipe] = field(default_factory=list)


def label_meals(recipes: Sequence[Recipe]) -> list[Recipe]:
    """Give breakfast/lunch/dinner to recipes, by position, where the meal type is missing"""
    labelled = []
    for index, recipe in enumerate(recipes):
        if not recipe.meal_type and index < len(MEALS):
            recipe = replace(recipe, meal_type=MEALS[index])
        labelled.append(recipe)
    return labelled


def uses_only_pantry(recipe: Recipe, items: Sequence[str]) -> bool:
    """Recipe uses every pantry item and adds nothing beyond staples"""
    names = [ing.name for ing in recipe.ingredients]
    if not names:
        return False
    for item in items:
        if not any(ingredient_matches(item, name) for name in names):
            return False
    for name in names:
        if any(ingredient_matches(item, name) for item in items):
            continue
        if normalize(name) in PANTRY_STAPLES or any(normalize(name).endswith(" " + s) for s in PANTRY_STAPLES):
            continue
        return False
    return True


def _listing(recipes: Sequence) -> str:
    return "\n".join(f"- {r.name}" for r in recipes)


class GuidedFlow:
    """Common machinery: start, dispatch by state, backend helpers"""
    kind: FlowKind
    initial_state: str
    intro: str = ""

    def __init__(self, catalog, backend=None, suggester: Optional[RecipeSuggester] = None):
        self.catalog = catalog
        self.backend = backend
        self.suggester = suggester or RecipeSuggester(catalog, backend)

    async def start(self, context: ConversationContext) -> FlowReply:
        context.start_flow(self.kind, self.initial_state)
        return FlowReply(self.intro)

    async def handle(self, message: str, context: ConversationContext) -> FlowReply:
        state = context.flow_state(self.kind)
        handler = getattr(self, f"on_{state}", None)
        if handler is None:
            log.warning("Flow %s has no state %r, resetting", self.kind.value, state)
            context.clear_flow()
            return FlowReply("Let's start that again. Pick an option from the menu whenever you're ready.")
        return await handler(message, context)

    def enrich(self, recipes: Sequence[Recipe]) -> list[EnrichedRecipe]:
        return enrich_recipes(recipes, self.catalog.products)

    async def guidance(self, prompt: str, context: ConversationContext, fallback: str) -> str:
        """Free-text advice from the backend, or the fallback text when it fails"""
        if self.backend is None:
            return fallback
        try:
            reply = await self.backend.chat(prompt, context.recent_messages(HISTORY_WINDOW), [], [])
        except LLMError as e:
            log.warning("Guidance call failed for %s flow: %s", self.kind.value, e)
            return fallback
        cleaned = strip_json_artifacts(reply)
        return cleaned or fallback

    async def backend_recipes(
        self,
        prompt: str,
        context: ConversationContext,
        *,
        grounded: bool = False,
        count: int = MAX_RECIPE_CARDS,
    ) -> list[Recipe]:
        result = await self.suggester.ask_backend(
            prompt, context, grounded=grounded, count=count, avoid=sorted(context.seen_recipe_names)
        )
        return result.recipes if result else []

    def catalog_for_meal(self, query: str, meal: str, used: set, exclude_meat: bool = False) -> Optional[Recipe]:
        candidates = find_recipes_for_occasion(f"{query} {meal}", self.catalog.recipes, set(used))
        for recipe in candidates:
            if recipe.name in used:
                continue
            if exclude_meat and has_meat(recipe):
                continue
            return replace(recipe, meal_type=meal)
        for idea in generate_topic_ideas(self.catalog.products, used, meal, MAX_RECIPE_CARDS + 1):
            if not (exclude_meat and has_meat(idea)):
                return idea
        return None

    async def meal_plan(self, prompt: str, query: str, context: ConversationContext, exclude_meat: bool = False) -> list[Recipe]:
        """Exactly one breakfast, lunch and dinner where anything can be found"""
        planned = label_meals(await self.backend_recipes(prompt, context))
        by_meal = {}
        for recipe in planned:
            meal = (recipe.meal_type or "").lower()
            if exclude_meat and has_meat(recipe):
                continue
            if meal in MEALS and meal not in by_meal:
                by_meal[meal] = recipe

        used = {r.name for r in by_meal.values()}
        plan = []
        for meal in MEALS:
            recipe = by_meal.get(meal) or self.catalog_for_meal(query, meal, used, exclude_meat)
            if recipe is not None:
                used.add(recipe.name)
                plan.append(recipe)
        return plan


class NutritionFlow(GuidedFlow):
    kind = FlowKind.NUTRITION
    initial_state = "awaiting_height_weight"
    intro = (
        "Let's work out what your body needs. What's your height and weight? "
        "For example \"170 cm, 70 kg\" or \"5'7\", 150 lbs\". "
        "You can add your age and sex for a closer estimate."
    )

    async def on_awaiting_height_weight(self, message, context):
        measurements = parse_height_weight(message)
        if measurements is None:
            return FlowReply(
                "Sorry, I couldn't quite understand that. Please share your height and weight, "
                "like \"170 cm, 70 kg\" or \"5'7\", 150 lbs\"."
            )
        value = bmi(measurements.height_cm, measurements.weight_kg)
        context.profile.update(measurements.to_dict())
        context.profile["bmi"] = round(value, 1)
        context.active_flow.data["measurements"] = measurements.to_dict()
        context.active_flow.state = "awaiting_macro_decision"
        return FlowReply(
            f"Thanks! At {measurements.height_cm:.0f} cm and {measurements.weight_kg:.0f} kg your BMI is "
            f"{value:.1f}, which falls in the {bmi_category(value)} range.\n\n"
            "Would you like me to estimate your daily calories and a macro split? (yes/no)"
        )

    def _activity_prompt(self) -> str:
        options = "\n".join(f"{i}. {label.capitalize()}" for i, label in enumerate(ACTIVITY_LABELS.values(), 1))
        return f"How active are you on a typical week?\n{options}\n\nReply with a number or describe it."

    async def on_awaiting_macro_decision(self, message, context):
        answer = parse_yes_no(message)
        if answer is None:
            level = parse_activity_level(message)
            if level:
                return self._targets(level, context)
            return FlowReply("Just say yes if you'd like your calorie and macro targets, or no to skip.")
        if not answer:
            context.clear_flow()
            return FlowReply("No problem! Ask me anytime if you want calorie targets or recipe ideas.")
        context.active_flow.state = "awaiting_activity_level"
        return FlowReply(self._activity_prompt())

    async def on_awaiting_activity_level(self, message, context):
        level = parse_activity_level(message)
        if level is None:
            return FlowReply("I didn't catch your activity level. " + self._activity_prompt())
        return self._targets(level, context)

    def _targets(self, level: str, context) -> FlowReply:
        measurements = BodyMeasurements(**context.active_flow.data["measurements"])
        basal = bmr(measurements.height_cm, measurements.weight_kg, measurements.age, measurements.sex)
        daily = tdee(basal, level)
        targets = macro_targets(daily)
        per_meal = per_meal_calories(daily)

        context.profile["activity_level"] = level
        context.profile["daily_calories"] = round(daily)
        context.profile["macros"] = targets.to_dict()
        context.active_flow.data.update(activity_level=level, per_meal_calories=per_meal, macros=targets.to_dict())
        context.active_flow.state = "awaiting_recipe_decision"

        split = "/".join(f"{round(share * 100)}" for share in MACRO_SPLIT.values())
        return FlowReply(
            f"With a {ACTIVITY_LABELS[level]} lifestyle you burn about {daily:.0f} calories a day "
            f"(BMR {basal:.0f}).\n\n"
            f"Daily macros at a {split} protein/carbs/fat split:\n"
            f"- Protein: {targets.protein_g:.0f} g\n"
            f"- Carbs: {targets.carbs_g:.0f} g\n"
            f"- Fat: {targets.fat_g:.0f} g\n\n"
            f"That's roughly {per_meal:.0f} calories per meal. Want some recipes that fit? (yes/no)"
        )

    async def on_awaiting_recipe_decision(self, message, context):
        answer = parse_yes_no(message)
        if answer is None:
            return FlowReply("Say yes for recipes that match your targets, or no to finish here.")
        data = context.active_flow.data
        context.clear_flow()
        if not answer:
            return FlowReply("Sounds good. Your targets are saved, so just ask when you want meal ideas.")

        per_meal = data.get("per_meal_calories", 600)
        protein = data.get("macros", {}).get("protein_g", 0) / 3
        prompt = (
            f"Suggest 3 recipes of roughly {per_meal:.0f} calories per serving with about "
            f"{protein:.0f} g of protein each, using only store products."
        )
        recipes = self.enrich(await self.backend_recipes(prompt, context, grounded=True))
        if not recipes:
            ranked = sorted(self.enrich(self.catalog.recipes), key=lambda r: abs(r.total_calories - per_meal))
            recipes = ranked[:MAX_RECIPE_CARDS]
        if not recipes:
            return FlowReply("I couldn't find recipes to match those targets right now.")
        return FlowReply(
            f"Here are recipes close to {per_meal:.0f} calories per meal:\n{_listing(recipes)}",
            recipes[:MAX_RECIPE_CARDS],
        )


class BudgetFlow(GuidedFlow):
    kind = FlowKind.BUDGET
    initial_state = "awaiting_budget"
    intro = (
        "Let's eat well on a budget. How much would you like to spend, and for how many servings? "
        "For example \"$25 for 4 servings\" or \"under $15\"."
    )

    async def on_awaiting_budget(self, message, context):
        request = parse_budget_and_servings(message)
        if request is None:
            return FlowReply(
                "I couldn't find a budget in that. Try something like \"$20 for 2 servings\" or \"under $15\"."
            )
        context.profile["budget"] = request.budget
        context.profile["servings"] = request.servings
        context.clear_flow()

        prompt = (
            f"Suggest 3 budget-friendly recipes for {request.servings} servings costing at most "
            f"${request.budget:g} in total, using only store products."
        )
        suggested = self.enrich(await self.backend_recipes(prompt, context, grounded=True))
        selection = apply_budget(suggested, request.budget)
        if not selection.recipes or not selection.within_budget:
            names = {r.name for r in suggested}
            pool = suggested + [r for r in self.enrich(self.catalog.recipes) if r.name not in names]
            selection = apply_budget(pool, request.budget)

        head = (
            f"Planning for ${request.budget:g} across {request.servings} servings "
            f"(about ${request.per_serving:.2f} each)."
        )
        note = budget_note(selection)
        listing = _listing(selection.recipes)
        return FlowReply("\n\n".join(part for part in (head, note, listing) if part), selection.recipes)


class TimeFlow(GuidedFlow):
    kind = FlowKind.TIME
    initial_state = "awaiting_minutes"
    intro = "Short on time? How many minutes do you have to cook? For example \"20 minutes\" or \"half an hour\"."

    async def on_awaiting_minutes(self, message, context):
        minutes = parse_minutes(message)
        if minutes is None:
            return FlowReply("How many minutes do you have? A number like 20 or \"45 minutes\" works.")
        context.profile["minutes"] = minutes
        context.clear_flow()

        prompt = f"Suggest 3 recipes that take {minutes} minutes or less in total, with short simple steps."
        recipes = await self.backend_recipes(prompt, context)
        if not recipes:
            quickest = sorted(self.catalog.recipes, key=estimate_prep_minutes)
            fitting = [r for r in quickest if estimate_prep_minutes(r) <= minutes]
            recipes = (fitting or quickest)[:MAX_RECIPE_CARDS]
        enriched = self.enrich(recipes[:MAX_RECIPE_CARDS])
        if not enriched:
            return FlowReply(f"I couldn't find anything that fits {minutes} minutes right now.")
        return FlowReply(f"Here's what you can make in about {minutes} minutes:\n{_listing(enriched)}", enriched)


PERISHABLES = ("spinach", "lettuce", "milk", "berries", "banana", "tomato", "chicken", "fish", "salmon",
               "shrimp", "beef", "yogurt", "avocado", "herbs", "bread")


def pantry_tips(items: Sequence[str]) -> str:
    perishable = [i for i in items if any(p in i for p in PERISHABLES)]
    lines = [f"Nice, you have {', '.join(items)}."]
    if perishable:
        lines.append(f"- Use first: {', '.join(perishable)} won't keep long, so plan them into the next day or two.")
    lines.append("- Storage: keep produce dry in the crisper and freeze bread or cooked leftovers you won't finish.")
    lines.append("- Pairing: eggs, greens and dairy go together in omelettes; grains and veg make easy bowls.")
    lines.append("- Less waste: cook once, eat twice, and turn wilting veg into soups or stir-fries.")
    return "\n".join(lines)


class PantryFlow(GuidedFlow):
    kind = FlowKind.PANTRY
    initial_state = "awaiting_items"
    intro = (
        "Let's use what you already have. List what's in your pantry or fridge, "
        "for example \"eggs, spinach, milk\"."
    )

    async def on_awaiting_items(self, message, context):
        items = parse_pantry_items(message)
        if not items:
            return FlowReply("List a few items separated by commas, like \"eggs, spinach, milk\".")
        context.profile["pantry_items"] = items
        context.active_flow.data["items"] = items
        context.active_flow.state = "gave_guidance"

        prompt = (
            f"I have these ingredients: {', '.join(items)}. Give short, practical tips on storing them, "
            "what they pair well with, and how to avoid wasting them. No recipes yet."
        )
        advice = await self.guidance(prompt, context, pantry_tips(items))
        return FlowReply(f"{advice}\n\nWould you like recipes that use all of these? (yes/no)")

    async def on_gave_guidance(self, message, context):
        answer = parse_yes_no(message)
        if answer is None:
            return FlowReply("Say yes for recipes using your items, or no to finish.")
        items = context.active_flow.data.get("items", [])
        context.clear_flow()
        if not answer:
            return FlowReply("Okay! Come back when you want ideas for those ingredients.")

        staples = ", ".join(PANTRY_STAPLES[:8])
        prompt = (
            f"Suggest up to 3 recipes that use ALL of these ingredients: {', '.join(items)}. "
            f"Do not add anything else except common staples ({staples})."
        )
        candidates = await self.backend_recipes(prompt, context)
        recipes = [r for r in candidates if uses_only_pantry(r, items)]
        if not recipes:
            recipes = [r for r in self.catalog.recipes if uses_only_pantry(r, items)]
        if not recipes:
            recipes = [synthesize_recipe_from_ingredients(items)]
        enriched = self.enrich(recipes[:MAX_RECIPE_CARDS])
        return FlowReply(f"Here's what you can make with {', '.join(items)}:\n{_listing(enriched)}", enriched)


GENERAL_TIPS = (
    "- Fill half your plate with vegetables or fruit.\n"
    "- Pick whole grains (brown rice, quinoa, whole-wheat pasta) over refined ones.\n"
    "- Lean proteins like chicken, fish, tofu, beans and Greek yogurt keep you full.\n"
    "- Swap sugary drinks for water or sparkling water with citrus.\n"
    "- Cook at home more often so you control the salt, sugar and oil."
)

SWAPS = {
    "pasta": "try whole-wheat pasta or zucchini noodles, and load the sauce with vegetables",
    "rice": "brown rice or quinoa add fibre and protein",
    "chips": "air-popped popcorn or roasted chickpeas give the crunch with less fat",
    "soda": "sparkling water with lemon or a splash of juice",
    "ice cream": "frozen banana \"nice cream\" or Greek yogurt with berries",
    "bread": "whole-grain bread with seeds keeps you fuller for longer",
    "pizza": "a whole-wheat crust, extra vegetables and a lighter hand with cheese",
    "burger": "a lean turkey or bean patty, or a lettuce wrap instead of the bun",
    "fries": "oven-baked potato wedges with olive oil and paprika",
    "chocolate": "a couple of squares of dark chocolate or fruit dipped in it",
    "candy": "fresh or frozen fruit, or a little dark chocolate",
    "cereal": "oats with fruit and nuts instead of sugary cereal",
}


def healthy_tips(topic: Optional[str]) -> str:
    if not topic:
        return "Here are a few simple ways to eat healthier:\n" + GENERAL_TIPS
    for food, swap in SWAPS.items():
        if food in topic:
            return f"For {topic}, {swap}."
    return (
        f"For {topic}, look for versions with more vegetables and whole grains, lean protein, "
        "and less added sugar, salt and frying."
    )


class HealthyFlow(GuidedFlow):
    kind = FlowKind.HEALTHY
    initial_state = "awaiting_topic"
    intro = (
        "Happy to help you eat healthier! Is there a specific food you'd like healthier swaps for, "
        "or would you like some general tips?"
    )

    async def on_awaiting_topic(self, message, context):
        generic, topic = parse_healthy_topic(message)
        context.active_flow.data["topic"] = topic
        context.active_flow.state = "gave_tips"
        if generic:
            prompt = "Give me 4-5 short, practical tips to eat healthier day to day."
        else:
            prompt = f"Suggest healthier swaps and tips for {topic}. Keep it short and practical."
        advice = await self.guidance(prompt, context, healthy_tips(topic))
        return FlowReply(f"{advice}\n\nWant 3 balanced recipes to get started? (yes/no)")

    async def on_gave_tips(self, message, context):
        answer = parse_yes_no(message)
        if answer is None:
            return FlowReply("Say yes for 3 balanced recipes, or no to finish.")
        topic = context.active_flow.data.get("topic")
        context.clear_flow()
        if not answer:
            return FlowReply("Okay! Small swaps add up, so come back anytime.")

        focus = f" featuring a healthier take on {topic}" if topic else ""
        prompt = f"Suggest 3 balanced, healthy recipes{focus} with vegetables, lean protein and whole grains."
        recipes = await self.backend_recipes(prompt, context)
        if not recipes:
            query = f"healthy balanced {topic or ''}".strip()
            recipes = find_recipes_for_occasion(query, self.catalog.recipes, set(context.seen_recipe_names))
        enriched = self.enrich(recipes[:MAX_RECIPE_CARDS])
        return FlowReply(f"Here are some balanced options:\n{_listing(enriched)}", enriched)


MEAL_PREP_MENU = (
    "What type of recipes would you like to prep this week?\n"
    "1. Balanced\n2. High protein\n3. Vegetarian\n4. Low carb\n5. Budget-friendly\n\n"
    "Reply with a number or describe what you're after."
)


class MealPrepFlow(GuidedFlow):
    kind = FlowKind.MEAL_PREP
    initial_state = "awaiting_preference"
    intro = "Let's plan some meal prep! " + MEAL_PREP_MENU

    async def on_awaiting_preference(self, message, context):
        preference = parse_meal_prep_preference(message)
        if preference is None:
            return FlowReply("Please pick the type of recipes you want to prep. " + MEAL_PREP_MENU)
        context.profile["meal_prep_preference"] = preference
        context.clear_flow()

        prompt = (
            f"Suggest exactly 3 {preference} meal-prep recipes that keep well in the fridge: "
            "one breakfast, one lunch and one dinner. Set mealType on each."
        )
        plan = await self.meal_plan(prompt, preference, context, exclude_meat=preference == "vegetarian")
        enriched = self.enrich(plan)
        if not enriched:
            return FlowReply(f"I couldn't put together a {preference} prep plan right now. Try another option?")
        lines = "\n".join(f"- {(r.meal_type or '').capitalize()}: {r.name}" for r in enriched)
        return FlowReply(f"Here's a {preference} meal prep plan:\n{lines}", enriched)


class DailyMenuFlow(GuidedFlow):
    kind = FlowKind.DAILY_MENU
    initial_state = "generating"

    async def start(self, context):
        context.start_flow(self.kind, self.initial_state)
        return await self.on_generating("", context)

    async def on_generating(self, message, context):
        context.clear_flow()
        prompt = "Plan a menu for today: exactly one breakfast, one lunch and one dinner. Set mealType on each."
        plan = self.enrich(await self.meal_plan(prompt, "", context))
        if not plan:
            return FlowReply("I couldn't put a menu together right now. Try again in a moment?")
        lines = "\n".join(f"- {(r.meal_type or '').capitalize()}: {r.name}" for r in plan)
        return FlowReply(f"Here's your menu for today:\n{lines}", plan)


FLOW_CLASSES = {
    FlowKind.NUTRITION: NutritionFlow,
    FlowKind.BUDGET: BudgetFlow,
    FlowKind.TIME: TimeFlow,
    FlowKind.PANTRY: PantryFlow,
    FlowKind.MEAL_PREP: MealPrepFlow,
    FlowKind.HEALTHY: HealthyFlow,
    FlowKind.DAILY_MENU: DailyMenuFlow,
}


def build_flows(catalog, backend=None, suggester: Optional[RecipeSuggester] = None) -> dict[FlowKind, GuidedFlow]:
    suggester = suggester or RecipeSuggester(catalog, backend)
    return {kind: cls(catalog, backend, suggester) for kind, cls in FLOW_CLASSES.items()}
