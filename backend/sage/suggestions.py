"""
Recipe Suggestions
Structured backend suggestions with grounded filtering, JSON rescue and
catalog fallback. Shared by the open conversation path and the guided flows.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from config import DEFAULT_RECIPE_COUNT, MAX_RECIPE_CARDS
from sage.formatting import (
    build_reply_from_suggestions,
    extract_recipe_from_json_text,
    strip_code_fences,
)
from sage.intents import has_json_artifacts, is_grounded_request, is_themed_request, parse_requested_count
from sage.llm import LanguageBackend, LLMError, SuggestRequest
from sage.matching import match_product
from sage.models import Recipe
from sage.scoring import find_recipes_for_occasion

log = logging.getLogger(__name__)

THEMED_DECLINE = (
    "I'm having trouble coming up with creative themed recipes right now. "
    "Could you try asking again or be more specific about what you'd like?"
)


@dataclass
class Suggestion:
    """Recipes for one request plus where they came from"""
    recipes: list[Recipe] = field(default_factory=list)
    reply: str = ""
    reasoning: str = ""
    source: str = "none"        # backend | rescue | catalog | declined | none
    exhausted: bool = False

    @property
    def declined(self) -> bool:
        return self.source == "declined"


def is_grounded_recipe(recipe: Recipe, products: Sequence) -> bool:
    """Every ingredient resolves to a catalog product"""
    return bool(recipe.ingredients) and all(
        match_product(ing.name, products) is not None for ing in recipe.ingredients
    )


class RecipeSuggester:
    """Gets recipes from the language backend, falling back to the catalog"""

    def __init__(self, catalog, backend: Optional[LanguageBackend] = None):
        self.catalog = catalog
        self.backend = backend

    async def ask_backend(
        self,
        prompt: str,
        context,
        *,
        grounded: bool = False,
        count: int = DEFAULT_RECIPE_COUNT,
        avoid: Sequence[str] = (),
    ) -> Optional[Suggestion]:
        """One structured suggest call. Returns None when the backend fails or is absent."""
        if self.backend is None:
            return None
        request = SuggestRequest(
            message=prompt,
            context=list(context.messages) if context is not None else [],
            recipe_catalog=list(self.catalog.recipes),
            product_list=list(self.catalog.products),
            avoid_names=list(avoid),
            grounded_mode=grounded,
            requested_count=count,
        )
        try:
            response = await self.backend.suggest(request)
        except LLMError as e:
            log.warning("Structured suggestion failed, falling back: %s", e)
            return None

        recipes = []
        for raw in response.recipes:
            recipe = Recipe.from_dict({**raw, "autogenerated": True})
            if recipe.name:
                recipes.append(recipe)

        if grounded:
            kept = [r for r in recipes if is_grounded_recipe(r, self.catalog.products)]
            if len(kept) < len(recipes):
                log.info("Dropped %d ungrounded recipes", len(recipes) - len(kept))
            recipes = kept

        return Suggestion(
            recipes=recipes,
            reply=strip_code_fences(response.reply),
            reasoning=response.reasoning,
            source="backend",
        )

    async def suggest(
        self,
        query: str,
        context,
        *,
        is_more: bool = False,
        chat_reply: str = "",
    ) -> Suggestion:
        """Recipe cards for a free-text request.

        Order: structured backend call, JSON rescue from the conversational
        reply, then catalog scoring. Themed requests are declined rather than
        answered with off-theme catalog recipes.
        """
        seen = context.seen_recipe_names
        requested = parse_requested_count(query) or DEFAULT_RECIPE_COUNT
        count = min(requested, MAX_RECIPE_CARDS)

        if is_grounded_request(query):
            context.grounded_only = True
        grounded = context.grounded_only

        prompt = query
        if is_more and seen:
            prompt = (
                f"{query}\n\nIMPORTANT: I've already seen these recipes, so please suggest "
                f"COMPLETELY DIFFERENT ones: {', '.join(sorted(seen))}"
            )

        result = await self.ask_backend(prompt, context, grounded=grounded, count=requested)
        if result is not None and is_more:
            seen_lower = {n.lower() for n in seen}
            result.recipes = [r for r in result.recipes if r.name.lower() not in seen_lower]
        if result is not None and result.recipes:
            result.recipes = result.recipes[:count]
            return result

        if chat_reply and has_json_artifacts(chat_reply):
            parsed = extract_recipe_from_json_text(chat_reply)
            if parsed.ok:
                recipes = parsed.recipes[:count]
                reply = build_reply_from_suggestions(query, recipes, is_more=is_more)
                return Suggestion(recipes=recipes, reply=reply, source="rescue")

        if is_themed_request(query):
            log.warning("No themed recipes from backend; not falling back to the catalog")
            return Suggestion(reply=THEMED_DECLINE, source="declined")

        recipes = find_recipes_for_occasion(
            query,
            self.catalog.recipes,
            seen,
            context.messages,
            treat_as_more=is_more,
            query_for_scoring=query,
        )[:count]
        if grounded:
            recipes = [r for r in recipes if is_grounded_recipe(r, self.catalog.products)]
        exhausted = not recipes
        reply = build_reply_from_suggestions(query, recipes, is_more=is_more, exhausted=exhausted)
        return Suggestion(recipes=recipes, reply=reply, source="catalog", exhausted=exhausted)
