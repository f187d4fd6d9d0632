"""
Conversation Orchestrator
Single entry point for a chat turn: flows first, then intent routing, then
open conversation with optional recipe cards
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Union

from config import HISTORY_WINDOW, MAX_RECIPE_CARDS, SELECTION_WINDOW
from sage.budget import apply_budget, budget_note, is_budget_relaxation, parse_budget_cap
from sage.context import ConversationContext, FlowKind, InMemorySessionStore, SessionStore
from sage.enrichment import enrich_recipes
from sage.flows import FlowReply, build_flows, is_escape
from sage.formatting import (
    build_reply_from_suggestions,
    extract_listed_names,
    extract_recipe_from_json_text,
    strip_code_fences,
    strip_json_artifacts,
    with_reasoning,
)
from sage.intents import (
    HeuristicClassifier,
    Intent,
    IntentClassifier,
    has_json_artifacts,
    is_formatting_request,
    is_more_request,
)
from sage.llm import LanguageBackend, LLMError
from sage.matching import match_product, normalize
from sage.models import EnrichedRecipe, Product
from sage.parser import extract_ingredients_from_message, parse_ingredients_from_text
from sage.scoring import choose_best_recipe, explain_best_choice, find_recipes_for_occasion
from sage.search import find_by_names, format_product_reply, refine_products, search_products, summarize_query
from sage.signals import analyze_conversation_context
from sage.suggestions import RecipeSuggester

log = logging.getLogger(__name__)

RESET_COMMANDS = {"reset", "start over", "clear chat"}

CHAT_APOLOGY = "I'm having a bit of trouble thinking right now. Could you try again?"
ERROR_REPLY = "Sorry, something went wrong on my side. Please try that again."
EMPTY_REPLY = "Tell me what you're in the mood for, or pick one of the helpers to get started."
RESET_REPLY = "All cleared! What would you like to cook today?"
ESCAPE_REPLY = "Okay, I've stopped that. What else can I help you with?"
FORMATTED_REPLY = (
    "Here are the full recipe cards for those suggestions! "
    "Click \"Add Ingredients\" to add them to your shopping list."
)


@dataclass
class ChatResult:
    """Outcome of one turn"""
    reply: str
    recipes: list[EnrichedRecipe] = field(default_factory=list)
    context: ConversationContext = field(default_factory=ConversationContext)
    products: list[Product] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "reply": self.reply,
            "recipes": [r.to_dict() for r in self.recipes],
            "context": self.context.to_dict(),
            "products": [p.to_dict() for p in self.products],
        }


def coerce_context(context: Union[ConversationContext, dict, None]) -> ConversationContext:
    """Accept a live context, a serialized one, or nothing"""
    if isinstance(context, ConversationContext):
        return context
    if isinstance(context, dict):
        return ConversationContext.from_dict(context)
    return ConversationContext()


class ConversationEngine:
    """Routes messages for any number of sessions over one shared catalog"""

    def __init__(
        self,
        catalog,
        backend: Optional[LanguageBackend] = None,
        classifier: Optional[IntentClassifier] = None,
    ):
        self.catalog = catalog
        self.backend = backend
        self.classifier = classifier or HeuristicClassifier()
        self.suggester = RecipeSuggester(catalog, backend)
        self.flows = build_flows(catalog, backend, self.suggester)

    def enrich(self, recipes) -> list[EnrichedRecipe]:
        return enrich_recipes(recipes, self.catalog.products)

    def finish(
        self,
        context: ConversationContext,
        reply: str,
        recipes: Optional[list[EnrichedRecipe]] = None,
        products: Optional[list[Product]] = None,
    ) -> ChatResult:
        recipes = list(recipes or [])[:MAX_RECIPE_CARDS]
        context.remember_recipes(recipes)
        context.add_bot(reply)
        return ChatResult(reply=reply, recipes=recipes, context=context, products=list(products or []))

    async def process(self, message: str, context: ConversationContext) -> ChatResult:
        message = (message or "").strip()

        if normalize(message) in RESET_COMMANDS:
            fresh = ConversationContext()
            return self.finish(fresh, RESET_REPLY)

        context.add_user(message)
        if not message:
            return self.finish(context, EMPTY_REPLY)

        routed = self.classifier.classify(message, context)
        if routed.intent == Intent.FLOW_TRIGGER:
            flow = self.flows[FlowKind(routed.flow)]
            log.info("Starting %s flow", flow.kind.value)
            return self._flow_result(context, await flow.start(context))

        if context.active_flow is not None:
            if is_escape(message):
                context.clear_flow()
                return self.finish(context, ESCAPE_REPLY)
            flow = self.flows[context.active_flow.kind]
            return self._flow_result(context, await flow.handle(message, context))

        log.debug("Intent: %s", routed.intent.value)
        if routed.intent == Intent.SHOPPING_ACTION:
            return self.shopping_action(message, context)
        if routed.intent == Intent.SELECTION:
            return await self.select_best(message, context)
        if routed.intent in (Intent.PRODUCT_QUERY, Intent.PRODUCT_FOLLOW_UP):
            return self.product_search(message, context, follow_up=routed.intent == Intent.PRODUCT_FOLLOW_UP)
        return await self.converse(message, context, cards_requested=routed.intent == Intent.RECIPE_CARDS)

    def _flow_result(self, context, flow_reply: FlowReply) -> ChatResult:
        return self.finish(context, flow_reply.reply, flow_reply.recipes)

    # Shopping

    def shopping_action(self, message: str, context: ConversationContext) -> ChatResult:
        """Report the ingredients a shopping request refers to. Nothing is added automatically."""
        products = self.catalog.products
        items = parse_ingredients_from_text(message, products)
        if not items:
            known = [p.normalized_name for p in products]
            items = extract_ingredients_from_message(message, known)
        if not items and context.all_suggested_recipes:
            latest = context.recent_suggestions(1)[0]
            items = latest.get_ingredient_names()

        if not items:
            return self.finish(
                context,
                "Tell me which ingredients you'd like to add, or ask for a recipe first and I'll list what it needs.",
            )

        matched = []
        for item in items:
            product = match_product(item, products)
            if product is not None and product not in matched:
                matched.append(product)
        reply = (
            f"Here's what I picked up: {', '.join(items)}. "
            "Use the Add buttons in the product panel to put them on your shopping list."
        )
        return self.finish(context, reply, products=matched)

    # Selection

    async def select_best(self, message: str, context: ConversationContext) -> ChatResult:
        """Pick one recipe from the recent suggestions, generating a few if there are none"""
        signals = analyze_conversation_context(context)
        candidates = self.enrich(context.recent_suggestions(SELECTION_WINDOW))

        if not candidates:
            query = context.last_non_more_query or message
            result = await self.suggester.ask_backend(
                f"{query}\n\nPlease propose about 3 concise recipes so I can choose the best one.",
                context,
                avoid=sorted(context.seen_recipe_names),
            )
            recipes = result.recipes if result else []
            if not recipes:
                recipes = find_recipes_for_occasion(
                    query, self.catalog.recipes, context.seen_recipe_names, context.messages,
                    query_for_scoring=query,
                )
            candidates = self.enrich(recipes)

        best = choose_best_recipe(candidates, signals)
        if best is None:
            return self.finish(context, "Share a couple of options, and I'll pick the best one for your needs.")

        rationale = explain_best_choice(best, signals)
        reply = (
            f"I'd pick {best.name}{' - ' + rationale if rationale else ''}. "
            "Want me to add the ingredients or see another option?"
        )
        return self.finish(context, reply, [best])

    # Products

    def product_search(self, message: str, context: ConversationContext, follow_up: bool = False) -> ChatResult:
        products = self.catalog.products
        if follow_up and context.last_product_query:
            previous = find_by_names(context.last_product_results, products)
            if not previous:
                previous = search_products(context.last_product_query, products)
            results = refine_products(message, previous)
            reply = format_product_reply(context.last_product_query, results, follow_up=True)
            return self.finish(context, reply, products=results)

        found = search_products(message, products)
        context.last_product_query = summarize_query(message)
        context.last_product_results = [p.name for p in found]
        results = refine_products(message, found)
        return self.finish(context, format_product_reply(message, results), products=results)

    # Open conversation

    async def converse(self, message: str, context: ConversationContext, cards_requested: bool = False) -> ChatResult:
        history = context.recent_messages(HISTORY_WINDOW + 1)[:-1]
        relax = is_budget_relaxation(message) and bool(context.last_non_more_query)

        chat_reply, chat_failed = "", False
        if self.backend is None:
            chat_failed = True
        else:
            try:
                raw = await self.backend.chat(
                    message, history, self.catalog.recipe_summaries(), self.catalog.product_summaries()
                )
                chat_reply = strip_code_fences(raw)
            except LLMError as e:
                log.warning("Conversational reply failed: %s", e)
                chat_failed = True

        wants_cards = cards_requested or relax or self.classifier.wants_recipe_cards(message, chat_reply)
        if wants_cards:
            return await self.recipe_cards(message, context, chat_reply, relax=relax)

        if chat_failed:
            return self.finish(context, CHAT_APOLOGY)

        if has_json_artifacts(chat_reply):
            parsed = extract_recipe_from_json_text(chat_reply)
            if parsed.ok:
                recipes = self.enrich(parsed.recipes[:MAX_RECIPE_CARDS])
                return self.finish(context, build_reply_from_suggestions(message, recipes), recipes)
            chat_reply = strip_json_artifacts(chat_reply) or CHAT_APOLOGY
        return self.finish(context, chat_reply or CHAT_APOLOGY)

    async def recipe_cards(self, message: str, context: ConversationContext, chat_reply: str, relax: bool = False) -> ChatResult:
        if is_formatting_request(message):
            formatted = await self._format_previous(context)
            if formatted:
                return self.finish(context, FORMATTED_REPLY, formatted)

        is_more = is_more_request(message) and not relax
        if relax:
            query = context.last_non_more_query
            cap = parse_budget_cap(message)
        elif is_more:
            query = context.last_non_more_query or message
            cap = parse_budget_cap(query)
        else:
            query = message
            cap = parse_budget_cap(message)

        suggestion = await self.suggester.suggest(query, context, is_more=is_more, chat_reply=chat_reply)
        if suggestion.declined:
            return self.finish(context, suggestion.reply)

        seen = {name.lower() for name in context.seen_recipe_names} if is_more else set()
        recipes = [r for r in self.enrich(suggestion.recipes) if r.name.lower() not in seen]
        note = ""
        if cap is not None:
            selection = apply_budget(recipes, cap)
            if not selection.recipes or not selection.within_budget:
                names = {r.name.lower() for r in recipes} | seen
                extra = find_recipes_for_occasion(
                    query, self.catalog.recipes, context.seen_recipe_names, context.messages,
                    treat_as_more=is_more, query_for_scoring=query,
                )
                pool = recipes + [r for r in self.enrich(extra) if r.name.lower() not in names]
                selection = apply_budget(pool, cap)
            recipes = selection.recipes
            note = budget_note(selection)
            context.profile["budget"] = cap
        recipes = recipes[:MAX_RECIPE_CARDS]

        if not is_more:
            context.last_non_more_query = query

        if is_more and not recipes:
            reply = build_reply_from_suggestions(query, recipes, is_more=True, exhausted=True)
        elif cap is not None:
            listing = build_reply_from_suggestions(query, recipes, is_more=is_more) if recipes else ""
            reply = "\n\n".join(part for part in (note, listing) if part)
        elif suggestion.reply.strip():
            reply = suggestion.reply
        elif chat_reply.strip() and not has_json_artifacts(chat_reply):
            reply = chat_reply
        else:
            reply = build_reply_from_suggestions(query, recipes, is_more=is_more, exhausted=not recipes)

        return self.finish(context, with_reasoning(reply, suggestion.reasoning), recipes)

    async def _format_previous(self, context: ConversationContext) -> list[EnrichedRecipe]:
        """Cards for recipes named in the previous bot reply"""
        names = extract_listed_names(context.last_bot_text())
        if not names:
            return []
        listing = "\n".join(f"{i}. {name}" for i, name in enumerate(names, 1))
        result = await self.suggester.ask_backend(
            f"Please create detailed recipe cards with ingredients and steps for these specific recipes:\n{listing}",
            context,
        )
        if result is None or not result.recipes:
            return []
        return self.enrich(result.recipes[:MAX_RECIPE_CARDS])


async def process_message(
    message: str,
    catalog,
    context: Union[ConversationContext, dict, None] = None,
    *,
    backend: Optional[LanguageBackend] = None,
    classifier: Optional[IntentClassifier] = None,
) -> ChatResult:
    """Handle one message. Never raises: unexpected errors become an apologetic reply."""
    try:
        context = coerce_context(context)
    except (TypeError, ValueError, AttributeError, KeyError) as e:
        log.warning("Discarding malformed conversation context: %s", e)
        context = ConversationContext()
    engine = ConversationEngine(catalog, backend, classifier)
    return await _safe_process(engine, message, context)


async def _safe_process(engine: ConversationEngine, message: str, context: ConversationContext) -> ChatResult:
    try:
        return await engine.process(message, context)
    except Exception:
        log.exception("Error processing message")
        context.add_bot(ERROR_REPLY)
        return ChatResult(reply=ERROR_REPLY, recipes=[], context=context)


class Orchestrator:
    """Binds the conversation engine to a session store for the HTTP layer"""

    def __init__(
        self,
        catalog,
        backend: Optional[LanguageBackend] = None,
        classifier: Optional[IntentClassifier] = None,
        store: Optional[SessionStore] = None,
    ):
        self.catalog = catalog
        self.engine = ConversationEngine(catalog, backend, classifier)
        self.store = store if store is not None else InMemorySessionStore()

    async def chat(self, message: str, session_id: Optional[str] = None) -> tuple[str, ChatResult]:
        """Run one turn for a session, creating a new session for unknown ids"""
        context = self.store.get(session_id) if session_id else None
        if context is None:
            session_id = uuid.uuid4().hex[:12]
            context = ConversationContext()
            log.debug("New session %s", session_id)
        result = await _safe_process(self.engine, message, context)
        self.store.set(session_id, result.context)
        return session_id, result

    def reset(self, session_id: str):
        self.store.evict(session_id)
