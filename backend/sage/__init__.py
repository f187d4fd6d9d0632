"""
Sage Core Module
Conversation orchestration, guided flows and recipe selection for the grocery assistant
"""

from sage.budget import parse_budget_cap, estimate_recipe_cost, filter_recipes_by_budget, sort_by_cheapest
from sage.catalog import Catalog, load_catalog
from sage.context import ConversationContext, FlowKind, InMemorySessionStore
from sage.conversation import ChatResult, Orchestrator, process_message
from sage.enrichment import enrich_recipe, enrich_recipes
from sage.llm import LLMError, BackendError, RateLimitError, APIError, OpenRouterBackend
from sage.matching import normalize, match_product

__all__ = [
    "parse_budget_cap",
    "estimate_recipe_cost",
    "filter_recipes_by_budget",
    "sort_by_cheapest",
    "Catalog",
    "load_catalog",
    "ConversationContext",
    "FlowKind",
    "InMemorySessionStore",
    "ChatResult",
    "Orchestrator",
    "process_message",
    "enrich_recipe",
    "enrich_recipes",
    "LLMError",
    "BackendError",
    "RateLimitError",
    "APIError",
    "OpenRouterBackend",
    "normalize",
    "match_product",
]
