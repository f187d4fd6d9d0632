"""
Product Search
Catalog lookups for product questions and their price follow-ups
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from rapidfuzz import fuzz

from sage.budget import parse_budget_cap
from sage.matching import normalize, singular
from sage.models import Product

log = logging.getLogger(__name__)

FUZZY_THRESHOLD = 80
MAX_PRODUCT_RESULTS = 8

QUERY_NOISE = re.compile(
    r"\b(do you (have|carry|sell)|how much (is|are|does|do)|what does|price of|prices? for|in stock"
    r"|which products|show( me)?( the)?|find( me)?|products?|brands?|options?|any|some|cost|costs"
    r"|cheapest|cheaper|priciest|under|the|a|an|is|are|it|for|of|please|there|you|me)\b"
)

STOP_TERMS = {"and", "or", "with", "what", "much", "how"}


@dataclass
class ScoredProduct:
    product: Product
    score: float


def extract_product_terms(query: str) -> list[str]:
    """Product words in a question like "how much is greek yogurt?" """
    cleaned = QUERY_NOISE.sub(" ", normalize(query))
    cleaned = re.sub(r"\b\d+(?:\s*dollars?)?\b", " ", cleaned)
    return [t for t in cleaned.split() if t not in STOP_TERMS and len(t) > 1]


def _score(product: Product, phrase: str, terms: Sequence[str]) -> float:
    name = product.normalized_name
    if not name:
        return 0
    if phrase and (phrase in name or name in phrase):
        return 100
    words = name.split()
    hits = sum(1 for t in terms if t in words or singular(t) in {singular(w) for w in words})
    if hits:
        return 70 + 30 * hits / max(1, len(terms))
    return fuzz.partial_ratio(phrase, name) if phrase else 0


def search_products(query: str, products: Sequence[Product], limit: int = MAX_PRODUCT_RESULTS) -> list[Product]:
    """Products matching a free-text query, best first"""
    terms = extract_product_terms(query)
    phrase = " ".join(terms)
    if not phrase:
        return []

    scored = []
    for product in products:
        score = _score(product, phrase, terms)
        if score >= FUZZY_THRESHOLD:
            scored.append(ScoredProduct(product, score))
    scored.sort(key=lambda s: s.score, reverse=True)
    log.debug("Product search %r -> %d hits", phrase, len(scored))
    return [s.product for s in scored[:limit]]


def refine_products(text: str, products: Sequence[Product]) -> list[Product]:
    """Re-apply a price follow-up ("cheapest", "under $5", "most expensive") to prior results"""
    lowered = (text or "").lower()
    refined = list(products)

    cap = parse_budget_cap(lowered)
    if cap is not None:
        refined = [p for p in refined if p.unit_price <= cap + 1e-9]

    if re.search(r"most expensive|priciest|highest price", lowered):
        refined.sort(key=lambda p: p.unit_price, reverse=True)
    elif re.search(r"cheap|lowest price|sort|order", lowered) or cap is not None:
        refined.sort(key=lambda p: p.unit_price)

    if re.search(r"cheapest|the cheap one|which one", lowered) and refined:
        refined = refined[:1]
    return refined


def find_by_names(names: Sequence[str], products: Sequence[Product]) -> list[Product]:
    by_name = {p.name: p for p in products}
    return [by_name[n] for n in names if n in by_name]


def format_product_reply(query: str, products: Sequence[Product], follow_up: bool = False) -> str:
    if not products:
        if follow_up:
            return "None of those products match that. Want me to widen the search?"
        return "I couldn't find that in the store catalog. Try another name or a broader term."

    lines = [f"- {p.name}: ${p.unit_price:.2f}" + (f" {p.unit}" if p.unit else "") for p in products]
    if len(products) == 1:
        head = "Here's what I found:" if not follow_up else "That would be:"
    else:
        head = f"I found {len(products)} matching products:" if not follow_up else "Here they are:"
    return head + "\n" + "\n".join(lines)


def summarize_query(text: str) -> Optional[str]:
    terms = extract_product_terms(text)
    return " ".join(terms) or None
