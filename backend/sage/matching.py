"""
Normalization & Matching
String normalization shared by products, ingredients and user text
"""

import re
from typing import Iterable, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text) -> str:
    """Lowercase, drop non-alphanumerics and collapse whitespace.

    Idempotent: normalize(normalize(x)) == normalize(x).
    """
    if not text:
        return ""
    lowered = str(text).lower()
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub("", lowered)).strip()


def singular(token: str) -> str:
    """Naive singular form ("eggs" -> "egg", "tomatoes" -> "tomato")"""
    if token.endswith("oes") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss") and len(token) > 3:
        return token[:-1]
    return token


def ingredient_matches(a: str, b: str) -> bool:
    """Loose equality between two ingredient names"""
    na, nb = normalize(a), normalize(b)
    if not na or not nb:
        return False
    if na in nb or nb in na:
        return True
    return singular(na) == singular(nb)


def match_product(ingredient_name: str, products: Iterable) -> Optional[object]:
    """First product whose normalized name contains (or is contained in) the ingredient.

    Catalog order decides ties. Returns None when nothing matches.
    """
    needle = normalize(ingredient_name)
    if not needle:
        return None
    for product in products:
        name = product.normalized_name or normalize(product.name)
        if name and (needle in name or name in needle):
            return product
    return None

