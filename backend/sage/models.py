"""
Catalog and Recipe Data Model
Defines the Product, Recipe and enriched recipe dataclasses
"""

import math
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from sage.matching import normalize


@dataclass(frozen=True)
class Nutrition:
    """Per-unit nutrition facts for a product"""
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0

    def to_dict(self) -> dict:
        return {
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "fiber_g": self.fiber_g,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Nutrition":
        if not data:
            return cls()
        return cls(
            calories=_to_float(data.get("calories")),
            protein_g=_to_float(data.get("protein_g")),
            carbs_g=_to_float(data.get("carbs_g")),
            fat_g=_to_float(data.get("fat_g")),
            fiber_g=_to_float(data.get("fiber_g")),
        )


@dataclass(frozen=True)
class Product:
    """A priced grocery product. Loaded once and shared read-only."""
    name: str
    category: str = ""
    unit_price: float = 0.0
    unit: str = ""
    nutrition: Nutrition = field(default_factory=Nutrition)
    normalized_name: str = ""

    def __post_init__(self):
        if not self.normalized_name:
            object.__setattr__(self, "normalized_name", normalize(self.name))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "category": self.category,
            "unit_price": self.unit_price,
            "unit": self.unit,
            "nutrition": self.nutrition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            name=data.get("name") or data.get("item", ""),
            category=data.get("category", ""),
            unit_price=_to_float(data.get("unit_price", data.get("price"))),
            unit=data.get("unit", ""),
            nutrition=Nutrition.from_dict(data.get("nutrition")),
        )

    def format_for_prompt(self) -> str:
        return f"{self.name} (${self.unit_price:.2f} {self.unit})".strip()


@dataclass(frozen=True)
class IngredientRef:
    """An ingredient as written in a recipe"""
    name: str
    normalized_name: str = ""

    def __post_init__(self):
        if not self.normalized_name:
            object.__setattr__(self, "normalized_name", normalize(self.name))

    def to_dict(self) -> dict:
        return {"name": self.name}


Steps = Union[list[str], str]


@dataclass(frozen=True)
class Recipe:
    """A catalog or generated recipe"""
    name: str
    ingredients: tuple[IngredientRef, ...] = ()
    steps: Steps = ""
    meal_type: Optional[str] = None
    autogenerated: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ingredients": [ing.to_dict() for ing in self.ingredients],
            "steps": list(self.steps) if isinstance(self.steps, (list, tuple)) else self.steps,
            "meal_type": self.meal_type,
            "autogenerated": self.autogenerated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recipe":
        """Build a recipe from a loosely shaped payload (catalog row or backend JSON)"""
        ingredients = []
        for ing in data.get("ingredients") or []:
            if isinstance(ing, dict):
                name = str(ing.get("name") or ing.get("ingredient") or "")
            else:
                name = str(ing)
            name = name.strip()
            if name:
                ingredients.append(IngredientRef(name=name))

        steps = data.get("steps") or []
        if isinstance(steps, (list, tuple)):
            steps = [str(s) for s in steps if str(s).strip()]
        else:
            steps = str(steps)

        return cls(
            name=str(data.get("name") or data.get("recipe_name") or "Untitled Recipe").strip(),
            ingredients=tuple(ingredients),
            steps=steps,
            meal_type=data.get("meal_type") or data.get("mealType") or None,
            autogenerated=bool(data.get("autogenerated", False)),
        )

    def get_ingredient_names(self) -> list[str]:
        """Get list of ingredient names (lowercase)"""
        return [ing.name.lower() for ing in self.ingredients if ing.name]

    def format_for_prompt(self) -> str:
        """Format recipe for LLM prompt"""
        return f"{self.name}: {', '.join(self.get_ingredient_names())}"


@dataclass(frozen=True)
class EnrichedIngredient:
    """An ingredient after catalog lookup"""
    name: str
    found: bool = False
    matched_product: Optional[Product] = None
    calories: float = 0.0
    price: Optional[float] = None
    unit: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "found": self.found,
            "product": self.matched_product.to_dict() if self.matched_product else None,
            "calories": self.calories,
            "price": self.price,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class EnrichedRecipe:
    """A recipe with per-ingredient availability, price and calories"""
    name: str
    ingredients: tuple[EnrichedIngredient, ...] = ()
    steps: Steps = ""
    meal_type: Optional[str] = None
    autogenerated: bool = False
    total_calories: float = 0.0
    total_price: float = 0.0
    exceeds_budget: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ingredients": [ing.to_dict() for ing in self.ingredients],
            "steps": list(self.steps) if isinstance(self.steps, (list, tuple)) else self.steps,
            "meal_type": self.meal_type,
            "autogenerated": self.autogenerated,
            "total_calories": round(self.total_calories, 1),
            "total_price": round(self.total_price, 2),
            "exceeds_budget": self.exceeds_budget,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EnrichedRecipe":
        """Rebuild a serialized card (session rehydration). Product links are not restored."""
        ingredients = tuple(
            EnrichedIngredient(
                name=ing.get("name", ""),
                found=bool(ing.get("found")),
                calories=_to_float(ing.get("calories")),
                price=ing.get("price"),
                unit=ing.get("unit"),
            )
            for ing in data.get("ingredients") or []
            if isinstance(ing, dict)
        )
        return cls(
            name=data.get("name", ""),
            ingredients=ingredients,
            steps=data.get("steps") or "",
            meal_type=data.get("meal_type"),
            autogenerated=bool(data.get("autogenerated", False)),
            total_calories=_to_float(data.get("total_calories")),
            total_price=_to_float(data.get("total_price")),
            exceeds_budget=bool(data.get("exceeds_budget", False)),
        )

    def get_ingredient_names(self) -> list[str]:
        return [ing.name.lower() for ing in self.ingredients if ing.name]

    def coverage(self) -> float:
        """Share of ingredients found in the catalog"""
        total = max(1, len(self.ingredients))
        return sum(1 for ing in self.ingredients if ing.found) / total


def step_count(steps: Steps) -> int:
    """Number of steps, counting sentences when steps are free text"""
    if isinstance(steps, (list, tuple)):
        return len(steps)
    return len([s for s in re.split(r"[.!?]", str(steps or "")) if s.strip()])


def _to_float(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
