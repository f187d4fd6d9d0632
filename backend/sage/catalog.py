"""
Catalog Loader
Reads the product and recipe CSVs into read-only Product and Recipe lists
"""

import ast
import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from config import DATA_DIR, PRODUCTS_CSV, RECIPES_CSV_NAME
from sage.models import IngredientRef, Nutrition, Product, Recipe, _to_float

log = logging.getLogger(__name__)

SYNTHETIC_PRODUCTS_NAME = "Synthetic_Grocery_Dataset.csv"
SAMPLE_PRODUCTS_NAME = "Sample_Grocery_Data.csv"


@dataclass(frozen=True)
class Catalog:
    """Everything the assistant knows about the store. Shared by all sessions."""
    products: tuple[Product, ...] = field(default_factory=tuple)
    recipes: tuple[Recipe, ...] = field(default_factory=tuple)

    def product_summaries(self) -> list[str]:
        return [p.format_for_prompt() for p in self.products]

    def recipe_summaries(self) -> list[str]:
        return [r.format_for_prompt() for r in self.recipes]


def _first(row: dict, *keys: str, default: str = "") -> str:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return default


def parse_ingredient_cell(raw: Optional[str]) -> list[str]:
    """Ingredients from a cell like "['Eggs', 'Spinach']" or "Eggs, Spinach" """
    if not raw:
        return []
    try:
        parsed = ast.literal_eval(raw)
    except (ValueError, SyntaxError):
        parsed = None
    if isinstance(parsed, (list, tuple)):
        return [str(p).strip() for p in parsed if str(p).strip()]
    return [
        piece.strip().strip("[]\"'").strip()
        for piece in raw.split(",")
        if piece.strip().strip("[]\"'").strip()
    ]


def product_from_row(row: dict) -> Product:
    """Build a product from either the sample or the synthetic CSV schema"""
    nutrition = Nutrition(
        calories=_to_float(_first(row, "calories", "Calories")),
        protein_g=_to_float(_first(row, "protein_g", "Protein_g", "protein")),
        carbs_g=_to_float(_first(row, "carbs_g", "Carbs_g", "carbohydrates")),
        fat_g=_to_float(_first(row, "fat_g", "Fat_g", "fat")),
        fiber_g=_to_float(_first(row, "fiber_g", "Fiber_g", "fiber")),
    )
    return Product(
        name=_first(row, "Item", "item", "item_name").strip(),
        category=_first(row, "Category", "category").strip(),
        unit_price=_to_float(_first(row, "Price ($)", "Price", "price", default="0")),
        unit=_first(row, "unit", "Unit", "unit_of_measure").strip(),
        nutrition=nutrition,
    )


def recipe_from_row(row: dict) -> Recipe:
    names = parse_ingredient_cell(_first(row, "Recipe Ingredients", "Ingredients", "ingredients"))
    return Recipe(
        name=_first(row, "Recipe", "recipe", "name").strip(),
        ingredients=tuple(IngredientRef(n) for n in names),
        steps=_first(row, "Steps", "steps").strip(),
        meal_type=_first(row, "Meal Type", "meal_type", default="").strip() or None,
    )


def _read_rows(path: Path) -> list[dict]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [row for row in csv.DictReader(f) if any((v or "").strip() for v in row.values())]


def choose_products_csv(data_dir: Path) -> Path:
    """PRODUCTS_CSV override, then the synthetic dataset, then the sample file"""
    if PRODUCTS_CSV:
        override = Path(PRODUCTS_CSV)
        if not override.is_absolute():
            override = Path.cwd() / override
        if override.exists():
            return override
        log.warning("PRODUCTS_CSV %s not found, using bundled data", override)

    synthetic = data_dir / SYNTHETIC_PRODUCTS_NAME
    if synthetic.exists():
        return synthetic
    return data_dir / SAMPLE_PRODUCTS_NAME


def load_catalog(data_dir: Union[str, Path, None] = None) -> Catalog:
    """Load products and recipes from the data directory"""
    data_dir = Path(data_dir or DATA_DIR)
    products_path = choose_products_csv(data_dir)
    recipes_path = data_dir / RECIPES_CSV_NAME

    products = tuple(p for p in map(product_from_row, _read_rows(products_path)) if p.name)
    recipes = tuple(r for r in map(recipe_from_row, _read_rows(recipes_path)) if r.name)
    log.info("Loaded %d products from %s and %d recipes", len(products), products_path.name, len(recipes))
    return Catalog(products=products, recipes=recipes)
