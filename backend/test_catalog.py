"""
Test loading the product and recipe CSVs
"""

from sage import catalog as catalog_module
from sage.catalog import (
    choose_products_csv,
    load_catalog,
    parse_ingredient_cell,
    product_from_row,
    recipe_from_row,
)


def test_bundled_data_loads(monkeypatch):
    monkeypatch.setattr(catalog_module, "PRODUCTS_CSV", "")
    catalog = load_catalog()
    assert len(catalog.products) == 42
    assert len(catalog.recipes) == 18

    omelette = next(r for r in catalog.recipes if r.name == "Veggie Omelette")
    assert [i.name for i in omelette.ingredients] == ["Eggs", "Spinach", "Tomato", "Cheddar Cheese"]

    eggs = next(p for p in catalog.products if p.name == "Eggs")
    assert eggs.unit_price == 3.49
    assert eggs.unit == "dozen"


def test_parse_ingredient_cell():
    assert parse_ingredient_cell("['Eggs', 'Spinach']") == ["Eggs", "Spinach"]
    assert parse_ingredient_cell("Eggs, Spinach ,") == ["Eggs", "Spinach"]
    assert parse_ingredient_cell("['Eggs', 'Spin") == ["Eggs", "Spin"]
    assert parse_ingredient_cell("") == []


def test_product_rows_from_either_schema():
    sample = product_from_row({"Category": "Dairy", "Item": "Milk", "Price ($)": "2.99", "unit": "gallon", "calories": "150"})
    synthetic = product_from_row({
        "category": "Dairy", "item_name": "Oat Milk", "price": "3.50", "unit_of_measure": "carton", "Calories": "120",
    })
    assert (sample.name, sample.unit_price, sample.nutrition.calories) == ("Milk", 2.99, 150.0)
    assert (synthetic.name, synthetic.unit_price, synthetic.unit) == ("Oat Milk", 3.5, "carton")
    assert synthetic.nutrition.calories == 120.0


def test_bad_numbers_become_zero():
    product = product_from_row({"Item": "Mystery", "Price ($)": "n/a", "calories": "inf"})
    assert product.unit_price == 0.0
    assert product.nutrition.calories == 0.0


def test_recipe_row():
    recipe = recipe_from_row({"Recipe": "Toast", "Ingredients": "['Bread']", "Steps": "Toast the bread."})
    assert recipe.name == "Toast"
    assert recipe.ingredients[0].name == "Bread"
    assert recipe.steps == "Toast the bread."


def test_choose_products_csv_prefers_synthetic(tmp_path, monkeypatch):
    monkeypatch.setattr(catalog_module, "PRODUCTS_CSV", "")
    assert choose_products_csv(tmp_path).name == "Sample_Grocery_Data.csv"

    (tmp_path / "Synthetic_Grocery_Dataset.csv").write_text("item_name,price\nOat Milk,3.5\n")
    assert choose_products_csv(tmp_path).name == "Synthetic_Grocery_Dataset.csv"


def test_products_csv_override(tmp_path, monkeypatch):
    override = tmp_path / "custom.csv"
    override.write_text("Item,Price ($)\nTea,1.00\n")
    monkeypatch.setattr(catalog_module, "PRODUCTS_CSV", str(override))
    assert choose_products_csv(tmp_path) == override


def test_load_catalog_from_directory(tmp_path, monkeypatch):
    monkeypatch.setattr(catalog_module, "PRODUCTS_CSV", "")
    (tmp_path / "Sample_Grocery_Data.csv").write_text("Category,Item,Price ($)\nDairy,Eggs,3.49\n,,\n")
    (tmp_path / "Sample_Recipes_Data.csv").write_text("Recipe,Ingredients,Steps\nBoiled Eggs,\"['Eggs']\",Boil.\n")
    catalog = load_catalog(tmp_path)
    assert [p.name for p in catalog.products] == ["Eggs"]
    assert [r.name for r in catalog.recipes] == ["Boiled Eggs"]
    assert catalog.recipe_summaries() == ["Boiled Eggs: eggs"]
