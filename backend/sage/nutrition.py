"""
Nutrition Maths
BMI, Mifflin-St Jeor BMR, activity-adjusted TDEE and macro split
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_AGE = 30
# Midpoint of the male (+5) and female (-161) constants
NEUTRAL_SEX_OFFSET = -78

ACTIVITY_MULTIPLIERS = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "very_active": 1.725,
    "extra_active": 1.9,
}

ACTIVITY_LABELS = {
    "sedentary": "sedentary (little or no exercise)",
    "light": "lightly active (1-3 days a week)",
    "moderate": "moderately active (3-5 days a week)",
    "very_active": "very active (6-7 days a week)",
    "extra_active": "extra active (hard daily training or a physical job)",
}

# Share of daily calories from protein, carbs and fat
MACRO_SPLIT = {"protein": 0.30, "carbs": 0.35, "fat": 0.35}
CALORIES_PER_GRAM = {"protein": 4, "carbs": 4, "fat": 9}
MEALS_PER_DAY = 3


@dataclass
class MacroTargets:
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float

    def to_dict(self) -> dict:
        return {
            "calories": round(self.calories),
            "protein_g": round(self.protein_g),
            "carbs_g": round(self.carbs_g),
            "fat_g": round(self.fat_g),
        }


def bmi(height_cm: float, weight_kg: float) -> float:
    metres = height_cm / 100
    return weight_kg / (metres * metres)


def bmi_category(value: float) -> str:
    if value < 18.5:
        return "underweight"
    if value < 25:
        return "a healthy weight"
    if value < 30:
        return "overweight"
    return "obese"


def bmr(height_cm: float, weight_kg: float, age: Optional[int] = None, sex: Optional[str] = None) -> float:
    """Mifflin-St Jeor basal metabolic rate (kcal/day)"""
    if sex == "male":
        offset = 5
    elif sex == "female":
        offset = -161
    else:
        offset = NEUTRAL_SEX_OFFSET
    return 10 * weight_kg + 6.25 * height_cm - 5 * (age or DEFAULT_AGE) + offset


def tdee(bmr_value: float, activity_level: str) -> float:
    return bmr_value * ACTIVITY_MULTIPLIERS[activity_level]


def macro_targets(calories: float) -> MacroTargets:
    grams = {
        macro: calories * share / CALORIES_PER_GRAM[macro]
        for macro, share in MACRO_SPLIT.items()
    }
    return MacroTargets(
        calories=calories,
        protein_g=grams["protein"],
        carbs_g=grams["carbs"],
        fat_g=grams["fat"],
    )


def per_meal_calories(daily_calories: float) -> float:
    return daily_calories / MEALS_PER_DAY
