"""
Sage Backend Configuration
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))
PRODUCTS_CSV = os.getenv("PRODUCTS_CSV", "")
RECIPES_CSV_NAME = "Sample_Recipes_Data.csv"

# OpenRouter Configuration
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.getenv(
    "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1/chat/completions"
)
LLM_MODEL = os.getenv("LLM_MODEL", "google/gemma-3-27b-it:free")

# LLM Settings
LLM_TEMPERATURE = 0.7
LLM_SUGGEST_TEMPERATURE = 0.4                # structured JSON calls
LLM_MAX_TOKENS = 1000
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES = 3

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Conversation settings
MAX_RECIPE_CARDS = 3
DEFAULT_RECIPE_COUNT = 3
RELEVANCE_FLOOR = 50
BUDGET_EPSILON = 1e-9
SEEN_PENALTY = 15
PANTRY_MAX_ITEMS = 12
HISTORY_WINDOW = 6                           # messages sent to the language backend
SIGNAL_WINDOW = 10                           # messages scanned for preferences
SELECTION_WINDOW = 9                         # recent suggestions considered by "pick the best"
DEFAULT_SERVINGS = 2

# Prompt catalog limits (keep prompts small)
PROMPT_MAX_RECIPES = 40
PROMPT_MAX_PRODUCTS = 120

# CORS - Frontend URLs
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3333",
    os.getenv("FRONTEND_URL", ""),  # Production frontend URL
]
# Filter empty strings
CORS_ORIGINS = [origin for origin in CORS_ORIGINS if origin]

# Supported cuisines (keyword -> cuisine)
CUISINE_KEYWORDS = {
    "italian": ["italian", "pasta", "pizza", "risotto"],
    "mexican": ["mexican", "taco", "burrito", "quesadilla", "enchilada"],
    "asian": ["asian", "stir fry", "stir-fry", "wok"],
    "chinese": ["chinese", "fried rice", "lo mein"],
    "japanese": ["japanese", "sushi", "ramen", "teriyaki"],
    "indian": ["indian", "curry", "tikka", "masala"],
    "american": ["american", "burger", "bbq", "barbecue"],
    "mediterranean": ["mediterranean", "greek", "falafel", "hummus"],
}

# Pantry staples that may be added to a recipe without being listed by the user
PANTRY_STAPLES = [
    "salt", "pepper", "black pepper", "oil", "olive oil", "vegetable oil",
    "butter", "water", "garlic", "onion", "sugar", "flour", "vinegar",
    "soy sauce", "honey", "lemon", "spices", "herbs",
]
