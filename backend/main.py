"""
Sage Backend - FastAPI Application
Main entry point for the grocery and recipe assistant API
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import CORS_ORIGINS, LLM_MODEL, LOG_LEVEL, OPENROUTER_API_KEY
from sage.catalog import Catalog, load_catalog
from sage.conversation import Orchestrator
from sage.llm import LanguageBackend, OpenRouterBackend, check_llm_health

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


# Request/Response Models
class ChatRequest(BaseModel):
    message: str = ""
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str
    recipes: list[dict] = []
    session_id: str
    context: dict = {}
    products: list[dict] = []


class ResetRequest(BaseModel):
    session_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    recipe_count: int
    product_count: int


def welcome_message(hour: int) -> dict:
    """Time-of-day greeting shown when the chat opens"""
    if hour < 12:
        time_greeting, emoji = "Good morning", "☕"
        nudge = "Ready to start your day with a nutritious breakfast?"
    elif hour < 17:
        time_greeting, emoji = "Good afternoon", "🥗"
        nudge = "Looking for a healthy lunch idea, or tips on storing what you bought?"
    else:
        time_greeting, emoji = "Good evening", "🍽️"
        nudge = "Let's find you something delicious for dinner."

    greeting = (
        f"{time_greeting}! I'm Sage 🌿\n\n"
        "I can help you plan meals, stay on budget, cook when you're short on time, "
        "use up what's in your pantry and eat a little healthier.\n\n"
        f"{emoji} **{nudge}**\n\n"
        "*Ask me anything about food, nutrition or recipes.*"
    )
    return {
        "greeting": greeting,
        "mascot": {
            "name": "Sage",
            "emoji": "🌿",
            "tagline": "Your personal food & health companion",
            "timeOfDay": time_greeting,
        },
    }


def create_app(catalog: Optional[Catalog] = None, backend: Optional[LanguageBackend] = None) -> FastAPI:
    """Build the API around a catalog and language backend"""
    catalog = catalog if catalog is not None else load_catalog()
    backend = backend if backend is not None else OpenRouterBackend()
    orchestrator = Orchestrator(catalog, backend)

    app = FastAPI(
        title="Sage API",
        description="Conversational grocery and recipe assistant",
        version=APP_VERSION,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS + ["*"],  # Allow all in development
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {"message": "Sage API is running", "version": APP_VERSION}

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint"""
        return HealthResponse(
            status="healthy" if catalog.recipes and catalog.products else "degraded",
            recipe_count=len(catalog.recipes),
            product_count=len(catalog.products),
        )

    @app.get("/api/products")
    async def list_products():
        return [p.to_dict() for p in catalog.products]

    @app.get("/api/recipes")
    async def list_recipes():
        return [r.to_dict() for r in catalog.recipes]

    @app.get("/api/welcome")
    async def welcome():
        return welcome_message(datetime.now().hour)

    @app.get("/api/llm/health")
    async def llm_health(probe: int = 0):
        """Provider info; ?probe=1 also makes a tiny backend call"""
        info = {"provider": "openrouter", "model": LLM_MODEL, "configured": bool(OPENROUTER_API_KEY)}
        if probe:
            info["probe"] = await check_llm_health(backend)
        return info

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest):
        """
        Main chat endpoint.
        Unknown or missing session ids start a new session.
        """
        if not request.message or not request.message.strip():
            raise HTTPException(status_code=400, detail="message required")

        try:
            session_id, result = await orchestrator.chat(request.message, request.session_id)
        except Exception:
            log.exception("Chat error")
            raise HTTPException(status_code=500, detail="Internal server error")

        payload = result.to_dict()
        return ChatResponse(
            reply=payload["reply"],
            recipes=payload["recipes"],
            session_id=session_id,
            context=payload["context"],
            products=payload["products"],
        )

    @app.post("/api/reset")
    async def reset(request: ResetRequest):
        if request.session_id:
            orchestrator.reset(request.session_id)
        return {"ok": True}

    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        log.info(
            "🌿 Sage backend v%s started with %d products and %d recipes",
            APP_VERSION, len(catalog.products), len(catalog.recipes),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
