"""
Conversation Context
Per-session state, the active guided flow, and the session store interface
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from sage.models import EnrichedRecipe


class FlowKind(str, Enum):
    NUTRITION = "nutrition"
    BUDGET = "budget"
    TIME = "time"
    PANTRY = "pantry"
    MEAL_PREP = "meal_prep"
    HEALTHY = "healthy"
    DAILY_MENU = "daily_menu"


@dataclass
class ActiveFlow:
    """The single running guided flow: which one, where it is, what it has collected"""
    kind: FlowKind
    state: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "state": self.state, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ActiveFlow"]:
        if not data or not data.get("kind"):
            return None
        return cls(kind=FlowKind(data["kind"]), state=data.get("state", ""), data=dict(data.get("data") or {}))


@dataclass
class ConversationContext:
    """Everything remembered about one chat session"""
    messages: list[dict] = field(default_factory=list)
    seen_recipe_names: set[str] = field(default_factory=set)
    all_suggested_recipes: dict[str, EnrichedRecipe] = field(default_factory=dict)
    last_non_more_query: Optional[str] = None
    grounded_only: bool = False
    active_flow: Optional[ActiveFlow] = None
    last_product_query: Optional[str] = None
    last_product_results: list[str] = field(default_factory=list)
    profile: dict = field(default_factory=dict)

    # Flows

    def start_flow(self, kind: FlowKind, state: str) -> ActiveFlow:
        """Begin a flow. Replaces whatever flow was running, with fresh data."""
        self.active_flow = ActiveFlow(kind=FlowKind(kind), state=state)
        return self.active_flow

    def clear_flow(self):
        self.active_flow = None

    def flow_state(self, kind: FlowKind) -> Optional[str]:
        """Sub-state of `kind` if it is the running flow, else None"""
        if self.active_flow is not None and self.active_flow.kind == kind:
            return self.active_flow.state
        return None

    # History

    def add_user(self, text: str):
        self.messages.append({"from": "user", "text": text})

    def add_bot(self, text: str):
        self.messages.append({"from": "bot", "text": text})

    def recent_messages(self, count: int) -> list[dict]:
        return self.messages[-count:] if count > 0 else []

    def last_bot_text(self) -> str:
        for msg in reversed(self.messages):
            if msg.get("from") == "bot":
                return msg.get("text") or ""
        return ""

    def remember_recipes(self, recipes: list[EnrichedRecipe]):
        """Mark recipes as seen and merge them into the suggestion history (latest wins)"""
        for recipe in recipes:
            if not recipe.name:
                continue
            self.seen_recipe_names.add(recipe.name)
            self.all_suggested_recipes.pop(recipe.name, None)
            self.all_suggested_recipes[recipe.name] = recipe

    def recent_suggestions(self, count: int) -> list[EnrichedRecipe]:
        return list(self.all_suggested_recipes.values())[-count:]

    # Serialization

    def to_dict(self) -> dict:
        return {
            "messages": [dict(m) for m in self.messages],
            "seen_recipe_names": sorted(self.seen_recipe_names),
            "all_suggested_recipes": [r.to_dict() for r in self.all_suggested_recipes.values()],
            "last_non_more_query": self.last_non_more_query,
            "grounded_only": self.grounded_only,
            "active_flow": self.active_flow.to_dict() if self.active_flow else None,
            "last_product_query": self.last_product_query,
            "last_product_results": list(self.last_product_results),
            "profile": dict(self.profile),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ConversationContext":
        if not data:
            return cls()
        history = {}
        for raw in data.get("all_suggested_recipes") or []:
            recipe = EnrichedRecipe.from_dict(raw)
            history[recipe.name] = recipe
        return cls(
            messages=[dict(m) for m in data.get("messages") or []],
            seen_recipe_names=set(data.get("seen_recipe_names") or []),
            all_suggested_recipes=history,
            last_non_more_query=data.get("last_non_more_query"),
            grounded_only=bool(data.get("grounded_only", False)),
            active_flow=ActiveFlow.from_dict(data.get("active_flow")),
            last_product_query=data.get("last_product_query"),
            last_product_results=list(data.get("last_product_results") or []),
            profile=dict(data.get("profile") or {}),
        )


class SessionStore(Protocol):
    """Where the HTTP layer keeps one context per session id"""

    def get(self, session_id: str) -> Optional[ConversationContext]:
        ...

    def set(self, session_id: str, context: ConversationContext) -> None:
        ...

    def evict(self, session_id: str) -> None:
        ...


class InMemorySessionStore:
    """Process-local store. Contexts are lost on restart."""

    def __init__(self):
        self._sessions: dict[str, ConversationContext] = {}

    def get(self, session_id: str) -> Optional[ConversationContext]:
        return self._sessions.get(session_id)

    def set(self, session_id: str, context: ConversationContext) -> None:
        self._sessions[session_id] = context

    def evict(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
