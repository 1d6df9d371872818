"""Static knowledge models."""
from typing import Any

from pydantic import BaseModel

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful phone assistant. Keep responses brief and conversational."
)


class StaticKnowledge(BaseModel):
    """System prompt and knowledge base shared by every call."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    # FAQ entries, users, points accounts, orders, transactions
    knowledge_base: Any = []
    source: str = "fallback"

    @property
    def record_count(self) -> int:
        kb = self.knowledge_base
        if isinstance(kb, list):
            return len(kb)
        if isinstance(kb, dict):
            return sum(len(v) if isinstance(v, list) else 1 for v in kb.values())
        return 0
