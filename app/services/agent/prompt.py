"""Agent prompt templates."""
import json
from typing import Dict, List

from app.services.call_session.models import Turn
from app.services.knowledge.models import StaticKnowledge


def build_system_instruction(knowledge: StaticKnowledge) -> str:
    """Combine the system prompt with a snapshot of the knowledge base."""
    knowledge_text = json.dumps(knowledge.knowledge_base, indent=2, ensure_ascii=False)
    return f"""{knowledge.system_prompt}

Knowledge Base for reference:
{knowledge_text}

Important: Keep responses to 1-2 sentences maximum for voice conversation."""


def build_messages(
    knowledge: StaticKnowledge, history: List[Turn], user_input: str
) -> List[Dict[str, str]]:
    """Chat messages: system instruction, prior turns in order, new utterance."""
    messages = [{"role": "system", "content": build_system_instruction(knowledge)}]
    messages.extend(turn.as_message() for turn in history)
    messages.append({"role": "user", "content": user_input})
    return messages
