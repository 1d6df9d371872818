"""LLM agent service."""
import logging
from typing import List, Optional

from openai import AsyncOpenAI

from app.services.agent.constants import FALLBACK_REPLY, TRANSFER_TRIGGER_PHRASE
from app.services.agent.prompt import build_messages
from app.services.call_session.models import Turn
from app.services.knowledge.models import StaticKnowledge

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
MAX_TOKENS = 150
TEMPERATURE = 0.3


def is_transfer_request(reply: str) -> bool:
    """Whether the model asked to hand the caller to customer service."""
    return TRANSFER_TRIGGER_PHRASE in reply


class AgentService:
    """Service for generating spoken replies with the chat-completion API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(api_key=api_key)

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def generate_reply(
        self, knowledge: StaticKnowledge, history: List[Turn], user_input: str
    ) -> str:
        """
        Generate the assistant reply for one caller utterance.

        Args:
            knowledge: Cached system prompt and knowledge base
            history: Prior turns for this call, oldest first
            user_input: What the caller just said

        Returns:
            Reply text, or FALLBACK_REPLY if the backend fails in any way
        """
        messages = build_messages(knowledge, history, user_input)
        logger.info(
            f"[AGENT INPUT] User Input: '{user_input}', "
            f"History turns: {len(history)}, Model: {self.model}"
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
            content = response.choices[0].message.content
            reply = content.strip() if content else ""
            if not reply:
                raise ValueError("empty completion")
        except Exception as e:
            logger.error(
                f"[AGENT] Error generating AI response: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return FALLBACK_REPLY

        logger.info(f"[AGENT OUTPUT] Response: '{reply}'")
        return reply
