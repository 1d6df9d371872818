"""Loads the system prompt and knowledge base once per process."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from app.services.knowledge.models import DEFAULT_SYSTEM_PROMPT, StaticKnowledge

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_PATH = "prompts/system-prompt.txt"
KNOWLEDGE_BASE_PATH = "data/knowledge-base.json"


class KnowledgeLoader:
    """
    Lazy, load-once provider of StaticKnowledge.

    The first ensure_loaded() performs the fetch; every later call returns
    the cached result, including when the fetch failed and fallbacks were
    used. The lock makes overlapping first calls share one fetch.
    """

    def __init__(
        self,
        domain: Optional[str] = None,
        directory: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.domain = domain
        self.directory = Path(directory) if directory else None
        self.timeout = timeout
        self._transport = transport
        self._knowledge: Optional[StaticKnowledge] = None
        self._lock = asyncio.Lock()
        self.load_attempts = 0

    @property
    def is_loaded(self) -> bool:
        return self._knowledge is not None

    async def ensure_loaded(self) -> StaticKnowledge:
        """Return the static knowledge, loading it on first use."""
        if self._knowledge is not None:
            return self._knowledge
        async with self._lock:
            if self._knowledge is None:
                self.load_attempts += 1
                try:
                    self._knowledge = await self._load()
                except Exception as e:
                    logger.error(
                        f"[KNOWLEDGE] Unexpected error loading static knowledge: "
                        f"{type(e).__name__}: {e}",
                        exc_info=True,
                    )
                    self._knowledge = StaticKnowledge()
                logger.info(
                    f"[KNOWLEDGE] Static knowledge ready - Source: {self._knowledge.source}, "
                    f"Prompt length: {len(self._knowledge.system_prompt)}, "
                    f"Records: {self._knowledge.record_count}"
                )
        return self._knowledge

    async def _load(self) -> StaticKnowledge:
        if self.directory is not None:
            return await asyncio.to_thread(self._load_local)
        if self.domain:
            return await self._load_remote()
        logger.warning("[KNOWLEDGE] No knowledge source configured, using built-in fallback")
        return StaticKnowledge()

    def _load_local(self) -> StaticKnowledge:
        """Read both documents from a local directory. Blocking; run off the event loop."""
        source = "local"
        try:
            system_prompt = (self.directory / SYSTEM_PROMPT_PATH).read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"[KNOWLEDGE] Error reading system prompt: {e}")
            system_prompt, source = DEFAULT_SYSTEM_PROMPT, "fallback"

        try:
            with open(self.directory / KNOWLEDGE_BASE_PATH, "r", encoding="utf-8") as f:
                knowledge_base: Any = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[KNOWLEDGE] Error reading knowledge base: {e}")
            knowledge_base, source = [], "fallback"

        return StaticKnowledge(
            system_prompt=system_prompt, knowledge_base=knowledge_base, source=source
        )

    async def _load_remote(self) -> StaticKnowledge:
        """Fetch both documents from the configured origin."""
        base_url = self.domain if "://" in self.domain else f"https://{self.domain}"
        source = "remote"
        async with httpx.AsyncClient(
            base_url=base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.get(f"/{SYSTEM_PROMPT_PATH}")
                response.raise_for_status()
                system_prompt = response.text
                logger.info("[KNOWLEDGE] System prompt loaded successfully")
            except httpx.HTTPError as e:
                logger.error(f"[KNOWLEDGE] Error loading system prompt: {type(e).__name__}: {e}")
                system_prompt, source = DEFAULT_SYSTEM_PROMPT, "fallback"

            try:
                response = await client.get(f"/{KNOWLEDGE_BASE_PATH}")
                response.raise_for_status()
                knowledge_base = response.json()
                logger.info("[KNOWLEDGE] Knowledge base loaded successfully")
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"[KNOWLEDGE] Error loading knowledge base: {type(e).__name__}: {e}")
                knowledge_base, source = [], "fallback"

        return StaticKnowledge(
            system_prompt=system_prompt, knowledge_base=knowledge_base, source=source
        )
