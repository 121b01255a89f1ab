"""Narrative generation behind a one-method interface."""
import logging
from typing import Any, Dict, Optional, Protocol

from fin_engine.llm.client import LLMClient
from fin_engine.llm.prompts import NARRATIVE_SYSTEM_PROMPT, build_narrative_prompt

logger = logging.getLogger(__name__)


class NarrativeGenerator(Protocol):
    def summarize(self, payload: Dict[str, Any]) -> Optional[str]:
        """Plain-language summary of a JSON-mode analytics payload, or None."""
        ...


class LLMNarrativeGenerator:
    """Summarizes analytics payloads with the configured LLM provider."""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    def summarize(self, payload: Dict[str, Any]) -> Optional[str]:
        prompt = build_narrative_prompt(payload)
        text = self.client.generate(prompt, system_prompt=NARRATIVE_SYSTEM_PROMPT).strip()
        if not text:
            logger.warning("LLM returned an empty narrative")
            return None
        return text
