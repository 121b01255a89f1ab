"""
LLM client used for narrative summaries.
Supports OpenAI and mock modes.
"""
import logging
import time
from typing import Optional

import httpx
from openai import OpenAI

from fin_engine.core.config import settings

logger = logging.getLogger(__name__)


class LLMClient:
    """Client for text generation. Provider is "mock" or "openai"."""

    def __init__(
        self,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.provider = (provider or settings.LLM_PROVIDER).lower().strip()
        self.api_key = (api_key or settings.LLM_API_KEY or "").strip()
        self.model = (model or settings.LLM_MODEL).strip()
        self.timeout = float(timeout if timeout is not None else settings.NARRATIVE_TIMEOUT_SECONDS)

        logger.info("LLMClient initialized: provider=%s, model=%s, api_key_present=%s",
                    self.provider, self.model, bool(self.api_key))
        if self.provider == "openai" and not self.api_key:
            logger.warning("LLM_PROVIDER=openai but LLM_API_KEY is not set; generation will fail")

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text using the configured provider.

        Provider errors propagate to the caller.
        """
        logger.info("LLM.generate called: provider=%s", self.provider)

        if self.provider == "mock":
            return self._mock_generate(prompt)
        if self.provider == "openai":
            return self._openai_generate(prompt, system_prompt)
        raise ValueError(f"Unknown LLM provider: {self.provider}")

    def _openai_generate(self, prompt: str, system_prompt: Optional[str]) -> str:
        if not self.api_key:
            raise RuntimeError("No LLM API key configured")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.info("Calling OpenAI API (model=%s, timeout=%.0fs, prompt=%d chars)",
                    self.model, self.timeout, len(prompt))
        start_time = time.time()

        with httpx.Client(timeout=httpx.Timeout(self.timeout, connect=5.0), follow_redirects=True) as http_client:
            client = OpenAI(
                api_key=self.api_key,
                http_client=http_client,
                timeout=self.timeout,
                max_retries=0,
            )
            try:
                response = client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.3,
                )
            except Exception as e:
                logger.error("OpenAI API call failed after %.1fs: %s: %s",
                             time.time() - start_time, type(e).__name__, e)
                raise

        content = response.choices[0].message.content or ""
        logger.info("OpenAI API success in %.2fs (%d chars)", time.time() - start_time, len(content))
        return content

    def _mock_generate(self, prompt: str) -> str:
        """Echo the key figures block of the prompt as a plain summary."""
        lines = []
        in_figures = False
        for line in prompt.splitlines():
            if line.strip().lower().startswith("key figures"):
                in_figures = True
                continue
            if in_figures:
                if not line.strip():
                    break
                lines.append(line.strip().lstrip("- "))
        logger.info("Mock: returning %d summary line(s)", len(lines))
        return "; ".join(lines)
