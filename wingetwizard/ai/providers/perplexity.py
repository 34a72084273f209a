"""
Perplexity Provider

Search-backed research via the Perplexity chat completions API.
Default model: sonar
"""

import logging
from typing import Optional

import requests

from ...credentials import ProviderCredential
from ...errors import ProviderInvalidResponse
from ..prompts import RESEARCH_SYSTEM_PROMPT
from .base import DEFAULT_TIMEOUT, TextProvider

logger = logging.getLogger(__name__)


class PerplexityProvider(TextProvider):
    """Perplexity research provider."""

    provider_id = "perplexity"
    default_model = "sonar"

    API_URL = "https://api.perplexity.ai/chat/completions"
    KNOWN_MODELS = ["sonar", "sonar-pro", "sonar-reasoning"]

    def __init__(
        self,
        credential: ProviderCredential,
        model: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        system_prompt: str = RESEARCH_SYSTEM_PROMPT,
        temperature: float = 0.1,
    ):
        super().__init__(credential, model=model, timeout=timeout, session=session)
        self.system_prompt = system_prompt
        self.temperature = temperature

    def generate_text(self, prompt: str, max_tokens: int) -> str:
        self._require_ready()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.credential.api_key}",
            "Content-Type": "application/json",
        }

        data = self._post(self.API_URL, payload, headers)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderInvalidResponse(self.provider_id, f"Unexpected response shape: {e}") from e

        text = self._non_empty(content)
        logger.debug(f"[ai-service] Perplexity returned {len(text)} chars")
        return text
