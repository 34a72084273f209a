"""
Anthropic Provider

Claude via the Anthropic Messages API.
Default model: claude-sonnet-4-20250514
"""

import logging

from ...errors import ProviderInvalidResponse
from .base import TextProvider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(TextProvider):
    """Anthropic Claude provider."""

    provider_id = "anthropic"
    default_model = "claude-sonnet-4-20250514"

    API_URL = "https://api.anthropic.com/v1/messages"
    MODELS_URL = "https://api.anthropic.com/v1/models"

    def headers(self) -> dict:
        return {
            "x-api-key": self.credential.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def generate_text(self, prompt: str, max_tokens: int) -> str:
        self._require_ready()
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        data = self._post(self.API_URL, payload, self.headers())
        return self._non_empty(extract_message_text(self.provider_id, data))


def extract_message_text(provider_id: str, data) -> str:
    """
    Concatenate the text blocks of a Messages API response.

    Shared with Bedrock, whose Anthropic models return the same shape.
    """
    try:
        blocks = data["content"]
    except (KeyError, TypeError) as e:
        raise ProviderInvalidResponse(provider_id, "Response has no content") from e

    if not isinstance(blocks, list):
        raise ProviderInvalidResponse(provider_id, "Response content is not a list")

    parts = []
    for block in blocks:
        if not isinstance(block, dict) or block.get("type", "text") != "text":
            continue
        text = block.get("text", "")
        if not isinstance(text, str):
            raise ProviderInvalidResponse(provider_id, f"Text block is {type(text).__name__}, not a string")
        parts.append(text)
    return "".join(parts)
