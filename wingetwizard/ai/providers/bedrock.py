"""
AWS Bedrock Provider

Model invocation through the Bedrock runtime InvokeModel API.

Authentication is either a Bedrock API key (Bearer token) or an AWS
access/secret key pair signed with SigV4. The request and response body
format depends on the model family:

- Anthropic Claude: Messages format
- Meta Llama: prompt / max_gen_len
- Amazon Titan: inputText / textGenerationConfig
"""

import json
import logging
from typing import Any, Dict
from urllib.parse import quote

from ...credentials import DEFAULT_AWS_REGION
from ...errors import ProviderInvalidResponse
from .anthropic import extract_message_text
from .aws_auth import sign_request
from .base import TextProvider, send_request

logger = logging.getLogger(__name__)

BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"

FAMILY_ANTHROPIC = "anthropic"
FAMILY_LLAMA = "meta"
FAMILY_TITAN = "titan"


def model_family(model_id: str) -> str:
    """
    Detect the body format family of a Bedrock model id.

    Cross-region inference profile ids ("us.anthropic.claude-...") are
    recognized too. Unknown families use the Anthropic format.
    """
    model = model_id.lower()
    if "meta.llama" in model:
        return FAMILY_LLAMA
    if "amazon.titan" in model:
        return FAMILY_TITAN
    return FAMILY_ANTHROPIC


class BedrockProvider(TextProvider):
    """AWS Bedrock provider."""

    provider_id = "bedrock"
    default_model = "anthropic.claude-3-5-sonnet-20241022-v2:0"

    SERVICE = "bedrock"
    temperature = 0.1
    top_p = 0.9

    @property
    def region(self) -> str:
        return self.credential.region or DEFAULT_AWS_REGION

    def invoke_url(self) -> str:
        return (
            f"https://bedrock-runtime.{self.region}.amazonaws.com"
            f"/model/{quote(self.model, safe='')}/invoke"
        )

    def build_body(self, prompt: str, max_tokens: int) -> Dict[str, Any]:
        """Request body for the configured model's family."""
        family = model_family(self.model)
        if family == FAMILY_LLAMA:
            return {
                "prompt": prompt,
                "max_gen_len": max_tokens,
                "temperature": self.temperature,
                "top_p": self.top_p,
            }
        if family == FAMILY_TITAN:
            return {
                "inputText": prompt,
                "textGenerationConfig": {
                    "maxTokenCount": max_tokens,
                    "stopSequences": [],
                    "temperature": self.temperature,
                    "topP": self.top_p,
                },
            }
        return {
            "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

    def parse_body(self, data: Any) -> str:
        """Extract generated text from a family-specific response."""
        family = model_family(self.model)
        try:
            if family == FAMILY_LLAMA:
                return data["generation"]
            if family == FAMILY_TITAN:
                return data["results"][0]["outputText"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderInvalidResponse(self.provider_id, f"Unexpected response shape: {e}") from e
        return extract_message_text(self.provider_id, data)

    def auth_headers(self, method: str, url: str, body: bytes) -> Dict[str, str]:
        """Bearer token when an API key is set, otherwise SigV4 signature."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.credential.uses_api_key:
            headers["Authorization"] = f"Bearer {self.credential.api_key}"
            return headers
        return sign_request(
            method, url, self.region, self.SERVICE,
            self.credential.access_key, self.credential.secret_key,
            body=body, headers=headers,
        )

    def generate_text(self, prompt: str, max_tokens: int) -> str:
        self._require_ready()
        url = self.invoke_url()
        body = json.dumps(self.build_body(prompt, max_tokens)).encode("utf-8")

        logger.debug(f"[ai-service] Bedrock invoke {self.model} in {self.region}")
        data = send_request(
            self.session, "POST", url, self.provider_id,
            timeout=self.timeout, data=body, headers=self.auth_headers("POST", url, body),
        )
        return self._non_empty(self.parse_body(data))
