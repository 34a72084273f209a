"""
AI Providers Module

Text-generation provider adapters with a uniform generate_text() call.
"""

from .anthropic import AnthropicProvider
from .base import ProviderStatus, TextProvider, classify_http_error, send_request
from .bedrock import BedrockProvider, model_family
from .perplexity import PerplexityProvider
from .registry import ProviderRegistry

__all__ = [
    "AnthropicProvider",
    "BedrockProvider",
    "PerplexityProvider",
    "ProviderRegistry",
    "ProviderStatus",
    "TextProvider",
    "classify_http_error",
    "model_family",
    "send_request",
]
