"""
Provider Registry

Dynamic provider registration and lookup.
Adding a provider is a registration, not a change to the pipeline.
"""

import logging
from typing import Dict, Optional, Type

import requests

from ...credentials import ProviderCredential
from .anthropic import AnthropicProvider
from .base import DEFAULT_TIMEOUT, ProviderStatus, TextProvider
from .bedrock import BedrockProvider
from .perplexity import PerplexityProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry for text providers.

    Provides dynamic lookup and instantiation of providers.
    """

    # Built-in providers
    _providers: Dict[str, Type[TextProvider]] = {
        "perplexity": PerplexityProvider,
        "anthropic": AnthropicProvider,
        "bedrock": BedrockProvider,
    }

    @classmethod
    def register(cls, provider_id: str, provider_class: Type[TextProvider]) -> None:
        """
        Register a new provider.

        Args:
            provider_id: Unique identifier for the provider
            provider_class: Provider class (must extend TextProvider)
        """
        if not issubclass(provider_class, TextProvider):
            raise TypeError(f"{provider_class} must be a subclass of TextProvider")

        cls._providers[provider_id] = provider_class
        logger.info(f"[ai-service] Registered provider: {provider_id}")

    @classmethod
    def unregister(cls, provider_id: str) -> bool:
        """
        Unregister a provider.

        Returns:
            True if provider was removed, False if not found
        """
        if provider_id in cls._providers:
            del cls._providers[provider_id]
            return True
        return False

    @classmethod
    def get(
        cls,
        provider_id: str,
        credential: ProviderCredential,
        model: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> Optional[TextProvider]:
        """
        Get a provider instance.

        Args:
            provider_id: Provider identifier
            credential: Resolved credentials for the provider
            model: Model to use (provider default if empty)
            timeout: HTTP timeout in seconds
            session: Shared requests session

        Returns:
            Provider instance or None if not found
        """
        provider_class = cls._providers.get(provider_id)
        if provider_class is None:
            logger.warning(f"[ai-service] Unknown provider: {provider_id}")
            return None

        return provider_class(credential, model=model, timeout=timeout, session=session)

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider IDs."""
        return list(cls._providers.keys())

    @classmethod
    def is_registered(cls, provider_id: str) -> bool:
        return provider_id in cls._providers

    @classmethod
    def detect_all(cls, credentials: Dict[str, ProviderCredential]) -> Dict[str, ProviderStatus]:
        """
        Report readiness of every registered provider.

        Args:
            credentials: Resolved credentials by provider id

        Returns:
            Dict mapping provider_id to ProviderStatus
        """
        results = {}
        for provider_id in cls._providers:
            credential = credentials.get(provider_id)
            if credential is None:
                results[provider_id] = ProviderStatus(
                    provider_id=provider_id,
                    available=False,
                    error="No credentials supplied",
                )
                continue
            provider = cls.get(provider_id, credential)
            results[provider_id] = provider.detect_availability()

        return results
