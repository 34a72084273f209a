"""
AI Services Settings

Role assignment (research / primary / secondary) and per-provider model
configuration for the recommendation pipeline.

Uses str instead of Enum for provider ids so that providers registered at
runtime can be configured without code changes.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import filelock

from ..credentials import DEFAULT_AWS_REGION, ProviderCredential, provider_readiness
from .providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10

# Well-known providers (for hints, but not restricting)
KNOWN_PROVIDERS = ["perplexity", "anthropic", "bedrock"]

DEFAULT_MODELS = {
    "perplexity": "sonar",
    "anthropic": "claude-sonnet-4-20250514",
    "bedrock": "anthropic.claude-3-5-sonnet-20241022-v2:0",
}

DEFAULT_MAX_TOKENS = {
    "perplexity": 2000,
    "anthropic": 2500,
    "bedrock": 4000,
}


@dataclass
class ProviderConfig:
    """Configuration for a single AI provider."""

    provider_id: str
    model: str = ""
    max_tokens: int = 2500

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider_id": self.provider_id,
            "model": self.model,
            "max_tokens": self.max_tokens,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        """Create from dictionary."""
        provider_id = data.get("provider_id", "")
        return cls(
            provider_id=provider_id,
            model=data.get("model", DEFAULT_MODELS.get(provider_id, "")),
            max_tokens=data.get("max_tokens", DEFAULT_MAX_TOKENS.get(provider_id, 2500)),
        )


@dataclass
class AIServicesSettings:
    """
    Complete AI services configuration.

    Stored in: <data_dir>/ai_settings.json
    """

    # Stage roles
    research_provider: str = "perplexity"
    primary_provider: str = "anthropic"
    secondary_provider: str = "bedrock"

    # Provider configurations (key = provider_id)
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)

    research_max_tokens: int = 2000
    http_timeout_seconds: int = 60

    # Bedrock
    aws_region: str = DEFAULT_AWS_REGION

    # Model discovery
    discovery_ttl_hours: float = 24
    debounce_ms: int = 300

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "research_provider": self.research_provider,
            "primary_provider": self.primary_provider,
            "secondary_provider": self.secondary_provider,
            "providers": {k: v.to_dict() for k, v in self.providers.items()},
            "research_max_tokens": self.research_max_tokens,
            "http_timeout_seconds": self.http_timeout_seconds,
            "aws_region": self.aws_region,
            "discovery_ttl_hours": self.discovery_ttl_hours,
            "debounce_ms": self.debounce_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIServicesSettings":
        """Create from dictionary. Missing provider entries get defaults."""
        settings = cls.get_defaults()
        for k, v in data.get("providers", {}).items():
            settings.providers[k] = ProviderConfig.from_dict({"provider_id": k, **v})

        settings.research_provider = data.get("research_provider", settings.research_provider)
        settings.primary_provider = data.get("primary_provider", settings.primary_provider)
        settings.secondary_provider = data.get("secondary_provider", settings.secondary_provider)
        settings.research_max_tokens = data.get("research_max_tokens", settings.research_max_tokens)
        settings.http_timeout_seconds = data.get("http_timeout_seconds", settings.http_timeout_seconds)
        settings.aws_region = data.get("aws_region") or settings.aws_region
        settings.discovery_ttl_hours = data.get("discovery_ttl_hours", settings.discovery_ttl_hours)
        settings.debounce_ms = data.get("debounce_ms", settings.debounce_ms)
        return settings

    @classmethod
    def get_defaults(cls) -> "AIServicesSettings":
        """Get default settings with standard provider configurations."""
        settings = cls()
        settings.providers = {
            provider_id: ProviderConfig(
                provider_id=provider_id,
                model=DEFAULT_MODELS[provider_id],
                max_tokens=DEFAULT_MAX_TOKENS[provider_id],
            )
            for provider_id in KNOWN_PROVIDERS
        }
        return settings

    def get_format_order(self) -> List[str]:
        """Ordered fallback chain for the format stage (primary, then secondary)."""
        order = [self.primary_provider]
        if self.secondary_provider and self.secondary_provider != self.primary_provider:
            order.append(self.secondary_provider)
        return order

    def model_for(self, provider_id: str) -> str:
        config = self.providers.get(provider_id)
        if config and config.model:
            return config.model
        return DEFAULT_MODELS.get(provider_id, "")

    def max_tokens_for(self, provider_id: str) -> int:
        config = self.providers.get(provider_id)
        if config:
            return config.max_tokens
        return DEFAULT_MAX_TOKENS.get(provider_id, 2500)

    def save(self, path: Path) -> None:
        """
        Save settings to disk.

        Args:
            path: Target JSON file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        lock = filelock.FileLock(str(path) + ".lock")
        with lock.acquire(timeout=LOCK_TIMEOUT):
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)

        logger.info(f"[ai-service] Settings saved to {path}")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AIServicesSettings":
        """
        Load settings from disk, or return defaults if not found.

        Returns:
            Loaded settings or defaults
        """
        if path is not None and Path(path).exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                logger.info(f"[ai-service] Settings loaded from {path}")
                return cls.from_dict(data)
            except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
                logger.warning(f"[ai-service] Failed to load settings, using defaults: {e}")

        return cls.get_defaults()


@dataclass
class ValidationReport:
    """Errors block the pipeline; warnings are advisory."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def validate_ai_configuration(
    settings: AIServicesSettings,
    credentials: Dict[str, ProviderCredential],
) -> ValidationReport:
    """
    Check that the configured roles can actually run.

    Research and primary providers must be registered and ready. An
    unready secondary only disables the fallback and is a warning.

    Args:
        settings: Role assignment
        credentials: Resolved credentials by provider id

    Returns:
        ValidationReport
    """
    report = ValidationReport()
    roles = [
        ("research", settings.research_provider, True),
        ("primary", settings.primary_provider, True),
        ("secondary", settings.secondary_provider, False),
    ]

    for role, provider_id, required in roles:
        if not provider_id:
            if required:
                report.errors.append(f"No {role} provider configured")
            continue
        if not ProviderRegistry.is_registered(provider_id):
            report.errors.append(
                f"{role.capitalize()} provider '{provider_id}' is not recognized. "
                f"Valid providers: {', '.join(ProviderRegistry.list_providers())}"
            )
            continue

        credential = credentials.get(provider_id)
        readiness = provider_readiness(credential) if credential else None
        if readiness is None or not readiness.ready:
            missing = ", ".join(readiness.missing) if readiness else "credentials"
            message = f"{role.capitalize()} provider '{provider_id}' is not configured (missing {missing})"
            if required:
                report.errors.append(message)
            else:
                report.warnings.append(f"{message}; fallback disabled")
            continue

        for warning in readiness.warnings:
            if warning not in report.warnings:
                report.warnings.append(warning)

    if settings.secondary_provider and settings.secondary_provider == settings.primary_provider:
        report.warnings.append("Primary and secondary providers are the same; fallback has no effect")

    if not any(c is not None and provider_readiness(c).ready for c in credentials.values()):
        report.warnings.append("No API keys are configured. AI features will not be available.")

    return report
