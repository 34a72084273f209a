"""
Credential Collaborator

Interface to the credential store plus the resolved, immutable credential
value handed to providers at construction time. The core never persists
secrets itself.

Readiness ("is provider X sufficiently configured") is answered by one
predicate per provider kind: `provider_readiness()`.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)

DEFAULT_AWS_REGION = "us-east-1"


class ProviderKind(str, Enum):
    """AI providers known to WingetWizard."""
    PERPLEXITY = "perplexity"
    ANTHROPIC = "anthropic"
    BEDROCK = "bedrock"


# Credential names used with the credential store
ANTHROPIC_API_KEY = "AnthropicApiKey"
PERPLEXITY_API_KEY = "PerplexityApiKey"
BEDROCK_API_KEY = "BedrockApiKey"
AWS_ACCESS_KEY_ID = "aws_access_key_id"
AWS_SECRET_ACCESS_KEY = "aws_secret_access_key"
AWS_REGION = "aws_region"

# Environment fallbacks for EnvCredentialStore
_ENV_NAMES = {
    ANTHROPIC_API_KEY: "ANTHROPIC_API_KEY",
    PERPLEXITY_API_KEY: "PERPLEXITY_API_KEY",
    BEDROCK_API_KEY: "AWS_BEARER_TOKEN_BEDROCK",
    AWS_ACCESS_KEY_ID: "AWS_ACCESS_KEY_ID",
    AWS_SECRET_ACCESS_KEY: "AWS_SECRET_ACCESS_KEY",
    AWS_REGION: "AWS_REGION",
}


class CredentialStore(Protocol):
    """Credential collaborator contract."""

    def get_credential(self, name: str) -> Optional[str]: ...

    def set_credential(self, name: str, value: str) -> None: ...

    def reset(self) -> None: ...


class InMemoryCredentialStore:
    """Thread-safe dictionary-backed credential store."""

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})
        self._lock = threading.Lock()

    def get_credential(self, name: str) -> Optional[str]:
        with self._lock:
            value = self._values.get(name)
        return value or None

    def set_credential(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = value

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class EnvCredentialStore(InMemoryCredentialStore):
    """
    Credential store that falls back to environment variables.

    Values set explicitly take precedence; `reset()` only clears those.
    """

    def get_credential(self, name: str) -> Optional[str]:
        value = super().get_credential(name)
        if value:
            return value
        env_name = _ENV_NAMES.get(name)
        if env_name:
            return os.environ.get(env_name) or None
        return None


def mask_secret(value: Optional[str]) -> str:
    """Mask a secret for log output."""
    if not value:
        return "<empty>"
    if len(value) <= 8:
        return "***"
    return f"{value[:5]}..."


class ProviderCredential(BaseModel):
    """Resolved credentials for one provider. Opaque to the pipeline."""

    model_config = ConfigDict(frozen=True)

    provider_kind: ProviderKind
    api_key: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str = ""

    @field_validator("api_key", "access_key", "secret_key", "region", mode="before")
    @classmethod
    def _sanitize(cls, value: Optional[str]) -> str:
        # Pasted keys often carry trailing newlines
        if value is None:
            return ""
        return str(value).strip().replace("\n", "").replace("\r", "")

    @property
    def uses_api_key(self) -> bool:
        return bool(self.api_key)

    def fingerprint(self) -> str:
        """
        Stable, non-reversible digest of the secret fields.

        Returns:
            16-character hex hash
        """
        content = "\x1f".join(
            [self.provider_kind.value, self.api_key, self.access_key, self.secret_key]
        )
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def __repr__(self) -> str:
        return (
            f"ProviderCredential(provider_kind={self.provider_kind.value!r}, "
            f"api_key={mask_secret(self.api_key)!r}, access_key={mask_secret(self.access_key)!r}, "
            f"region={self.region!r})"
        )

    __str__ = __repr__


def resolve_credential(
    store: CredentialStore,
    kind: ProviderKind,
    default_region: str = DEFAULT_AWS_REGION,
) -> ProviderCredential:
    """
    Read the credentials for a provider kind from the store.

    Args:
        store: Credential collaborator
        kind: Provider to resolve
        default_region: Bedrock region when the store has none

    Returns:
        ProviderCredential (fields empty when not configured)
    """
    kind = ProviderKind(kind)
    if kind == ProviderKind.ANTHROPIC:
        return ProviderCredential(provider_kind=kind, api_key=store.get_credential(ANTHROPIC_API_KEY))
    if kind == ProviderKind.PERPLEXITY:
        return ProviderCredential(provider_kind=kind, api_key=store.get_credential(PERPLEXITY_API_KEY))
    return ProviderCredential(
        provider_kind=kind,
        api_key=store.get_credential(BEDROCK_API_KEY),
        access_key=store.get_credential(AWS_ACCESS_KEY_ID),
        secret_key=store.get_credential(AWS_SECRET_ACCESS_KEY),
        region=store.get_credential(AWS_REGION) or default_region,
    )


@dataclass
class Readiness:
    """Answer of the readiness predicate."""

    provider_kind: ProviderKind
    ready: bool
    missing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# Expected minimum lengths; shorter keys produce warnings, not errors
_MIN_KEY_LENGTHS = {
    ProviderKind.ANTHROPIC: 50,
    ProviderKind.PERPLEXITY: 40,
    ProviderKind.BEDROCK: 20,
}


def provider_readiness(credential: ProviderCredential) -> Readiness:
    """
    Decide whether a provider is configured well enough to be called.

    Anthropic and Perplexity need an API key. Bedrock needs either an API key
    or an access/secret key pair, plus a region.

    Args:
        credential: Resolved credentials

    Returns:
        Readiness with missing fields and advisory warnings
    """
    kind = credential.provider_kind
    missing: List[str] = []
    warnings: List[str] = []

    if kind in (ProviderKind.ANTHROPIC, ProviderKind.PERPLEXITY):
        if not credential.api_key:
            missing.append("api_key")
        elif len(credential.api_key) < _MIN_KEY_LENGTHS[kind]:
            warnings.append(f"{kind.value} API key appears to be shorter than expected")
    else:
        if credential.api_key:
            if len(credential.api_key) < _MIN_KEY_LENGTHS[kind]:
                warnings.append("Bedrock API key appears to be shorter than expected")
        else:
            if not credential.access_key:
                missing.append("access_key")
            if not credential.secret_key:
                missing.append("secret_key")
            if credential.access_key and len(credential.access_key) < 20:
                warnings.append("AWS Access Key ID appears to be shorter than expected")
            if credential.secret_key and len(credential.secret_key) < 40:
                warnings.append("AWS Secret Access Key appears to be shorter than expected")
        if not credential.region:
            missing.append("region")

    return Readiness(provider_kind=kind, ready=not missing, missing=missing, warnings=warnings)
