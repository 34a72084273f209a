"""
Model Discovery

Lists the text-capable models available to a set of provider credentials,
with an in-memory TTL cache keyed by (provider kind, region, credential
fingerprint).

Callers must be able to tell "no models" from "couldn't ask":
- AuthenticationFailure: credentials rejected or not configured
- NetworkFailure: the model-list API could not be reached, or answered
  with something that is not a model list (InvalidModelListResponse)
- NoModelsInRegion: the query worked but returned nothing usable
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import requests

from ..credentials import DEFAULT_AWS_REGION, ProviderCredential, ProviderKind, provider_readiness
from ..errors import (
    AuthenticationFailure,
    DiscoveryError,
    InvalidModelListResponse,
    NetworkFailure,
    NoModelsInRegion,
    ProviderAuthError,
    ProviderError,
    ProviderInvalidResponse,
)
from ..models import ModelDescriptor
from ..store.events import Debouncer
from .providers.anthropic import AnthropicProvider
from .providers.aws_auth import sign_request
from .providers.base import DEFAULT_TIMEOUT, send_request

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 3600

CacheKey = Tuple[str, str, str]


# =============================================================================
# Listers
# =============================================================================

class ModelLister(ABC):
    """Fetches the model list of one provider."""

    provider_kind: ProviderKind

    def __init__(
        self,
        credential: ProviderCredential,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.credential = credential
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def list_models(self) -> List[ModelDescriptor]:
        """
        Fetch text-capable models, unsorted.

        Raises:
            DiscoveryError: Classified failure
        """
        pass

    @abstractmethod
    def check_access(self) -> None:
        """
        Cheap request that only checks reachability and credentials.

        Raises:
            DiscoveryError: Classified failure
        """
        pass

    def _require_ready(self) -> None:
        readiness = provider_readiness(self.credential)
        if not readiness.ready:
            raise AuthenticationFailure(
                f"{self.provider_kind.value} credentials not configured "
                f"(missing {', '.join(readiness.missing)})"
            )

    def _get(self, url: str, headers: Dict[str, str], params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return send_request(
                self.session, "GET", url, self.provider_kind.value,
                timeout=self.timeout, headers=headers, params=params,
            )
        except ProviderAuthError as e:
            raise AuthenticationFailure(str(e)) from e
        except ProviderInvalidResponse as e:
            raise InvalidModelListResponse(str(e)) from e
        except ProviderError as e:
            raise NetworkFailure(str(e)) from e


def is_text_model(summary: Dict[str, Any]) -> bool:
    """
    Bedrock text-capable filter.

    TEXT in and out, lifecycle not LEGACY, no embedding models.
    """
    model_id = str(summary.get("modelId", ""))
    lifecycle = summary.get("modelLifecycle")
    if isinstance(lifecycle, dict):
        status = lifecycle.get("status", "ACTIVE")
    else:
        status = lifecycle if isinstance(lifecycle, str) else "ACTIVE"
    return (
        "TEXT" in (summary.get("inputModalities") or [])
        and "TEXT" in (summary.get("outputModalities") or [])
        and status != "LEGACY"
        and "embed" not in model_id.lower()
    )


class BedrockModelLister(ModelLister):
    """Bedrock ListFoundationModels."""

    provider_kind = ProviderKind.BEDROCK
    SERVICE = "bedrock"

    @property
    def region(self) -> str:
        return self.credential.region or DEFAULT_AWS_REGION

    def endpoint(self) -> str:
        return f"https://bedrock.{self.region}.amazonaws.com/foundation-models"

    def _headers(self, url: str) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.credential.uses_api_key:
            headers["Authorization"] = f"Bearer {self.credential.api_key}"
            return headers
        return sign_request(
            "GET", url, self.region, self.SERVICE,
            self.credential.access_key, self.credential.secret_key,
            headers=headers,
        )

    def _fetch(self, query: str) -> Any:
        url = f"{self.endpoint()}?{query}"
        return self._get(url, self._headers(url))

    def list_models(self) -> List[ModelDescriptor]:
        self._require_ready()
        data = self._fetch("byOutputModality=TEXT")

        summaries = data.get("modelSummaries") if isinstance(data, dict) else None
        if not isinstance(summaries, list):
            raise InvalidModelListResponse("Bedrock response has no modelSummaries")

        models = [
            ModelDescriptor(
                model_id=s["modelId"],
                model_name=s.get("modelName") or s["modelId"],
                provider_name=s.get("providerName", ""),
            )
            for s in summaries
            if isinstance(s, dict) and s.get("modelId") and is_text_model(s)
        ]
        logger.debug(f"[model-discovery] Bedrock {self.region}: {len(summaries)} models, {len(models)} text-capable")
        return models

    def check_access(self) -> None:
        self._require_ready()
        self._fetch("byProvider=amazon")


class AnthropicModelLister(ModelLister):
    """Anthropic GET /v1/models."""

    provider_kind = ProviderKind.ANTHROPIC

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.credential.api_key,
            "anthropic-version": "2023-06-01",
        }

    def list_models(self) -> List[ModelDescriptor]:
        self._require_ready()
        data = self._get(AnthropicProvider.MODELS_URL, self._headers(), params={"limit": 100})

        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise InvalidModelListResponse("Anthropic response has no data list")

        return [
            ModelDescriptor(
                model_id=e["id"],
                model_name=e.get("display_name") or e["id"],
                provider_name="Anthropic",
            )
            for e in entries
            if isinstance(e, dict) and e.get("id")
        ]

    def check_access(self) -> None:
        self._require_ready()
        self._get(AnthropicProvider.MODELS_URL, self._headers(), params={"limit": 1})


LISTERS: Dict[ProviderKind, Type[ModelLister]] = {
    ProviderKind.BEDROCK: BedrockModelLister,
    ProviderKind.ANTHROPIC: AnthropicModelLister,
}


# =============================================================================
# Cache
# =============================================================================

@dataclass
class CacheEntry:
    """A cached model list."""

    key: CacheKey
    models: Tuple[ModelDescriptor, ...]
    created_at: float

    def age_seconds(self, now: float) -> float:
        return now - self.created_at


def cache_key(credential: ProviderCredential) -> CacheKey:
    region = credential.region if credential.provider_kind == ProviderKind.BEDROCK else ""
    return (credential.provider_kind.value, region, credential.fingerprint())


def sort_models(models: List[ModelDescriptor]) -> List[ModelDescriptor]:
    """Sort by display name, then id."""
    return sorted(models, key=lambda m: (m.model_name.casefold(), m.model_id))


class ModelDiscoveryCache:
    """
    TTL cache in front of a ModelLister.

    The provider is only queried when the entry is missing, older than the
    TTL, keyed by different credentials, or a refresh is forced. Network I/O
    happens outside the lock.
    """

    def __init__(
        self,
        credential: ProviderCredential,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        lister_factory: Optional[Callable[[ProviderCredential], ModelLister]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache.

        Args:
            credential: Credentials of the provider to enumerate
            ttl_seconds: Entry lifetime
            timeout: HTTP timeout for listers built here
            session: Shared requests session
            lister_factory: Builds the lister for a credential (tests)
            clock: Time source
        """
        self.ttl_seconds = ttl_seconds
        self._timeout = timeout
        self._session = session
        self._lister_factory = lister_factory or self._default_lister
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[CacheEntry] = None
        self._credential = credential
        self._lister = self._lister_factory(credential)

    def _default_lister(self, credential: ProviderCredential) -> ModelLister:
        lister_class = LISTERS.get(credential.provider_kind)
        if lister_class is None:
            raise DiscoveryError(f"Model discovery is not supported for {credential.provider_kind.value}")
        return lister_class(credential, timeout=self._timeout, session=self._session)

    @property
    def key(self) -> CacheKey:
        with self._lock:
            return cache_key(self._credential)

    def list_text_capable_models(self, force_refresh: bool = False) -> List[ModelDescriptor]:
        """
        Text-capable models sorted by display name.

        Args:
            force_refresh: Ignore a valid cached entry

        Returns:
            Models (a new list each call; descriptors are immutable)

        Raises:
            AuthenticationFailure, NetworkFailure, NoModelsInRegion
        """
        with self._lock:
            key = cache_key(self._credential)
            lister = self._lister
            entry = self._entry
            now = self._clock()
            if (
                not force_refresh
                and entry is not None
                and entry.key == key
                and entry.age_seconds(now) < self.ttl_seconds
            ):
                logger.debug(
                    f"[model-discovery] Cache hit for {key[0]}/{key[1] or '-'} "
                    f"(age: {entry.age_seconds(now):.0f}s)"
                )
                return list(entry.models)

        logger.info(f"[model-discovery] Fetching models for {key[0]}/{key[1] or '-'}")
        models = sort_models(lister.list_models())
        if not models:
            raise NoModelsInRegion(key[0], key[1])

        with self._lock:
            # Credentials may have changed while fetching
            if cache_key(self._credential) == key:
                self._entry = CacheEntry(key=key, models=tuple(models), created_at=self._clock())

        logger.info(f"[model-discovery] Found {len(models)} text-capable models")
        return models

    def test_connection(self) -> bool:
        """Cheap credential/connectivity check. Never raises DiscoveryError."""
        with self._lock:
            lister = self._lister
        try:
            lister.check_access()
            return True
        except DiscoveryError as e:
            logger.info(f"[model-discovery] Connection test failed: {e}")
            return False

    def update_credentials(self, credential: ProviderCredential) -> bool:
        """
        Switch credentials. A different key drops the cached entry at once.

        Returns:
            True if the cache was invalidated
        """
        with self._lock:
            changed = cache_key(credential) != cache_key(self._credential)
            self._credential = credential
            if changed:
                self._lister = self._lister_factory(credential)
                self._entry = None
        if changed:
            logger.info("[model-discovery] Credentials changed, cache invalidated")
        return changed

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None

    @property
    def has_valid_entry(self) -> bool:
        with self._lock:
            entry = self._entry
            return (
                entry is not None
                and entry.key == cache_key(self._credential)
                and entry.age_seconds(self._clock()) < self.ttl_seconds
            )


class DebouncedModelRefresher:
    """
    Coalesces rapid credential edits into one model-list refresh.

    Each edit restarts the quiet-period timer. When input has been quiet
    for `delay_seconds`, the latest credential is applied and the models
    are fetched on the timer thread; results arrive through callbacks.
    """

    def __init__(
        self,
        cache: ModelDiscoveryCache,
        on_models: Callable[[List[ModelDescriptor]], None],
        on_error: Optional[Callable[[DiscoveryError], None]] = None,
        delay_seconds: float = 0.3,
    ):
        self.cache = cache
        self._on_models = on_models
        self._on_error = on_error
        self._pending: Optional[ProviderCredential] = None
        self._lock = threading.Lock()
        self._debouncer = Debouncer(delay_seconds, self._refresh)

    def credentials_edited(self, credential: ProviderCredential) -> None:
        with self._lock:
            self._pending = credential
        self._debouncer.trigger()

    def flush(self) -> None:
        """Apply a pending edit now instead of waiting for the timer."""
        self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def _refresh(self) -> None:
        with self._lock:
            credential, self._pending = self._pending, None
        if credential is None:
            return

        self.cache.update_credentials(credential)
        try:
            models = self.cache.list_text_capable_models()
        except DiscoveryError as e:
            if self._on_error:
                self._on_error(e)
            else:
                logger.warning(f"[model-discovery] Refresh failed: {e}")
            return
        self._on_models(models)


# =============================================================================
# Selection helpers
# =============================================================================

def _first(models: List[ModelDescriptor], *needles: str) -> Optional[ModelDescriptor]:
    for m in models:
        model_id = m.model_id.lower()
        if all(n in model_id for n in needles):
            return m
    return None


def _by_provider(models: List[ModelDescriptor], provider: str) -> List[ModelDescriptor]:
    return [m for m in models if m.provider_name.lower() == provider]


def recommended_models(models: List[ModelDescriptor]) -> Dict[str, Optional[ModelDescriptor]]:
    """
    Pick a model for each use-case category.

    Returns:
        Dict with keys highest_quality, fastest_response, cost_effective,
        most_powerful (None where nothing fits)
    """
    claude = _by_provider(models, "anthropic")
    llama = _by_provider(models, "meta")
    titan = _by_provider(models, "amazon")

    return {
        "highest_quality": (
            _first(claude, "sonnet", "v2") or _first(claude, "sonnet") or (claude[0] if claude else None)
        ),
        "fastest_response": (
            _first(claude, "haiku") or _first(titan, "express") or _first(llama, "8b")
        ),
        "cost_effective": (
            _first(llama, "11b") or (titan[0] if titan else None) or _first(claude, "haiku")
        ),
        "most_powerful": (
            _first(claude, "opus") or _first(llama, "405b") or _first(llama, "90b")
        ),
    }


def models_by_provider(models: List[ModelDescriptor]) -> Dict[str, List[ModelDescriptor]]:
    """Group models by provider name, each group sorted by display name."""
    groups: Dict[str, List[ModelDescriptor]] = {}
    for m in models:
        groups.setdefault(m.provider_name or "Unknown", []).append(m)
    return {name: sort_models(group) for name, group in sorted(groups.items())}
