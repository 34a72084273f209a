"""
Abstract Base Provider

Defines the interface that all text-generation providers implement, plus
the shared HTTP helper that maps transport and status failures onto the
ProviderError taxonomy.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from ...credentials import ProviderCredential, Readiness, provider_readiness
from ...errors import (
    ProviderAuthError,
    ProviderError,
    ProviderInvalidResponse,
    ProviderNetworkError,
    ProviderRateLimited,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60

_AUTH_STATUSES = {401, 402, 403}
_RATE_LIMIT_STATUSES = {429, 529}


@dataclass
class ProviderStatus:
    """Readiness information about a configured provider."""

    provider_id: str
    available: bool
    model: str = ""
    missing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider_id": self.provider_id,
            "available": self.available,
            "model": self.model,
            "missing": self.missing,
            "warnings": self.warnings,
            "error": self.error,
        }


def _error_detail(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()[:200]

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:200]
        if isinstance(error, str):
            return error[:200]
        for key in ("message", "Message", "detail"):
            if data.get(key):
                return str(data[key])[:200]
    return str(data)[:200]


def classify_http_error(provider_id: str, response: requests.Response) -> ProviderError:
    """
    Map an HTTP error response to a ProviderError subclass.

    401/402/403 -> auth, 429/529 -> rate limited, 5xx -> network,
    anything else -> invalid response.
    """
    status = response.status_code
    detail = _error_detail(response)
    message = f"HTTP {status}: {detail}" if detail else f"HTTP {status}"

    if status in _AUTH_STATUSES:
        return ProviderAuthError(provider_id, message, status)
    if status in _RATE_LIMIT_STATUSES:
        return ProviderRateLimited(provider_id, message, status)
    if status >= 500:
        return ProviderNetworkError(provider_id, message, status)
    return ProviderInvalidResponse(provider_id, message, status)


def send_request(
    session: requests.Session,
    method: str,
    url: str,
    provider_id: str,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> Any:
    """
    Send an HTTP request and return the decoded JSON body.

    Args:
        session: requests session
        method: HTTP method
        url: Full URL
        provider_id: Used in error messages and logs
        timeout: Per-request timeout in seconds
        **kwargs: Passed to session.request (headers, json, data, params)

    Returns:
        Decoded JSON

    Raises:
        ProviderError: Classified failure
    """
    start_time = time.time()
    try:
        response = session.request(method, url, timeout=timeout, **kwargs)
    except requests.Timeout as e:
        raise ProviderNetworkError(provider_id, f"Request timed out after {timeout}s") from e
    except requests.RequestException as e:
        raise ProviderNetworkError(provider_id, f"Connection failed: {e}") from e

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.debug(f"[ai-service] {provider_id} {method} {url} -> {response.status_code} in {elapsed_ms}ms")

    if response.status_code >= 400:
        raise classify_http_error(provider_id, response)

    try:
        return response.json()
    except ValueError as e:
        raise ProviderInvalidResponse(
            provider_id, "Response is not valid JSON", response.status_code
        ) from e


class TextProvider(ABC):
    """Abstract base class for text-generation providers."""

    # Provider identifier (e.g., "perplexity", "anthropic", "bedrock")
    provider_id: str = ""
    default_model: str = ""

    def __init__(
        self,
        credential: ProviderCredential,
        model: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the provider.

        Args:
            credential: Resolved credentials, fixed for this instance
            model: Model identifier (provider default if empty)
            timeout: HTTP timeout in seconds
            session: Shared requests session
        """
        self.credential = credential
        self.model = model or self.default_model
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def generate_text(self, prompt: str, max_tokens: int) -> str:
        """
        Send a prompt and return the generated text.

        Args:
            prompt: Prompt text
            max_tokens: Upper bound on generated tokens

        Returns:
            Non-empty generated text

        Raises:
            ProviderError: Classified failure
        """
        pass

    def readiness(self) -> Readiness:
        return provider_readiness(self.credential)

    def detect_availability(self) -> ProviderStatus:
        """
        Check whether credentials are sufficient to call this provider.

        No network request is made.
        """
        readiness = self.readiness()
        return ProviderStatus(
            provider_id=self.provider_id,
            available=readiness.ready,
            model=self.model,
            missing=readiness.missing,
            warnings=readiness.warnings,
            error=None if readiness.ready else f"Missing: {', '.join(readiness.missing)}",
        )

    def _require_ready(self) -> None:
        readiness = self.readiness()
        if not readiness.ready:
            raise ProviderAuthError(
                self.provider_id, f"Not configured (missing {', '.join(readiness.missing)})"
            )

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Any:
        return send_request(
            self.session, "POST", url, self.provider_id,
            timeout=self.timeout, json=payload, headers=headers,
        )

    def _non_empty(self, text: Any) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ProviderInvalidResponse(self.provider_id, "Response contained no text")
        return text.strip()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
