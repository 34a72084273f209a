"""
WingetWizard Errors

Failure taxonomy shared by the package orchestrator, the AI pipeline and
model discovery.

- Fatal: ProcessLaunchFailure (the tool cannot be started at all)
- Per call: ProcessTimeout, ProviderError subclasses
- Per row: ParseFailure (never escapes the parser)
- Before any external call: ValidationError
"""


class WizardError(Exception):
    """Base exception for all WingetWizard errors."""
    pass


class ValidationError(WizardError):
    """Input rejected before any external call was made."""
    pass


# =============================================================================
# Process errors
# =============================================================================

class ProcessLaunchFailure(WizardError):
    """The package manager executable is missing or cannot be executed."""

    def __init__(self, executable: str, reason: str):
        super().__init__(f"Cannot launch '{executable}': {reason}")
        self.executable = executable
        self.reason = reason


class ProcessTimeout(WizardError):
    """A package manager call exceeded its timeout and was killed."""

    def __init__(self, command: str, timeout: float, output_tail: str = ""):
        super().__init__(f"'{command}' timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout
        self.output_tail = output_tail


class ParseFailure(WizardError):
    """A single row of tool output could not be parsed."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


# =============================================================================
# Provider errors
# =============================================================================

class ProviderError(WizardError):
    """An AI provider call failed. Triggers the single fallback attempt."""

    kind = "provider_error"

    def __init__(self, provider_id: str, message: str, status_code: int = 0):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Credentials rejected (401/402/403) or not configured."""

    kind = "auth"


class ProviderRateLimited(ProviderError):
    """Provider is throttling (429) or overloaded (529)."""

    kind = "rate_limited"


class ProviderNetworkError(ProviderError):
    """Connection failure, request timeout or 5xx."""

    kind = "network"


class ProviderInvalidResponse(ProviderError):
    """Response body could not be interpreted."""

    kind = "invalid_response"


# =============================================================================
# Model discovery errors
# =============================================================================

class DiscoveryError(WizardError):
    """Base class for model discovery failures."""
    pass


class AuthenticationFailure(DiscoveryError):
    """The model-list API rejected the credentials."""
    pass


class NoModelsInRegion(DiscoveryError):
    """The query succeeded but returned no text-capable models."""

    def __init__(self, provider_kind: str, region: str):
        super().__init__(f"No text-capable {provider_kind} models available in {region or 'default region'}")
        self.provider_kind = provider_kind
        self.region = region


class NetworkFailure(DiscoveryError):
    """The model-list API could not be reached."""
    pass


class InvalidModelListResponse(NetworkFailure):
    """
    Something answered, but not with a usable model list.

    Typically a proxy or captive portal returning HTML. Counts as "couldn't
    ask", so it is a NetworkFailure.
    """
    pass
