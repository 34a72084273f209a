"""
WingetWizard Data Models

Typed records produced by the package orchestrator and consumed by the
inventory store, the AI pipeline and the report writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enums
# =============================================================================

class PackageSource(str, Enum):
    """Package sources understood by winget."""
    WINGET = "winget"
    MSSTORE = "msstore"
    ALL = "all"


KNOWN_SOURCES = {PackageSource.WINGET.value, PackageSource.MSSTORE.value}


class LifecycleKind(str, Enum):
    """Lifecycle operations that map onto a winget verb."""
    INSTALL = "install"
    UPGRADE = "upgrade"
    UNINSTALL = "uninstall"
    REPAIR = "repair"
    UPGRADE_ALL = "upgradeAll"

    @property
    def verb(self) -> str:
        if self is LifecycleKind.UPGRADE_ALL:
            return "upgrade"
        return self.value


class OperationOutcome(str, Enum):
    """How a single lifecycle call ended."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class BatchStatus(str, Enum):
    """Aggregate status of a batch."""
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
    EMPTY = "empty"


# Status strings written into PackageRecord.status
STATUS_UPGRADED = "Upgraded"
STATUS_INSTALLED = "Installed"
STATUS_UNINSTALLED = "Uninstalled"
STATUS_REPAIRED = "Repaired"
STATUS_FAILED = "Failed"
STATUS_TIMEOUT = "Timed out"
STATUS_RESEARCHING = "Researching"
STATUS_RESEARCHED = "Researched"

LIFECYCLE_SUCCESS_STATUS = {
    LifecycleKind.INSTALL: STATUS_INSTALLED,
    LifecycleKind.UPGRADE: STATUS_UPGRADED,
    LifecycleKind.UPGRADE_ALL: STATUS_UPGRADED,
    LifecycleKind.UNINSTALL: STATUS_UNINSTALLED,
    LifecycleKind.REPAIR: STATUS_REPAIRED,
}


# =============================================================================
# Package records
# =============================================================================

@dataclass
class PackageRecord:
    """One installed or upgradable application in an inventory snapshot."""

    name: str
    id: str
    installed_version: str = ""
    available_version: str = ""
    source: str = ""
    status: str = ""
    recommendation: str = ""

    @property
    def has_update(self) -> bool:
        return bool(self.available_version) and self.available_version != self.installed_version

    def copy(self) -> "PackageRecord":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "id": self.id,
            "installed_version": self.installed_version,
            "available_version": self.available_version,
            "source": self.source,
            "status": self.status,
            "recommendation": self.recommendation,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.id}) - {self.installed_version} -> {self.available_version}"


@dataclass(frozen=True)
class SearchResult:
    """A row from `winget search`. Transient, never stored."""

    name: str
    id: str
    version: str = "Unknown"
    source: str = "winget"
    match: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "version": self.version,
            "source": self.source,
            "match": self.match,
        }


@dataclass
class PackageDetails:
    """Parsed `winget show` output."""

    name: str = ""
    id: str = ""
    version: str = ""
    publisher: str = ""
    description: str = ""
    homepage: str = ""
    license: str = ""
    tags: List[str] = field(default_factory=list)
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "version": self.version,
            "publisher": self.publisher,
            "description": self.description,
            "homepage": self.homepage,
            "license": self.license,
            "tags": list(self.tags),
            "source": self.source,
        }


# =============================================================================
# Operation results
# =============================================================================

@dataclass
class OperationResult:
    """Result of one lifecycle call."""

    success: bool
    message: str = ""
    outcome: OperationOutcome = OperationOutcome.SUCCESS
    package_id: Optional[str] = None
    exit_code: Optional[int] = None

    @classmethod
    def cancelled(cls, package_id: Optional[str]) -> "OperationResult":
        return cls(
            success=False,
            message="Cancelled before start",
            outcome=OperationOutcome.CANCELLED,
            package_id=package_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "outcome": self.outcome.value,
            "package_id": self.package_id,
            "exit_code": self.exit_code,
        }


@dataclass
class BatchResult:
    """Per-item results of a batch plus aggregate counts."""

    items: List[OperationResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.items if r.outcome == OperationOutcome.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(
            1 for r in self.items
            if r.outcome in (OperationOutcome.FAILED, OperationOutcome.TIMEOUT)
        )

    @property
    def cancelled(self) -> int:
        return sum(1 for r in self.items if r.outcome == OperationOutcome.CANCELLED)

    @property
    def status(self) -> BatchStatus:
        if not self.items:
            return BatchStatus.EMPTY
        if self.succeeded == len(self.items):
            return BatchStatus.SUCCESS
        if self.succeeded == 0:
            return BatchStatus.FAILED
        return BatchStatus.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "items": [r.to_dict() for r in self.items],
        }


# =============================================================================
# AI models
# =============================================================================

@dataclass(frozen=True)
class ModelDescriptor:
    """A selectable model offered by a provider/region."""

    model_id: str
    model_name: str
    provider_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "model_name": self.model_name,
            "provider_name": self.provider_name,
        }
