"""
AI Recommendation Pipeline

Two-stage chain per package:

    Stage A (research): research provider -> free-text facts
    Stage B (format):   primary provider -> fixed-section report
                        on ProviderError, secondary provider once

A Stage A failure marks the item failed and skips Stage B. If every
format provider fails, the item's recommendation is FAILURE_MARKER.
Items are processed sequentially and one item's failure never aborts the
batch. The (record, recommendation) pairs go to the report writer only
after the whole batch has finished.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from ..credentials import (
    CredentialStore,
    ProviderCredential,
    ProviderKind,
    resolve_credential,
)
from ..errors import ProviderError, ValidationError
from ..models import STATUS_FAILED, STATUS_RESEARCHED, STATUS_RESEARCHING, BatchStatus, PackageRecord
from ..reporting import ReportWriter
from ..store.events import BackgroundWorker, CancellationToken
from ..store.inventory import InventoryStore
from .prompts import FAILURE_MARKER, build_format_prompt, build_research_prompt
from .providers.base import TextProvider
from .providers.registry import ProviderRegistry
from .settings import AIServicesSettings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class StageProvider:
    """A provider bound to a pipeline role with its token budget."""

    provider: TextProvider
    max_tokens: int

    @property
    def provider_id(self) -> str:
        return self.provider.provider_id


@dataclass
class RecommendationOutcome:
    """Per-item result of the pipeline."""

    package_id: str
    success: bool
    recommendation: str = ""
    provider_id: str = ""
    error: Optional[str] = None
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package_id": self.package_id,
            "success": self.success,
            "recommendation": self.recommendation,
            "provider_id": self.provider_id,
            "error": self.error,
            "cancelled": self.cancelled,
        }


@dataclass
class PipelineResult:
    """Per-item outcomes plus the pairs handed to the report writer."""

    items: List[RecommendationOutcome] = field(default_factory=list)
    pairs: List[Tuple[PackageRecord, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.success)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if not i.success and not i.cancelled)

    @property
    def cancelled(self) -> int:
        return sum(1 for i in self.items if i.cancelled)

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
            "items": [i.to_dict() for i in self.items],
        }


class AIRecommendationPipeline:
    """
    Research-then-format recommendation pipeline.

    Role assignment is fixed at construction. Build a new pipeline to pick
    up changed settings.
    """

    def __init__(
        self,
        research: StageProvider,
        format_chain: Sequence[StageProvider],
        inventory: Optional[InventoryStore] = None,
        report_writer: Optional[ReportWriter] = None,
    ):
        """
        Initialize pipeline.

        Args:
            research: Stage A provider
            format_chain: Stage B providers in fallback order (primary, secondary)
            inventory: Store that receives per-item updates
            report_writer: Receives all pairs after the batch
        """
        if not format_chain:
            raise ValidationError("At least one format provider is required")
        self.research = research
        self.format_chain: Tuple[StageProvider, ...] = tuple(format_chain)
        self.inventory = inventory
        self.report_writer = report_writer

    @classmethod
    def from_settings(
        cls,
        settings: AIServicesSettings,
        credential_store: CredentialStore,
        inventory: Optional[InventoryStore] = None,
        report_writer: Optional[ReportWriter] = None,
        session: Optional[requests.Session] = None,
    ) -> "AIRecommendationPipeline":
        """
        Build a pipeline from role settings and the credential store.

        Credentials are resolved once here; later credential edits do not
        affect this instance.

        Raises:
            ValidationError: A configured provider id is not registered
        """
        session = session or requests.Session()

        def bind(provider_id: str, max_tokens: int) -> StageProvider:
            credential = _resolve(credential_store, provider_id, settings)
            provider = ProviderRegistry.get(
                provider_id,
                credential,
                model=settings.model_for(provider_id),
                timeout=settings.http_timeout_seconds,
                session=session,
            )
            if provider is None:
                raise ValidationError(f"Unknown provider: {provider_id}")
            return StageProvider(provider=provider, max_tokens=max_tokens)

        research = bind(settings.research_provider, settings.research_max_tokens)
        chain = [bind(pid, settings.max_tokens_for(pid)) for pid in settings.get_format_order()]

        logger.info(
            f"[ai-service] Pipeline: research={research.provider_id}, "
            f"format chain: {' → '.join(s.provider_id for s in chain)}"
        )
        return cls(research, chain, inventory=inventory, report_writer=report_writer)

    # =========================================================================
    # Single item
    # =========================================================================

    def recommend(
        self,
        record: PackageRecord,
        progress: Optional[ProgressCallback] = None,
        position: str = "",
    ) -> RecommendationOutcome:
        """
        Run both stages for one package. Never raises ProviderError.

        Args:
            record: Package to analyze
            progress: Called before Stage A and before Stage B
            position: Suffix for progress messages, e.g. "(2/5)"

        Returns:
            RecommendationOutcome (recommendation is FAILURE_MARKER on failure)
        """
        suffix = f" {position}" if position else ""

        if progress:
            progress(f"Researching {record.name}{suffix}...")
        try:
            research_text = self.research.provider.generate_text(
                build_research_prompt(record), self.research.max_tokens
            )
        except ProviderError as e:
            logger.warning(
                f"[ai-service] Research failed for {record.id} "
                f"({self.research.provider_id}, reason: {e.kind}: {e.message})"
            )
            return RecommendationOutcome(
                package_id=record.id,
                success=False,
                recommendation=FAILURE_MARKER,
                provider_id=self.research.provider_id,
                error=f"Research failed: {e}",
            )

        if progress:
            progress(f"Formatting report for {record.name}{suffix}...")
        prompt = build_format_prompt(record, research_text)

        errors: List[str] = []
        for stage in self.format_chain:
            try:
                text = stage.provider.generate_text(prompt, stage.max_tokens)
            except ProviderError as e:
                errors.append(f"{stage.provider_id}: {e.kind}: {e.message}")
                logger.warning(
                    f"[ai-service] Fallback: {stage.provider_id} failed "
                    f"(reason: {e.kind}: {e.message}), trying next..."
                )
                continue

            logger.info(f"[ai-service] Recommendation for {record.id} by {stage.provider_id}")
            return RecommendationOutcome(
                package_id=record.id,
                success=True,
                recommendation=text,
                provider_id=stage.provider_id,
            )

        logger.error(f"[ai-service] All format providers failed for {record.id}")
        return RecommendationOutcome(
            package_id=record.id,
            success=False,
            recommendation=FAILURE_MARKER,
            error="; ".join(errors),
        )

    # =========================================================================
    # Batch
    # =========================================================================

    def run(
        self,
        records: Sequence[PackageRecord],
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """
        Process records one at a time, in order.

        Each record's `recommendation` field is updated in place (and in the
        inventory, if attached) as soon as the item completes.

        Args:
            records: Selected packages, in display order
            progress: Two calls per item (before research, before formatting)
            cancel: Checked before each item

        Returns:
            PipelineResult
        """
        result = PipelineResult()
        total = len(records)

        def report(message: str) -> None:
            if progress:
                progress(message)
            if self.inventory is not None:
                self.inventory.notify_progress(message)

        if self.inventory is not None:
            self.inventory.begin_research_cycle([r.id for r in records])

        for index, record in enumerate(records, start=1):
            if cancel is not None and cancel.is_cancelled:
                logger.info(f"[ai-service] Batch cancelled, {total - index + 1} items skipped")
                result.items.extend(
                    RecommendationOutcome(package_id=r.id, success=False, cancelled=True, error="Cancelled")
                    for r in records[index - 1:]
                )
                break

            self._set_status(record.id, STATUS_RESEARCHING)
            outcome = self.recommend(record, progress=report, position=f"({index}/{total})")

            record.recommendation = outcome.recommendation
            if self.inventory is not None:
                self.inventory.set_recommendation(record.id, outcome.recommendation)
            self._set_status(record.id, STATUS_RESEARCHED if outcome.success else STATUS_FAILED)

            result.items.append(outcome)
            result.pairs.append((record.copy(), outcome.recommendation))

        logger.info(
            f"[ai-service] Batch finished: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.cancelled} cancelled"
        )

        if self.report_writer is not None and result.pairs:
            self.report_writer.write(result.pairs)
        if self.inventory is not None:
            self.inventory.notify_batch_finished(result.to_dict())

        return result

    def submit(
        self,
        worker: BackgroundWorker,
        records: Sequence[PackageRecord],
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Future:
        """Run the batch on a background worker."""
        return worker.submit(self.run, records, progress, cancel)

    def _set_status(self, package_id: str, status: str) -> None:
        if self.inventory is not None:
            self.inventory.update_status(package_id, status)


def _resolve(store: CredentialStore, provider_id: str, settings: AIServicesSettings) -> ProviderCredential:
    try:
        kind = ProviderKind(provider_id)
    except ValueError:
        raise ValidationError(f"Unknown provider: {provider_id}") from None

    return resolve_credential(store, kind, default_region=settings.aws_region)
