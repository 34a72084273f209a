"""
Package Orchestrator

High-level package operations on top of WingetRunner and the output
parser: listing, update checks, search, details and lifecycle calls.

Lifecycle batches run sequentially, one process at a time, in selection
order. A failed or timed-out item is recorded and the batch continues;
only ProcessLaunchFailure aborts the whole batch.
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence, Union

from ..config import MAX_SEARCH_LIMIT, WizardConfig
from ..errors import ProcessTimeout, ValidationError
from ..models import (
    LIFECYCLE_SUCCESS_STATUS,
    STATUS_FAILED,
    STATUS_TIMEOUT,
    BatchResult,
    LifecycleKind,
    OperationOutcome,
    OperationResult,
    PackageDetails,
    PackageRecord,
    PackageSource,
    SearchResult,
)
from ..store.events import CancellationToken
from ..store.inventory import InventoryStore
from .parser import (
    parse_list_output,
    parse_search_output,
    parse_show_output,
    parse_upgrade_output,
)
from .runner import WingetRunner, validate_package_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

ACCEPT_SOURCE = "--accept-source-agreements"
ACCEPT_PACKAGE = "--accept-package-agreements"


class PackageOrchestrator:
    """
    Drives winget and translates its output into typed results.

    Usage:
        orchestrator = PackageOrchestrator(WizardConfig.load())
        updates = orchestrator.check_for_updates()
        batch = orchestrator.run_batch(LifecycleKind.UPGRADE, [u.id for u in updates])
    """

    def __init__(
        self,
        config: WizardConfig,
        runner: Optional[WingetRunner] = None,
        inventory: Optional[InventoryStore] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Configuration captured for the lifetime of this instance
            runner: Process runner (built from config if not given)
            inventory: Store refreshed by list/search operations
        """
        self.config = config
        self.runner = runner or WingetRunner(
            executable=config.winget_path,
            default_timeout=config.list_timeout_seconds,
        )
        self.inventory = inventory
        # winget is not safe for concurrent lifecycle calls
        self._lifecycle_lock = threading.Lock()

    # =========================================================================
    # Listing
    # =========================================================================

    def list_installed(self, source: Union[PackageSource, str, None] = None) -> List[PackageRecord]:
        """
        List installed packages (`winget list`).

        Raises:
            ProcessLaunchFailure: winget cannot be started
            ProcessTimeout: The listing exceeded its timeout
        """
        args = [*self._source_args(source), ACCEPT_SOURCE]
        result = self.runner.run("list", args, timeout=self.config.list_timeout_seconds)
        if not result.success:
            logger.warning(f"[winget] list exited with {result.returncode}, parsing partial output")

        records = parse_list_output(result.stdout)
        logger.info(f"[winget] Found {len(records)} installed packages")
        self._refresh_inventory(records)
        return records

    def check_for_updates(self, source: Union[PackageSource, str, None] = None) -> List[PackageRecord]:
        """
        List packages with an available upgrade (`winget upgrade`).

        Raises:
            ProcessLaunchFailure: winget cannot be started
            ProcessTimeout: The listing exceeded its timeout
        """
        args = [*self._source_args(source), ACCEPT_SOURCE]
        result = self.runner.run("upgrade", args, timeout=self.config.list_timeout_seconds)
        if not result.success:
            logger.warning(f"[winget] upgrade listing exited with {result.returncode}")

        records = parse_upgrade_output(result.stdout)
        logger.info(f"[winget] Found {len(records)} available upgrades")
        self._refresh_inventory(records)
        return records

    def search(
        self,
        term: str,
        source: Union[PackageSource, str, None] = None,
        limit: Optional[int] = None,
        exact: bool = False,
    ) -> List[SearchResult]:
        """
        Search the package catalog.

        The term is passed as one argv token; no shell is involved.

        Args:
            term: Free-text query
            source: Restrict to one source (default from config)
            limit: Maximum results (1..1000, default from config)
            exact: Exact match only

        Returns:
            At most `limit` results

        Raises:
            ValidationError: Empty term or limit out of range
        """
        if term is None or not term.strip():
            raise ValidationError("Search term cannot be empty")

        limit = self.config.search_limit if limit is None else limit
        if not 0 < limit <= MAX_SEARCH_LIMIT:
            raise ValidationError(f"Search limit must be between 1 and {MAX_SEARCH_LIMIT}")

        args = ["--query", term.strip(), *self._source_args(source), ACCEPT_SOURCE, "--count", str(limit)]
        if exact:
            args.append("--exact")

        result = self.runner.run("search", args, timeout=self.config.search_timeout_seconds)
        if not result.success:
            # winget exits non-zero when nothing matches
            logger.info(f"[winget] search exited with {result.returncode}")

        results = parse_search_output(result.stdout, limit=limit)
        logger.info(f"[winget] Search returned {len(results)} results")

        self._refresh_inventory([
            PackageRecord(name=r.name, id=r.id, available_version=r.version, source=r.source)
            for r in results
        ])
        return results

    def get_package_details(self, package_id: str) -> Optional[PackageDetails]:
        """
        Fetch `winget show` details for one package.

        Returns:
            PackageDetails, or None if winget does not know the id
        """
        package_id = validate_package_id(package_id)
        result = self.runner.run(
            "show",
            ["--id", package_id, "--exact", ACCEPT_SOURCE],
            timeout=self.config.search_timeout_seconds,
        )
        if not result.success:
            logger.info(f"[winget] No details for {package_id} (exit {result.returncode})")
            return None

        details = parse_show_output(result.stdout)
        if details is not None and not details.id:
            details.id = package_id
        return details

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def run_lifecycle(
        self,
        kind: Union[LifecycleKind, str],
        package_id: Optional[str] = None,
    ) -> OperationResult:
        """
        Run one lifecycle operation.

        Args:
            kind: install, upgrade, uninstall, repair or upgradeAll
            package_id: Target package (ignored for upgradeAll)

        Returns:
            OperationResult; non-zero exit and timeouts are results, not errors

        Raises:
            ValidationError: Invalid package id
            ProcessLaunchFailure: winget cannot be started
        """
        kind = LifecycleKind(kind)
        if kind is LifecycleKind.UPGRADE_ALL:
            package_id = None
            args = ["--all", ACCEPT_SOURCE, ACCEPT_PACKAGE, "--silent"]
        else:
            package_id = validate_package_id(package_id or "")
            args = self._lifecycle_args(kind, package_id)

        target = package_id or "all packages"
        logger.info(f"[winget] {kind.value} {target}")

        with self._lifecycle_lock:
            try:
                result = self.runner.run(
                    kind.verb, args, timeout=self.config.lifecycle_timeout_seconds
                )
            except ProcessTimeout as e:
                message = str(e)
                if e.output_tail:
                    message = f"{message}\n{e.output_tail[-self.config.output_tail_chars:]}"
                self._set_status(package_id, STATUS_TIMEOUT)
                return OperationResult(
                    success=False,
                    message=message,
                    outcome=OperationOutcome.TIMEOUT,
                    package_id=package_id,
                )

        tail = result.tail(self.config.output_tail_chars)
        if not result.success:
            logger.warning(f"[winget] {kind.value} {target} failed with exit code {result.returncode}")
            self._set_status(package_id, STATUS_FAILED)
            return OperationResult(
                success=False,
                message=tail or f"winget exited with code {result.returncode}",
                outcome=OperationOutcome.FAILED,
                package_id=package_id,
                exit_code=result.returncode,
            )

        self._set_status(package_id, LIFECYCLE_SUCCESS_STATUS[kind])
        return OperationResult(
            success=True,
            message=tail,
            outcome=OperationOutcome.SUCCESS,
            package_id=package_id,
            exit_code=result.returncode,
        )

    def upgrade_all(self) -> OperationResult:
        """Upgrade every package with an available update."""
        return self.run_lifecycle(LifecycleKind.UPGRADE_ALL)

    def run_batch(
        self,
        kind: Union[LifecycleKind, str],
        package_ids: Sequence[str],
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> BatchResult:
        """
        Run a lifecycle operation over a selection, one package at a time.

        Args:
            kind: Lifecycle operation
            package_ids: Selection, processed in order
            progress: Called with a message before each item
            cancel: Checked before each item; remaining items are reported cancelled

        Returns:
            BatchResult with one entry per requested id

        Raises:
            ProcessLaunchFailure: winget cannot be started (aborts the batch)
        """
        kind = LifecycleKind(kind)
        batch = BatchResult()
        total = len(package_ids)

        for index, package_id in enumerate(package_ids, start=1):
            if cancel is not None and cancel.is_cancelled:
                logger.info(f"[winget] Batch cancelled, skipping {total - index + 1} remaining items")
                batch.items.extend(OperationResult.cancelled(pid) for pid in package_ids[index - 1:])
                break

            message = f"{kind.value.capitalize()} {package_id} ({index}/{total})"
            if progress:
                progress(message)
            if self.inventory is not None:
                self.inventory.notify_progress(message, package_id)

            try:
                item = self.run_lifecycle(kind, package_id)
            except ValidationError as e:
                item = OperationResult(
                    success=False,
                    message=str(e),
                    outcome=OperationOutcome.FAILED,
                    package_id=package_id,
                )
            batch.items.append(item)

        logger.info(
            f"[winget] Batch {kind.value}: {batch.succeeded} succeeded, "
            f"{batch.failed} failed, {batch.cancelled} cancelled"
        )
        if self.inventory is not None:
            self.inventory.notify_batch_finished(batch.to_dict())
        return batch

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _lifecycle_args(kind: LifecycleKind, package_id: str) -> List[str]:
        if kind is LifecycleKind.UNINSTALL:
            return ["--id", package_id, "--silent"]
        return ["--id", package_id, ACCEPT_SOURCE, ACCEPT_PACKAGE, "--silent"]

    def _source_args(self, source: Union[PackageSource, str, None]) -> List[str]:
        value = source.value if isinstance(source, PackageSource) else (source or self.config.default_source)
        try:
            source = PackageSource(value)
        except ValueError:
            raise ValidationError(f"Unknown source: {value!r}") from None
        if source is PackageSource.ALL:
            return []
        return ["--source", source.value]

    def _refresh_inventory(self, records: List[PackageRecord]) -> None:
        if self.inventory is not None:
            self.inventory.replace(records)

    def _set_status(self, package_id: Optional[str], status: str) -> None:
        if self.inventory is not None and package_id:
            self.inventory.update_status(package_id, status)
