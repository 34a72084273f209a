"""
Report Writers

Receivers of the final (record, recommendation) pairs of an AI batch.
Persisting reports to files is the presentation layer's concern; the
writers here keep them in memory or print them.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .models import PackageRecord

logger = logging.getLogger(__name__)

ReportPair = Tuple[PackageRecord, str]


class ReportWriter(Protocol):
    """Report-writer collaborator contract."""

    def write(self, pairs: Sequence[ReportPair]) -> None: ...


class InMemoryReportWriter:
    """Keeps every handed-off batch, oldest first."""

    def __init__(self):
        self.batches: List[List[ReportPair]] = []
        self._lock = threading.Lock()

    def write(self, pairs: Sequence[ReportPair]) -> None:
        with self._lock:
            self.batches.append(list(pairs))
        logger.debug(f"[report] Stored batch of {len(pairs)} reports")

    @property
    def last(self) -> List[ReportPair]:
        with self._lock:
            return list(self.batches[-1]) if self.batches else []


def render_markdown(pairs: Sequence[ReportPair], generated_at: Optional[datetime] = None) -> str:
    """
    Render a batch as one markdown document.

    Args:
        pairs: (record, recommendation) pairs in batch order
        generated_at: Timestamp for the header (defaults to now)

    Returns:
        Markdown text
    """
    generated_at = generated_at or datetime.now()
    lines = [
        "# WingetWizard Upgrade Recommendations",
        "",
        f"Generated: {generated_at:%Y-%m-%d %H:%M:%S}",
        f"Packages analyzed: {len(pairs)}",
        "",
    ]
    for record, text in pairs:
        lines.extend([
            "---",
            "",
            f"## {record.name} ({record.id})",
            "",
            f"- Installed: `{record.installed_version or 'Unknown'}`",
            f"- Available: `{record.available_version or 'Unknown'}`",
            "",
            text.strip(),
            "",
        ])
    return "\n".join(lines)


class ConsoleReportWriter:
    """Prints each batch as markdown through the given echo function."""

    def __init__(self, echo: Callable[[str], None] = print):
        self._echo = echo

    def write(self, pairs: Sequence[ReportPair]) -> None:
        self._echo(render_markdown(pairs))
