"""
Winget Output Parser

Turns the semi-structured text winget prints into typed records.

Table output format:
    Name             Id              Version     Available   Source
    ----------------------------------------------------------------
    Git              Git.Git         2.40.0      2.45.1      winget

Rows are split on runs of two or more whitespace characters; a row that
cannot be split that way is re-read right-to-left on single whitespace.
Any row that still fails raises ParseFailure internally and is skipped,
so partially parseable output yields every row that did parse.
"""

import logging
import re
from typing import Callable, Iterator, List, Optional, TypeVar

from ..errors import ParseFailure
from ..models import KNOWN_SOURCES, PackageDetails, PackageRecord, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ANSI_RE = re.compile(r"\x1B\[[0-9;?]*[A-Za-z]")
_PROGRESS_CHARS_RE = re.compile(r"[█▒░■]")
_COLUMN_SPLIT_RE = re.compile(r"\s{2,}")
_SPINNER_TOKENS = {"-", "\\", "|", "/"}
_VERSION_LIKE_RE = re.compile(r"^(?:[<>]?\d[\w.\-+]*|Unknown)$")
_FOUND_RE = re.compile(r"^Found\s+(?P<name>.+?)\s+\[(?P<id>[^\]]+)\]\s*$")
_KEY_VALUE_RE = re.compile(r"^(?P<key>[A-Za-z][A-Za-z ]*?):\s*(?P<value>.*)$")


# =============================================================================
# Cleaning
# =============================================================================

def clean_output(output: str) -> List[str]:
    """
    Remove terminal noise from winget output.

    Strips ANSI escapes, keeps only the final state of carriage-return
    overwritten lines, and drops spinner and progress-bar lines.

    Args:
        output: Raw stdout

    Returns:
        Cleaned, non-empty lines (right-stripped)
    """
    if not output:
        return []

    text = _ANSI_RE.sub("", output).replace("\ufeff", "")
    lines: List[str] = []
    for raw_line in text.split("\n"):
        line = raw_line.rsplit("\r", 1)[-1] if "\r" in raw_line else raw_line
        # A trailing \r leaves an empty final segment
        if not line.strip() and "\r" in raw_line:
            segments = [s for s in raw_line.split("\r") if s.strip()]
            line = segments[-1] if segments else ""
        stripped = line.strip()
        if not stripped:
            continue
        if stripped in _SPINNER_TOKENS:
            continue
        if _PROGRESS_CHARS_RE.search(stripped):
            continue
        lines.append(line.rstrip())
    return lines


def is_header_line(line: str) -> bool:
    """Check whether a line is a table header (Name / Id / Version)."""
    tokens = line.split()
    return bool(tokens) and tokens[0] == "Name" and "Id" in tokens and "Version" in tokens


def is_separator_line(line: str) -> bool:
    """Check whether a line is the dashed separator under a header."""
    stripped = line.strip()
    return len(stripped) >= 3 and set(stripped) <= {"-", " "}


def iter_table_rows(lines: List[str]) -> Iterator[str]:
    """
    Yield data rows of every table found in the cleaned lines.

    Rows before the first header are ignored. A new header starts a new table.
    """
    in_table = False
    for line in lines:
        if is_header_line(line):
            in_table = True
            continue
        if not in_table or is_separator_line(line):
            continue
        yield line.strip()


def _parse_rows(output: str, parse_row: Callable[[str], T], label: str) -> List[T]:
    results: List[T] = []
    skipped = 0
    for row in iter_table_rows(clean_output(output)):
        try:
            results.append(parse_row(row))
        except ParseFailure as e:
            skipped += 1
            logger.debug(f"[winget] Skipping {label} row: {e}")

    if skipped:
        logger.info(f"[winget] Parsed {len(results)} {label} rows, skipped {skipped}")
    return results


# =============================================================================
# Column handling
# =============================================================================

def split_columns(row: str) -> List[str]:
    """Split a row on runs of two or more whitespace characters."""
    return [part.strip() for part in _COLUMN_SPLIT_RE.split(row.strip()) if part.strip()]


def _is_version_like(token: str) -> bool:
    return bool(_VERSION_LIKE_RE.match(token))


def _looks_like_id(token: str) -> bool:
    return (
        " " not in token
        and not _is_version_like(token)
        and ("." in token or "\\" in token or token.isalnum())
    )


def _pop_source(parts: List[str], minimum_remaining: int) -> str:
    if len(parts) > minimum_remaining and parts[-1].lower() in KNOWN_SOURCES:
        return parts.pop().lower()
    return ""


def _recover_id_column(parts: List[str]) -> List[str]:
    """
    Re-join a name that contained a double space.

    When the second column does not look like a package id but a later one
    does, everything before that later column is the name.
    """
    if len(parts) < 4 or "." in parts[1] or "\\" in parts[1]:
        return parts
    for index in range(2, len(parts) - 1):
        if "." in parts[index] and _looks_like_id(parts[index]):
            return [" ".join(parts[:index])] + parts[index:]
    return parts


def _split_right_to_left(row: str, max_versions: int) -> List[str]:
    """
    Fallback for rows whose columns are separated by single spaces.

    Reads source, up to `max_versions` version tokens and the id from the
    right; the rest is the name.
    """
    tokens = row.split()
    tail: List[str] = []
    if tokens and tokens[-1].lower() in KNOWN_SOURCES:
        tail.insert(0, tokens.pop())

    versions: List[str] = []
    while tokens and len(versions) < max_versions and _is_version_like(tokens[-1]):
        versions.insert(0, tokens.pop())

    if not versions or len(tokens) < 2 or not _looks_like_id(tokens[-1]):
        raise ParseFailure(row, "Unrecognized row layout")

    package_id = tokens.pop()
    return [" ".join(tokens), package_id] + versions + tail


def _columns(row: str, max_versions: int) -> List[str]:
    parts = split_columns(row)
    if len(parts) >= 3:
        return _recover_id_column(parts)
    return _split_right_to_left(row, max_versions)


# =============================================================================
# Row parsers
# =============================================================================

def parse_package_row(row: str, require_available: bool = False) -> PackageRecord:
    """
    Parse one `winget list` / `winget upgrade` row.

    Args:
        row: Data row
        require_available: Reject rows without an available version

    Returns:
        PackageRecord

    Raises:
        ParseFailure: If the row cannot be interpreted
    """
    parts = _columns(row, max_versions=2)
    source = _pop_source(parts, minimum_remaining=3)

    if len(parts) < 3:
        raise ParseFailure(row, "Expected at least Name, Id and Version")
    if len(parts) > 4:
        # Extra columns after Available are not part of the contract
        parts = parts[:4]

    name, package_id, version = parts[0], parts[1], parts[2]
    available = parts[3] if len(parts) == 4 else ""

    if available.lower() in KNOWN_SOURCES:
        source, available = available.lower(), ""

    if not name or not package_id or " " in package_id:
        raise ParseFailure(row, "Missing name or malformed id")
    if require_available and not available:
        raise ParseFailure(row, "No available version")

    return PackageRecord(
        name=name,
        id=package_id,
        installed_version=version,
        available_version=available,
        source=source,
    )


def parse_search_row(row: str) -> SearchResult:
    """
    Parse one `winget search` row (Name, Id, Version, Match, Source).

    Raises:
        ParseFailure: If the row cannot be interpreted
    """
    parts = _columns(row, max_versions=1)
    source = _pop_source(parts, minimum_remaining=2)

    if len(parts) < 3:
        raise ParseFailure(row, "Expected at least Name, Id and Version")

    name, package_id, version = parts[0], parts[1], parts[2]
    match = parts[3] if len(parts) > 3 else ""

    if not name or not package_id or " " in package_id:
        raise ParseFailure(row, "Missing name or malformed id")

    return SearchResult(
        name=name,
        id=package_id,
        version=version or "Unknown",
        source=source or "winget",
        match=match,
    )


# =============================================================================
# Whole-output parsers
# =============================================================================

def parse_list_output(output: str) -> List[PackageRecord]:
    """Parse `winget list` output. Empty or header-less output yields []."""
    return _parse_rows(output, parse_package_row, "list")


def parse_upgrade_output(output: str) -> List[PackageRecord]:
    """Parse `winget upgrade` output, keeping only rows with an available version."""
    return _parse_rows(
        output,
        lambda row: parse_package_row(row, require_available=True),
        "upgrade",
    )


def parse_search_output(output: str, limit: Optional[int] = None) -> List[SearchResult]:
    """
    Parse `winget search` output.

    Args:
        output: Raw stdout
        limit: Maximum number of results to return

    Returns:
        At most `limit` results, in output order
    """
    results = _parse_rows(output, parse_search_row, "search")
    if limit is not None and limit >= 0:
        return results[:limit]
    return results


def parse_show_output(output: str) -> Optional[PackageDetails]:
    """
    Parse `winget show` output.

    Output format:
        Found Git [Git.Git]
        Version: 2.45.1
        Publisher: The Git Development Community
        Description: Git for Windows ...
        Tags:
          bash
          vcs

    Returns:
        PackageDetails, or None when no package header was found
    """
    details = PackageDetails()
    found = False
    current_key: Optional[str] = None

    for line in clean_output(output):
        stripped = line.strip()
        match = _FOUND_RE.match(stripped)
        if match:
            details.name = match.group("name")
            details.id = match.group("id")
            found = True
            current_key = None
            continue

        indented = line[:1].isspace()
        kv = None if indented else _KEY_VALUE_RE.match(stripped)
        if kv:
            current_key = kv.group("key").lower()
            value = kv.group("value").strip()
            _assign_show_field(details, current_key, value)
            continue

        if indented and current_key == "tags":
            details.tags.append(stripped)
        elif indented and current_key == "description":
            details.description = f"{details.description} {stripped}".strip()

    if not found and not details.name:
        return None
    return details


def _assign_show_field(details: PackageDetails, key: str, value: str) -> None:
    if key == "version":
        details.version = value
    elif key == "publisher":
        details.publisher = value
    elif key == "description":
        details.description = value
    elif key == "homepage":
        details.homepage = value
    elif key == "license":
        details.license = value
    elif key == "tags" and value:
        details.tags.extend(t.strip() for t in value.split(",") if t.strip())
    elif key == "source":
        details.source = value
