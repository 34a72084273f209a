"""Package manager process layer: runner, output parser and orchestrator."""

from .parser import (
    clean_output,
    parse_list_output,
    parse_search_output,
    parse_show_output,
    parse_upgrade_output,
)
from .runner import CommandResult, WingetRunner, validate_package_id
from .service import PackageOrchestrator

__all__ = [
    "CommandResult",
    "PackageOrchestrator",
    "WingetRunner",
    "clean_output",
    "parse_list_output",
    "parse_search_output",
    "parse_show_output",
    "parse_upgrade_output",
    "validate_package_id",
]
