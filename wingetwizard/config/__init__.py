"""Configuration module for WingetWizard."""

from .settings import MAX_SEARCH_LIMIT, WizardConfig

__all__ = [
    "MAX_SEARCH_LIMIT",
    "WizardConfig",
]
