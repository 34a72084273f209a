#!/usr/bin/env python3
"""
Entry point for running WingetWizard as a module.

Usage:
    python -m wingetwizard <command> [options]
"""

from .cli import app

if __name__ == "__main__":
    app()
