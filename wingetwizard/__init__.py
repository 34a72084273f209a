"""
WingetWizard

Orchestration core for a winget front end: package listing and lifecycle
operations, a shared inventory, and AI-generated upgrade recommendations.
"""

__version__ = "2.1.0"
