"""
AI Prompts Module

Prompt templates for the recommendation pipeline.
"""

from .recommendation import (
    FAILURE_MARKER,
    REQUIRED_SECTIONS,
    RESEARCH_SYSTEM_PROMPT,
    build_format_prompt,
    build_research_prompt,
)

__all__ = [
    "FAILURE_MARKER",
    "REQUIRED_SECTIONS",
    "RESEARCH_SYSTEM_PROMPT",
    "build_format_prompt",
    "build_research_prompt",
]
