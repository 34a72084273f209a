"""
AI Services Module

Two-stage upgrade recommendation pipeline, provider adapters and model
discovery.
"""

from .discovery import (
    DebouncedModelRefresher,
    ModelDiscoveryCache,
    models_by_provider,
    recommended_models,
)
from .pipeline import AIRecommendationPipeline, PipelineResult, RecommendationOutcome, StageProvider
from .prompts import FAILURE_MARKER
from .providers import ProviderRegistry, TextProvider
from .settings import AIServicesSettings, validate_ai_configuration

__all__ = [
    "AIRecommendationPipeline",
    "AIServicesSettings",
    "DebouncedModelRefresher",
    "FAILURE_MARKER",
    "ModelDiscoveryCache",
    "PipelineResult",
    "ProviderRegistry",
    "RecommendationOutcome",
    "StageProvider",
    "TextProvider",
    "models_by_provider",
    "recommended_models",
    "validate_ai_configuration",
]
