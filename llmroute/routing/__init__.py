"""Model selection: task classification, catalog, segmentation and routing.

The router picks one concrete model per request from a static catalog,
biased by a keyword task classifier and gated by the caller's tier, and
splits prompts that exceed the chosen model's context budget.
"""

from __future__ import annotations

from llmroute.routing.catalog import DEFAULT_MODELS, ModelCatalog, ModelSpec, Tier, tier_allows
from llmroute.routing.classifier import TaskType, classify
from llmroute.routing.router import ModelRouter, RoutingDecision
from llmroute.routing.segmenter import segment

__all__ = [
    "DEFAULT_MODELS",
    "ModelCatalog",
    "ModelRouter",
    "ModelSpec",
    "RoutingDecision",
    "TaskType",
    "Tier",
    "classify",
    "segment",
    "tier_allows",
]
