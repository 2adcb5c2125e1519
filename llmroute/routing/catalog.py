"""Static model catalog.

Every model belongs to exactly one provider and one tier. Callers carry a
subscription tier from the same scale; a caller may use any model whose
tier is at or below their own:

    free        -> free
    pro         -> free, pro
    enterprise  -> free, pro, enterprise

The catalog is built once at start-up and never mutated, so concurrent
reads need no synchronization.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from llmroute.routing.classifier import TaskType

log = structlog.get_logger(__name__)


class Tier(StrEnum):
    """Subscription / model capability tier."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @property
    def level(self) -> int:
        return _TIER_LEVEL[self]


_TIER_LEVEL = {Tier.FREE: 1, Tier.PRO: 2, Tier.ENTERPRISE: 3}


def tier_allows(caller_tier: Tier, model_tier: Tier) -> bool:
    """True if a caller on ``caller_tier`` may use a ``model_tier`` model."""
    return model_tier.level <= caller_tier.level


@dataclass(frozen=True)
class ModelSpec:
    """A routable model.

    Attributes:
        id: Catalog identifier, also the provider-side model name
        name: Display name
        provider: Lower-case provider key (openai, anthropic, google, mistral)
        tier: Minimum subscription tier required
        max_tokens: Context window in tokens
        capabilities: Task types this model is suited for
    """

    id: str
    name: str
    provider: str
    tier: Tier
    max_tokens: int
    capabilities: frozenset[TaskType] = field(default_factory=frozenset)
    description: str = ""

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not self.provider:
            raise ValueError("provider is required")


_ALL_TASKS = frozenset(TaskType)

DEFAULT_MODELS: tuple[ModelSpec, ...] = (
    ModelSpec(
        id="gpt-3.5-turbo",
        name="ChatGPT 3.5",
        provider="openai",
        tier=Tier.FREE,
        max_tokens=4096,
        capabilities=frozenset({TaskType.GENERAL, TaskType.CODE, TaskType.CREATIVE}),
        description="Fast and cost-effective model for general tasks and coding assistance",
    ),
    ModelSpec(
        id="claude-3-haiku",
        name="Claude 3 Haiku",
        provider="anthropic",
        tier=Tier.FREE,
        max_tokens=100_000,
        capabilities=frozenset({TaskType.GENERAL, TaskType.MATH, TaskType.CREATIVE}),
        description="Fast, compact, and cost-effective model for general tasks",
    ),
    ModelSpec(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        tier=Tier.PRO,
        max_tokens=8192,
        capabilities=_ALL_TASKS,
        description="Advanced model with strong reasoning and creative capabilities",
    ),
    ModelSpec(
        id="claude-3-sonnet",
        name="Claude 3 Sonnet",
        provider="anthropic",
        tier=Tier.PRO,
        max_tokens=200_000,
        capabilities=_ALL_TASKS,
        description="Ideal balance of intelligence and speed for most tasks",
    ),
    ModelSpec(
        id="gemini-pro",
        name="Gemini Pro",
        provider="google",
        tier=Tier.PRO,
        max_tokens=30_000,
        capabilities=_ALL_TASKS,
        description="Google's multimodal model with strong reasoning capabilities",
    ),
    ModelSpec(
        id="mistral-large",
        name="Mistral Large",
        provider="mistral",
        tier=Tier.PRO,
        max_tokens=32_000,
        capabilities=frozenset({TaskType.GENERAL, TaskType.CODE, TaskType.MATH}),
        description="High-performance model with strong reasoning capabilities",
    ),
    ModelSpec(
        id="claude-3-opus",
        name="Claude 3 Opus",
        provider="anthropic",
        tier=Tier.ENTERPRISE,
        max_tokens=200_000,
        capabilities=_ALL_TASKS,
        description="Most powerful model for complex reasoning and analysis",
    ),
)


class ModelCatalog:
    """Read-only registry of routable models.

    Args:
        models: Model definitions, in declaration order
        enabled_providers: If given, models of any other provider are hidden
            from every lookup (no credentials, no adapter).
    """

    def __init__(
        self,
        models: Iterable[ModelSpec] = DEFAULT_MODELS,
        enabled_providers: Iterable[str] | None = None,
    ) -> None:
        models = tuple(models)
        ids = [m.id for m in models]
        if len(ids) != len(set(ids)):
            raise ValueError("model ids must be unique")

        if enabled_providers is not None:
            enabled = {p.lower() for p in enabled_providers}
            models = tuple(m for m in models if m.provider.lower() in enabled)

        # Declaration order is the final tie-breaker, so keep it in the key
        order = {m.id: i for i, m in enumerate(models)}
        self._ranked: tuple[ModelSpec, ...] = tuple(
            sorted(models, key=lambda m: (-m.tier.level, -m.max_tokens, order[m.id]))
        )
        self._by_id = {m.id: m for m in models}

        log.info(
            "catalog.loaded",
            model_count=len(self._ranked),
            providers=sorted({m.provider for m in self._ranked}),
        )

    def __len__(self) -> int:
        return len(self._ranked)

    def model_by_id(self, model_id: str) -> ModelSpec | None:
        return self._by_id.get(model_id)

    def available_models(self, tier: Tier) -> list[ModelSpec]:
        """All models a caller on ``tier`` may use, most capable first."""
        return [m for m in self._ranked if tier_allows(tier, m.tier)]

    def models_for_task(self, task: TaskType, tier: Tier) -> list[ModelSpec]:
        """Tier-eligible models tagged for ``task``, most capable first.

        Returns an empty list when nothing qualifies.
        """
        return [m for m in self.available_models(tier) if task in m.capabilities]
