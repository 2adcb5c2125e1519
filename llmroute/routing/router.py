"""Model router - picks a concrete model and decides on segmentation.

Selection priority:
1. Caller's explicit model preference. Must exist in the catalog and be
   allowed for the caller's tier; otherwise the request is rejected.
2. Task classification of the prompt, then the most capable tier-eligible
   model tagged for that task.

Once a model is chosen, the prompt's estimated size is compared with the
model's prompt budget (context size minus the completion reserve). A
prompt over budget is split by the segmenter into chunks that each fit;
otherwise the request runs single-shot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import structlog

from llmroute.config import Settings
from llmroute.errors import ModelNotFoundError, NoEligibleModelError, TierForbiddenError
from llmroute.routing.catalog import ModelCatalog, ModelSpec, Tier, tier_allows
from llmroute.routing.classifier import TaskType, classify
from llmroute.routing.segmenter import segment
from llmroute.routing.tokens import estimate_tokens

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing one request. Consumed immediately, never stored.

    Attributes:
        selected_model: Model every segment is sent to
        segmented_prompts: Ordered prompt chunks, or None for single-shot
        task_type: Classified task (also set when a preference was given)
        prompt_tokens: Estimated token size of the routed prompt
    """

    selected_model: ModelSpec
    segmented_prompts: tuple[str, ...] | None
    task_type: TaskType
    prompt_tokens: int

    @property
    def segmented(self) -> bool:
        return self.segmented_prompts is not None

    @property
    def segment_count(self) -> int:
        return len(self.segmented_prompts) if self.segmented_prompts is not None else 1


class ModelRouter:
    """Maps (prompt, caller tier, optional preference) to a RoutingDecision."""

    def __init__(self, catalog: ModelCatalog, settings: Settings) -> None:
        self._catalog = catalog
        self._chars_per_token = settings.chars_per_token
        self._reserve_ratio = settings.completion_reserve_ratio

    def prompt_budget(self, model: ModelSpec) -> int:
        """Tokens available to the prompt once the completion reserve is held back."""
        return max(1, math.floor(model.max_tokens * (1 - self._reserve_ratio)))

    def route(
        self,
        prompt: str,
        caller_tier: Tier,
        preferred_model_id: str | None = None,
    ) -> RoutingDecision:
        """Select a model for ``prompt`` and segment it if it is too large.

        Raises:
            ModelNotFoundError: Preferred model is not in the catalog
            TierForbiddenError: Preferred model's tier exceeds the caller's
            NoEligibleModelError: No model serves this task at this tier
        """
        task_type = classify(prompt)

        if preferred_model_id:
            model = self._preferred(preferred_model_id, caller_tier)
        else:
            candidates = self._catalog.models_for_task(task_type, caller_tier)
            if not candidates:
                log.warning(
                    "router.no_eligible_model",
                    task_type=task_type.value,
                    tier=caller_tier.value,
                )
                raise NoEligibleModelError(
                    f"No suitable model found for a {task_type.value} task "
                    f"on the {caller_tier.value} tier"
                )
            model = candidates[0]

        prompt_tokens = estimate_tokens(prompt, self._chars_per_token)
        budget = self.prompt_budget(model)

        segmented_prompts: tuple[str, ...] | None = None
        if prompt_tokens > budget:
            segmented_prompts = tuple(segment(prompt, budget * self._chars_per_token))

        log.info(
            "router.route_selected",
            task_type=task_type.value,
            tier=caller_tier.value,
            model_id=model.id,
            provider=model.provider,
            preferred=bool(preferred_model_id),
            prompt_tokens=prompt_tokens,
            prompt_budget=budget,
            segment_count=len(segmented_prompts) if segmented_prompts else None,
        )

        return RoutingDecision(
            selected_model=model,
            segmented_prompts=segmented_prompts,
            task_type=task_type,
            prompt_tokens=prompt_tokens,
        )

    def _preferred(self, model_id: str, caller_tier: Tier) -> ModelSpec:
        model = self._catalog.model_by_id(model_id)
        if model is None:
            log.warning("router.preference_not_found", model_id=model_id)
            raise ModelNotFoundError(f"Model '{model_id}' not found")

        if not tier_allows(caller_tier, model.tier):
            log.warning(
                "router.preference_forbidden",
                model_id=model_id,
                model_tier=model.tier.value,
                tier=caller_tier.value,
            )
            raise TierForbiddenError(
                f"Your {caller_tier.value} subscription does not include access to {model.name}"
            )
        return model
