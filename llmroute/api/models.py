"""Model listing - GET /models/available"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from llmroute.accounts.identity import CallerIdentity
from llmroute.api.dependencies import get_catalog, get_current_caller
from llmroute.routing.catalog import ModelCatalog

router = APIRouter(prefix="/models", tags=["models"])


class ModelInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    provider: str
    tier: str
    max_tokens: int = Field(alias="maxTokens")
    capabilities: list[str]
    description: str


@router.get("/available", response_model=list[ModelInfo])
async def available_models(
    caller: CallerIdentity = Depends(get_current_caller),
    catalog: ModelCatalog = Depends(get_catalog),
) -> list[ModelInfo]:
    """Models the caller's tier may use, most capable first."""
    return [
        ModelInfo(
            id=m.id,
            name=m.name,
            provider=m.provider,
            tier=m.tier.value,
            max_tokens=m.max_tokens,
            capabilities=sorted(c.value for c in m.capabilities),
            description=m.description,
        )
        for m in catalog.available_models(caller.tier)
    ]
