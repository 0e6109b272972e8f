"""Model catalog contracts."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ModelSource = Literal["live", "fallback"]
CatalogSource = Literal["live", "fallback", "mixed"]


class ModelDescriptor(BaseModel):
    """One callable model variant; ``name`` is the unique key."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    display_name: str
    version: str = ""
    description: str = ""
    input_token_limit: Optional[int] = None
    output_token_limit: Optional[int] = None
    supported_methods: tuple[str, ...] = ("generateContent",)
    latency: Optional[str] = None
    best_for: tuple[str, ...] = ()
    knowledge_cutoff: Optional[str] = None
    source: ModelSource = "fallback"


class CatalogResult(BaseModel):
    models: list[ModelDescriptor]
    total_count: int
    source: CatalogSource
