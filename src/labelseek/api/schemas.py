"""Pydantic request/response schemas for the labelseek API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from labelseek.records import Classification  # noqa: TC001


class ClassifyImageResponse(BaseModel):
    """Response for image classification endpoint."""

    model: str
    classifications: list[Classification] = Field(description="Normalized classifications, best first")


class SearchMatch(BaseModel):
    """A single ranked search result."""

    rank: int = Field(ge=1)
    score: int = Field(ge=0, description="Edit distance to the query stem (lower is better)")
    absolute_path: str
    classes: list[str] = Field(description="Every class of the image's top classification")


class SearchResponse(BaseModel):
    """Response for the corpus search endpoint."""

    query: str
    results: list[SearchMatch]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    models_loaded: list[str]
    concurrent_requests: int
    queue_depth: int


class ModelInfo(BaseModel):
    """Information about an available model."""

    name: str
    repo_id: str = Field(description="HuggingFace Hub repository holding the weights")
    status: str = Field(description="Model status: 'active' or 'available'")
    license: str


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
