"""Pydantic response models (DTOs) for FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchResultDTO(BaseModel):
    title: str
    url: str
    snippet: str
    source_provider: str


class PipelineStatsDTO(BaseModel):
    searches_performed: int
    unique_results_used: int
    elapsed_seconds: float
    widgets_protected: int
    llm_calls: int
    queries_generated: int
    chunks: int


class IntegrityWarningDTO(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class SmartCheckResponseDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str
    content: str
    changes: list[str]
    stats: PipelineStatsDTO
    research_sample: list[SearchResultDTO] = Field(default_factory=list)
    queries: list[str] = Field(default_factory=list)
    warnings: list[IntegrityWarningDTO] = Field(default_factory=list)
    fell_back_to_original: bool = False
    cached: bool = False
    created_at: str

    # Flat counters kept for clients of the first API revision
    searches_used: int = Field(alias="searchesUsed")
    llm_calls: int = Field(alias="llmCalls")
    duration_ms: int = Field(alias="duration")

    @classmethod
    def from_pipeline_result(cls, result, request_id: str):
        """Convert PipelineResult to DTO."""
        data = result.to_dict()
        return cls(
            request_id=request_id,
            content=data["content"],
            changes=data["changes"],
            stats=PipelineStatsDTO(**data["stats"]),
            research_sample=[SearchResultDTO(**r) for r in data["research_sample"]],
            queries=data["queries"],
            warnings=[IntegrityWarningDTO(**w) for w in data["warnings"]],
            fell_back_to_original=data["fell_back_to_original"],
            cached=data["cached"],
            created_at=data["created_at"],
            searches_used=result.stats.searches_performed,
            llm_calls=result.stats.llm_calls,
            duration_ms=int(result.stats.elapsed_seconds * 1000),
        )


class HealthResponseDTO(BaseModel):
    status: str
    timestamp: str
    version: str
    cache_sizes: dict[str, int] = Field(default_factory=dict)


class StatusResponseDTO(BaseModel):
    status: str
    version: str
