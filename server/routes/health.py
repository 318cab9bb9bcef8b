"""Status and health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from server.schemas.responses import HealthResponseDTO, StatusResponseDTO

router = APIRouter(tags=["Health"])

API_VERSION = "3.1.0"


@router.get("/", response_model=StatusResponseDTO)
async def root():
    return StatusResponseDTO(status="ContentOps Backend Running", version=API_VERSION)


@router.get("/health", response_model=HealthResponseDTO)
async def health_check(request: Request):
    """Health check endpoint."""
    cache = getattr(request.app.state, "cache", None)
    return HealthResponseDTO(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        version=API_VERSION,
        cache_sizes=cache.sizes() if cache is not None else {},
    )
