"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from reviewsla.api.deps import get_engine
from reviewsla.engine.service import ReviewSLAEngine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
def ready(engine: ReviewSLAEngine = Depends(get_engine)) -> dict[str, str | int]:
    return {
        "status": "ready",
        "active_reviewers": engine.directory.active_count,
        "queued_events": len(engine.inbox),
    }
