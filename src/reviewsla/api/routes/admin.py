"""Admin endpoints for the reviewer pool and manual sweeps."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from reviewsla.api.deps import get_engine
from reviewsla.engine.service import ReviewSLAEngine
from reviewsla.engine.sweeper import SweepReport
from reviewsla.models.reviewer import ReviewerProfile

router = APIRouter(tags=["admin"])


@router.get("/reviewers")
def list_reviewers(engine: ReviewSLAEngine = Depends(get_engine)) -> list[ReviewerProfile]:
    return engine.list_reviewers()


@router.post("/reviewers", status_code=201)
def register_reviewer(
    profile: ReviewerProfile, engine: ReviewSLAEngine = Depends(get_engine),
) -> ReviewerProfile:
    try:
        return engine.register_reviewer(profile)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/reviewers/{reviewer_id}")
def get_reviewer(reviewer_id: str, engine: ReviewSLAEngine = Depends(get_engine)) -> ReviewerProfile:
    return engine.directory.get(reviewer_id)


@router.post("/sweep")
async def run_sweep(engine: ReviewSLAEngine = Depends(get_engine)) -> SweepReport:
    """Apply queued events and run one sweep now."""
    await asyncio.to_thread(engine.process_events)
    return await asyncio.to_thread(engine.sweep)
