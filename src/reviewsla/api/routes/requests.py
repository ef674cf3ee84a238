"""Review request endpoints: submission, lookup, reviewer events."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from reviewsla.api.deps import get_engine
from reviewsla.engine.events import ReviewEvent, ReviewEventKind
from reviewsla.engine.service import ReviewSLAEngine
from reviewsla.models.request import CompensationRecord, ReviewRequest

router = APIRouter(tags=["requests"])


class SubmitRequestBody(BaseModel):
    requester_id: str
    subject_id: str = ""
    request_id: str | None = None


class ReviewEventBody(BaseModel):
    kind: ReviewEventKind
    reviewer_id: str


@router.post("", status_code=201)
def submit_request(
    body: SubmitRequestBody, engine: ReviewSLAEngine = Depends(get_engine),
) -> ReviewRequest:
    """Create a review request; it is assigned immediately when capacity allows."""
    try:
        return engine.submit_request(body.requester_id, subject_id=body.subject_id, request_id=body.request_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/{request_id}")
def get_request(request_id: str, engine: ReviewSLAEngine = Depends(get_engine)) -> ReviewRequest:
    return engine.get_request(request_id)


@router.get("/{request_id}/compensations")
def get_compensations(
    request_id: str, engine: ReviewSLAEngine = Depends(get_engine),
) -> list[CompensationRecord]:
    engine.get_request(request_id)
    return engine.compensations_for(request_id)


@router.post("/{request_id}/events", status_code=202)
def post_event(
    request_id: str, body: ReviewEventBody, engine: ReviewSLAEngine = Depends(get_engine),
) -> dict:
    """Queue a reviewer event; it is applied before the next sweep."""
    engine.get_request(request_id)
    engine.submit_event(ReviewEvent(kind=body.kind, request_id=request_id, reviewer_id=body.reviewer_id))
    return {"queued": True, "request_id": request_id, "kind": body.kind.value}
