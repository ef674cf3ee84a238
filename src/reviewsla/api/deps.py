"""Request-scoped dependencies."""

from __future__ import annotations

from fastapi import Request

from reviewsla.engine.service import ReviewSLAEngine


def get_engine(request: Request) -> ReviewSLAEngine:
    return request.app.state.engine
