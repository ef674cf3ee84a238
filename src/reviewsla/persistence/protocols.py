"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from reviewsla.core.protocols import ICompensationLog, IReviewStore

__all__ = ["ICompensationLog", "IReviewStore"]
