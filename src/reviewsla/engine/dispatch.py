"""Fire-and-forget dispatch of outbound port calls.

Port failures belong to the external layer's failure domain: they are
logged here and never propagate back into the engine's state transitions.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _log_failure(description: str, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("outbound call failed: %s", description, exc_info=exc)


class InlineDispatcher:
    """Runs each call immediately on the caller's thread. Used by tests."""

    def submit(self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("outbound call failed: %s", description)

    def shutdown(self) -> None:
        return None


class ThreadPoolDispatcher:
    """Hands calls to a small worker pool and returns immediately."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reviewsla-dispatch",
        )

    def submit(self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(partial(_log_failure, description))

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
