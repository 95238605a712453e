from __future__ import annotations

import time
from typing import Callable, TypeVar

from loguru import logger

T = TypeVar("T")


def retry_call(
    fn: Callable[[int], T],
    attempts: int = 3,
    base_delay: float = 1.0,
    backoff: float = 2.0,
    label: str = "request",
) -> T:
    """Call ``fn(attempt)`` until it succeeds or ``attempts`` run out.

    The delay before retry ``n`` (0-based) is ``base_delay * backoff**n``; no
    jitter. The last exception is re-raised unchanged.
    """
    attempts = max(1, attempts)
    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            return fn(attempt)
        except Exception as e:
            last_exc = e
            if attempt < attempts - 1:
                delay = base_delay * (backoff**attempt)
                logger.warning(
                    "{} attempt {} failed ({}), retrying in {:.1f}s", label, attempt + 1, e, delay
                )
                time.sleep(delay)
    assert last_exc is not None
    raise last_exc
