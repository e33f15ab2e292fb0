from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from google.api_core import exceptions as gexc

from sharevault.common.logging import log_event

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Contention (Aborted) and availability errors only. Vault errors raised inside a
# transaction body propagate on the first attempt.
TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    gexc.Aborted,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.ResourceExhausted,
    gexc.ServiceUnavailable,
    gexc.TooManyRequests,
)


@dataclass(frozen=True)
class Backoff:
    max_attempts: int = 6
    base_delay_s: float = 0.2
    max_delay_s: float = 5.0

    def ceiling(self, retry: int) -> float:
        """Upper bound of the sleep before retry number `retry` (0-based)."""
        return min(self.max_delay_s, self.base_delay_s * (2**retry))


def with_firestore_retry(
    fn: Callable[[], T],
    *,
    backoff: Backoff = Backoff(),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `fn`, retrying transient Firestore errors with capped exponential backoff and full jitter."""
    for retry in range(backoff.max_attempts):
        try:
            return fn()
        except TRANSIENT_EXCEPTIONS as e:
            if retry == backoff.max_attempts - 1:
                raise
            delay = random.uniform(0.0, backoff.ceiling(retry))
            log_event(
                logger,
                "vault.firestore_retry",
                attempt=retry + 1,
                delay_s=round(delay, 3),
                error=type(e).__name__,
            )
            sleep(delay)
    raise ValueError("backoff.max_attempts must be >= 1")
