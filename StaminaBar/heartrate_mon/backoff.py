from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")
StatusCB = Callable[[str], None]

_log = logging.getLogger(__name__)


def next_delay(delay: float, *, factor: float = 1.5, max_delay: float = 30.0) -> float:
    return min(max_delay, delay * factor)


def jittered(delay: float, jitter: float, rng: Optional[random.Random] = None) -> float:
    """Return ``delay`` spread by ``±jitter`` as a fraction of itself."""
    spread = delay * jitter
    uniform = rng.uniform if rng is not None else random.uniform
    return max(0.0, delay + uniform(-spread, spread))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    status_update: Optional[StatusCB] = None,
    logger: Optional[logging.Logger] = None,
    initial_delay: float = 5.0,
    max_delay: float = 30.0,
    factor: float = 1.5,
    jitter: float = 0.1,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Await ``operation`` until it returns, sleeping with jittered exponential
    backoff between failures.  Cancellation always propagates; once
    ``max_attempts`` is reached the last exception is re-raised.
    """
    log = logger or _log
    attempt = 0
    delay = initial_delay
    while True:
        attempt += 1
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("Attempt %s failed: %s", attempt, e)
            if max_attempts is not None and attempt >= max_attempts:
                log.error("Giving up after %s attempts.", attempt)
                raise
            if status_update:
                status_update(f"RETRYING in {int(delay)}s")
            await asyncio.sleep(jittered(delay, jitter))
            delay = next_delay(delay, factor=factor, max_delay=max_delay)
