from __future__ import annotations

import os
import time
from typing import Callable, Tuple, Type, TypeVar

from ...errors import ModelOutputMalformed
from ...utils.logging import get_logger

T = TypeVar("T")
logger = get_logger("opennews.ai.retry")


def with_retries(
    fn: Callable[[], T],
    *,
    retries: int = 2,
    backoff: float = 1.5,
    retry_on: Tuple[Type[BaseException], ...] = (ModelOutputMalformed,),
) -> T:
    """Call ``fn`` again (identically) when it raises one of ``retry_on``.

    Other exceptions propagate immediately. ``AI_RETRIES`` / ``AI_BACKOFF``
    override the defaults.
    """
    env_retries = os.getenv("AI_RETRIES")
    if env_retries:
        retries = int(env_retries)
    env_backoff = os.getenv("AI_BACKOFF")
    if env_backoff:
        backoff = float(env_backoff)

    last_exc: BaseException | None = None
    for attempt in range(retries + 1):
        try:
            return fn()
        except retry_on as exc:
            last_exc = exc
            if attempt >= retries:
                break
            sleep_s = backoff ** attempt if backoff > 0 else 0.0
            logger.warning("AI call failed (attempt %s/%s): %s; retrying in %.1fs", attempt + 1, retries + 1, exc, sleep_s)
            time.sleep(sleep_s)
    assert last_exc is not None
    raise last_exc
