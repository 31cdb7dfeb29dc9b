from __future__ import annotations

from typing import Any, Callable, Dict, Optional, TypeVar

from .base import AIClient
from .parsing import parse_json_object
from .retry import with_retries

T = TypeVar("T")


def generate_json(
    ai: AIClient,
    prompt: str,
    validate: Callable[[Dict[str, Any]], T],
    *,
    system: Optional[str] = None,
    timeout: float = 60,
    retries: int = 2,
) -> T:
    """One structured-output call: JSON completion, parse, validate.

    ``validate`` raises ``ModelOutputMalformed`` on schema violations; the
    identical call is then retried up to ``retries`` times before the error
    propagates.
    """

    def _call() -> T:
        raw = ai.complete(prompt, system=system, json_mode=True, timeout=timeout)
        return validate(parse_json_object(raw))

    return with_retries(_call, retries=retries)
