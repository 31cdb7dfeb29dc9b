from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Iterator, Optional

import requests

from ...errors import ModelContextOverflow

_OVERFLOW_MARKERS = (
    "context length",
    "context_length_exceeded",
    "context window",
    "maximum context",
    "too many tokens",
    "prompt is too long",
    "input token count",
    "exceeds the maximum number of tokens",
)


class AIClient(ABC):
    """Provider-agnostic model client: plain completion, JSON completion and streaming."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.2,
        timeout: float = 60,
    ) -> str:
        """Return the full completion text. With ``json_mode`` the provider is asked for a JSON object."""

    @abstractmethod
    def stream(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.4,
        timeout: float = 300,
    ) -> Iterator[str]:
        """Yield completion text chunks as the provider produces them.

        Closing the iterator closes the underlying HTTP response, which aborts
        generation upstream. Raises ``ModelContextOverflow`` before the first
        chunk when the prompt does not fit the model's context.
        """


def is_context_overflow(message: str) -> bool:
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _OVERFLOW_MARKERS)


def check_response(resp: requests.Response) -> None:
    """Raise ``ModelContextOverflow`` for context errors, ``HTTPError`` for the rest."""
    if resp.status_code in (400, 413, 422) and is_context_overflow(resp.text):
        raise ModelContextOverflow(resp.text[:300])
    resp.raise_for_status()


def iter_lines_until(resp: requests.Response, *, timeout: float) -> Iterator[str]:
    """Iterate non-empty response lines, giving up once ``timeout`` seconds have passed in total.

    ``requests`` only bounds each read; this bounds the whole stream.
    """
    deadline = time.monotonic() + timeout
    for line in resp.iter_lines(decode_unicode=True):
        if time.monotonic() > deadline:
            raise TimeoutError(f"Model stream exceeded {timeout:.0f}s")
        if line:
            yield line
