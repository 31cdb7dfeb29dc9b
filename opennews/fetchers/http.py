from __future__ import annotations

import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ..errors import TransientNetworkError
from ..utils.logging import get_logger

logger = get_logger("opennews.fetchers.http")

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/127.0.0.0 Safari/537.36"
    )
}

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def validated_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL for HTTP fetch: {url}")
    return url


def _send(method: str, url: str, *, timeout: float, headers: Dict[str, str], **kwargs: Any) -> requests.Response:
    try:
        resp = requests.request(method, url, headers=headers, timeout=timeout, **kwargs)
    except (requests.Timeout, requests.ConnectionError) as exc:
        raise TransientNetworkError(f"{method} {url}: {exc}") from exc
    if resp.status_code in _RETRYABLE_STATUS:
        raise TransientNetworkError(f"{method} {url}: HTTP {resp.status_code}")
    return resp


def request_with_retries(
    method: str,
    url: str,
    *,
    timeout: float = 20,
    retries: int = 2,
    backoff: float = 1.5,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any,
) -> requests.Response:
    """Issue an HTTP request, retrying transient failures with exponential backoff.

    Non-retryable HTTP errors (4xx other than 429) are returned to the caller
    untouched so that adapters can interpret e.g. ``304 Not Modified``.
    """
    merged = {**DEFAULT_HEADERS, **(headers or {})}
    last_exc: TransientNetworkError | None = None
    for attempt in range(retries + 1):
        try:
            return _send(method, validated_url(url), timeout=timeout, headers=merged, **kwargs)
        except TransientNetworkError as exc:
            last_exc = exc
            if attempt >= retries:
                break
            sleep_s = backoff ** attempt
            logger.warning(
                "Transient network error (attempt %s/%s): %s; retrying in %.1fs",
                attempt + 1,
                retries + 1,
                exc,
                sleep_s,
            )
            time.sleep(sleep_s)
    if last_exc is None:
        raise TransientNetworkError(f"{method} {url}: no attempt made (retries={retries})")
    raise last_exc


def get_with_retries(url: str, **kwargs: Any) -> requests.Response:
    return request_with_retries("GET", url, **kwargs)


def post_with_retries(url: str, **kwargs: Any) -> requests.Response:
    return request_with_retries("POST", url, **kwargs)
