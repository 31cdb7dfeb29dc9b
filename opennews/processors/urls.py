from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit

# Query parameters that only carry click/campaign tracking
TRACKING_PARAMS = frozenset(
    {
        "ref",
        "ref_src",
        "ref_url",
        "referrer",
        "fbclid",
        "gclid",
        "dclid",
        "msclkid",
        "yclid",
        "igshid",
        "mc_cid",
        "mc_eid",
        "mkt_tok",
        "_ga",
        "_gl",
        "_hsenc",
        "_hsmi",
        "cmpid",
        "s_cid",
        "spm",
        "share",
        "smid",
        "ncid",
        "guccounter",
    }
)
TRACKING_PREFIXES = ("utm_",)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _is_tracking(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PREFIXES)


def normalize_url(url: str) -> str:
    """Return the canonical dedup key for a URL.

    The key ignores the scheme, lowercases the host, drops ``www.``, default
    ports, fragments, tracking parameters and a trailing slash, and sorts the
    remaining query parameters::

        >>> normalize_url("https://example.com/a?utm_source=x&ref=y")
        'example.com/a'
        >>> normalize_url("http://www.example.com/a/")
        'example.com/a'
    """
    raw = (url or "").strip()
    parts = urlsplit(raw)
    if not parts.netloc:
        return raw.lower().rstrip("/")

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    try:
        port = parts.port
    except ValueError:
        port = None
    if port and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"

    path = parts.path or ""
    while path.endswith("/"):
        path = path[:-1]

    params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking(k)]
    query = urlencode(sorted(params))

    key = f"{host}{path}"
    if query:
        key = f"{key}?{query}"
    return key
