from __future__ import annotations

from pathlib import Path
from typing import Iterable, List
from urllib.parse import urlparse

import yaml

from ..errors import ConfigError
from ..models import NEWS_STYLES, SOURCE_TYPES, ReaderProfile, SourceConfig

REQUIRED_FIELDS = {"name", "url", "type"}

_PROFILE_STRING_FIELDS = ("display_name", "background", "interests", "style", "language", "timezone")
_PROFILE_LIST_FIELDS = ("topics", "search_queries")


def _read_yaml(path: Path | str) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {config_path} must be a mapping")
    return data


def _validate_source_dict(entry: dict) -> None:
    """Validate a single source mapping from YAML.

    Required fields: name (str), url (http/https), type ('rss' | 'hackernews' | 'tavily').
    Optional: enabled (bool).
    """
    missing = REQUIRED_FIELDS - set(entry)
    if missing:
        raise ConfigError(f"Missing required fields: {sorted(missing)} in {entry}")

    if entry["type"] not in SOURCE_TYPES:
        raise ConfigError(f"Invalid type '{entry['type']}'. Must be one of {list(SOURCE_TYPES)}.")

    url_str = str(entry["url"]).strip()
    parsed = urlparse(url_str)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid URL '{url_str}'. Must be absolute http(s) URL.")

    if "enabled" in entry and not isinstance(entry["enabled"], bool):
        raise ConfigError("'enabled' must be a boolean if provided")


def _coerce_source(entry: dict) -> SourceConfig:
    return SourceConfig(
        name=str(entry["name"]).strip(),
        url=str(entry["url"]).strip(),
        type=str(entry["type"]).strip(),  # type: ignore[arg-type]
        enabled=bool(entry.get("enabled", True)),
    )


def load_sources_config(path: Path | str) -> List[SourceConfig]:
    """Load ``sources.yaml`` into ``SourceConfig`` instances.

    YAML structure::

        sources:
          - name: Hacker News
            url: https://hn.algolia.com/api/v1/search?tags=front_page
            type: hackernews
          - name: Ars Technica
            url: https://feeds.arstechnica.com/arstechnica/index
            type: rss
            enabled: true

    Unknown top-level keys are ignored for forward compatibility.
    """
    data = _read_yaml(path)
    sources_raw: Iterable[dict] = data.get("sources") or []
    if not isinstance(sources_raw, list):
        raise ConfigError("'sources' must be a list in the YAML configuration")

    sources: List[SourceConfig] = []
    seen_urls = set()
    for item in sources_raw:
        if not isinstance(item, dict):
            raise ConfigError(f"Each source must be a mapping, got: {type(item)}")
        _validate_source_dict(item)
        source = _coerce_source(item)
        if source.url in seen_urls:
            raise ConfigError(f"Duplicate source URL: {source.url}")
        seen_urls.add(source.url)
        sources.append(source)
    return sources


def load_profile_config(path: Path | str) -> ReaderProfile:
    """Load ``profile.yaml`` (a ``profile`` mapping) into a ``ReaderProfile``."""
    data = _read_yaml(path)
    raw = data.get("profile") or {}
    if not isinstance(raw, dict):
        raise ConfigError("'profile' must be a mapping")

    profile = ReaderProfile()
    for key in _PROFILE_STRING_FIELDS:
        if key in raw and raw[key] is not None:
            if not isinstance(raw[key], str):
                raise ConfigError(f"'{key}' must be a string")
            setattr(profile, key, raw[key].strip())
    for key in _PROFILE_LIST_FIELDS:
        if key in raw and raw[key] is not None:
            values = raw[key]
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise ConfigError(f"'{key}' must be a list of strings")
            setattr(profile, key, [v.strip() for v in values if v.strip()])

    if profile.style not in NEWS_STYLES:
        raise ConfigError(f"Invalid style '{profile.style}'. Allowed: {list(NEWS_STYLES)}")
    return profile
