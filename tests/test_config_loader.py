"""Tests for the YAML seed configuration."""

import pytest

from opennews.errors import ConfigError
from opennews.utils.config_loader import load_profile_config, load_sources_config


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadSourcesConfig:
    def test_loads_valid_sources(self, tmp_path):
        path = _write(
            tmp_path,
            "sources.yaml",
            """
sources:
  - name: Feed
    url: https://example.com/feed.xml
    type: rss
  - name: HN
    url: https://hn.algolia.com/api/v1/search?tags=front_page
    type: hackernews
    enabled: false
""",
        )

        sources = load_sources_config(path)

        assert [(s.name, s.type, s.enabled) for s in sources] == [("Feed", "rss", True), ("HN", "hackernews", False)]

    @pytest.mark.parametrize(
        "entry",
        [
            "  - name: A\n    url: https://a.example\n",
            "  - name: A\n    url: https://a.example\n    type: atom\n",
            "  - name: A\n    url: not-a-url\n    type: rss\n",
            "  - name: A\n    url: https://a.example\n    type: rss\n    enabled: maybe\n",
        ],
    )
    def test_invalid_entries_raise(self, tmp_path, entry):
        path = _write(tmp_path, "sources.yaml", "sources:\n" + entry)
        with pytest.raises(ConfigError):
            load_sources_config(path)

    def test_duplicate_urls_raise(self, tmp_path):
        entry = "  - name: A\n    url: https://a.example\n    type: rss\n"
        path = _write(tmp_path, "sources.yaml", "sources:\n" + entry + entry)
        with pytest.raises(ConfigError):
            load_sources_config(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_sources_config(tmp_path / "missing.yaml")


class TestLoadProfileConfig:
    def test_loads_profile(self, tmp_path):
        path = _write(
            tmp_path,
            "profile.yaml",
            """
profile:
  background: Engineer
  style: technical
  language: de
  topics: [ai, " security "]
  search_queries: [open source release]
""",
        )

        profile = load_profile_config(path)

        assert profile.style == "technical"
        assert profile.language == "de"
        assert profile.topics == ["ai", "security"]
        assert profile.search_queries == ["open source release"]

    def test_invalid_style_raises(self, tmp_path):
        path = _write(tmp_path, "profile.yaml", "profile:\n  style: verbose\n")
        with pytest.raises(ConfigError):
            load_profile_config(path)

    def test_topics_must_be_strings(self, tmp_path):
        path = _write(tmp_path, "profile.yaml", "profile:\n  topics: [1, 2]\n")
        with pytest.raises(ConfigError):
            load_profile_config(path)
