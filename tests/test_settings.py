from __future__ import annotations

from datetime import timedelta

import pytest


def test_loads_sources_keywords_and_defaults(load_settings) -> None:
    settings = load_settings(
        {
            "sources": [
                {"source": "https://t.me/durov", "alias": "Durov"},
                "@durov",
                {"source": "@muted", "enabled": False},
                "@telegram",
            ],
            "keywords": [" Urgent ", "urgent", "Release"],
        }
    )

    assert settings.SOURCES == ["@durov", "@telegram"]
    assert settings.SOURCE_ALIASES == {"@durov": "Durov"}
    assert settings.KEYWORDS == ["urgent", "release"]
    assert settings.SCAN.lookback == timedelta(hours=168)
    assert settings.SCAN_INTERVAL == 3600
    assert settings.DISPATCH.recipient == "me"


@pytest.mark.parametrize("keywords", [[], ["", "   "]])
def test_empty_keywords_are_rejected(load_settings, keywords) -> None:
    with pytest.raises(ValueError, match="at least 1 keyword"):
        load_settings({"sources": ["@ops"], "keywords": keywords})


@pytest.mark.parametrize("sources", [[], [{"source": "@ops", "enabled": False}]])
def test_empty_sources_are_rejected(load_settings, sources) -> None:
    with pytest.raises(ValueError, match="at least 1 enabled source"):
        load_settings({"sources": sources, "keywords": ["urgent"]})


def test_invalid_source_reference_is_rejected(load_settings) -> None:
    with pytest.raises(ValueError, match="sources"):
        load_settings({"sources": ["https://t.me/+invite"], "keywords": ["urgent"]})


def test_unknown_notification_method_is_rejected(load_settings) -> None:
    with pytest.raises(ValueError, match="notification_method"):
        load_settings({"sources": ["@ops"], "keywords": ["urgent"], "dispatch": {"notification_method": "email"}})
