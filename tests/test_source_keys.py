from __future__ import annotations

from core.source_keys import format_source_label, normalize_source_name, source_key_for


def test_normalize_source_name_accepts_handles_and_links() -> None:
    assert normalize_source_name("@Durov") == "durov"
    assert normalize_source_name("https://t.me/durov") == "durov"
    assert normalize_source_name("http://t.me/durov/") == "durov"
    assert normalize_source_name("t.me/durov") == "durov"
    assert normalize_source_name("telegram.me/durov") == "durov"


def test_normalize_source_name_rejects_unusable_references() -> None:
    assert normalize_source_name("") is None
    assert normalize_source_name("@") is None
    assert normalize_source_name("durov") is None
    assert normalize_source_name("https://t.me/+AbCdEf") is None
    assert normalize_source_name("https://t.me/durov/42") is None
    assert normalize_source_name("https://example.com/durov") is None


def test_source_key_for_prefixes_at_sign() -> None:
    assert source_key_for("durov") == "@durov"


def test_format_source_label_with_alias_and_fallbacks() -> None:
    assert format_source_label("@news", {"@news": "News"}) == "News (@news)"
    assert format_source_label("news") == "@news"
    assert format_source_label("") == "@unknown"
