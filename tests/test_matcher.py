from __future__ import annotations

from core.matcher import match_keyword, normalize_keywords


def test_normalize_keywords_trims_lowercases_and_dedupes_in_order() -> None:
    keywords = normalize_keywords(["  Urgent ", "sale", "URGENT", "", "   ", "Deal"])
    assert keywords == ["urgent", "sale", "deal"]


def test_match_keyword_is_case_insensitive() -> None:
    assert match_keyword("This is URGENT news", ["urgent"]) == "urgent"


def test_match_keyword_returns_first_keyword_in_order() -> None:
    keywords = normalize_keywords(["sale", "urgent"])
    assert match_keyword("urgent sale today", keywords) == "sale"


def test_match_keyword_substring_and_miss() -> None:
    assert match_keyword("preorders are open", ["order"]) == "order"
    assert match_keyword("nothing to see", ["order"]) is None


def test_empty_text_never_matches() -> None:
    assert match_keyword("", ["a"]) is None
