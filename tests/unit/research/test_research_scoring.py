from __future__ import annotations

import pytest

from toolcore.research import failure_threshold, generate_queries, score_url
from toolcore.research.scoring import frequent_terms, looks_like_username, profile_urls


def test_generate_queries_keeps_original_first() -> None:
    queries = generate_queries("python asyncio scheduling")

    assert queries == [
        "python asyncio scheduling",
        "python asyncio",
        "python scheduling",
        "asyncio scheduling",
        "python asyncio scheduling guide",
    ]


def test_generate_queries_respects_limit() -> None:
    assert generate_queries("python asyncio scheduling", max_queries=2) == [
        "python asyncio scheduling",
        "python asyncio",
    ]


def test_authoritative_domain_with_title_match_scores_high() -> None:
    score = score_url("https://en.wikipedia.org/wiki/Asyncio", "Asyncio overview", "", "asyncio")

    assert score == 1.0


def test_ad_domains_are_penalized() -> None:
    assert score_url("https://ads.example.com/x", "", "", "asyncio") == 0.0


def test_snippet_match_counts_half_of_title_match() -> None:
    score = score_url("https://example.com/page", "Other", "mentions asyncio", "asyncio")

    assert score == pytest.approx(0.675)


def test_document_links_get_a_bonus() -> None:
    assert score_url("https://example.com/paper.PDF", "x", "", "zzz") == pytest.approx(0.6)


def test_frequent_terms_skip_query_words() -> None:
    content = " ".join(["event loop"] * 5 + ["rare"])

    assert frequent_terms(content, "event") == ["loop"]


def test_username_detection_and_profile_urls() -> None:
    assert looks_like_username("@octocat") is True
    assert looks_like_username("python asyncio") is False
    assert profile_urls("@octocat")[0] == "https://github.com/octocat"


@pytest.mark.parametrize(
    ("reads", "expected"), [(1, 0.2), (10, 0.35), (100, 0.5), (1_000_000, 0.6)]
)
def test_failure_threshold_grows_with_reads(reads: int, expected: float) -> None:
    assert failure_threshold(reads) == pytest.approx(expected)
