"""Query expansion, URL relevance scoring and content term extraction."""

from __future__ import annotations

import re
from collections import Counter

STOPWORDS = frozenset(
    {"and", "the", "for", "with", "that", "this", "from"}
    | {"what", "how", "why", "when", "where", "who"}
)
INSTRUCTIONAL_SUFFIXES = ("guide", "tutorial", "explained", "overview")

# First match wins; order matters.
DOMAIN_SCORES: tuple[tuple[str, float], ...] = (
    ("wikipedia.org", 0.30),
    (".edu", 0.25),
    (".gov", 0.25),
    ("github.com", 0.20),
    ("docs.", 0.20),
    ("developer.", 0.20),
    ("mozilla.org", 0.20),
    ("w3.org", 0.20),
    ("stackoverflow.com", 0.15),
    ("ieee.org", 0.15),
    ("acm.org", 0.15),
    ("medium.com", 0.10),
    ("research", 0.10),
    ("ads.", -0.50),
    ("tracker.", -0.50),
    ("affiliate.", -0.40),
    ("popup.", -0.40),
    ("analytics.", -0.30),
)
CONTENT_TYPE_SCORES: tuple[tuple[str, float], ...] = (
    ("tutorial", 0.15),
    ("guide", 0.15),
    ("documentation", 0.15),
    ("explained", 0.10),
    ("how to", 0.10),
    ("introduction", 0.10),
    ("overview", 0.10),
    ("example", 0.10),
    ("reference", 0.10),
)
PATH_SCORES: tuple[tuple[str, float], ...] = (
    ("/docs/", 0.15),
    ("/tutorial/", 0.15),
    ("/guide/", 0.15),
    ("/learn/", 0.10),
    ("/reference/", 0.10),
    ("/examples/", 0.10),
    ("/article/", 0.05),
)
TERM_COVERAGE_WEIGHT = 0.35
DOCUMENT_BONUS = 0.10
PROFILE_SCORE = 0.75
PROFILE_URL_TEMPLATES = (
    "https://github.com/{name}",
    "https://gitlab.com/{name}",
    "https://www.reddit.com/user/{name}",
    "https://dev.to/{name}",
    "https://medium.com/@{name}",
)

_DOCUMENT_SUFFIX = re.compile(r"\.(?:pdf|docx?)$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")
_USERNAME = re.compile(r"^@?[A-Za-z0-9](?:[A-Za-z0-9_.-]{1,37})[A-Za-z0-9_]$")


def concepts(query: str) -> list[str]:
    """Alphabetic tokens longer than three characters that are not stopwords."""
    cleaned = _NON_WORD.sub(" ", query.lower()).split()
    return [word for word in cleaned if len(word) > 3 and word.isalpha() and word not in STOPWORDS]


def generate_queries(query: str, max_queries: int = 5) -> list[str]:
    """Expand a query into related searches, original first."""
    found = concepts(query)
    candidates = [query.strip()]
    lowered = query.lower()
    prefix = " ".join(query.split()[:3]) if ("how" in lowered or "what" in lowered) else ""
    for first in range(len(found) - 1):
        for second in range(first + 1, len(found)):
            candidates.append(f"{found[first]} {found[second]} {prefix}".strip())
    main = " ".join(found[:3])
    if main:
        candidates.extend(f"{main} {suffix}" for suffix in INSTRUCTIONAL_SUFFIXES)
    return list(dict.fromkeys(item for item in candidates if item))[:max_queries]


def score_url(url: str, title: str, snippet: str, query: str) -> float:
    """Relevance in [0, 1] from domain, term coverage, content type and URL shape."""
    score = 0.5
    lowered_url = url.lower()
    for marker, boost in DOMAIN_SCORES:
        if marker in lowered_url:
            score += boost
            break

    terms = [term for term in query.lower().split() if term]
    title_text = title.lower()
    snippet_text = snippet.lower()
    if terms:
        weight = 0
        for term in terms:
            if term in title_text:
                weight += 2
            elif term in snippet_text:
                weight += 1
        score += (weight / (2 * len(terms))) * TERM_COVERAGE_WEIGHT

    for keyword, boost in CONTENT_TYPE_SCORES:
        if keyword in title_text or keyword in snippet_text:
            score += boost

    for marker, boost in PATH_SCORES:
        if marker in lowered_url:
            score += boost
            break

    if _DOCUMENT_SUFFIX.search(url):
        score += DOCUMENT_BONUS
    return max(0.0, min(1.0, score))


def frequent_terms(content: str, query: str, min_frequency: int = 5, limit: int = 5) -> list[str]:
    """Most frequent terms of a document that the query does not already contain."""
    words = [word for word in _NON_WORD.sub(" ", content.lower()).split() if len(word) > 3]
    query_terms = set(query.lower().split())
    counts = Counter(word for word in words if word not in query_terms)
    ranked = sorted(
        (item for item in counts.items() if item[1] >= min_frequency),
        key=lambda item: (-item[1], item[0]),
    )
    return [word for word, _ in ranked[:limit]]


def looks_like_username(query: str) -> bool:
    return _USERNAME.match(query.strip()) is not None


def profile_urls(query: str) -> list[str]:
    name = query.strip().lstrip("@")
    return [template.format(name=name) for template in PROFILE_URL_TEMPLATES]
