"""Web research against the hosting collaborator."""

from .client import HostClient
from .engine import ResearchEngine, ResearchOptions, ResearchState, failure_threshold
from .scoring import generate_queries, score_url

__all__ = [
    "HostClient",
    "ResearchEngine",
    "ResearchOptions",
    "ResearchState",
    "failure_threshold",
    "generate_queries",
    "score_url",
]
