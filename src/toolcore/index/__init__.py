"""Codebase index: discovery, definitions, persistence and search."""

from .manager import INDEX_SCHEMA_VERSION, IndexManager, IndexSchemaUnsupportedError
from .models import Definition, FileRecord, IndexStats, IndexStatus
from .search import query_index, search_content

__all__ = [
    "Definition",
    "FileRecord",
    "INDEX_SCHEMA_VERSION",
    "IndexManager",
    "IndexSchemaUnsupportedError",
    "IndexStats",
    "IndexStatus",
    "query_index",
    "search_content",
]
