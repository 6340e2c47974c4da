"""docsift retrieval - hybrid semantic and full-text search over chunks."""

from docsift.retrieval.hybrid import (
    HybridSearch,
    SearchResult,
    build_ts_query,
    merge_hits,
)

__all__ = [
    "HybridSearch",
    "SearchResult",
    "build_ts_query",
    "merge_hits",
]
