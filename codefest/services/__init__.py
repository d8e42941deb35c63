"""Service layer for competitions and their search index."""

from .competition_service import CompetitionService
from .search import SearchIndex, get_search_index

__all__ = [
    "CompetitionService",
    "SearchIndex",
    "get_search_index",
]
