"""Descriptor indexing, ranking and usage analysis."""

from .data_search import DataSearchService, Page
from .index_manager import FullTextIndex, IndexHit
from .index_schema import IndexDocument, build_index_document
from .intent import ExactMatchCache, QueryIntent, detect_intent
from .search_service import DataStats, SearchOptions, SearchService, SourceStats
from .usage_analyzer import UsageAnalyzer

__all__ = [
    "DataSearchService",
    "DataStats",
    "ExactMatchCache",
    "FullTextIndex",
    "IndexDocument",
    "IndexHit",
    "Page",
    "QueryIntent",
    "SearchOptions",
    "SearchService",
    "SourceStats",
    "UsageAnalyzer",
    "build_index_document",
    "detect_intent",
]
