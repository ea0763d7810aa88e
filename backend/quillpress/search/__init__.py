# @TASK P2-T2.1 - Search package

"""Post search: query parsing, relevance scoring and ranking."""

from quillpress.search.engine import PostSearchEngine, SearchPage, ScoredPost, rank_documents
from quillpress.search.filters import PostFilter
from quillpress.search.query import SearchQuery, parse_search_query
from quillpress.search.scoring import ScorableDocument, calculate_match_score, matches_exclude_terms

__all__ = [
    "PostFilter",
    "PostSearchEngine",
    "ScorableDocument",
    "ScoredPost",
    "SearchPage",
    "SearchQuery",
    "calculate_match_score",
    "matches_exclude_terms",
    "parse_search_query",
    "rank_documents",
]
