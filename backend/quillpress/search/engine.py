# @TASK P2-T2.1 - In-memory relevance ranking for the post listing
# @TEST tests/test_search_engine.py

"""Post search engine.

Candidates are fetched with structural filters only (status, category,
tag), then parsed terms rank and filter them in application memory:

1. A query without include or exact terms matches nothing (no fetch at all).
   Exclude terms only narrow a result, so ``-word`` alone is empty.
2. A candidate is admitted when some include/exact term occurs in one of
   its fields, or when one of its approved comments contains a term.
   Comment text admits a post but is never scored.
3. Posts hitting any exclude term are dropped.
4. The rest are scored, stably sorted by descending score and paginated.

The ranking step (:func:`rank_documents`) is pure, so a storage-side
full-text index can replace the candidate fetch without changing how
scores and order are defined.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import NamedTuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.constants import CommentStatus
from quillpress.models import Comment, Post
from quillpress.search.documents import PostRelations, load_post_relations, to_document
from quillpress.search.filters import PostFilter, apply_post_filter
from quillpress.search.query import SearchQuery, parse_search_query
from quillpress.search.scoring import (
    ScorableDocument,
    calculate_match_score,
    matches_any_term,
    matches_exclude_terms,
)

logger = logging.getLogger(__name__)


class RankedDocument(NamedTuple):
    document: ScorableDocument
    score: int


class ScoredPost(NamedTuple):
    post: Post
    score: int | None


@dataclass
class SearchPage:
    """One page of ranked posts.

    Attributes:
        items: Posts on this page, best match first.
        total: Number of posts that survived filtering (before pagination).
        total_pages: ``ceil(total / limit)``; 0 when nothing matched.
        relations: Categories / tags / comment counts for ``items``.
    """

    items: list[ScoredPost]
    total: int
    total_pages: int
    relations: PostRelations = field(default_factory=PostRelations)


def rank_documents(
    documents: list[ScorableDocument],
    query: SearchQuery,
    comment_hit_ids: set[int] | frozenset[int] = frozenset(),
) -> list[RankedDocument]:
    """Filter and order candidate documents for *query*.

    Input order is kept among equal scores (``sorted`` is stable), so the
    caller's fetch order is the tie-break.
    """
    terms = query.match_terms
    if not terms:
        return []
    pool = [d for d in documents if d.id in comment_hit_ids or matches_any_term(d, terms)]

    ranked = [
        RankedDocument(doc, calculate_match_score(doc, query))
        for doc in pool
        if not matches_exclude_terms(doc, query.exclude_terms)
    ]
    return sorted(ranked, key=lambda r: r.score, reverse=True)


def total_pages_for(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


class PostSearchEngine:
    """Ranks posts for a raw search string.

    Args:
        session: An async SQLAlchemy session for database queries.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def search(
        self,
        raw_query: str,
        post_filter: PostFilter | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> SearchPage:
        query = parse_search_query(raw_query)
        if not query.match_terms:
            return SearchPage(items=[], total=0, total_pages=0)

        posts = await self._fetch_candidates(post_filter or PostFilter())
        relations = await load_post_relations(self._session, posts)
        documents = [to_document(p, relations) for p in posts]

        comment_hit_ids = await self._posts_with_matching_comments(query.match_terms)

        ranked = rank_documents(documents, query, comment_hit_ids)
        posts_by_id = {p.id: p for p in posts}

        total = len(ranked)
        offset = (max(page, 1) - 1) * limit
        items = [ScoredPost(posts_by_id[r.document.id], r.score) for r in ranked[offset : offset + limit]]

        logger.debug(
            "Search %r: %d candidates, %d matched, returning %d",
            raw_query,
            len(posts),
            total,
            len(items),
        )
        return SearchPage(
            items=items,
            total=total,
            total_pages=total_pages_for(total, limit),
            relations=relations,
        )

    async def _fetch_candidates(self, post_filter: PostFilter) -> list[Post]:
        stmt = apply_post_filter(select(Post), post_filter).order_by(Post.created_at.desc(), Post.id.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _posts_with_matching_comments(self, terms: list[str]) -> set[int]:
        """Return ids of posts having an approved comment that contains any term."""
        conditions = [func.lower(Comment.content).contains(term, autoescape=True) for term in terms]
        result = await self._session.execute(
            select(Comment.post_id).where(Comment.status == CommentStatus.APPROVED, or_(*conditions)).distinct()
        )
        return set(result.scalars().all())
