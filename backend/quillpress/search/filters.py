"""Structural post filters shared by plain listings and search.

These predicates run in the database; relevance filtering happens in
memory afterwards (see :mod:`quillpress.search.engine`).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Select, exists, select

from quillpress.models import Category, Post, PostTag, Tag


@dataclass(frozen=True)
class PostFilter:
    """Status / taxonomy constraints for a post listing.

    Attributes:
        status: Only posts with exactly this status.
        exclude_status: Drop posts with this status (ignored when ``status`` is set).
        category_slug: Only posts in the category with this slug.
        tag_slug: Only posts carrying the tag with this slug.
    """

    status: str | None = None
    exclude_status: str | None = None
    category_slug: str | None = None
    tag_slug: str | None = None


def apply_post_filter(stmt: Select, post_filter: PostFilter) -> Select:
    """Add the WHERE clauses described by *post_filter* to a select over ``Post``."""
    if post_filter.status is not None:
        stmt = stmt.where(Post.status == post_filter.status)
    elif post_filter.exclude_status is not None:
        stmt = stmt.where(Post.status != post_filter.exclude_status)

    if post_filter.category_slug:
        stmt = stmt.where(
            Post.category_id.in_(select(Category.id).where(Category.slug == post_filter.category_slug))
        )

    if post_filter.tag_slug:
        stmt = stmt.where(
            exists()
            .where(PostTag.post_id == Post.id)
            .where(PostTag.tag_id == Tag.id)
            .where(Tag.slug == post_filter.tag_slug)
        )
    return stmt
