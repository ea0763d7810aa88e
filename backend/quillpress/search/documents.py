"""Batched loading of the rows a post listing needs besides the post itself."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.constants import CommentStatus
from quillpress.models import Category, Comment, Post, PostTag, Tag
from quillpress.search.scoring import ScorableDocument


@dataclass
class PostRelations:
    """Categories, tags and approved-comment counts keyed by id."""

    categories: dict[int, Category] = field(default_factory=dict)
    tags: dict[int, list[Tag]] = field(default_factory=dict)
    comment_counts: dict[int, int] = field(default_factory=dict)

    def category_of(self, post: Post) -> Category | None:
        if post.category_id is None:
            return None
        return self.categories.get(post.category_id)

    def tags_of(self, post: Post) -> list[Tag]:
        return self.tags.get(post.id, [])

    def comment_count_of(self, post: Post) -> int:
        return self.comment_counts.get(post.id, 0)


async def load_post_relations(session: AsyncSession, posts: list[Post]) -> PostRelations:
    """Fetch categories, tags and approved comment counts for *posts* in three queries."""
    relations = PostRelations()
    if not posts:
        return relations

    post_ids = [p.id for p in posts]
    category_ids = {p.category_id for p in posts if p.category_id is not None}

    if category_ids:
        result = await session.execute(select(Category).where(Category.id.in_(category_ids)))
        relations.categories = {c.id: c for c in result.scalars().all()}

    result = await session.execute(
        select(PostTag.post_id, Tag)
        .join(Tag, Tag.id == PostTag.tag_id)
        .where(PostTag.post_id.in_(post_ids))
        .order_by(Tag.name)
    )
    tags: dict[int, list[Tag]] = defaultdict(list)
    for post_id, tag in result.all():
        tags[post_id].append(tag)
    relations.tags = dict(tags)

    result = await session.execute(
        select(Comment.post_id, func.count(Comment.id))
        .where(Comment.post_id.in_(post_ids), Comment.status == CommentStatus.APPROVED)
        .group_by(Comment.post_id)
    )
    relations.comment_counts = {post_id: count for post_id, count in result.all()}
    return relations


def to_document(post: Post, relations: PostRelations) -> ScorableDocument:
    """Project a post and its loaded relations into a scorable document."""
    category = relations.category_of(post)
    return ScorableDocument.build(
        id=post.id,
        title=post.title,
        content=post.content,
        excerpt=post.excerpt,
        category_name=category.name if category else None,
        tag_names=[t.name for t in relations.tags_of(post)],
    )
