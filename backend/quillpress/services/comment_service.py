# @TASK P3-T3.2 - Comment listing, submission and cascading moderation
# @TEST tests/test_comment_service.py

"""Comment service.

Moderation cascades collect the whole affected subtree first, walking the
parent index one depth level per query, and then apply a single
``UPDATE ... WHERE id IN`` / ``DELETE ... WHERE id IN``. Nothing is
committed here: the caller's transaction makes a cascade all-or-nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.constants import CommentStatus, PostStatus
from quillpress.models import Comment, Post
from quillpress.services.comment_tree import CommentNode, build_comment_tree, paginate_comment_trees
from quillpress.services.errors import CommentNotFoundError, CommentValidationError, PostNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class CommentFilter:
    post_id: int | None = None
    status: str | None = None


@dataclass
class ThreadedComments:
    """One page of comment threads.

    ``total`` counts flat comments, not threads.
    """

    trees: list[CommentNode[Comment]]
    total: int
    total_pages: int
    page: int
    limit: int


@dataclass
class FlatComments:
    comments: list[Comment]
    total: int
    total_pages: int
    page: int
    limit: int
    posts: dict[int, Post] = field(default_factory=dict)
    parents: dict[int, Comment] = field(default_factory=dict)


@dataclass
class ModerationReport:
    """Outcome of a status change: every comment whose status was written."""

    comment_id: int
    status: str
    affected_ids: list[int]

    @property
    def affected_count(self) -> int:
        return len(self.affected_ids)


@dataclass
class DeletionReport:
    comment_id: int
    deleted_ids: list[int]

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)


def _filtered(stmt, comment_filter: CommentFilter):
    if comment_filter.post_id is not None:
        stmt = stmt.where(Comment.post_id == comment_filter.post_id)
    if comment_filter.status is not None:
        stmt = stmt.where(Comment.status == comment_filter.status)
    return stmt


async def get_comment(db: AsyncSession, comment_id: int) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise CommentNotFoundError(comment_id)
    return comment


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def list_comments_threaded(
    db: AsyncSession,
    comment_filter: CommentFilter,
    page: int = 1,
    limit: int = 20,
) -> ThreadedComments:
    """Fetch all matching comments oldest-first and page them by whole thread."""
    stmt = _filtered(select(Comment), comment_filter).order_by(Comment.created_at.asc(), Comment.id.asc())
    result = await db.execute(stmt)
    comments = list(result.scalars().all())

    roots = build_comment_tree(comments)
    tree_page = paginate_comment_trees(roots, page, limit)
    return ThreadedComments(
        trees=tree_page.roots,
        total=len(comments),
        total_pages=tree_page.total_pages,
        page=page,
        limit=limit,
    )


async def list_comments_flat(
    db: AsyncSession,
    comment_filter: CommentFilter,
    page: int = 1,
    limit: int = 20,
) -> FlatComments:
    """Row-paginated newest-first listing for the moderation screen."""
    count_stmt = _filtered(select(func.count()).select_from(Comment), comment_filter)
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = (
        _filtered(select(Comment), comment_filter)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    comments = list((await db.execute(stmt)).scalars().all())

    post_ids = {c.post_id for c in comments}
    parent_ids = {c.parent_id for c in comments if c.parent_id is not None}
    posts: dict[int, Post] = {}
    parents: dict[int, Comment] = {}
    if post_ids:
        result = await db.execute(select(Post).where(Post.id.in_(post_ids)))
        posts = {p.id: p for p in result.scalars().all()}
    if parent_ids:
        result = await db.execute(select(Comment).where(Comment.id.in_(parent_ids)))
        parents = {c.id: c for c in result.scalars().all()}

    return FlatComments(
        comments=comments,
        total=total,
        total_pages=-(-total // limit),
        page=page,
        limit=limit,
        posts=posts,
        parents=parents,
    )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def create_comment(
    db: AsyncSession,
    *,
    post_id: int,
    content: str,
    author_name: str,
    author_email: str,
    author_url: str | None = None,
    parent_id: int | None = None,
    user_id: int | None = None,
    authenticated: bool = False,
) -> Comment:
    """Store a new comment.

    Authenticated submitters are approved immediately; everyone else
    waits in ``pending``.

    Raises:
        PostNotFoundError: The post is missing or not published.
        CommentValidationError: Comments are closed, or the parent does
            not belong to this post.
    """
    post = await db.get(Post, post_id)
    if post is None or post.status != PostStatus.PUBLISHED:
        raise PostNotFoundError(post_id)
    if not post.allow_comment:
        raise CommentValidationError("comment.closed", f"comments are closed on post {post_id}")

    if parent_id is not None:
        parent = await db.get(Comment, parent_id)
        if parent is None or parent.post_id != post_id:
            raise CommentValidationError("comment.invalid_parent", f"parent {parent_id} is not on post {post_id}")

    comment = Comment(
        post_id=post_id,
        parent_id=parent_id,
        user_id=user_id,
        author_name=author_name,
        author_email=author_email,
        author_url=author_url,
        content=content,
        status=CommentStatus.APPROVED if authenticated else CommentStatus.PENDING,
    )
    db.add(comment)
    await db.flush()
    await db.refresh(comment)
    return comment


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def collect_subtree_ids(db: AsyncSession, comment_id: int) -> list[int]:
    """Return *comment_id* followed by all its descendants, breadth first.

    Issues one query per depth level rather than one per comment.
    """
    collected = [comment_id]
    seen = {comment_id}
    frontier = [comment_id]
    while frontier:
        result = await db.execute(select(Comment.id).where(Comment.parent_id.in_(frontier)))
        frontier = [cid for cid in result.scalars().all() if cid not in seen]
        seen.update(frontier)
        collected.extend(frontier)
    return collected


async def set_comment_status(db: AsyncSession, comment_id: int, status: CommentStatus) -> ModerationReport:
    """Change a comment's status.

    Hiding a comment (any status other than approved) hides its whole
    subtree. Approving touches only the comment itself and is refused
    while its parent is not approved.

    Raises:
        CommentNotFoundError: No such comment.
        CommentValidationError: Approving a reply under an unapproved parent.
    """
    comment = await get_comment(db, comment_id)

    if status == CommentStatus.APPROVED:
        if comment.parent_id is not None:
            parent = await db.get(Comment, comment.parent_id)
            if parent is not None and parent.status != CommentStatus.APPROVED:
                raise CommentValidationError(
                    "comment.parent_not_approved",
                    f"parent {parent.id} of comment {comment_id} is {parent.status}",
                )
        affected_ids = [comment_id]
    else:
        affected_ids = await collect_subtree_ids(db, comment_id)

    await db.execute(
        update(Comment)
        .where(Comment.id.in_(affected_ids))
        .values(status=status)
        .execution_options(synchronize_session="fetch")
    )
    logger.info("Comment %s set to %s (%d affected)", comment_id, status, len(affected_ids))
    return ModerationReport(comment_id=comment_id, status=status, affected_ids=affected_ids)


async def delete_comment_cascade(db: AsyncSession, comment_id: int) -> DeletionReport:
    """Delete a comment together with every reply beneath it.

    Raises:
        CommentNotFoundError: No such comment.
    """
    await get_comment(db, comment_id)
    subtree_ids = await collect_subtree_ids(db, comment_id)

    await db.execute(
        delete(Comment).where(Comment.id.in_(subtree_ids)).execution_options(synchronize_session="fetch")
    )
    logger.info("Comment %s deleted with %d replies", comment_id, len(subtree_ids) - 1)
    # Children first, mirroring the order a row-by-row delete would take
    return DeletionReport(comment_id=comment_id, deleted_ids=list(reversed(subtree_ids)))
