# @TASK P2-T2.2 - Post listing, detail, creation, update and deletion
# @TEST tests/test_post_service.py

"""Post service: plain and searched listings, detail reads, writes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from quillpress.constants import STATUS_ALL, PostStatus
from quillpress.models import Category, Comment, Post, PostTag, Tag
from quillpress.search.documents import PostRelations, load_post_relations
from quillpress.search.engine import PostSearchEngine, ScoredPost, total_pages_for
from quillpress.search.filters import PostFilter, apply_post_filter
from quillpress.services.errors import PostNotFoundError, SlugValidationError, ValidationFailure
from quillpress.utils.slug import find_slug_conflict, generate_slug, unique_slug, validate_slug

logger = logging.getLogger(__name__)


@dataclass
class PostPage:
    """A page of posts; ``score`` is None for unsearched listings."""

    items: list[ScoredPost]
    total: int
    total_pages: int
    page: int
    limit: int
    relations: PostRelations


def visible_post_filter(
    *,
    authenticated: bool,
    status: str | None = None,
    category_slug: str | None = None,
    tag_slug: str | None = None,
) -> PostFilter:
    """Build the structural filter for a caller.

    Anonymous readers only ever see published posts. Signed-in users get
    the requested status, ``all`` for everything, or by default
    everything except trash.
    """
    if not authenticated:
        return PostFilter(status=PostStatus.PUBLISHED, category_slug=category_slug, tag_slug=tag_slug)
    if status == STATUS_ALL:
        return PostFilter(category_slug=category_slug, tag_slug=tag_slug)
    if status:
        return PostFilter(status=status, category_slug=category_slug, tag_slug=tag_slug)
    return PostFilter(exclude_status=PostStatus.TRASH, category_slug=category_slug, tag_slug=tag_slug)


async def list_posts(
    db: AsyncSession,
    post_filter: PostFilter,
    *,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PostPage:
    """List posts newest first, or ranked by relevance when *search* is given."""
    if search:
        engine = PostSearchEngine(db)
        result = await engine.search(search, post_filter, page=page, limit=limit)
        return PostPage(
            items=result.items,
            total=result.total,
            total_pages=result.total_pages,
            page=page,
            limit=limit,
            relations=result.relations,
        )

    count_stmt = apply_post_filter(select(func.count()).select_from(Post), post_filter)
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = (
        apply_post_filter(select(Post), post_filter)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    posts = list((await db.execute(stmt)).scalars().all())
    relations = await load_post_relations(db, posts)
    return PostPage(
        items=[ScoredPost(p, None) for p in posts],
        total=total,
        total_pages=total_pages_for(total, limit),
        page=page,
        limit=limit,
        relations=relations,
    )


async def get_post(db: AsyncSession, id_or_slug: str) -> Post:
    """Look up a post by numeric id or by slug.

    Raises:
        PostNotFoundError: Neither matches.
    """
    conditions = [Post.slug == id_or_slug]
    if id_or_slug.isascii() and id_or_slug.isdigit():
        conditions.append(Post.id == int(id_or_slug))
    result = await db.execute(select(Post).where(or_(*conditions)).limit(1))
    post = result.scalar_one_or_none()
    if post is None:
        raise PostNotFoundError(id_or_slug)
    return post


async def record_view(db: AsyncSession, post: Post) -> None:
    await db.execute(
        update(Post)
        .where(Post.id == post.id)
        .values(view_count=Post.view_count + 1, updated_at=Post.updated_at)
        .execution_options(synchronize_session=False)
    )
    set_committed_value(post, "view_count", (post.view_count or 0) + 1)


async def create_post(
    db: AsyncSession,
    *,
    title: str,
    author_id: int | None,
    slug: str | None = None,
    content: str = "",
    excerpt: str | None = None,
    cover_image: str | None = None,
    status: str = PostStatus.DRAFT,
    category_id: int | None = None,
    tag_ids: list[int] | None = None,
    allow_comment: bool = True,
) -> Post:
    """Create a post, deriving a unique slug from the title when none is given.

    Raises:
        ValidationFailure: Empty title, bad or taken slug, unknown category or tags.
    """
    if not title or not title.strip():
        raise ValidationFailure("post.title_required", "title is required")

    if slug:
        await _check_explicit_slug(db, slug)
    else:
        slug = await unique_slug(db, generate_slug(title))

    if category_id is not None:
        await _check_category(db, category_id)
    tag_ids = await _check_tags(db, tag_ids or [])

    post = Post(
        title=title,
        slug=slug,
        content=content,
        excerpt=excerpt,
        cover_image=cover_image,
        status=status,
        allow_comment=allow_comment,
        author_id=author_id,
        category_id=category_id,
    )
    db.add(post)
    await db.flush()
    for tag_id in tag_ids:
        db.add(PostTag(post_id=post.id, tag_id=tag_id))
    await db.flush()
    await db.refresh(post)

    logger.info("Created post %s (%s) with slug %r", post.id, status, slug)
    return post


_UPDATABLE_FIELDS = ("content", "excerpt", "cover_image", "status", "allow_comment")


async def update_post(db: AsyncSession, post_id: int, changes: dict) -> Post:
    """Apply the supplied *changes* to a post.

    Keys left out of *changes* keep their current value; so do ``None``
    values, except ``category_id`` where ``None`` clears the category.
    ``tags`` replaces the tag set. An explicit slug different from the
    current one must be valid and free. Without one, a changed title
    regenerates the slug unless the new slug is taken, in which case the
    old slug stays.

    Raises:
        PostNotFoundError: No post with *post_id*.
        ValidationFailure: Blank title, bad or taken slug, unknown category or tags.
    """
    post = await db.get(Post, post_id)
    if post is None:
        raise PostNotFoundError(post_id)

    title = changes.get("title")
    if "title" in changes and title is not None and not title.strip():
        raise ValidationFailure("post.title_required", "title is required")

    slug = changes.get("slug")
    if slug and slug != post.slug:
        await _check_explicit_slug(db, slug, exclude_post_id=post.id)
        post.slug = slug
    elif not slug and title and title != post.title:
        regenerated = generate_slug(title)
        if await find_slug_conflict(db, regenerated, exclude_post_id=post.id) is None:
            post.slug = regenerated
        else:
            logger.info("Post %s keeps slug %r; %r is taken", post.id, post.slug, regenerated)
    if title:
        post.title = title

    if "category_id" in changes:
        if changes["category_id"] is not None:
            await _check_category(db, changes["category_id"])
        post.category_id = changes["category_id"]

    for field in _UPDATABLE_FIELDS:
        if changes.get(field) is not None:
            setattr(post, field, changes[field])

    if changes.get("tags") is not None:
        await _replace_tags(db, post.id, await _check_tags(db, changes["tags"]))

    await db.flush()
    await db.refresh(post)
    logger.info("Updated post %s (%s)", post.id, ", ".join(sorted(changes)) or "no fields")
    return post


async def delete_post(db: AsyncSession, post_id: int, *, permanent: bool = False) -> None:
    """Move a post to trash, or with *permanent* remove it with its tags and comments.

    Raises:
        PostNotFoundError: No post with *post_id*.
    """
    post = await db.get(Post, post_id)
    if post is None:
        raise PostNotFoundError(post_id)

    if not permanent:
        post.status = PostStatus.TRASH
        await db.flush()
        logger.info("Moved post %s to trash", post_id)
        return

    await db.execute(delete(PostTag).where(PostTag.post_id == post_id))
    comments = await db.execute(delete(Comment).where(Comment.post_id == post_id))
    await db.delete(post)
    await db.flush()
    logger.info("Permanently deleted post %s with %d comments", post_id, comments.rowcount)


async def _check_explicit_slug(db: AsyncSession, slug: str, exclude_post_id: int | None = None) -> None:
    validate_slug(slug)
    owner = await find_slug_conflict(db, slug, exclude_post_id=exclude_post_id)
    if owner == "reserved":
        raise SlugValidationError("slug.reserved", f"slug {slug!r} is reserved", slug=slug)
    if owner is not None:
        raise SlugValidationError("slug.conflict", f"slug {slug!r} is taken by {owner}", slug=slug, owner=owner)


async def _check_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise ValidationFailure("post.unknown_category", f"category {category_id} does not exist")


async def _check_tags(db: AsyncSession, tag_ids: list[int]) -> list[int]:
    """Return *tag_ids* deduplicated in order, or raise if any is unknown."""
    tag_ids = list(dict.fromkeys(tag_ids))
    if tag_ids:
        found = (await db.execute(select(Tag.id).where(Tag.id.in_(tag_ids)))).scalars().all()
        if len(found) != len(tag_ids):
            raise ValidationFailure("post.unknown_tags", f"unknown tags in {tag_ids}")
    return tag_ids


async def _replace_tags(db: AsyncSession, post_id: int, tag_ids: list[int]) -> None:
    current = set((await db.execute(select(PostTag.tag_id).where(PostTag.post_id == post_id))).scalars().all())
    stale = current.difference(tag_ids)
    if stale:
        await db.execute(delete(PostTag).where(PostTag.post_id == post_id, PostTag.tag_id.in_(sorted(stale))))
    for tag_id in tag_ids:
        if tag_id not in current:
            db.add(PostTag(post_id=post_id, tag_id=tag_id))
