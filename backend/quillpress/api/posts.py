# @TASK P2-T2.2 - Post endpoints: listing with ranked search, detail, writes
# @TEST tests/test_api_posts.py

"""Post API.

Provides:
- ``GET /posts`` -- newest-first listing, or relevance-ranked when ``search`` is set.
- ``GET /posts/{id_or_slug}`` -- single post; counts a view.
- ``POST /posts`` -- create a post (signed in).
- ``PUT /posts/{post_id}`` -- update the supplied fields (signed in).
- ``DELETE /posts/{post_id}`` -- move to trash, or remove with ``permanent=true`` (signed in).

Search syntax: bare words match anywhere, ``"quoted phrases"`` match
verbatim with higher weight, ``-word`` excludes posts containing it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.config import get_settings
from quillpress.constants import PostStatus
from quillpress.database import get_db
from quillpress.models import Post
from quillpress.search.documents import PostRelations, load_post_relations
from quillpress.services import post_service
from quillpress.services.auth_service import get_current_user, get_optional_user
from quillpress.services.errors import NotFoundError, ValidationFailure
from quillpress.utils.datetime_utils import datetime_to_iso
from quillpress.utils.i18n import get_language
from quillpress.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    slug: str | None = Field(default=None, max_length=255)
    content: str = ""
    excerpt: str | None = None
    cover_image: str | None = None
    status: PostStatus = PostStatus.DRAFT
    category_id: int | None = None
    tags: list[int] = Field(default_factory=list)
    allow_comment: bool = True


class PostUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    slug: str | None = Field(default=None, max_length=255)
    content: str | None = None
    excerpt: str | None = None
    cover_image: str | None = None
    status: PostStatus | None = None
    category_id: int | None = None
    tags: list[int] | None = None
    allow_comment: bool | None = None


def _serialize_post(post: Post, relations: PostRelations, score: int | None = None) -> dict:
    category = relations.category_of(post)
    data = {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "excerpt": post.excerpt,
        "cover_image": post.cover_image,
        "status": post.status,
        "allow_comment": post.allow_comment,
        "view_count": post.view_count,
        "author_id": post.author_id,
        "category": {"id": category.id, "name": category.name, "slug": category.slug} if category else None,
        "tags": [{"id": t.id, "name": t.name, "slug": t.slug} for t in relations.tags_of(post)],
        "comment_count": relations.comment_count_of(post),
        "created_at": datetime_to_iso(post.created_at),
        "updated_at": datetime_to_iso(post.updated_at),
    }
    if score is not None:
        data["match_score"] = score
    return data


@router.get("")
async def list_posts(
    request: Request,
    status: str | None = Query(None, pattern="^(all|draft|published|trash)$"),
    category: str | None = None,
    tag: str | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict | None = Depends(get_optional_user),  # noqa: B008
):
    """List posts, ranked by relevance when ``search`` is given."""
    lang = get_language(request)
    settings = get_settings()
    limit = min(limit or settings.POSTS_PAGE_SIZE, settings.MAX_PAGE_SIZE)

    post_filter = post_service.visible_post_filter(
        authenticated=current_user is not None,
        status=status,
        category_slug=category,
        tag_slug=tag,
    )
    try:
        result = await post_service.list_posts(db, post_filter, search=search, page=page, limit=limit)
    except Exception as exc:
        logger.exception("Post listing failed: %s", exc)
        raise HTTPException(status_code=500, detail=msg("post.list_failed", lang)) from exc

    return {
        "posts": [_serialize_post(item.post, result.relations, item.score) for item in result.items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": result.total,
            "total_pages": result.total_pages,
        },
    }


@router.get("/{id_or_slug}")
async def get_post(
    id_or_slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict | None = Depends(get_optional_user),  # noqa: B008
):
    """Return one post by id or slug. Unpublished posts need a signed-in caller."""
    lang = get_language(request)

    try:
        post = await post_service.get_post(db, id_or_slug)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=msg(exc.message_key, lang)) from exc

    if post.status != PostStatus.PUBLISHED and current_user is None:
        raise HTTPException(status_code=403, detail=msg("post.forbidden", lang))

    await post_service.record_view(db, post)
    await db.commit()

    relations = await load_post_relations(db, [post])
    return {"post": _serialize_post(post, relations)}


@router.post("", status_code=201)
async def create_post(
    body: PostCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
):
    """Create a post. A slug is derived from the title when none is given."""
    lang = get_language(request)

    try:
        post = await post_service.create_post(
            db,
            title=body.title,
            author_id=current_user["user_id"],
            slug=body.slug,
            content=body.content,
            excerpt=body.excerpt,
            cover_image=body.cover_image,
            status=body.status,
            category_id=body.category_id,
            tag_ids=body.tags,
            allow_comment=body.allow_comment,
        )
        await db.commit()
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=msg(exc.message_key, lang, **exc.params)) from exc
    except Exception as exc:
        logger.exception("Post creation failed: %s", exc)
        raise HTTPException(status_code=500, detail=msg("post.create_failed", lang)) from exc

    relations = await load_post_relations(db, [post])
    return {"success": True, "post": _serialize_post(post, relations)}


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    body: PostUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
):
    """Update a post. Only fields present in the body change."""
    lang = get_language(request)

    try:
        post = await post_service.update_post(db, post_id, body.model_dump(exclude_unset=True))
        await db.commit()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=msg(exc.message_key, lang)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=msg(exc.message_key, lang, **exc.params)) from exc
    except Exception as exc:
        logger.exception("Post update failed for %s: %s", post_id, exc)
        raise HTTPException(status_code=500, detail=msg("post.update_failed", lang)) from exc

    relations = await load_post_relations(db, [post])
    return {"success": True, "post": _serialize_post(post, relations)}


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    request: Request,
    permanent: bool = False,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
):
    """Move a post to trash, or delete it with its comments when ``permanent`` is set."""
    lang = get_language(request)

    try:
        await post_service.delete_post(db, post_id, permanent=permanent)
        await db.commit()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=msg(exc.message_key, lang)) from exc
    except Exception as exc:
        logger.exception("Post deletion failed for %s: %s", post_id, exc)
        raise HTTPException(status_code=500, detail=msg("post.delete_failed", lang)) from exc

    return {"success": True, "message": msg("post.deleted" if permanent else "post.trashed", lang)}
