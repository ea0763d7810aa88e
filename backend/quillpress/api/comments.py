# @TASK P3-T3.3 - Comment endpoints: threaded listing, submission, moderation
# @TEST tests/test_api_comments.py

"""Comment API.

Provides:
- ``GET /comments`` -- threaded listing paginated by whole thread, or
  (signed in, ``flat=true``) a row-paginated moderation listing.
- ``POST /comments`` -- public submission.
- ``PUT /comments/{comment_id}`` -- status change with cascade.
- ``DELETE /comments/{comment_id}`` -- delete with all replies.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.config import get_settings
from quillpress.constants import STATUS_ALL, CommentStatus
from quillpress.database import get_db
from quillpress.models import Comment
from quillpress.services import comment_service
from quillpress.services.auth_service import get_current_user, get_optional_user
from quillpress.services.comment_tree import CommentNode
from quillpress.services.errors import NotFoundError, ValidationFailure
from quillpress.utils.datetime_utils import datetime_to_iso
from quillpress.utils.i18n import get_language
from quillpress.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(tags=["comments"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    post_id: int
    parent_id: int | None = None
    content: str = Field(min_length=1)
    author_name: str = Field(min_length=1, max_length=255)
    author_email: str = Field(min_length=3, max_length=255)
    author_url: str | None = Field(default=None, max_length=500)


class CommentStatusUpdate(BaseModel):
    status: CommentStatus


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


def _serialize_comment(c: Comment) -> dict:
    return {
        "id": c.id,
        "post_id": c.post_id,
        "parent_id": c.parent_id,
        "user_id": c.user_id,
        "author_name": c.author_name,
        "author_email": c.author_email,
        "author_url": c.author_url,
        "content": c.content,
        "status": c.status,
        "created_at": datetime_to_iso(c.created_at),
        "updated_at": datetime_to_iso(c.updated_at),
    }


def _serialize_node(node: CommentNode[Comment]) -> dict:
    data = _serialize_comment(node.comment)
    data["replies"] = [_serialize_node(reply) for reply in node.replies]
    return data


def _raise_http(exc: Exception, lang: str, failure_key: str) -> NoReturn:
    """Translate a service exception into an HTTP error."""
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=msg(exc.message_key, lang)) from exc
    if isinstance(exc, ValidationFailure):
        raise HTTPException(status_code=400, detail=msg(exc.message_key, lang, **exc.params)) from exc
    logger.exception("Comment operation failed: %s", exc)
    raise HTTPException(status_code=500, detail=msg(failure_key, lang)) from exc


def _page_size(limit: int | None) -> int:
    settings = get_settings()
    return min(limit or settings.COMMENTS_PAGE_SIZE, settings.MAX_PAGE_SIZE)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/comments")
async def list_comments(
    request: Request,
    post_id: int | None = None,
    status: str | None = Query(None, pattern="^(all|pending|approved|spam)$"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    flat: bool = False,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict | None = Depends(get_optional_user),  # noqa: B008
):
    """List comments as threads, or flat for moderators.

    Anonymous callers only ever see approved comments.
    """
    lang = get_language(request)
    limit = _page_size(limit)

    if current_user is None:
        status_filter: str | None = CommentStatus.APPROVED
    elif status and status != STATUS_ALL:
        status_filter = status
    else:
        status_filter = None
    comment_filter = comment_service.CommentFilter(post_id=post_id, status=status_filter)

    try:
        if flat and current_user is not None:
            flat_page = await comment_service.list_comments_flat(db, comment_filter, page, limit)
        else:
            threaded = await comment_service.list_comments_threaded(db, comment_filter, page, limit)
    except Exception as exc:
        _raise_http(exc, lang, "comment.list_failed")

    if flat and current_user is not None:
        comments = []
        for c in flat_page.comments:
            data = _serialize_comment(c)
            post = flat_page.posts.get(c.post_id)
            parent = flat_page.parents.get(c.parent_id) if c.parent_id is not None else None
            data["post"] = {"id": post.id, "title": post.title, "slug": post.slug} if post else None
            data["parent"] = (
                {
                    "id": parent.id,
                    "author_name": parent.author_name,
                    "content": parent.content,
                    "status": parent.status,
                }
                if parent
                else None
            )
            comments.append(data)
        pagination = Pagination(page=page, limit=limit, total=flat_page.total, total_pages=flat_page.total_pages)
        return {"comments": comments, "pagination": pagination.model_dump()}

    pagination = Pagination(page=page, limit=limit, total=threaded.total, total_pages=threaded.total_pages)
    return {
        "comments": [_serialize_node(node) for node in threaded.trees],
        "pagination": pagination.model_dump(),
    }


@router.post("/comments", status_code=201)
async def create_comment(
    body: CommentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict | None = Depends(get_optional_user),  # noqa: B008
):
    """Submit a comment. Signed-in authors skip the moderation queue."""
    lang = get_language(request)
    authenticated = current_user is not None

    try:
        comment = await comment_service.create_comment(
            db,
            post_id=body.post_id,
            parent_id=body.parent_id,
            content=body.content,
            author_name=body.author_name,
            author_email=body.author_email,
            author_url=body.author_url,
            user_id=current_user["user_id"] if current_user else None,
            authenticated=authenticated,
        )
        await db.commit()
    except Exception as exc:
        _raise_http(exc, lang, "comment.create_failed")

    return {
        "success": True,
        "comment": _serialize_comment(comment),
        "message": msg("comment.created" if authenticated else "comment.awaiting_review", lang),
    }


@router.put("/comments/{comment_id}")
async def update_comment_status(
    comment_id: int,
    body: CommentStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
):
    """Change a comment's status; hiding a comment hides all replies below it."""
    lang = get_language(request)

    try:
        report = await comment_service.set_comment_status(db, comment_id, body.status)
        await db.commit()
    except Exception as exc:
        _raise_http(exc, lang, "comment.update_failed")

    return {
        "success": True,
        "status": report.status,
        "affected_count": report.affected_count,
        "affected_ids": report.affected_ids,
    }


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
):
    """Delete a comment and every reply beneath it."""
    lang = get_language(request)

    try:
        report = await comment_service.delete_comment_cascade(db, comment_id)
        await db.commit()
    except Exception as exc:
        _raise_http(exc, lang, "comment.delete_failed")

    return {
        "success": True,
        "deleted_count": report.deleted_count,
        "message": msg("comment.deleted", lang, count=report.deleted_count),
    }
