"""URL slug generation and validation for posts."""

from __future__ import annotations

import re
import unicodedata

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillpress.constants import RESERVED_SLUGS
from quillpress.models import Category, Post, Tag
from quillpress.services.errors import SlugValidationError

_SLUG_CHARS_RE = re.compile(r"^[a-zA-Z0-9-]+$")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_SLUG = "untitled"


def validate_slug(slug: str) -> None:
    """Raise :class:`SlugValidationError` unless *slug* is a clean ASCII slug.

    Allowed: letters, digits and single hyphens, not at either end.
    """
    if not slug or not slug.strip():
        raise SlugValidationError("slug.empty", "slug is empty")
    if not _SLUG_CHARS_RE.match(slug):
        raise SlugValidationError("slug.invalid_chars", f"slug {slug!r} has characters outside [a-zA-Z0-9-]")
    if slug.startswith("-") or slug.endswith("-"):
        raise SlugValidationError("slug.edge_hyphen", f"slug {slug!r} starts or ends with a hyphen")
    if "--" in slug:
        raise SlugValidationError("slug.double_hyphen", f"slug {slug!r} has consecutive hyphens")


def generate_slug(title: str) -> str:
    """Derive a slug from a title: ASCII-folded, lowercase, hyphen separated.

    Titles with nothing transliterable fall back to ``untitled``.
    """
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG_RE.sub("-", folded.lower()).strip("-")
    return slug or DEFAULT_SLUG


def is_reserved_slug(slug: str) -> bool:
    return slug.lower() in RESERVED_SLUGS


async def find_slug_conflict(db: AsyncSession, slug: str, exclude_post_id: int | None = None) -> str | None:
    """Return what already owns *slug* ("reserved", "post", "category", "tag") or None."""
    if is_reserved_slug(slug):
        return "reserved"

    stmt = select(Post.id).where(Post.slug == slug)
    if exclude_post_id is not None:
        stmt = stmt.where(Post.id != exclude_post_id)
    if (await db.execute(stmt.limit(1))).first() is not None:
        return "post"
    if (await db.execute(select(Category.id).where(Category.slug == slug).limit(1))).first() is not None:
        return "category"
    if (await db.execute(select(Tag.id).where(Tag.slug == slug).limit(1))).first() is not None:
        return "tag"
    return None


async def unique_slug(db: AsyncSession, base: str) -> str:
    """Return *base*, or *base* with the first free ``-N`` suffix."""
    candidate = base
    suffix = 2
    while await find_slug_conflict(db, candidate) is not None:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate
