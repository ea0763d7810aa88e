from enum import StrEnum


class PostStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    TRASH = "trash"


class CommentStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    SPAM = "spam"


# Status filter value meaning "no status filter" for authenticated listings
STATUS_ALL = "all"

# First path segments owned by the site router; slugs may not shadow them
RESERVED_SLUGS: frozenset[str] = frozenset(
    {
        "admin",
        "api",
        "post",
        "category",
        "tag",
        "page",
        "search",
        "login",
        "logout",
        "register",
        "settings",
        "dashboard",
        "posts",
        "categories",
        "tags",
        "pages",
        "comments",
        "init",
        "backup",
        "restore",
        "auth",
        "user",
        "ai",
        "slug",
    }
)
