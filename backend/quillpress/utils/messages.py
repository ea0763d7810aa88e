"""Bilingual message translations for API responses.

Usage:
    from quillpress.utils.messages import msg
    msg("comment.not_found", lang)                 # → "评论不存在" or "Comment not found"
    msg("comment.deleted", lang, count=3)          # → "已删除 3 条评论" or "3 comments deleted"
"""

from __future__ import annotations

_MESSAGES: dict[str, dict[str, str]] = {
    # Common
    "common.not_found": {
        "zh": "资源不存在",
        "en": "Not found",
    },
    "common.login_required": {
        "zh": "请先登录",
        "en": "Login required",
    },
    # Posts
    "post.not_found": {
        "zh": "文章不存在",
        "en": "Post not found",
    },
    "post.forbidden": {
        "zh": "无权查看此文章",
        "en": "You are not allowed to view this post",
    },
    "post.list_failed": {
        "zh": "获取文章失败",
        "en": "Failed to load posts",
    },
    "post.create_failed": {
        "zh": "创建文章失败",
        "en": "Failed to create post",
    },
    "post.update_failed": {
        "zh": "更新文章失败",
        "en": "Failed to update post",
    },
    "post.delete_failed": {
        "zh": "删除文章失败",
        "en": "Failed to delete post",
    },
    "post.trashed": {
        "zh": "文章已移至回收站",
        "en": "Post moved to trash",
    },
    "post.deleted": {
        "zh": "文章已永久删除",
        "en": "Post permanently deleted",
    },
    "post.title_required": {
        "zh": "标题不能为空",
        "en": "Title is required",
    },
    "post.unknown_category": {
        "zh": "分类不存在",
        "en": "Category not found",
    },
    "post.unknown_tags": {
        "zh": "部分标签不存在",
        "en": "Some tags do not exist",
    },
    # Slugs
    "slug.empty": {
        "zh": "别名不能为空",
        "en": "Slug must not be empty",
    },
    "slug.invalid_chars": {
        "zh": "别名只能包含英文字母、数字和连字符（-）",
        "en": "Slug may only contain letters, digits and hyphens (-)",
    },
    "slug.edge_hyphen": {
        "zh": "别名不能以连字符开头或结尾",
        "en": "Slug must not start or end with a hyphen",
    },
    "slug.double_hyphen": {
        "zh": "别名不能包含连续的连字符",
        "en": "Slug must not contain consecutive hyphens",
    },
    "slug.reserved": {
        "zh": "别名 \"{slug}\" 为系统保留",
        "en": "Slug \"{slug}\" is reserved",
    },
    "slug.conflict": {
        "zh": "别名 \"{slug}\" 已被{owner}使用",
        "en": "Slug \"{slug}\" is already used by a {owner}",
    },
    # Comments
    "comment.not_found": {
        "zh": "评论不存在",
        "en": "Comment not found",
    },
    "comment.closed": {
        "zh": "该文章已关闭评论",
        "en": "Comments are closed for this post",
    },
    "comment.invalid_parent": {
        "zh": "回复的评论不存在",
        "en": "The comment being replied to does not exist on this post",
    },
    "comment.parent_not_approved": {
        "zh": "父评论尚未通过审核，无法通过此评论",
        "en": "The parent comment is not approved yet, so this reply cannot be approved",
    },
    "comment.created": {
        "zh": "评论发表成功",
        "en": "Comment published",
    },
    "comment.awaiting_review": {
        "zh": "评论已提交，等待审核",
        "en": "Comment submitted and awaiting review",
    },
    "comment.deleted": {
        "zh": "已删除 {count} 条评论",
        "en": "{count} comments deleted",
    },
    "comment.list_failed": {
        "zh": "获取评论失败",
        "en": "Failed to load comments",
    },
    "comment.create_failed": {
        "zh": "发表评论失败",
        "en": "Failed to submit comment",
    },
    "comment.update_failed": {
        "zh": "更新评论失败",
        "en": "Failed to update comment",
    },
    "comment.delete_failed": {
        "zh": "删除评论失败",
        "en": "Failed to delete comment",
    },
}


def msg(key: str, lang: str = "zh", **kwargs: object) -> str:
    """Return a translated message for the given key and language.

    Args:
        key: Dot-separated message key (e.g. "comment.not_found").
        lang: Language code ("zh" or "en").
        **kwargs: Interpolation variables for the message template.

    Returns:
        Translated and formatted message string.
        Falls back to Chinese if key not found for the requested language.
    """
    entry = _MESSAGES.get(key)
    if entry is None:
        return key

    template = entry.get(lang, entry.get("zh", key))
    if kwargs:
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError):
            return template
    return template
