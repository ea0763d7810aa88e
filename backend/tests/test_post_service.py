# @TASK P2-T2.2 - Post service tests
# @TEST tests/test_post_service.py

from __future__ import annotations

import pytest
from sqlalchemy import select

from quillpress.constants import PostStatus
from quillpress.models import Comment, Post, PostTag
from quillpress.search.filters import PostFilter
from quillpress.services import post_service
from quillpress.services.errors import PostNotFoundError, SlugValidationError, ValidationFailure
from tests.conftest import seed_category, seed_comment, seed_post, seed_tag

# ---------------------------------------------------------------------------
# 1. Visibility filter
# ---------------------------------------------------------------------------


class TestVisiblePostFilter:
    def test_anonymous_sees_only_published(self):
        f = post_service.visible_post_filter(authenticated=False, status="draft")
        assert f.status == PostStatus.PUBLISHED
        assert f.exclude_status is None

    def test_signed_in_default_hides_trash(self):
        f = post_service.visible_post_filter(authenticated=True)
        assert f.status is None
        assert f.exclude_status == PostStatus.TRASH

    def test_signed_in_all(self):
        f = post_service.visible_post_filter(authenticated=True, status="all", category_slug="web")
        assert f == PostFilter(category_slug="web")

    def test_signed_in_explicit_status(self):
        f = post_service.visible_post_filter(authenticated=True, status="trash")
        assert f.status == "trash"


# ---------------------------------------------------------------------------
# 2. Listing
# ---------------------------------------------------------------------------


class TestListPosts:
    @pytest.mark.asyncio
    async def test_plain_listing_newest_first(self, test_db):
        first = await seed_post(test_db, title="First")
        second = await seed_post(test_db, title="Second")
        await seed_post(test_db, title="Hidden", status="draft")

        result = await post_service.list_posts(test_db, PostFilter(status="published"))

        assert [item.post.id for item in result.items] == [second.id, first.id]
        assert all(item.score is None for item in result.items)
        assert result.total == 2
        assert result.total_pages == 1

    @pytest.mark.asyncio
    async def test_plain_listing_pagination(self, test_db):
        for i in range(5):
            await seed_post(test_db, title=f"Post {i}")

        result = await post_service.list_posts(test_db, PostFilter(), page=3, limit=2)

        assert len(result.items) == 1
        assert result.total == 5
        assert result.total_pages == 3

    @pytest.mark.asyncio
    async def test_search_delegates_to_ranking(self, test_db):
        await seed_post(test_db, title="Cooking")
        hit = await seed_post(test_db, title="Kafka streams")

        result = await post_service.list_posts(test_db, PostFilter(status="published"), search="kafka")

        assert [item.post.id for item in result.items] == [hit.id]
        assert result.items[0].score == 10

    @pytest.mark.asyncio
    async def test_blank_search_is_plain_listing(self, test_db):
        await seed_post(test_db, title="One")
        result = await post_service.list_posts(test_db, PostFilter(), search="")
        assert result.total == 1

    @pytest.mark.asyncio
    async def test_relations_loaded(self, test_db):
        category = await seed_category(test_db, "Backend")
        tag = await seed_tag(test_db, "sql")
        post = await seed_post(test_db, category=category, tags=[tag])
        await seed_comment(test_db, post, status="approved")
        await seed_comment(test_db, post, status="pending")

        result = await post_service.list_posts(test_db, PostFilter())

        assert result.relations.category_of(post).slug == "backend"
        assert [t.slug for t in result.relations.tags_of(post)] == ["sql"]
        assert result.relations.comment_count_of(post) == 1


# ---------------------------------------------------------------------------
# 3. Detail
# ---------------------------------------------------------------------------


class TestGetPost:
    @pytest.mark.asyncio
    async def test_by_id_and_slug(self, test_db):
        post = await seed_post(test_db, slug="my-post")
        assert (await post_service.get_post(test_db, str(post.id))).id == post.id
        assert (await post_service.get_post(test_db, "my-post")).id == post.id

    @pytest.mark.asyncio
    async def test_missing(self, test_db):
        with pytest.raises(PostNotFoundError):
            await post_service.get_post(test_db, "nope")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["²", "١٢", "1²"])
    async def test_non_ascii_digits_are_not_ids(self, test_db, key):
        """Unicode digits pass ``str.isdigit`` but are not integers."""
        await seed_post(test_db)
        with pytest.raises(PostNotFoundError):
            await post_service.get_post(test_db, key)

    @pytest.mark.asyncio
    async def test_record_view_increments(self, test_db):
        post = await seed_post(test_db)
        await post_service.record_view(test_db, post)
        await post_service.record_view(test_db, post)

        stored = (await test_db.execute(select(Post.view_count).where(Post.id == post.id))).scalar_one()
        assert stored == 2
        assert post.view_count == 2


# ---------------------------------------------------------------------------
# 4. Creation
# ---------------------------------------------------------------------------


class TestCreatePost:
    @pytest.mark.asyncio
    async def test_generates_slug_from_title(self, test_db):
        post = await post_service.create_post(test_db, title="Hello World", author_id=1)
        assert post.slug == "hello-world"
        assert post.status == PostStatus.DRAFT
        assert post.view_count == 0

    @pytest.mark.asyncio
    async def test_generated_slug_is_deduplicated(self, test_db):
        await seed_post(test_db, slug="hello-world")
        post = await post_service.create_post(test_db, title="Hello World", author_id=1)
        assert post.slug == "hello-world-2"

    @pytest.mark.asyncio
    async def test_explicit_slug_conflict(self, test_db):
        await seed_category(test_db, "News", slug="news")
        with pytest.raises(SlugValidationError) as exc_info:
            await post_service.create_post(test_db, title="Anything", slug="news", author_id=1)
        assert exc_info.value.message_key == "slug.conflict"
        assert exc_info.value.params == {"slug": "news", "owner": "category"}

    @pytest.mark.asyncio
    async def test_invalid_explicit_slug(self, test_db):
        with pytest.raises(SlugValidationError):
            await post_service.create_post(test_db, title="Anything", slug="bad slug", author_id=1)

    @pytest.mark.asyncio
    async def test_blank_title(self, test_db):
        with pytest.raises(ValidationFailure) as exc_info:
            await post_service.create_post(test_db, title="   ", author_id=1)
        assert exc_info.value.message_key == "post.title_required"

    @pytest.mark.asyncio
    async def test_attaches_category_and_tags(self, test_db):
        category = await seed_category(test_db, "Ops")
        tags = [await seed_tag(test_db, "docker"), await seed_tag(test_db, "k8s")]

        post = await post_service.create_post(
            test_db,
            title="Deploying",
            author_id=1,
            category_id=category.id,
            tag_ids=[tags[0].id, tags[1].id, tags[0].id],
            status=PostStatus.PUBLISHED,
        )

        assert post.category_id == category.id
        rows = (await test_db.execute(select(PostTag.tag_id).where(PostTag.post_id == post.id))).scalars().all()
        assert sorted(rows) == sorted(t.id for t in tags)

    @pytest.mark.asyncio
    async def test_unknown_category(self, test_db):
        with pytest.raises(ValidationFailure) as exc_info:
            await post_service.create_post(test_db, title="X", author_id=1, category_id=404)
        assert exc_info.value.message_key == "post.unknown_category"

    @pytest.mark.asyncio
    async def test_unknown_tag(self, test_db):
        tag = await seed_tag(test_db, "real")
        with pytest.raises(ValidationFailure) as exc_info:
            await post_service.create_post(test_db, title="X", author_id=1, tag_ids=[tag.id, 999])
        assert exc_info.value.message_key == "post.unknown_tags"


# ---------------------------------------------------------------------------
# 5. Update
# ---------------------------------------------------------------------------


class TestUpdatePost:
    @pytest.mark.asyncio
    async def test_only_supplied_fields_change(self, test_db):
        post = await seed_post(test_db, title="Old", slug="old", content="body", excerpt="short")

        updated = await post_service.update_post(test_db, post.id, {"content": "new body", "excerpt": None})

        assert updated.content == "new body"
        assert updated.excerpt == "short"
        assert updated.title == "Old"
        assert updated.slug == "old"

    @pytest.mark.asyncio
    async def test_post_may_keep_its_own_slug(self, test_db):
        post = await seed_post(test_db, title="Mine", slug="mine")

        updated = await post_service.update_post(test_db, post.id, {"slug": "mine", "title": "Mine, revised"})

        assert updated.slug == "mine"
        assert updated.title == "Mine, revised"

    @pytest.mark.asyncio
    async def test_explicit_slug_taken_by_another_post(self, test_db):
        await seed_post(test_db, slug="taken")
        post = await seed_post(test_db, slug="free")

        with pytest.raises(SlugValidationError) as exc_info:
            await post_service.update_post(test_db, post.id, {"slug": "taken"})

        assert exc_info.value.message_key == "slug.conflict"
        assert exc_info.value.params == {"slug": "taken", "owner": "post"}

    @pytest.mark.asyncio
    async def test_explicit_slug_reserved_or_invalid(self, test_db):
        post = await seed_post(test_db, slug="fine")

        with pytest.raises(SlugValidationError) as reserved:
            await post_service.update_post(test_db, post.id, {"slug": "api"})
        with pytest.raises(SlugValidationError) as invalid:
            await post_service.update_post(test_db, post.id, {"slug": "bad slug"})

        assert reserved.value.message_key == "slug.reserved"
        assert invalid.value.message_key == "slug.invalid_chars"

    @pytest.mark.asyncio
    async def test_new_title_regenerates_slug(self, test_db):
        post = await seed_post(test_db, title="Draft title", slug="draft-title")

        updated = await post_service.update_post(test_db, post.id, {"title": "Final Title"})

        assert updated.slug == "final-title"

    @pytest.mark.asyncio
    async def test_regenerated_slug_taken_keeps_old_slug(self, test_db):
        await seed_post(test_db, title="Final Title", slug="final-title")
        post = await seed_post(test_db, title="Draft title", slug="draft-title")

        updated = await post_service.update_post(test_db, post.id, {"title": "Final Title"})

        assert updated.title == "Final Title"
        assert updated.slug == "draft-title"

    @pytest.mark.asyncio
    async def test_blank_title(self, test_db):
        post = await seed_post(test_db)
        with pytest.raises(ValidationFailure) as exc_info:
            await post_service.update_post(test_db, post.id, {"title": "   "})
        assert exc_info.value.message_key == "post.title_required"

    @pytest.mark.asyncio
    async def test_tags_are_replaced(self, test_db):
        keep = await seed_tag(test_db, "keep")
        drop = await seed_tag(test_db, "drop")
        add = await seed_tag(test_db, "add")
        post = await seed_post(test_db, tags=[keep, drop])

        await post_service.update_post(test_db, post.id, {"tags": [keep.id, add.id]})

        rows = (await test_db.execute(select(PostTag.tag_id).where(PostTag.post_id == post.id))).scalars().all()
        assert sorted(rows) == sorted([keep.id, add.id])

    @pytest.mark.asyncio
    async def test_unknown_tag_leaves_tags_alone(self, test_db):
        tag = await seed_tag(test_db, "only")
        post = await seed_post(test_db, tags=[tag])

        with pytest.raises(ValidationFailure):
            await post_service.update_post(test_db, post.id, {"tags": [999]})

        rows = (await test_db.execute(select(PostTag.tag_id).where(PostTag.post_id == post.id))).scalars().all()
        assert rows == [tag.id]

    @pytest.mark.asyncio
    async def test_category_set_and_cleared(self, test_db):
        category = await seed_category(test_db, "Notes")
        post = await seed_post(test_db)

        await post_service.update_post(test_db, post.id, {"category_id": category.id})
        assert post.category_id == category.id

        await post_service.update_post(test_db, post.id, {"category_id": None})
        assert post.category_id is None

    @pytest.mark.asyncio
    async def test_unknown_category(self, test_db):
        post = await seed_post(test_db)
        with pytest.raises(ValidationFailure) as exc_info:
            await post_service.update_post(test_db, post.id, {"category_id": 404})
        assert exc_info.value.message_key == "post.unknown_category"

    @pytest.mark.asyncio
    async def test_missing(self, test_db):
        with pytest.raises(PostNotFoundError):
            await post_service.update_post(test_db, 999, {"title": "X"})


# ---------------------------------------------------------------------------
# 6. Deletion
# ---------------------------------------------------------------------------


class TestDeletePost:
    @pytest.mark.asyncio
    async def test_default_moves_to_trash(self, test_db):
        post = await seed_post(test_db)
        await seed_comment(test_db, post)

        await post_service.delete_post(test_db, post.id)

        stored = (await test_db.execute(select(Post.status).where(Post.id == post.id))).scalar_one()
        assert stored == PostStatus.TRASH
        comments = (await test_db.execute(select(Comment.id).where(Comment.post_id == post.id))).scalars().all()
        assert len(comments) == 1

    @pytest.mark.asyncio
    async def test_permanent_removes_post_tags_and_comments(self, test_db):
        tag = await seed_tag(test_db, "gone")
        post = await seed_post(test_db, tags=[tag])
        root = await seed_comment(test_db, post)
        await seed_comment(test_db, post, parent=root)
        other = await seed_post(test_db)
        kept = await seed_comment(test_db, other)

        await post_service.delete_post(test_db, post.id, permanent=True)

        assert (await test_db.execute(select(Post.id))).scalars().all() == [other.id]
        assert (await test_db.execute(select(PostTag.post_id))).scalars().all() == []
        assert (await test_db.execute(select(Comment.id))).scalars().all() == [kept.id]

    @pytest.mark.asyncio
    async def test_missing(self, test_db):
        with pytest.raises(PostNotFoundError):
            await post_service.delete_post(test_db, 999, permanent=True)
