"""Tests for utility modules."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from starlette.requests import Request

from quillpress.config import Settings
from quillpress.database import engine_options
from quillpress.utils.datetime_utils import datetime_to_iso
from quillpress.utils.i18n import get_language, parse_accept_language
from quillpress.utils.messages import msg


def _request(accept_language: str | None) -> Request:
    headers = []
    if accept_language is not None:
        headers.append((b"accept-language", accept_language.encode()))
    return Request({"type": "http", "headers": headers})


class TestDatetimeUtils:
    """Test datetime conversion utilities."""

    def test_datetime_to_iso_with_aware_datetime(self):
        dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        assert datetime_to_iso(dt) == "2024-01-01T12:00:00+00:00"

    def test_datetime_to_iso_with_naive_datetime(self):
        """Naive datetime gets UTC timezone assumed."""
        dt = datetime(2024, 1, 1, 12, 0, 0)
        assert datetime_to_iso(dt) == "2024-01-01T12:00:00+00:00"

    def test_datetime_to_iso_with_other_timezone(self):
        # 20:00 at UTC+8 is 12:00 UTC
        dt = datetime(2024, 1, 1, 20, 0, 0, tzinfo=timezone(timedelta(hours=8)))
        assert datetime_to_iso(dt) == "2024-01-01T12:00:00+00:00"

    def test_datetime_to_iso_with_none(self):
        assert datetime_to_iso(None) is None


class TestMessages:
    def test_translates(self):
        assert msg("comment.not_found", "en") == "Comment not found"
        assert msg("comment.not_found", "zh") == "评论不存在"

    def test_interpolates(self):
        assert msg("comment.deleted", "en", count=3) == "3 comments deleted"

    def test_unknown_key_returns_key(self):
        assert msg("nope.missing", "en") == "nope.missing"

    def test_unknown_language_falls_back_to_chinese(self):
        assert msg("post.not_found", "fr") == "文章不存在"

    def test_missing_placeholder_returns_template(self):
        assert msg("comment.deleted", "en", total=3) == "{count} comments deleted"


class TestGetLanguage:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (None, "zh"),
            ("en", "en"),
            ("en-US,en;q=0.9", "en"),
            ("zh-CN,zh;q=0.9", "zh"),
            ("fr-FR", "zh"),
            ("fr-FR,en;q=0.8", "en"),
            ("zh;q=0.5,en;q=0.9", "en"),
            ("en;q=0,zh-TW;q=0.3", "zh"),
            ("en;q=abc", "zh"),
            ("*", "zh"),
        ],
    )
    def test_header(self, header, expected):
        assert get_language(_request(header)) == expected

    def test_parse_orders_by_weight_then_position(self):
        assert parse_accept_language("de;q=0.5, fr, en-GB;q=0.9, ja;q=0.9") == ["fr", "en", "ja", "de"]

    def test_parse_empty(self):
        assert parse_accept_language("") == []


class TestEngineOptions:
    def test_postgres_gets_sized_pool(self):
        options = engine_options(Settings(DATABASE_URL="postgresql://u:p@db/blog", DB_POOL_SIZE=3))
        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == 3
        assert options["max_overflow"] == 10
        assert "connect_args" not in options

    def test_sqlite_memory_shares_one_connection(self):
        options = engine_options(Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:"))
        assert options["poolclass"] is StaticPool
        assert options["connect_args"] == {"check_same_thread": False}
        assert "pool_size" not in options

    def test_sqlite_file_keeps_default_pool(self):
        options = engine_options(Settings(DATABASE_URL="sqlite+aiosqlite:///./blog.db"))
        assert "poolclass" not in options
        assert options["echo"] is False
