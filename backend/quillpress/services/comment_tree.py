# @TASK P3-T3.1 - Comment tree assembly and whole-thread pagination
# @TEST tests/test_comment_tree.py

"""Threaded comment assembly.

Comments are stored as flat rows linked by ``parent_id``. Reads rebuild
the nesting in one pass over an id-keyed map, and pages are cut on
whole-thread boundaries: a page holds complete root threads whose total
node count reaches the page size, so a reply never lands on a different
page than its thread.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar


class ThreadedRecord(Protocol):
    id: int
    parent_id: int | None


T = TypeVar("T", bound=ThreadedRecord)


@dataclass
class CommentNode(Generic[T]):
    """A comment plus its direct replies, in fetch order."""

    comment: T
    replies: list[CommentNode[T]] = field(default_factory=list)


@dataclass
class TreePage(Generic[T]):
    roots: list[CommentNode[T]]
    total_pages: int


def build_comment_tree(comments: Iterable[T]) -> list[CommentNode[T]]:
    """Nest flat comments under their parents.

    Input order is kept both among roots and inside every reply list.
    A comment whose parent is not in the input (deleted, filtered out by
    status) becomes a root.
    """
    comments = list(comments)
    nodes = {c.id: CommentNode(c) for c in comments}

    roots: list[CommentNode[T]] = []
    for c in comments:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is not None and parent is not node:
            parent.replies.append(node)
        else:
            roots.append(node)
    return roots


def count_subtree(node: CommentNode) -> int:
    """Number of comments in the thread rooted at *node*, itself included."""
    count = 0
    stack = [node]
    while stack:
        current = stack.pop()
        count += 1
        stack.extend(current.replies)
    return count


def count_tree_pages(sizes: Iterable[int], limit: int) -> int:
    """Pages needed for threads of the given sizes; never less than 1."""
    pages = 0
    accumulated = 0
    for size in sizes:
        accumulated += size
        if accumulated >= limit:
            pages += 1
            accumulated = 0
    if accumulated:
        pages += 1
    return max(1, pages)


def paginate_comment_trees(roots: list[CommentNode[T]], page: int, limit: int) -> TreePage[T]:
    """Select the root threads that make up *page* (1-based).

    Threads are taken whole. A page closes as soon as its node count
    reaches *limit*, so the last thread on a page may overflow it, and a
    single thread larger than *limit* is a page of its own.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    sizes = [count_subtree(root) for root in roots]

    selected: list[CommentNode[T]] = []
    current_page = 1
    skipped = 0
    included = 0
    for root, size in zip(roots, sizes):
        if current_page < page:
            skipped += size
            if skipped >= limit:
                current_page += 1
                skipped = 0
            continue

        selected.append(root)
        included += size
        if included >= limit:
            break

    return TreePage(roots=selected, total_pages=count_tree_pages(sizes, limit))
