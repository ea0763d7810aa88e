"""Relevance scoring and exclusion for post search.

Matching is literal case-insensitive substring containment per field,
with no tokenizing or stemming. Every include / exact term contributes
independently to every field it hits:

=============  =====  =======  =======  ========  ===========
Term class     title  excerpt  content  category  each tag
=============  =====  =======  =======  ========  ===========
include        10     5        2        3         3
exact phrase   15     8        4        5         5
=============  =====  =======  =======  ========  ===========
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from quillpress.search.query import SearchQuery


class FieldWeights(NamedTuple):
    title: int
    excerpt: int
    content: int
    category: int
    tag: int


INCLUDE_WEIGHTS = FieldWeights(title=10, excerpt=5, content=2, category=3, tag=3)
EXACT_WEIGHTS = FieldWeights(title=15, excerpt=8, content=4, category=5, tag=5)


@dataclass(frozen=True)
class ScorableDocument:
    """Read-only text projection of a post used for matching.

    Missing optional fields (excerpt, category) are empty strings.
    """

    id: int
    title: str
    content: str = ""
    excerpt: str = ""
    category_name: str = ""
    tag_names: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        id: int,  # noqa: A002
        title: str | None,
        content: str | None = None,
        excerpt: str | None = None,
        category_name: str | None = None,
        tag_names: list[str] | tuple[str, ...] | None = None,
    ) -> ScorableDocument:
        """Build a projection, treating ``None`` fields as empty text."""
        return cls(
            id=id,
            title=title or "",
            content=content or "",
            excerpt=excerpt or "",
            category_name=category_name or "",
            tag_names=tuple(tag_names or ()),
        )

    def blob(self) -> str:
        """All searchable text joined into one lowercase string."""
        return " ".join(
            [self.title, self.content, self.excerpt, self.category_name, *self.tag_names]
        ).lower()


def _term_score(
    term: str,
    weights: FieldWeights,
    title: str,
    excerpt: str,
    content: str,
    category: str,
    tags: list[str],
) -> int:
    score = 0
    if term in title:
        score += weights.title
    if term in excerpt:
        score += weights.excerpt
    if term in content:
        score += weights.content
    if term in category:
        score += weights.category
    for tag in tags:
        if term in tag:
            score += weights.tag
    return score


def calculate_match_score(doc: ScorableDocument, query: SearchQuery) -> int:
    """Compute the weighted additive relevance score of *doc* for *query*.

    Exclude terms play no part here; see :func:`matches_exclude_terms`.
    """
    title = doc.title.lower()
    excerpt = doc.excerpt.lower()
    content = doc.content.lower()
    category = doc.category_name.lower()
    tags = [t.lower() for t in doc.tag_names]

    score = 0
    for term in query.include_terms:
        score += _term_score(term, INCLUDE_WEIGHTS, title, excerpt, content, category, tags)
    for phrase in query.exact_terms:
        score += _term_score(phrase, EXACT_WEIGHTS, title, excerpt, content, category, tags)
    return score


def matches_exclude_terms(doc: ScorableDocument, exclude_terms: list[str]) -> bool:
    """Return True when any exclude term occurs anywhere in the document's text."""
    if not exclude_terms:
        return False
    text = doc.blob()
    return any(term in text for term in exclude_terms)


def matches_any_term(doc: ScorableDocument, terms: list[str]) -> bool:
    """Return True when at least one term occurs inside a single searchable field."""
    if not terms:
        return False
    fields = [f.lower() for f in (doc.title, doc.content, doc.excerpt, doc.category_name, *doc.tag_names)]
    return any(term in f for term in terms for f in fields)
