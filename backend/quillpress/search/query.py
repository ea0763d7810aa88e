"""Search query parsing.

Turns a raw search box string into three term groups:

- ``"quoted phrase"`` -> exact-phrase terms
- ``-word`` -> exclude terms
- anything else -> include terms

All terms are lowercased. Parsing never fails: any string is valid input,
and empty or whitespace-only input yields three empty groups.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_EXACT_PHRASE_RE = re.compile(r'"([^"]+)"')

NEGATION_MARKER = "-"


class SearchQuery(NamedTuple):
    """Structured search terms.

    Attributes:
        include_terms: Bare words, each matched as a substring.
        exact_terms: Quoted phrases, matched verbatim (case-insensitive).
        exclude_terms: Words prefixed with ``-``; any hit disqualifies a post.
    """

    include_terms: list[str]
    exact_terms: list[str]
    exclude_terms: list[str]

    @property
    def match_terms(self) -> list[str]:
        """Include and exact terms together, the terms that contribute score."""
        return [*self.include_terms, *self.exact_terms]

    @property
    def is_empty(self) -> bool:
        return not (self.include_terms or self.exact_terms or self.exclude_terms)


def parse_search_query(raw: str) -> SearchQuery:
    """Parse a raw search string into include / exact / exclude terms.

    Quoted phrases are pulled out first and replaced with a space, so
    ``foo"bar baz"qux`` yields the phrase ``bar baz`` plus the words
    ``foo`` and ``qux``. An unmatched quote is left in place and ends up
    as part of an ordinary token.
    """
    exact_terms = [m.group(1).lower() for m in _EXACT_PHRASE_RE.finditer(raw)]
    remainder = _EXACT_PHRASE_RE.sub(" ", raw)

    include_terms: list[str] = []
    exclude_terms: list[str] = []
    for token in remainder.split():
        if token.startswith(NEGATION_MARKER) and len(token) > len(NEGATION_MARKER):
            exclude_terms.append(token[len(NEGATION_MARKER):].lower())
        else:
            include_terms.append(token.lower())

    return SearchQuery(
        include_terms=include_terms,
        exact_terms=exact_terms,
        exclude_terms=exclude_terms,
    )
