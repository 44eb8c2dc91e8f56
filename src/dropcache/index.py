"""Search keywords and the inverted keyword index.

Keywords are precomputed per title so that a prefix query is a dict lookup
rather than a scan over titles: every word of three or more characters
contributes all of its prefixes from length 3 upwards.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

_WORD_SPLIT_RE = re.compile(r"[\s\-_()]+")

MIN_PREFIX_LENGTH = 3


def generate_keywords(title: str) -> list[str]:
    """Return the search keywords for a title, deduplicated in first-seen order.

    ``"Hill Giant"`` → ``["hill giant", "hill", "giant", "hil", "gia", "gian"]``
    """
    normalised = title.lower()
    keywords: dict[str, None] = {normalised: None}

    words = [word for word in _WORD_SPLIT_RE.split(normalised) if word]
    for word in words:
        keywords[word] = None

    for word in words:
        if len(word) < MIN_PREFIX_LENGTH:
            continue
        for end in range(MIN_PREFIX_LENGTH, len(word) + 1):
            keywords[word[:end]] = None

    return list(keywords)


class KeywordIndex:
    """Inverted index: keyword → set of titles holding that keyword.

    Holds back-references only. Whether a title is actually cached is decided
    by the RecordStore; the index never expires anything on its own.
    """

    def __init__(self) -> None:
        self._index: dict[str, set[str]] = {}

    def add_title(self, keyword: str, title: str) -> None:
        self._index.setdefault(keyword, set()).add(title)

    def remove_title(self, keyword: str, title: str) -> None:
        titles = self._index.get(keyword)
        if titles is None:
            return
        titles.discard(title)
        if not titles:
            del self._index[keyword]

    def add_keywords(self, title: str, keywords: Iterable[str]) -> None:
        for keyword in keywords:
            self.add_title(keyword, title)

    def remove_keywords(self, title: str, keywords: Iterable[str]) -> None:
        for keyword in keywords:
            self.remove_title(keyword, title)

    def titles_for(self, keyword: str) -> frozenset[str]:
        return frozenset(self._index.get(keyword, ()))

    def entries(self) -> Iterator[tuple[str, set[str]]]:
        """Iterate ``(keyword, titles)`` pairs in insertion order.

        The sets are live; callers that may mutate the index while iterating
        must copy first.
        """
        return iter(self._index.items())

    def to_pairs(self) -> list[tuple[str, list[str]]]:
        return [(keyword, sorted(titles)) for keyword, titles in self._index.items()]

    def clear(self) -> None:
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, keyword: object) -> bool:
        return keyword in self._index
