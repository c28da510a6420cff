"""Keyword matching of user queries against knowledge documents."""

from __future__ import annotations

from collections.abc import Iterable

from autoreply.models import KnowledgeDocument

DOCUMENT_SEPARATOR = "\n\n---\n\n"
_MIN_KEYWORD_LENGTH = 4


def search(query: str, documents: Iterable[KnowledgeDocument]) -> str:
    """Return the content of every matching document, joined by a separator.

    A document matches when its lowercased content contains the whole
    lowercased query, or any query word longer than 3 characters. Results
    are neither ranked nor capped.
    """
    lowered_query = query.lower()
    keywords = [w for w in lowered_query.split() if len(w) >= _MIN_KEYWORD_LENGTH]

    relevant: list[str] = []
    for document in documents:
        content = document.content.lower()
        if lowered_query in content or any(word in content for word in keywords):
            relevant.append(document.content)
    return DOCUMENT_SEPARATOR.join(relevant)
