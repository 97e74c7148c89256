"""Word-match search and tag filtering for contact and log entry listings."""
from __future__ import annotations

from typing import Iterable, Optional


def fuzzy_search(query: Optional[str], text: str) -> bool:
    """True when every whitespace-separated word of `query` occurs in `text`, ignoring case."""
    if not query or not query.strip():
        return True

    normalized_text = text.lower()
    return all(word in normalized_text for word in query.lower().split())


def matches_tag(tags: Iterable[str], active_tag: Optional[str]) -> bool:
    if not active_tag:
        return True
    wanted = active_tag.strip().lower()
    return any(tag.lower() == wanted for tag in tags)


def search_text(*parts: str, tags: Iterable[str] = ()) -> str:
    return " ".join([*parts, " ".join(tags)])
