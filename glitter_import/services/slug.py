from __future__ import annotations

import re
import time
from collections.abc import Iterator

"""URL-safe slug generation for tag names.

Slugs are unique per user. ``slug_candidates`` yields the base slug, then
``<base>-2`` ... ``<base>-<max_attempts>``, then a millisecond timestamp
suffix as a last resort.
"""

__all__ = [
    "FALLBACK_SLUG",
    "MAX_SLUG_ATTEMPTS",
    "generate_slug",
    "slug_candidates",
]

FALLBACK_SLUG = "tag"
MAX_SLUG_ATTEMPTS = 100

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def generate_slug(text: str) -> str:
    """Lower-case ``text`` and collapse every non-alphanumeric run into one hyphen.

    >>> generate_slug("My Awesome Tag!")
    'my-awesome-tag'
    >>> generate_slug("  Special & Characters  ")
    'special-characters'
    """
    return _NON_ALNUM.sub("-", str(text).lower().strip()).strip("-")


def slug_candidates(text: str, max_attempts: int = MAX_SLUG_ATTEMPTS) -> Iterator[str]:
    base = generate_slug(text) or FALLBACK_SLUG
    yield base
    for i in range(2, max_attempts + 1):
        yield f"{base}-{i}"
    yield f"{base}-{int(time.time() * 1000)}"

