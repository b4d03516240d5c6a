from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Final

from ..models.partial_project import (
    DEFAULT_STATUS,
    SKIP,
    DrillShape,
    KitCategory,
    PartialProject,
    ProjectStatus,
    Skip,
)
from .dates import normalize_date

"""Row normalization: one raw CSV row -> PartialProject | SKIP.

Pure function with no I/O. Every field is looked up through a prioritized
alias list (first non-blank value wins) and passed through a field-specific
fallback rule. A bad value degrades its own field to unset (or, for status,
to ``wishlist``); it never raises and never rejects the row. The only reason
a row is dropped is a missing title.
"""

__all__ = [
    "FIELD_ALIASES",
    "REQUIRED_FIELDS",
    "FIELD_LIMITS",
    "get_field_value",
    "parse_number",
    "parse_count",
    "normalize_status",
    "normalize_kit_category",
    "normalize_drill_shape",
    "split_tags",
    "truncate_at_word_boundary",
    "normalize_row",
]

# field -> accepted header aliases in priority order (already lower-case)
FIELD_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "title": ("title", "name", "project name", "project title"),
    "status": ("status", "state", "project status"),
    "company": ("company", "manufacturer", "brand"),
    "artist": ("artist", "creator", "designer"),
    "width": ("width",),
    "height": ("height", "length"),
    "dimensions": ("dimensions",),
    "drill_shape": ("drill shape", "shape"),
    "canvas_type": ("canvas type", "canvas"),
    "drill_type": ("drill type", "drilltype"),
    "kit_category": ("type of kit", "kit category", "category", "kit_category"),
    "date_purchased": ("date purchased",),
    "date_started": ("date started",),
    "date_completed": ("date completed",),
    "date_received": ("date received",),
    "notes": ("notes", "general notes"),
    "source_url": ("source url", "url", "source", "link"),
    "total_diamonds": ("total diamonds", "diamond count", "diamonds", "count"),
    "tags": ("tags", "tag", "labels"),
}

REQUIRED_FIELDS: Final[frozenset[str]] = frozenset({"title"})

FIELD_LIMITS: Final[dict[str, int]] = {
    "title": 200,
    "notes": 1000,
    "source_url": 500,
    "tag_name": 100,
}

_STATUS_SYNONYMS: Final[dict[str, ProjectStatus]] = {
    "wishlist": "wishlist",
    "wish list": "wishlist",
    "purchased": "purchased",
    "bought": "purchased",
    "stash": "stash",
    "owned": "stash",
    "progress": "progress",
    "in progress": "progress",
    "in_progress": "progress",
    "completed": "completed",
    "complete": "completed",
    "done": "completed",
    "finished": "completed",
    "archived": "archived",
    "destashed": "destashed",
}

_FULL_KIT_TERMS: Final[frozenset[str]] = frozenset({
    "full",
    "full sized",
    "full_sized_kit",
    "full sized kit",
    "full coverage",
    "full size",
    "full drill",
    "large",
    "big",
})
_MINI_KIT_TERMS: Final[frozenset[str]] = frozenset({
    "mini",
    "mini kit",
    "mini_kit",
    "small",
    "tiny",
})

_DRILL_SHAPES: Final[dict[str, DrillShape]] = {
    "round": "round",
    "r": "round",
    "square": "square",
    "s": "square",
}

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)", re.ASCII)
_DIMENSIONS = re.compile(r"(\d+)\s*[xX]\s*(\d+)", re.ASCII)
_THOUSANDS_AND_SPACE = re.compile(r"[,\s]")

TAG_SEPARATOR: Final = ";"


def get_field_value(row: Mapping[str, str], aliases: Sequence[str]) -> str | None:
    """Return the first non-blank (trimmed) value among ``aliases``."""
    for alias in aliases:
        value = row.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def parse_number(text: str | None) -> int | float | None:
    """Parse a leading decimal number (``"30cm"`` -> 30). Integral values become int."""
    if not text:
        return None
    match = _LEADING_NUMBER.match(text.strip())
    if match is None:
        return None
    value = float(match.group(0))
    if value.is_integer():
        return int(value)
    return value


def parse_count(text: str | None) -> int | None:
    """Parse a non-negative integer counter, ignoring thousands separators and spaces."""
    if not text:
        return None
    cleaned = _THOUSANDS_AND_SPACE.sub("", text)
    if not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return int(cleaned)


def normalize_status(text: str | None) -> ProjectStatus:
    if not text:
        return DEFAULT_STATUS
    return _STATUS_SYNONYMS.get(text.strip().lower(), DEFAULT_STATUS)


def normalize_kit_category(text: str | None) -> KitCategory | None:
    if not text:
        return None
    key = text.strip().lower()
    if key in _FULL_KIT_TERMS:
        return "full"
    if key in _MINI_KIT_TERMS:
        return "mini"
    return None


def normalize_drill_shape(text: str | None) -> DrillShape | None:
    if not text:
        return None
    return _DRILL_SHAPES.get(text.strip().lower())


def truncate_at_word_boundary(text: str, max_length: int) -> str:
    """Shorten ``text`` to at most ``max_length`` characters, preferring a word boundary."""
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        return truncated[:last_space].strip()

    hard = text[: max_length - 3]
    last_space = hard.rfind(" ")
    if last_space > (max_length - 3) * 0.8:
        return hard[:last_space].strip() + "..."
    return hard + "..."


def _limited(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    return truncate_at_word_boundary(value, FIELD_LIMITS[field])


def split_tags(text: str | None) -> tuple[str, ...]:
    """Split a tag cell on ``;`` (commas may appear inside tag names)."""
    if not text:
        return ()
    names = (piece.strip() for piece in text.split(TAG_SEPARATOR))
    return tuple(
        truncate_at_word_boundary(name, FIELD_LIMITS["tag_name"]) for name in names if name
    )


def _dimensions(row: Mapping[str, str]) -> tuple[int | float | None, int | float | None]:
    width = parse_number(get_field_value(row, FIELD_ALIASES["width"]))
    height = parse_number(get_field_value(row, FIELD_ALIASES["height"]))
    if width is None and height is None:
        combined = get_field_value(row, FIELD_ALIASES["dimensions"])
        if combined:
            match = _DIMENSIONS.search(combined)
            if match:
                width = int(match.group(1))
                height = int(match.group(2))
    return width, height


def normalize_row(row: Mapping[str, str], *, timezone: str = "UTC") -> PartialProject | Skip:
    """Normalize one raw row.

    Args:
        row: Header -> raw value mapping. Header matching is case-insensitive.
        timezone: Zone used by the date normalizer for offset-bearing values

    Returns:
        PartialProject, or SKIP when no title alias has a non-blank value
    """
    lowered = {str(k).lower().strip(): ("" if v is None else str(v)) for k, v in row.items()}

    def value(field: str) -> str | None:
        return get_field_value(lowered, FIELD_ALIASES[field])

    title = value("title")
    if not title:
        return SKIP

    width, height = _dimensions(lowered)

    return PartialProject(
        title=_limited(title, "title") or title,
        status=normalize_status(value("status")),
        company=value("company"),
        artist=value("artist"),
        drill_shape=normalize_drill_shape(value("drill_shape")),
        canvas_type=value("canvas_type"),
        drill_type=value("drill_type"),
        kit_category=normalize_kit_category(value("kit_category")),
        width=width,
        height=height,
        total_diamonds=parse_count(value("total_diamonds")),
        notes=_limited(value("notes"), "notes"),
        source_url=_limited(value("source_url"), "source_url"),
        date_purchased=normalize_date(value("date_purchased"), timezone),
        date_started=normalize_date(value("date_started"), timezone),
        date_completed=normalize_date(value("date_completed"), timezone),
        date_received=normalize_date(value("date_received"), timezone),
        tag_names=split_tags(value("tags")),
    )
