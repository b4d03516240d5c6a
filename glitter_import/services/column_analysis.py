from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .normalizer import FIELD_ALIASES, REQUIRED_FIELDS

"""Header analysis for ``--inspect-data``.

Reports which CSV headers feed which project field, which fields have no
matching header, and which headers are ignored.
"""

__all__ = [
    "ColumnAnalysis",
    "analyze_columns",
]


@dataclass
class ColumnAnalysis:
    mapped: dict[str, str] = field(default_factory=dict)  # field -> header
    missing_required: list[str] = field(default_factory=list)
    missing_optional: list[str] = field(default_factory=list)
    unmapped: list[str] = field(default_factory=list)

    @property
    def is_importable(self) -> bool:
        return not self.missing_required


def analyze_columns(headers: Iterable[str]) -> ColumnAnalysis:
    """Match ``headers`` (case-insensitive) against the field aliases.

    The first alias present wins, mirroring row normalization. ``length`` and
    ``dimensions`` count as the source of ``height`` / ``width`` only when no
    better header exists.
    """
    lowered = {str(h).lower().strip(): str(h) for h in headers}
    analysis = ColumnAnalysis()
    used: set[str] = set()

    for field_name, aliases in FIELD_ALIASES.items():
        match = next((a for a in aliases if a in lowered), None)
        if match is not None:
            analysis.mapped[field_name] = lowered[match]
            used.update(a for a in aliases if a in lowered)
        elif field_name in REQUIRED_FIELDS:
            analysis.missing_required.append(field_name)
        elif field_name != "dimensions":
            analysis.missing_optional.append(field_name)

    if "dimensions" in analysis.mapped:
        # 幅・高さは dimensions 列から補える
        analysis.missing_optional = [
            f for f in analysis.missing_optional if f not in ("width", "height")
        ]

    analysis.unmapped = [original for key, original in lowered.items() if key not in used]
    return analysis
