from __future__ import annotations

from ..models.import_stats import ImportStats

"""SUMMARY line rendering for the CSV project importer.

Format:
SUMMARY rows={total} success={successful} failed={failed} skipped={skipped_rows}
tags_created={created_tags} tag_warnings={n} outcome={outcome} elapsed_sec={elapsed}
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Integral values without a fraction, tiny values without scientific notation.

    >>> format_elapsed(2.0)
    '2'
    >>> format_elapsed(0.0001234)
    '0.000123'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(stats: ImportStats) -> str:
    """Render the SUMMARY line for a finished run.

    Examples:
        >>> stats = ImportStats(successful=9, failed=1, total=10, skipped_rows=2)
        >>> render_summary_line(stats)  # doctest: +ELLIPSIS
        'SUMMARY rows=10 success=9 failed=1 skipped=2 tags_created=0 tag_warnings=0 outcome=partial_failure elapsed_sec=0'
    """
    return (
        f"SUMMARY rows={stats.total} "
        f"success={stats.successful} "
        f"failed={stats.failed} "
        f"skipped={stats.skipped_rows} "
        f"tags_created={stats.created_tags} "
        f"tag_warnings={len(stats.tag_warnings)} "
        f"outcome={stats.outcome.value} "
        f"elapsed_sec={format_elapsed(stats.elapsed_seconds)}"
    )
