from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Weighted import progress with tqdm (TTY only).

One bar with total=100 covers the whole run. Phase weights:

- parsing          0 -> 10
- tag resolution  10 -> 25 (15 once existing tags are listed, then per new tag)
- project rows    25 -> 100 (linear in row index)

Reported values never decrease and never reach 100 before finish().
"""

__all__ = [
    "PARSE_END",
    "TAGS_LISTED",
    "TAGS_END",
    "ImportProgress",
    "is_tty_enabled",
]

PARSE_END = 10
TAGS_LISTED = 15
TAGS_END = 25
DONE = 100


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled (non-TTY / CI では進捗バーを出さない)."""
    return sys.stdout.isatty()


class ImportProgress:
    """Monotonic 0-100 progress for one import run.

    Args:
        callback: Optional ``callback(percent)`` invoked on every change
        show_bar: Force the tqdm bar on/off (default: only on a TTY)
    """

    def __init__(
        self,
        callback: Callable[[int], None] | None = None,
        *,
        show_bar: bool | None = None,
        description: str = "Importing",
    ) -> None:
        self._callback = callback
        self.value = 0
        self.enabled = is_tty_enabled() if show_bar is None else show_bar
        self.pbar: TqdmType[Any] | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=DONE,
                desc=description,
                unit="%",
                leave=True,
                ncols=80,
                ascii=True,
            )

    def report(self, percent: float) -> None:
        """Advance to ``percent`` (clamped to 0-99; lower values are ignored)."""
        self._advance(max(0, min(int(percent), DONE - 1)))

    def _advance(self, target: int) -> None:
        if target <= self.value:
            return
        if self.pbar is not None:
            self.pbar.update(target - self.value)
        self.value = target
        if self._callback is not None:
            self._callback(target)

    def parsing(self, percent: int) -> None:
        """Map parser progress (0-99) onto 0-10."""
        self.report(percent * PARSE_END / 100)

    def tags_listed(self) -> None:
        self.report(TAGS_LISTED)

    def tag_processed(self, done: int, total: int) -> None:
        if total <= 0:
            return
        self.report(TAGS_LISTED + (TAGS_END - TAGS_LISTED) * done / total)

    def row_done(self, index: int, total: int) -> None:
        """Row ``index`` (0-based) of ``total`` finished."""
        if total <= 0:
            return
        self.report(TAGS_END + (DONE - TAGS_END) * (index + 1) / total)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def finish(self) -> None:
        """Report 100. Only called once the whole run has completed."""
        self._advance(DONE)
        self.close()

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
