from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ..models.import_stats import ImportOutcome, ImportStats

"""Terminal notifications for an import run.

Exactly one notification is sent per completed run. Non-fatal problems (row
failures, tag warnings) are folded into that single message.
"""

__all__ = [
    "Notifier",
    "LogNotifier",
    "notify_completion",
    "MAX_LISTED_MESSAGES",
]

logger = logging.getLogger(__name__)

MAX_LISTED_MESSAGES = 5


@runtime_checkable
class Notifier(Protocol):
    def success(self, title: str, message: str) -> None: ...

    def warning(self, title: str, message: str) -> None: ...

    def error(self, title: str, message: str) -> None: ...


class LogNotifier:
    """Notifier that writes to the application logger."""

    def success(self, title: str, message: str) -> None:
        logger.info("%s: %s", title, message)

    def warning(self, title: str, message: str) -> None:
        logger.warning("%s: %s", title, message)

    def error(self, title: str, message: str) -> None:
        logger.error("%s: %s", title, message)


def _listed(messages: list[str]) -> str:
    shown = messages[:MAX_LISTED_MESSAGES]
    text = "\n".join(shown)
    if len(messages) > len(shown):
        text += f"\n... and {len(messages) - len(shown)} more"
    return text


def notify_completion(notifier: Notifier, stats: ImportStats) -> None:
    outcome = stats.outcome
    if outcome is ImportOutcome.NOTHING_TO_IMPORT:
        notifier.warning("No valid projects found", "The CSV file contains no rows with a project title.")
        return
    if outcome is ImportOutcome.ALL_SUCCEEDED:
        notifier.success("Import complete", f"Imported {stats.successful} projects.")
        return
    if outcome is ImportOutcome.ALL_FAILED:
        notifier.error(
            "Import failed",
            f"All {stats.failed} projects failed to import.\n{_listed(stats.errors)}",
        )
        return

    parts = [f"Imported {stats.successful} of {stats.total} projects."]
    if outcome is ImportOutcome.CANCELLED:
        parts.append(f"Import was cancelled after {stats.attempted} rows.")
    if stats.failed:
        parts.append(f"{stats.failed} failed:\n{_listed(stats.errors)}")
    if stats.tag_warnings:
        parts.append(f"{len(stats.tag_warnings)} tag warnings:\n{_listed(stats.tag_warnings)}")
    notifier.warning("Import complete", "\n".join(parts))
