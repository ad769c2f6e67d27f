"""Structured diagnostic events emitted while merging and deriving timelines.

Callers inject an observer into ``rebase`` and ``derive_status_metrics``.
The default observer forwards events to :mod:`logging`; tests use
``RecordingObserver`` to assert on what happened instead of parsing text.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import Version

# Event kinds
REBASE_START = "rebase_start"
STALE_EXISTING = "stale_existing"
DISCARD = "discard"
PREPEND = "prepend"
REBASE_DONE = "rebase_done"
DERIVED = "derived"
DERIVE_DONE = "derive_done"


@dataclass(frozen=True, slots=True)
class TimelineEvent:
    kind: str
    bug_id: int
    version: Version | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [f"[{self.kind.upper():<14}] bug #{self.bug_id}"]
        if self.version is not None:
            parts.append(str(self.version))
        if self.detail:
            parts.append(", ".join(f"{k}={v}" for k, v in sorted(self.detail.items())))
        return " ".join(parts)


TimelineObserver = Callable[[TimelineEvent], None]


class LoggingObserver:
    """Trace every event at ``level`` (DEBUG unless told otherwise)."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("issue_timeline")
        self.level = level

    def __call__(self, event: TimelineEvent) -> None:
        self.logger.log(self.level, "%s", event.describe())


class RecordingObserver:
    def __init__(self):
        self.events: list[TimelineEvent] = []

    def __call__(self, event: TimelineEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: str) -> list[TimelineEvent]:
        return [e for e in self.events if e.kind == kind]


def default_observer() -> TimelineObserver:
    return LoggingObserver()
