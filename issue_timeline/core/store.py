"""Lookup and sink contracts for persisted timelines, with an in-memory store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .errors import TimelineNotFound
from .models import PersistenceState, Version
from .timeline import BugTimeline

logger = logging.getLogger(__name__)


class TimelineLookup(Protocol):
    def find(self, bug_id: int) -> BugTimeline:
        """Persisted timeline for ``bug_id``.

        Raises ``TimelineNotFound`` when nothing is stored for the id and
        ``TransientLookupError`` when the store cannot answer right now.
        """
        ...


class TimelineSink(Protocol):
    def write(self, timeline: BugTimeline) -> WriteResult: ...


class TimelineStore(TimelineLookup, TimelineSink, Protocol):
    """Lookup and sink over the same persisted timelines."""


@dataclass(frozen=True, slots=True)
class WriteResult:
    inserted: bool
    written: int
    skipped: int


class InMemoryTimelineStore:
    """Dict-backed store keyed by bug id; a single writer per id is assumed."""

    def __init__(self):
        self._timelines: dict[int, tuple[str, tuple[Version, ...]]] = {}

    def __contains__(self, bug_id: int) -> bool:
        return bug_id in self._timelines

    def __len__(self) -> int:
        return len(self._timelines)

    def find(self, bug_id: int) -> BugTimeline:
        stored = self._timelines.get(bug_id)
        if stored is None:
            raise TimelineNotFound("no persisted timeline", bug_id=bug_id)
        reporter, versions = stored
        timeline = BugTimeline(bug_id, reporter)
        for version in versions:
            timeline.append(version)
        return timeline

    def write(self, timeline: BugTimeline) -> WriteResult:
        """Insert a never-saved timeline, otherwise update the changed versions."""
        inserted = timeline.never_saved()
        if not inserted and timeline.id not in self._timelines:
            logger.warning("Bug #%s has persisted versions but is missing from the store", timeline.id)
        written = 0
        skipped = 0
        stored: list[Version] = []
        for version in timeline:
            if version.persistence_state is PersistenceState.SAVED:
                skipped += 1
                stored.append(version)
                continue
            written += 1
            stored.append(version.with_state(PersistenceState.SAVED))
        self._timelines[timeline.id] = (timeline.reporter, tuple(stored))
        logger.debug(
            "%s bug #%s: %s version(s) written, %s unchanged",
            "Inserted" if inserted else "Updated",
            timeline.id,
            written,
            skipped,
        )
        return WriteResult(inserted=inserted, written=written, skipped=skipped)
