"""Incremental merge of freshly extracted history onto persisted history."""

from __future__ import annotations

import logging

from .errors import PreconditionViolation
from .events import (
    DISCARD,
    PREPEND,
    REBASE_DONE,
    REBASE_START,
    STALE_EXISTING,
    TimelineEvent,
    TimelineObserver,
    default_observer,
)
from .timeline import BugTimeline

logger = logging.getLogger(__name__)


def rebase(
    incoming: BugTimeline,
    existing: BugTimeline,
    observer: TimelineObserver | None = None,
) -> BugTimeline:
    """Prepend all versions of ``existing`` to ``incoming``, in place.

    An incremental update recomputes a bug's history from some cutoff time.
    The recomputed versions are stitched onto the tail of the persisted ones:

    1. Any incoming version that does not start strictly after the most
       recent persisted version is discarded; it is already covered (this
       happens when an incremental run repeats a window that was imported).
    2. The most recent persisted version is closed at the start of the first
       surviving incoming version, so the join has no gap and no overlap.
       It is left alone when nothing survives.
    3. The persisted versions are prepended, keeping their order and
       persistence states (the stitched one becomes dirty if it was saved).

    ``existing`` is consumed; its versions now belong to ``incoming``.

    Raises
    ------
    PreconditionViolation
        If the ids differ or ``existing`` has no versions.
    """
    notify = observer or default_observer()
    bug_id = incoming.id
    if existing.id != bug_id:
        raise PreconditionViolation(f"cannot rebase onto bug #{existing.id}", bug_id=bug_id)
    most_recent_existing = existing.last_version

    notify(
        TimelineEvent(
            REBASE_START,
            bug_id,
            detail={"incoming": str(incoming), "existing": str(existing)},
        )
    )

    if len(incoming) and most_recent_existing.from_ > incoming.last_version.from_:
        logger.warning("Persistent version of bug #%s newer than version to import", bug_id)
        notify(
            TimelineEvent(
                STALE_EXISTING,
                bug_id,
                version=most_recent_existing,
                detail={"incoming_latest_from": incoming.last_version.from_.isoformat()},
            )
        )

    while len(incoming) and not incoming.first_version.from_ > most_recent_existing.from_:
        notify(TimelineEvent(DISCARD, bug_id, version=incoming.pop_first()))

    is_most_recent = True
    for version in reversed(existing.take_versions()):
        if is_most_recent and len(incoming):
            version = version.update(incoming.first_version.from_)
        is_most_recent = False
        incoming.prepend(version)
        notify(TimelineEvent(PREPEND, bug_id, version=version))

    notify(TimelineEvent(REBASE_DONE, bug_id, detail={"result": str(incoming)}))
    return incoming
