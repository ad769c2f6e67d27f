"""Status transition metrics derived in one forward pass over a bug timeline.

Each version receives a :class:`DerivedAttributes` record with its major
status, the status it came from, how long the previous (major) status
lasted, how long the current one has lasted so far, how long the bug has
been open in total, and how many times it was reopened.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytz

from issue_timeline.core.config import ONE_DAY, TIMEZONE
from issue_timeline.core.errors import PreconditionViolation
from issue_timeline.core.events import (
    DERIVE_DONE,
    DERIVED,
    TimelineEvent,
    TimelineObserver,
    default_observer,
)
from issue_timeline.core.models import DerivedAttributes, Version
from issue_timeline.core.status import StatusTaxonomy
from issue_timeline.core.timeline import BugTimeline


def to_days(elapsed: timedelta) -> int:
    """Whole days in ``elapsed``, truncated (36 hours is 1 day)."""
    return elapsed // ONE_DAY


def derive_status_metrics(
    timeline: BugTimeline,
    taxonomy: StatusTaxonomy,
    now: datetime | None = None,
    observer: TimelineObserver | None = None,
) -> BugTimeline:
    """Attach derived attributes to every version of ``timeline``, in place.

    Parameters
    ----------
    timeline : BugTimeline
        Fully assembled (and, if needed, rebased) timeline.
    taxonomy : StatusTaxonomy
        Raw to major status mapping plus open/reopened classification.
    now : datetime, optional
        Reference time; a version ending after it is the bug's current
        state. Defaults to the current time in the configured timezone.
    observer : callable, optional
        Receives one ``derived`` event per version and a ``derive_done``.

    Returns
    -------
    BugTimeline
        The same timeline, with each version replaced by its derived copy.

    Raises
    ------
    PreconditionViolation
        If the timeline has no versions, or ``now`` is naive.
    MissingStatusMapping
        If a version's status has no major status in ``taxonomy``.
    """
    notify = observer or default_observer()
    if not len(timeline):
        raise PreconditionViolation("cannot derive metrics of a timeline without versions", bug_id=timeline.id)
    if now is None:
        now = datetime.now(pytz.timezone(TIMEZONE))
    elif now.tzinfo is None:
        raise PreconditionViolation(f"reference time {now} has no timezone", bug_id=timeline.id)

    number = 1
    previous_status: str | None = None
    previous_major_status: str | None = None
    status_clock = timedelta(0)
    major_status_clock = timedelta(0)
    open_accumulated = timedelta(0)
    reopened = 0

    derived_versions: list[Version] = []
    for version in timeline:
        is_latest = version.to > now
        status = version.status
        major_status = taxonomy.major_status(status, bug_id=timeline.id)

        days_in_previous_status: int | None = None
        days_in_previous_major_status: int | None = None
        if number > 1 and status != previous_status:
            days_in_previous_status = to_days(status_clock)
            status_clock = timedelta(0)
            if major_status != previous_major_status:
                if taxonomy.is_reopened(status):
                    reopened += 1
                days_in_previous_major_status = to_days(major_status_clock)
                major_status_clock = timedelta(0)

        status_clock += version.duration
        major_status_clock += version.duration
        if not is_latest and taxonomy.is_open(major_status):
            open_accumulated += version.duration

        derived = DerivedAttributes(
            number=number,
            major_status=major_status,
            previous_status=previous_status,
            previous_major_status=previous_major_status,
            days_in_previous_status=days_in_previous_status,
            days_in_previous_major_status=days_in_previous_major_status,
            days_in_status=None if is_latest else to_days(status_clock),
            days_in_major_status=None if is_latest else to_days(major_status_clock),
            days_open_accumulated=to_days(open_accumulated),
            times_reopened=reopened,
        )
        derived_version = version.with_derived(derived)
        derived_versions.append(derived_version)
        notify(TimelineEvent(DERIVED, timeline.id, version=derived_version, detail={"latest": is_latest}))

        previous_status = status
        previous_major_status = major_status
        number += 1

    timeline.replace_versions(derived_versions)
    notify(TimelineEvent(DERIVE_DONE, timeline.id, detail={"versions": len(derived_versions)}))
    return timeline
