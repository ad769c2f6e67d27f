"""Mapping raw Jira issue JSON into bug timelines, and timelines into DataFrames."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd

from .config import OPEN_ENDED, TRACKED_FIELDS
from .errors import ExtractionError, PreconditionViolation
from .fields import Facet, Measurement
from .models import NOT_APPLICABLE, Version
from .timeline import BugTimeline


@dataclass(slots=True)
class Activity:
    """All tracked field changes recorded at one instant."""

    when: datetime
    author: str | None
    changes: list[tuple[Facet, str | None, str | None]] = field(default_factory=list)


def _parse_dt(val) -> datetime | None:
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _display_name(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("displayName") or value.get("name")
    return value


def _current_state(fields: dict[str, Any]) -> dict[Facet, str | None]:
    state: dict[Facet, str | None] = {}
    for jira_field, facet in TRACKED_FIELDS.items():
        state[facet] = _display_name(fields.get(jira_field))
    return state


def _collect_activities(histories: Iterable[dict[str, Any]]) -> list[Activity]:
    """Group tracked changelog items by timestamp, oldest first."""
    by_time: dict[datetime, Activity] = {}
    for h in histories:
        when = _parse_dt(h.get("created"))
        if when is None:
            continue
        tracked = []
        for item in h.get("items") or []:
            facet = TRACKED_FIELDS.get(str(item.get("field") or "").lower())
            if facet is None:
                continue
            tracked.append((facet, item.get("fromString"), item.get("toString")))
        if not tracked:
            continue
        activity = by_time.get(when)
        if activity is None:
            activity = by_time[when] = Activity(when=when, author=_display_name(h.get("author")))
        activity.changes.extend(tracked)
    return [by_time[when] for when in sorted(by_time)]


def map_issue_timeline(raw: dict[str, Any], since: datetime | None = None) -> BugTimeline:
    """Build the version history of one Jira issue.

    The issue only reports its current field values, so the changelog is
    replayed from newest to oldest, restoring each ``fromString``, to recover
    the state at creation. Versions are then emitted from oldest to newest:
    ``[created, t1)``, ``[t1, t2)``, ..., ``[tn, OPEN_ENDED)``.

    Parameters
    ----------
    raw : dict
        Issue JSON with ``expand=changelog``.
    since : datetime, optional
        Incremental window start; versions starting before it are dropped.

    Raises
    ------
    ExtractionError
        If the payload has no numeric id or no creation timestamp.
    PreconditionViolation
        If ``since`` is a naive datetime.
    """
    try:
        bug_id = int(raw.get("id"))
    except (TypeError, ValueError) as exc:
        raise ExtractionError(f"issue {raw.get('key')!r} has no numeric id") from exc
    if since is not None and since.tzinfo is None:
        raise PreconditionViolation(f"window start {since} has no timezone", bug_id=bug_id)
    fields = raw.get("fields") or {}
    created = _parse_dt(fields.get("created"))
    if created is None:
        raise ExtractionError(f"issue {raw.get('key')!r} has no creation timestamp", bug_id=bug_id)
    reporter = _display_name(fields.get("reporter")) or "Unknown"

    activities = _collect_activities((raw.get("changelog") or {}).get("histories") or [])

    state = _current_state(fields)
    for activity in reversed(activities):
        for facet, removed, _added in reversed(activity.changes):
            state[facet] = removed

    timeline = BugTimeline(bug_id, reporter)
    start, author = created, reporter
    versions: list[Version] = []
    for activity in activities:
        if activity.when > start:
            versions.append(Version(from_=start, to=activity.when, facets=state, modified_by=author))
            start, author = activity.when, activity.author
        for facet, _removed, added in activity.changes:
            state[facet] = added
    versions.append(Version(from_=start, to=OPEN_ENDED, facets=state, modified_by=author))

    for version in versions:
        if since is not None and version.from_ < since:
            continue
        timeline.append(version)
    return timeline


def timeline_to_dataframe(timeline: BugTimeline) -> pd.DataFrame:
    """One row per version with every facet and measurement as a column.

    Measurements follow the external contract: ``-1`` where not applicable
    or not derived yet.
    """
    rows = []
    for v in timeline:
        measurements = v.all_measurements()
        row: dict[str, Any] = {
            "bug_id": timeline.id,
            "number": measurements.get(Measurement.NUMBER, NOT_APPLICABLE),
            "from": v.from_,
            "to": v.to,
            "persistence_state": v.persistence_state.value,
            "modified_by": v.modified_by,
        }
        facets = v.all_facets()
        for facet in Facet:
            row[facet.value] = facets.get(facet)
        for measurement in Measurement:
            if measurement is Measurement.NUMBER:
                continue
            row[measurement.value] = measurements.get(measurement, NOT_APPLICABLE)
        rows.append(row)
    return pd.DataFrame(rows)
