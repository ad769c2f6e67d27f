from datetime import UTC, datetime

import pandas as pd
import pytest

from issue_timeline.analytics.metrics.status_metrics import derive_status_metrics
from issue_timeline.core.config import OPEN_ENDED
from issue_timeline.core.errors import ExtractionError, PreconditionViolation
from issue_timeline.core.events import RecordingObserver
from issue_timeline.core.fields import Facet
from issue_timeline.core.mappers import map_issue_timeline, timeline_to_dataframe
from issue_timeline.core.status import default_taxonomy


def _history(created, author, *items):
    return {
        "created": created,
        "author": {"displayName": author},
        "items": [{"field": f, "fromString": old, "toString": new} for f, old, new in items],
    }


def _raw_issue():
    return {
        "id": "10001",
        "key": "BUG-1",
        "fields": {
            "created": "2024-01-01T10:00:00.000+0000",
            "reporter": {"displayName": "Rita"},
            "status": {"name": "RESOLVED"},
            "assignee": {"displayName": "Ann"},
            "priority": {"name": "High"},
            "resolution": {"name": "FIXED"},
        },
        "changelog": {
            "histories": [
                _history(
                    "2024-01-05T10:00:00.000+0000",
                    "Ann",
                    ("status", "ASSIGNED", "RESOLVED"),
                    ("resolution", None, "FIXED"),
                ),
                _history("2024-01-03T10:00:00.000+0000", "Bob", ("labels", "", "triage")),
                _history("2024-01-04T10:00:00.000+0000", "Bob", ("priority", "Low", "High")),
                _history(
                    "2024-01-02T10:00:00.000+0000",
                    "Ann",
                    ("status", "NEW", "ASSIGNED"),
                    ("assignee", None, "Ann"),
                ),
            ]
        },
    }


def _at(day):
    return datetime(2024, 1, day, 10, tzinfo=UTC)


def test_changelog_replay_builds_versions():
    tl = map_issue_timeline(_raw_issue())
    assert tl.id == 10001
    assert tl.reporter == "Rita"
    assert [(v.from_, v.to) for v in tl] == [
        (_at(1), _at(2)),
        (_at(2), _at(4)),
        (_at(4), _at(5)),
        (_at(5), OPEN_ENDED),
    ]
    assert [v.status for v in tl] == ["NEW", "ASSIGNED", "ASSIGNED", "RESOLVED"]
    assert [v.facets[Facet.PRIORITY] for v in tl] == ["Low", "Low", "High", "High"]
    assert [v.facets[Facet.ASSIGNED_TO] for v in tl] == [None, "Ann", "Ann", "Ann"]
    assert [v.modified_by for v in tl] == ["Rita", "Ann", "Bob", "Ann"]
    assert tl.last_version.facets[Facet.RESOLUTION] == "FIXED"
    assert tl.never_saved()


def test_since_drops_earlier_versions():
    tl = map_issue_timeline(_raw_issue(), since=_at(3))
    assert [v.from_ for v in tl] == [_at(4), _at(5)]


def test_naive_since_is_rejected():
    with pytest.raises(PreconditionViolation) as exc:
        map_issue_timeline(_raw_issue(), since=datetime(2024, 1, 3))
    assert exc.value.bug_id == 10001


def test_histories_at_same_instant_form_one_version():
    raw = _raw_issue()
    raw["changelog"]["histories"].append(
        _history("2024-01-05T10:00:00.000+0000", "Ann", ("assignee", "Ann", "Ann"))
    )
    assert len(map_issue_timeline(raw)) == 4


def test_issue_without_history_has_single_open_version():
    raw = _raw_issue()
    raw["fields"]["status"] = {"name": "NEW"}
    raw["changelog"] = {"histories": []}
    tl = map_issue_timeline(raw)
    assert len(tl) == 1
    assert tl.first_version.to == OPEN_ENDED
    assert tl.first_version.status == "NEW"


def test_extraction_errors():
    raw = _raw_issue()
    raw["id"] = None
    with pytest.raises(ExtractionError):
        map_issue_timeline(raw)
    raw = _raw_issue()
    raw["fields"]["created"] = None
    with pytest.raises(ExtractionError) as exc:
        map_issue_timeline(raw)
    assert exc.value.bug_id == 10001


def test_timeline_to_dataframe_columns():
    tl = map_issue_timeline(_raw_issue())
    df = timeline_to_dataframe(tl)
    assert len(df) == 4
    assert (df["number"] == -1).all()
    assert df["major_status"].isna().all()

    derive_status_metrics(tl, default_taxonomy(), now=_at(20), observer=RecordingObserver())
    df = timeline_to_dataframe(tl)
    assert list(df["number"]) == [1, 2, 3, 4]
    assert list(df["status"]) == ["NEW", "ASSIGNED", "ASSIGNED", "RESOLVED"]
    assert list(df["major_status"]) == ["OPEN", "OPEN", "OPEN", "CLOSED"]
    assert df.loc[0, "days_in_previous_status"] == -1
    assert df.loc[3, "days_in_status"] == -1
    assert df.loc[3, "days_open_accumulated"] == 4
    assert set(df["persistence_state"]) == {"new"}


def test_empty_timeline_to_dataframe():
    tl = map_issue_timeline(_raw_issue(), since=_at(30))
    assert len(tl) == 0
    assert timeline_to_dataframe(tl).empty
    assert isinstance(timeline_to_dataframe(tl), pd.DataFrame)
