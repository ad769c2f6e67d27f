import copy
from datetime import UTC, datetime

import pytest
from jira import JIRAError

from issue_timeline.analytics.metrics.status_metrics import derive_status_metrics
from issue_timeline.core.errors import IssueNotFound, TimelineNotFound, TransientLookupError
from issue_timeline.core.events import RecordingObserver
from issue_timeline.core.jira_client import JiraAPI
from issue_timeline.core.mappers import map_issue_timeline, timeline_to_dataframe
from issue_timeline.core.models import PersistenceState
from issue_timeline.core.service import TimelineService
from issue_timeline.core.status import default_taxonomy
from issue_timeline.core.store import InMemoryTimelineStore, WriteResult

NOW = datetime(2024, 1, 20, tzinfo=UTC)


def _at(day):
    return datetime(2024, 1, day, 10, tzinfo=UTC)


def _history(created, author, *items):
    return {
        "created": created,
        "author": {"displayName": author},
        "items": [{"field": f, "fromString": old, "toString": new} for f, old, new in items],
    }


ISSUE_JAN_3 = {
    "id": "10001",
    "key": "BUG-1",
    "fields": {
        "created": "2024-01-01T10:00:00.000+0000",
        "reporter": {"displayName": "Rita"},
        "status": {"name": "ASSIGNED"},
        "assignee": {"displayName": "Ann"},
        "priority": {"name": "Low"},
        "resolution": None,
    },
    "changelog": {
        "histories": [
            _history("2024-01-02T10:00:00.000+0000", "Ann", ("status", "NEW", "ASSIGNED"), ("assignee", None, "Ann")),
        ]
    },
}


def _issue_jan_20():
    raw = copy.deepcopy(ISSUE_JAN_3)
    raw["fields"].update(
        {"status": {"name": "RESOLVED"}, "priority": {"name": "High"}, "resolution": {"name": "FIXED"}}
    )
    raw["changelog"]["histories"] += [
        _history("2024-01-04T10:00:00.000+0000", "Bob", ("priority", "Low", "High")),
        _history(
            "2024-01-05T10:00:00.000+0000",
            "Ann",
            ("status", "ASSIGNED", "RESOLVED"),
            ("resolution", None, "FIXED"),
        ),
    ]
    return raw


def _bad_status_issue():
    raw = copy.deepcopy(ISSUE_JAN_3)
    raw["id"] = "10002"
    raw["key"] = "BUG-2"
    raw["fields"]["status"] = {"name": "WONTFIX"}
    raw["changelog"] = {"histories": []}
    return raw


class DummyAPI(JiraAPI):
    def __init__(self, issues):
        self.server = "https://example.atlassian.net"
        self.issues = issues
        self.jql: list[str] = []

    def fetch_issue_raw(self, issue_key):
        if issue_key == "BUG-503":
            raise TransientLookupError("Jira returned 503")
        if issue_key not in self.issues:
            raise IssueNotFound(f"issue {issue_key} does not exist")
        return copy.deepcopy(self.issues[issue_key])

    def search_keys(self, jql, page_size=1000):
        self.jql.append(jql)
        return sorted(self.issues)


def _service(issues, store=None):
    return TimelineService(
        DummyAPI(issues),
        store=store if store is not None else InMemoryTimelineStore(),
        taxonomy=default_taxonomy(),
        observer=RecordingObserver(),
    )


def test_build_timeline_extracts_without_storing():
    svc = _service({"BUG-1": _issue_jan_20()})
    tl = svc.build_timeline("BUG-1", since=_at(3))
    assert [v.status for v in tl] == ["ASSIGNED", "RESOLVED"]
    assert len(svc.store) == 0


def test_process_issue_first_import_uses_full_history():
    svc = _service({"BUG-1": ISSUE_JAN_3})
    progress = []
    tl = svc.process_issue("BUG-1", since=_at(3), now=NOW, progress=lambda m, c, t: progress.append(m))
    assert [v.from_ for v in tl] == [_at(1), _at(2)]
    assert {v.persistence_state for v in svc.store.find(10001)} == {PersistenceState.SAVED}
    assert progress[0] == "Fetching history for BUG-1"


def test_incremental_update_matches_full_recompute():
    store = InMemoryTimelineStore()
    _service({"BUG-1": ISSUE_JAN_3}, store).process_issue("BUG-1", now=_at(3))

    svc = _service({"BUG-1": _issue_jan_20()}, store)
    merged = svc.process_issue("BUG-1", since=_at(3), now=NOW)
    assert [v.persistence_state for v in merged] == [
        PersistenceState.SAVED,
        PersistenceState.DIRTY,
        PersistenceState.NEW,
        PersistenceState.NEW,
    ]
    assert svc.observer.kinds()[0] == "rebase_start"

    full = map_issue_timeline(_issue_jan_20())
    derive_status_metrics(full, default_taxonomy(), now=NOW, observer=RecordingObserver())
    merged_df = timeline_to_dataframe(merged).drop(columns=["persistence_state"])
    full_df = timeline_to_dataframe(full).drop(columns=["persistence_state"])
    assert merged_df.equals(full_df)
    assert len(store.find(10001)) == 4


def test_batch_isolates_failures():
    svc = _service({"BUG-1": ISSUE_JAN_3, "BUG-2": _bad_status_issue()})
    result = svc.process_batch(["BUG-1", "BUG-2", "BUG-404", "BUG-503"], now=NOW)
    assert list(result.processed) == ["BUG-1"]
    assert set(result.failed) == {"BUG-2", "BUG-404"}
    assert "WONTFIX" in result.failed["BUG-2"]
    assert result.retry == ["BUG-503"]
    assert not result.ok
    assert 10001 in svc.store and 10002 not in svc.store


def test_process_project_updates_queries_recent_issues():
    svc = _service({"BUG-1": ISSUE_JAN_3})
    calls = []
    result = svc.process_project_updates("BUG", _at(2), now=NOW, progress=lambda m, c, t: calls.append((c, t)))
    assert result.ok
    assert "project = BUG AND updated >= '2024-01-02 10:00'" in svc.api.jql[0]
    assert calls[-1] == (1, 1)


class FailingClient:
    def __init__(self, status_code):
        self.status_code = status_code

    def issue(self, key, fields=None, expand=None):
        raise JIRAError(text="boom", status_code=self.status_code)


class FailingAPI(JiraAPI):
    def __init__(self, status_code):
        self.server = "https://example.atlassian.net"
        self.client = FailingClient(status_code)


def test_jira_client_classifies_lookup_failures():
    with pytest.raises(IssueNotFound):
        FailingAPI(404).fetch_issue_raw("BUG-9")
    with pytest.raises(TransientLookupError):
        FailingAPI(502).fetch_issue_raw("BUG-9")


class FlakyNetworkAPI(DummyAPI):
    def fetch_issue_raw(self, issue_key):
        if issue_key == "BUG-X":
            raise ConnectionError("connection reset by peer")
        return super().fetch_issue_raw(issue_key)


def test_batch_records_unexpected_errors_and_continues():
    svc = TimelineService(
        FlakyNetworkAPI({"BUG-1": ISSUE_JAN_3}),
        store=InMemoryTimelineStore(),
        taxonomy=default_taxonomy(),
        observer=RecordingObserver(),
    )
    result = svc.process_batch(["BUG-X", "BUG-1"], now=NOW)
    assert list(result.processed) == ["BUG-1"]
    assert result.failed == {"BUG-X": "connection reset by peer"}
    assert result.retry == []
    assert 10001 in svc.store


def test_naive_datetimes_are_localized_to_configured_timezone():
    svc = _service({"BUG-1": _issue_jan_20()})
    result = svc.process_batch(["BUG-1"], since=datetime(2024, 1, 2), now=datetime(2024, 1, 20))
    assert result.ok
    tl = result.processed["BUG-1"]
    assert [v.from_ for v in tl] == [_at(1), _at(2), _at(4), _at(5)]
    assert tl.last_version.derived.major_status == "CLOSED"

    windowed = svc.build_timeline("BUG-1", since=datetime(2024, 1, 3))
    assert [v.from_ for v in windowed] == [_at(4), _at(5)]


class DictStore:
    """Minimal lookup + sink keeping whatever it is given."""

    def __init__(self):
        self.timelines = {}
        self.writes = []

    def find(self, bug_id):
        if bug_id not in self.timelines:
            raise TimelineNotFound("nothing stored", bug_id=bug_id)
        return self.timelines[bug_id]

    def write(self, timeline):
        self.writes.append(timeline.id)
        self.timelines[timeline.id] = timeline
        return WriteResult(inserted=True, written=len(timeline), skipped=0)


def test_service_accepts_any_timeline_store():
    store = DictStore()
    svc = _service({"BUG-1": ISSUE_JAN_3}, store)
    tl = svc.process_issue("BUG-1", now=NOW)
    assert store.writes == [10001]
    assert store.find(10001) is tl
