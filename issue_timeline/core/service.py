"""TimelineService: orchestrates extract, lookup, rebase, derive, and write."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

import pytz

from issue_timeline.analytics.metrics.status_metrics import derive_status_metrics

from .config import TIMEZONE
from .errors import TimelineError, TimelineNotFound, TransientLookupError
from .events import TimelineObserver, default_observer
from .jira_client import JiraAPI
from .mappers import map_issue_timeline
from .rebase import rebase
from .status import StatusTaxonomy, load_status_taxonomy
from .store import InMemoryTimelineStore, TimelineStore
from .timeline import BugTimeline

ProgressCallback = Callable[[str, int | None, int | None], None]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchResult:
    processed: dict[str, BugTimeline] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    retry: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.retry


class TimelineService:
    def __init__(
        self,
        api: JiraAPI,
        store: TimelineStore | None = None,
        taxonomy: StatusTaxonomy | None = None,
        observer: TimelineObserver | None = None,
    ):
        self.api = api
        self.store = store if store is not None else InMemoryTimelineStore()
        self.taxonomy = taxonomy or load_status_taxonomy()
        self.observer = observer or default_observer()
        self._tz = pytz.timezone(TIMEZONE)

    def _localize(self, value: datetime | None) -> datetime | None:
        """Naive datetimes are taken to be in the configured timezone."""
        if value is None or value.tzinfo is not None:
            return value
        return self._tz.localize(value)

    def build_timeline(self, issue_key: str, since: datetime | None = None) -> BugTimeline:
        """Fetch one issue and extract its (possibly windowed) history."""
        return map_issue_timeline(self.api.fetch_issue_raw(issue_key), since=self._localize(since))

    def process_issue(
        self,
        issue_key: str,
        since: datetime | None = None,
        now: datetime | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> BugTimeline:
        """Run the full pipeline for one issue and write the result to the store.

        With ``since`` set the update is incremental: only history from
        ``since`` on is recomputed and rebased onto the persisted timeline.
        When nothing is persisted yet the full history is used instead.
        Naive ``since``/``now`` values are localized to ``TIMEZONE``.
        """
        since = self._localize(since)
        now = self._localize(now) or datetime.now(self._tz)
        if progress:
            progress(f"Fetching history for {issue_key}", None, None)
        raw = self.api.fetch_issue_raw(issue_key)
        timeline = map_issue_timeline(raw, since=since)

        try:
            existing = self.store.find(timeline.id)
        except TimelineNotFound:
            logger.debug("No persisted timeline for %s (bug #%s)", issue_key, timeline.id)
            if since is not None:
                timeline = map_issue_timeline(raw)
        else:
            if progress:
                progress(f"Merging with stored history of {issue_key}", None, None)
            rebase(timeline, existing, observer=self.observer)

        if progress:
            progress(f"Deriving status metrics for {issue_key}", None, None)
        derive_status_metrics(timeline, self.taxonomy, now=now, observer=self.observer)
        result = self.store.write(timeline)
        logger.info(
            "Processed %s (bug #%s): %s version(s), %s written",
            issue_key,
            timeline.id,
            len(timeline),
            result.written,
        )
        return timeline

    def process_batch(
        self,
        issue_keys: Iterable[str],
        since: datetime | None = None,
        now: datetime | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Process issues one by one; a failing issue never stops the others."""
        keys = list(issue_keys)
        since = self._localize(since)
        now = self._localize(now) or datetime.now(self._tz)
        outcome = BatchResult()
        if progress:
            progress("Processing issue histories", 0, len(keys))
        for idx, key in enumerate(keys, start=1):
            try:
                outcome.processed[key] = self.process_issue(key, since=since, now=now)
            except TransientLookupError as exc:
                logger.warning("Lookup for %s failed, will retry: %s", key, exc)
                outcome.retry.append(key)
            except TimelineError as exc:
                logger.error("Failed to process %s: %s", key, exc)
                outcome.failed[key] = str(exc)
            except Exception as exc:
                logger.exception("Unexpected error while processing %s", key)
                outcome.failed[key] = str(exc) or type(exc).__name__
            if progress:
                progress("Processing issue histories", idx, len(keys))
        return outcome

    def process_project_updates(
        self,
        project_key: str,
        since: datetime,
        now: datetime | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Incrementally update every issue of a project touched since ``since``."""
        since = self._localize(since)
        since_str = since.strftime("%Y-%m-%d %H:%M")
        jql = f"project = {project_key} AND updated >= '{since_str}' ORDER BY key"
        if progress:
            progress(f"Querying issues updated in {project_key}", None, None)
        keys = self.api.search_keys(jql)
        return self.process_batch(keys, since=since, now=now, progress=progress)
