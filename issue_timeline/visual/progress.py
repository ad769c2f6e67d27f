"""Progress reporting for timeline pipeline runs on Streamlit pages."""

from __future__ import annotations

import streamlit as st

from issue_timeline.core.service import BatchResult
from issue_timeline.core.timeline import BugTimeline

# Message prefix emitted by TimelineService -> share of a single-issue run done
PIPELINE_STAGES: dict[str, float] = {
    "Querying": 0.05,
    "Fetching": 0.1,
    "Merging": 0.4,
    "Deriving": 0.7,
}


def stage_ratio(message: str, current: int | None, total: int | None, previous: float = 0.0) -> float:
    """Bar position for a callback: counted batches first, then known stages.

    The bar never moves backwards within one run.
    """
    if total:
        ratio = (current or 0) / total
    else:
        ratio = next((share for prefix, share in PIPELINE_STAGES.items() if message.startswith(prefix)), 0.0)
    return max(previous, min(max(ratio, 0.0), 1.0))


def summarize_timeline(timeline: BugTimeline) -> str:
    return f"Bug #{timeline.id}: {len(timeline)} version(s) {timeline}"


def summarize_batch(result: BatchResult) -> str:
    parts = [f"{len(result.processed)} issue(s) updated"]
    if result.failed:
        parts.append(f"{len(result.failed)} failed")
    if result.retry:
        parts.append(f"{len(result.retry)} to retry")
    return ", ".join(parts) + "."


class ProgressReporter:
    """Banner + stage line + progress bar driven by TimelineService callbacks."""

    def __init__(self, title: str):
        self._container = st.container()
        self._container.info(title)
        self._stage_placeholder = self._container.empty()
        self._progress_placeholder = self._container.progress(0.0)
        self._ratio = 0.0
        self._finalized = False

    @property
    def ratio(self) -> float:
        return self._ratio

    def callback(self, message: str, current: int | None = None, total: int | None = None) -> None:
        if self._finalized:
            return
        self._ratio = stage_ratio(message, current, total, self._ratio)
        self._stage_placeholder.write(message)
        self._progress_placeholder.progress(self._ratio)

    def complete_timeline(self, timeline: BugTimeline) -> None:
        if self._finalized:
            return
        self._finish()
        self._container.success(summarize_timeline(timeline))

    def complete_batch(self, result: BatchResult) -> None:
        if self._finalized:
            return
        self._finish()
        if result.ok:
            self._container.success(summarize_batch(result))
        else:
            self._container.warning(summarize_batch(result))

    def error(self, message: str) -> None:
        if self._finalized:
            return
        self._container.error(message)
        self._finalized = True

    def _finish(self) -> None:
        self._ratio = 1.0
        self._progress_placeholder.progress(1.0)
        self._finalized = True
