"""Bug timeline page.

Runs the history pipeline for one issue (full or incremental) and shows
every version with its derived status metrics.
"""

from __future__ import annotations

from datetime import datetime, time

import pandas as pd
import pytz
import streamlit as st

from issue_timeline.app import register_page
from issue_timeline.core.config import DEFAULT_PROJECT_KEY, OPEN_ENDED, SETTINGS, TIMEZONE
from issue_timeline.core.errors import TimelineError, TransientLookupError
from issue_timeline.core.mappers import timeline_to_dataframe
from issue_timeline.core.service import TimelineService
from issue_timeline.visual.progress import ProgressReporter

DISPLAY_COLUMNS = (
    "number",
    "from",
    "to",
    "status",
    "major_status",
    "previous_status",
    "days_in_previous_status",
    "days_in_status",
    "days_in_major_status",
    "days_open_accumulated",
    "times_reopened",
    "assigned_to",
    "modified_by",
    "persistence_state",
)


def prepare_timeline_table(df: pd.DataFrame) -> pd.DataFrame:
    """Display copy: open-ended boundary blanked, only known columns, capped rows."""
    if df.empty:
        return df
    out = df.copy()
    out["to"] = out["to"].where(out["to"] != OPEN_ENDED, None)
    cols = [c for c in DISPLAY_COLUMNS if c in out.columns]
    return out[cols].head(SETTINGS.max_table_rows)


def render_timeline_table(df: pd.DataFrame) -> pd.DataFrame:
    prepared = prepare_timeline_table(df)
    if prepared.empty:
        st.info("No versions to show.")
        return prepared
    st.dataframe(prepared, hide_index=True)
    csv = prepared.to_csv(index=False).encode(SETTINGS.download_encoding)
    st.download_button("Download CSV", csv, file_name="bug_timeline.csv", mime="text/csv")
    return prepared


@register_page("Bug Timeline")
def timeline_page():
    st.title("Bug Timeline")
    st.caption("Version history of one issue with time-in-status and reopen metrics.")
    service: TimelineService | None = st.session_state.get("timeline_service")
    if service is None:
        st.warning("Initialize connection on Setup page first.")
        return
    issue_key = st.text_input("Issue key", value=st.session_state.get("timeline_issue_key", ""))
    incremental = st.checkbox("Incremental update (recompute from a date)")
    since_date = st.date_input("Recompute from", disabled=not incremental)
    run = st.button("Build Timeline", type="primary")

    if run and issue_key:
        tz = pytz.timezone(TIMEZONE)
        since = tz.localize(datetime.combine(since_date, time.min)) if incremental else None
        reporter = ProgressReporter(f"Building timeline for {issue_key}")
        try:
            timeline = service.process_issue(issue_key, since=since, progress=reporter.callback)
        except TransientLookupError as exc:
            reporter.error(f"Jira is unavailable, try again later: {exc}")
            return
        except TimelineError as exc:
            reporter.error(f"Could not build timeline: {exc}")
            return
        st.session_state["timeline_issue_key"] = issue_key
        st.session_state["timeline_df"] = timeline_to_dataframe(timeline)
        reporter.complete_timeline(timeline)

    render_timeline_table(st.session_state.get("timeline_df", pd.DataFrame()))

    st.divider()
    render_project_update(service)


def batch_failures_frame(failed: dict[str, str]) -> pd.DataFrame:
    return pd.DataFrame({"issue_key": list(failed), "error": list(failed.values())})


def render_project_update(service: TimelineService) -> None:
    st.subheader("Project update")
    st.caption("Recompute every issue of a project updated since a date.")
    project_key = st.text_input("Project key", value=st.session_state.get("timeline_project_key", DEFAULT_PROJECT_KEY))
    updated_since = st.date_input("Updated since", key="timeline_project_since")
    if not st.button("Update Project"):
        return
    since = pytz.timezone(TIMEZONE).localize(datetime.combine(updated_since, time.min))
    reporter = ProgressReporter(f"Updating timelines of {project_key}")
    try:
        result = service.process_project_updates(project_key, since, progress=reporter.callback)
    except TransientLookupError as exc:
        reporter.error(f"Jira is unavailable, try again later: {exc}")
        return
    st.session_state["timeline_project_key"] = project_key
    reporter.complete_batch(result)
    if result.failed:
        st.dataframe(batch_failures_frame(result.failed), hide_index=True)
    if result.retry:
        st.info("Retry later: " + ", ".join(result.retry))
