"""Connection setup page: collect Jira credentials and initialize TimelineService."""

from __future__ import annotations

import streamlit as st

from issue_timeline.app import register_page
from issue_timeline.core.config import JIRA_DEFAULT_SERVER
from issue_timeline.core.errors import TaxonomyConfigError
from issue_timeline.core.jira_client import JiraAPI
from issue_timeline.core.service import TimelineService
from issue_timeline.core.store import InMemoryTimelineStore


def read_jira_secrets() -> tuple[str | None, str | None, str | None]:
    """Server, email, and token from a ``[jira]`` secrets section or top level."""
    jira_secrets = st.secrets.get("jira", {})
    server = jira_secrets.get("JIRA_SERVER") or st.secrets.get("JIRA_SERVER")
    email = jira_secrets.get("JIRA_EMAIL") or st.secrets.get("JIRA_EMAIL")
    token = (
        jira_secrets.get("JIRA_API_TOKEN")
        or st.secrets.get("JIRA_API_TOKEN")
        or jira_secrets.get("JIRA_TOKEN")
        or st.secrets.get("JIRA_TOKEN")
    )
    return server, email, token


def init_service(server: str, email: str, token: str) -> TimelineService:
    """Create the service, keeping the timeline store of an earlier session."""
    store = st.session_state.get("timeline_store")
    if store is None:
        store = st.session_state["timeline_store"] = InMemoryTimelineStore()
    service = TimelineService(JiraAPI(server, email, token), store=store)
    st.session_state["jira_server"] = server
    st.session_state["timeline_service"] = service
    return service


@register_page("Setup / Connection")
def setup_page():
    st.title("Jira Connection Setup")
    st.caption("Enter credentials (use secrets manager in production).")

    secret_server, secret_email, secret_token = read_jira_secrets()
    server = st.text_input(
        "Jira Server URL",
        value=st.session_state.get("jira_server") or secret_server or JIRA_DEFAULT_SERVER,
    )
    email = st.text_input(
        "Email / Username",
        value=st.session_state.get("jira_email") or secret_email or "",
    )
    token = st.text_input(
        "API Token",
        type="password",
        value=secret_token or "",
    )
    init_btn = st.button("Initialize Connection", type="primary")

    if init_btn:
        if not (server and email and token):
            st.error("All fields required.")
            return
        try:
            init_service(server, email, token)
            st.session_state["jira_email"] = email
            st.success("Connection initialized.")
        except TaxonomyConfigError as e:
            st.error(f"Status taxonomy is invalid: {e}")
        except Exception as e:  # pragma: no cover
            st.error(f"Failed to initialize Jira client: {e}")

    if "timeline_service" in st.session_state:
        st.info("TimelineService ready.")
