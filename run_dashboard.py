"""Convenience launcher for the Streamlit app.

Usage:
  streamlit run run_dashboard.py

Automatically imports every module in ``issue_timeline/pages`` so each page
decorated with ``@register_page`` registers itself without manual edits here.
"""

import logging
from importlib import import_module
from pathlib import Path

import streamlit as st

from issue_timeline.app import main

st.set_page_config(layout="wide")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _auto_init_timeline_service():
    """Initialize the timeline service from Streamlit secrets if available."""
    if "timeline_service" in st.session_state:
        return

    from issue_timeline.pages.setup import init_service, read_jira_secrets

    server, email, token = read_jira_secrets()
    if server and email and token:
        st.sidebar.info("Secrets found, attempting to connect to Jira...")
        try:
            init_service(server, email, token)
            st.sidebar.success("Jira connection successful!")
        except Exception as e:
            st.sidebar.error(f"Jira connection failed: {e}")
            # Clear any partial state to ensure user is directed to setup
            st.session_state.pop("timeline_service", None)
    else:
        st.sidebar.warning("Jira secrets not found. Please use the Setup page.")


PAGES_DIR = Path(__file__).parent / "issue_timeline" / "pages"
for py in sorted(PAGES_DIR.glob("[!_]*.py")):
    mod_name = f"issue_timeline.pages.{py.stem}"
    try:
        import_module(mod_name)
    except Exception as e:  # pragma: no cover
        logging.getLogger(__name__).error("Failed importing page %s: %s", mod_name, e)

_auto_init_timeline_service()

if __name__ == "__main__":
    main()
