"""Central configuration, constants, and default status taxonomy."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .fields import Facet, MajorStatus, Status

# =============================================================================
# Jira Connection Settings
# =============================================================================
JIRA_DEFAULT_SERVER = "https://bugzilla-mirror.atlassian.net"
TIMEZONE = "UTC"
DEFAULT_PROJECT_KEY = "BUG"

# =============================================================================
# Time Handling
# =============================================================================
MS_PER_DAY: int = 24 * 60 * 60 * 1000
ONE_DAY = timedelta(milliseconds=MS_PER_DAY)

# Upper boundary of the current (still open-ended) version of a bug
OPEN_ENDED = datetime(9999, 12, 31, tzinfo=UTC)

# =============================================================================
# Status Taxonomy Defaults
# Used when no taxonomy.yaml is present next to the package.
# =============================================================================
DEFAULT_MAJOR_STATUS_TABLE: Mapping[str, str] = {
    Status.UNCONFIRMED: MajorStatus.OPEN,
    Status.NEW: MajorStatus.OPEN,
    Status.ASSIGNED: MajorStatus.OPEN,
    Status.REOPENED: MajorStatus.OPEN,
    Status.RESOLVED: MajorStatus.CLOSED,
    Status.VERIFIED: MajorStatus.CLOSED,
    Status.CLOSED: MajorStatus.CLOSED,
}
DEFAULT_OPEN_MAJOR_STATUSES: frozenset[str] = frozenset({MajorStatus.OPEN})
DEFAULT_CLOSED_MAJOR_STATUSES: frozenset[str] = frozenset({MajorStatus.CLOSED})
DEFAULT_REOPENED_STATUS = Status.REOPENED

# =============================================================================
# Extraction
# =============================================================================
# Jira changelog field name -> facet it updates on a version
TRACKED_FIELDS: Mapping[str, Facet] = {
    "status": Facet.STATUS,
    "assignee": Facet.ASSIGNED_TO,
    "priority": Facet.PRIORITY,
    "resolution": Facet.RESOLUTION,
}

JIRA_FETCH_BASE_FIELDS: Sequence[str] = (
    "summary",
    "created",
    "reporter",
    *TRACKED_FIELDS.keys(),
)


@dataclass(slots=True)
class AppSettings:
    max_table_rows: int = 1000
    download_encoding: str = "utf-8"
    taxonomy_filename: str = "taxonomy.yaml"


SETTINGS = AppSettings()
