"""Catalog of facet and measurement identifiers carried by bug versions."""

from __future__ import annotations

from enum import StrEnum


class Facet(StrEnum):
    """Categorical fields of a version. Raw ones come from the tracker."""

    STATUS = "status"
    ASSIGNED_TO = "assigned_to"
    PRIORITY = "priority"
    RESOLUTION = "resolution"
    # Computed by the status metrics pass
    MAJOR_STATUS = "major_status"
    PREVIOUS_STATUS = "previous_status"
    PREVIOUS_MAJOR_STATUS = "previous_major_status"


DERIVED_FACETS: tuple[Facet, ...] = (
    Facet.MAJOR_STATUS,
    Facet.PREVIOUS_STATUS,
    Facet.PREVIOUS_MAJOR_STATUS,
)


class Measurement(StrEnum):
    """Numeric fields of a version, all computed."""

    NUMBER = "number"
    DAYS_IN_STATUS = "days_in_status"
    DAYS_IN_MAJOR_STATUS = "days_in_major_status"
    DAYS_IN_PREVIOUS_STATUS = "days_in_previous_status"
    DAYS_IN_PREVIOUS_MAJOR_STATUS = "days_in_previous_major_status"
    DAYS_OPEN_ACCUMULATED = "days_open_accumulated"
    TIMES_REOPENED = "times_reopened"


class Status(StrEnum):
    """Bugzilla raw statuses known to the default taxonomy."""

    UNCONFIRMED = "UNCONFIRMED"
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    REOPENED = "REOPENED"
    RESOLVED = "RESOLVED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"


class MajorStatus(StrEnum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
