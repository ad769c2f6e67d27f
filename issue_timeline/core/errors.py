"""Exception hierarchy for timeline construction, merging, and derivation."""

from __future__ import annotations


class TimelineError(Exception):
    """Base class; carries the id of the affected bug when known."""

    def __init__(self, message: str, *, bug_id: int | None = None):
        super().__init__(message)
        self.message = message
        self.bug_id = bug_id

    def __str__(self) -> str:
        if self.bug_id is None:
            return self.message
        return f"bug #{self.bug_id}: {self.message}"


class PreconditionViolation(TimelineError):
    """Ordering broken on append/prepend, mismatched ids, or empty timeline."""


class MissingStatusMapping(TimelineError):
    def __init__(self, status: str | None, *, bug_id: int | None = None):
        if status is None:
            message = "version has no status facet"
        else:
            message = f"no major status mapped for status {status!r}"
        super().__init__(message, bug_id=bug_id)
        self.status = status


class ExtractionError(TimelineError):
    """Raw issue payload cannot be turned into a timeline."""


class TaxonomyConfigError(TimelineError):
    """Status taxonomy configuration is malformed or inconsistent."""


class LookupFailure(TimelineError):
    pass


class TimelineNotFound(LookupFailure):
    """No persisted timeline exists for the requested id."""


class IssueNotFound(TimelineNotFound):
    """The issue tracker has no issue with the requested key."""


class TransientLookupError(LookupFailure):
    """Infrastructure failure during lookup; retrying later may succeed."""
