"""Domain data models: persistence state, bug versions, and derived attributes."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType

from .errors import PreconditionViolation
from .fields import DERIVED_FACETS, Facet, Measurement

# External value for measurements that do not apply to a version
NOT_APPLICABLE = -1


class PersistenceState(Enum):
    NEW = "new"  # computed locally, never persisted
    DIRTY = "dirty"  # loaded from storage, then modified
    SAVED = "saved"  # loaded from storage, unchanged

    @property
    def symbol(self) -> str:
        return _STATE_SYMBOLS[self]

    def touched(self) -> PersistenceState:
        """State after modifying a version that was in this state."""
        return PersistenceState.DIRTY if self is PersistenceState.SAVED else self


_STATE_SYMBOLS = {
    PersistenceState.SAVED: ".",
    PersistenceState.DIRTY: "#",
    PersistenceState.NEW: "*",
}


@dataclass(frozen=True, slots=True)
class DerivedAttributes:
    """Fields computed by the status metrics pass for one version.

    ``None`` marks a measurement that does not apply: the previous-status
    durations of a version that did not change status, and the in-status
    durations of the latest (still open-ended) version.
    """

    number: int
    major_status: str
    previous_status: str | None
    previous_major_status: str | None
    days_in_previous_status: int | None
    days_in_previous_major_status: int | None
    days_in_status: int | None
    days_in_major_status: int | None
    days_open_accumulated: int
    times_reopened: int

    def facets(self) -> dict[Facet, str | None]:
        return {
            Facet.MAJOR_STATUS: self.major_status,
            Facet.PREVIOUS_STATUS: self.previous_status,
            Facet.PREVIOUS_MAJOR_STATUS: self.previous_major_status,
        }

    def measurements(self) -> dict[Measurement, int]:
        def external(value: int | None) -> int:
            return NOT_APPLICABLE if value is None else value

        return {
            Measurement.NUMBER: self.number,
            Measurement.DAYS_IN_STATUS: external(self.days_in_status),
            Measurement.DAYS_IN_MAJOR_STATUS: external(self.days_in_major_status),
            Measurement.DAYS_IN_PREVIOUS_STATUS: external(self.days_in_previous_status),
            Measurement.DAYS_IN_PREVIOUS_MAJOR_STATUS: external(self.days_in_previous_major_status),
            Measurement.DAYS_OPEN_ACCUMULATED: self.days_open_accumulated,
            Measurement.TIMES_REOPENED: self.times_reopened,
        }


@dataclass(frozen=True, slots=True)
class Version:
    """State of a bug during the half-open interval ``[from_, to)``."""

    from_: datetime
    to: datetime
    facets: Mapping[Facet, str | None] = field(default_factory=dict)
    persistence_state: PersistenceState = PersistenceState.NEW
    modified_by: str | None = None
    derived: DerivedAttributes | None = None

    def __post_init__(self):
        if not self.from_ < self.to:
            raise PreconditionViolation(f"version interval is empty or inverted: [{self.from_}, {self.to})")
        leaked = [f for f in DERIVED_FACETS if f in self.facets]
        if leaked:
            raise PreconditionViolation(f"derived facets passed as raw facets: {', '.join(leaked)}")
        object.__setattr__(self, "facets", MappingProxyType(dict(self.facets)))

    @property
    def duration(self) -> timedelta:
        return self.to - self.from_

    @property
    def status(self) -> str | None:
        return self.facets.get(Facet.STATUS)

    def update(self, to: datetime) -> Version:
        """Copy of this version with the ``to`` boundary replaced."""
        return dataclasses.replace(
            self,
            to=to,
            persistence_state=self.persistence_state.touched(),
        )

    def with_derived(self, derived: DerivedAttributes) -> Version:
        if derived == self.derived:
            return self
        return dataclasses.replace(
            self,
            derived=derived,
            persistence_state=self.persistence_state.touched(),
        )

    def with_state(self, state: PersistenceState) -> Version:
        return dataclasses.replace(self, persistence_state=state)

    def all_facets(self) -> dict[Facet, str | None]:
        out: dict[Facet, str | None] = dict(self.facets)
        if self.derived is not None:
            out.update(self.derived.facets())
        return out

    def all_measurements(self) -> dict[Measurement, int]:
        if self.derived is None:
            return {}
        return self.derived.measurements()

    def __str__(self) -> str:
        return (
            f"{{version from={self.from_.isoformat()}, to={self.to.isoformat()}, "
            f"state={self.persistence_state.symbol}, status={self.status}}}"
        )
