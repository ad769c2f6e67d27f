"""Status taxonomy: raw status -> major status grouping and its classification.

The taxonomy is read from ``taxonomy.yaml`` at the repository root when
present, otherwise built from the Bugzilla defaults in config.py. Expected
YAML layout::

    major_status:
      NEW: OPEN
      RESOLVED: CLOSED
    open: [OPEN]
    closed: [CLOSED]
    reopened: REOPENED
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .config import (
    DEFAULT_CLOSED_MAJOR_STATUSES,
    DEFAULT_MAJOR_STATUS_TABLE,
    DEFAULT_OPEN_MAJOR_STATUSES,
    DEFAULT_REOPENED_STATUS,
    SETTINGS,
)
from .errors import MissingStatusMapping, TaxonomyConfigError


@dataclass(frozen=True, slots=True)
class StatusTaxonomy:
    major_status_table: Mapping[str, str]
    open_statuses: frozenset[str]
    closed_statuses: frozenset[str] = field(default_factory=frozenset)
    reopened_status: str = DEFAULT_REOPENED_STATUS

    def __post_init__(self):
        known = self.open_statuses | self.closed_statuses
        unknown = sorted({m for m in self.major_status_table.values() if m not in known})
        if unknown:
            raise TaxonomyConfigError(f"major statuses neither open nor closed: {', '.join(unknown)}")
        overlap = sorted(self.open_statuses & self.closed_statuses)
        if overlap:
            raise TaxonomyConfigError(f"major statuses both open and closed: {', '.join(overlap)}")

    def major_status(self, status: str | None, *, bug_id: int | None = None) -> str:
        """Major status for a raw status.

        Raises
        ------
        MissingStatusMapping
            If the status is missing or has no entry; there is no default.
        """
        if status is None or status not in self.major_status_table:
            raise MissingStatusMapping(status, bug_id=bug_id)
        return self.major_status_table[status]

    def is_open(self, major_status: str) -> bool:
        return major_status in self.open_statuses

    def is_closed(self, major_status: str) -> bool:
        return major_status in self.closed_statuses

    def is_reopened(self, status: str) -> bool:
        return status == self.reopened_status


def default_taxonomy() -> StatusTaxonomy:
    return StatusTaxonomy(
        major_status_table=dict(DEFAULT_MAJOR_STATUS_TABLE),
        open_statuses=DEFAULT_OPEN_MAJOR_STATUSES,
        closed_statuses=DEFAULT_CLOSED_MAJOR_STATUSES,
        reopened_status=DEFAULT_REOPENED_STATUS,
    )


def _as_names(value, key: str) -> frozenset[str]:
    if isinstance(value, str):
        return frozenset({value})
    if not isinstance(value, Iterable):
        raise TaxonomyConfigError(f"'{key}' must be a status name or a list of names")
    return frozenset(str(v) for v in value)


def taxonomy_from_mapping(data: Mapping) -> StatusTaxonomy:
    table = data.get("major_status")
    if not isinstance(table, Mapping) or not table:
        raise TaxonomyConfigError("'major_status' must be a non-empty mapping")
    return StatusTaxonomy(
        major_status_table={str(k): str(v) for k, v in table.items()},
        open_statuses=_as_names(data.get("open", DEFAULT_OPEN_MAJOR_STATUSES), "open"),
        closed_statuses=_as_names(data.get("closed", DEFAULT_CLOSED_MAJOR_STATUSES), "closed"),
        reopened_status=str(data.get("reopened", DEFAULT_REOPENED_STATUS)),
    )


def load_status_taxonomy(base_path: str | Path | None = None) -> StatusTaxonomy:
    base = Path(base_path or Path(__file__).resolve().parents[2])
    yaml_path = base / SETTINGS.taxonomy_filename
    if not yaml_path.exists():
        return default_taxonomy()
    try:
        data = yaml.safe_load(yaml_path.read_text())
    except yaml.YAMLError as exc:
        raise TaxonomyConfigError(f"cannot parse {yaml_path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise TaxonomyConfigError(f"{yaml_path} must contain a mapping")
    return taxonomy_from_mapping(data)
