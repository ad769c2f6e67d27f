"""BugTimeline: one bug's invariant properties and its ordered versions."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from .errors import PreconditionViolation
from .models import PersistenceState, Version


class BugTimeline:
    """Ordered, non-overlapping versions of a single bug.

    Adjacent versions may touch (``earlier.to == later.from_``) but never
    overlap. Versions are kept in a deque so both ``append`` (extraction,
    oldest to newest) and ``prepend`` (rebasing onto persisted history) are
    O(1).
    """

    __slots__ = ("_id", "_reporter", "_versions")

    def __init__(self, bug_id: int, reporter: str):
        if bug_id is None or reporter is None:
            raise PreconditionViolation("bug id and reporter are required", bug_id=bug_id)
        self._id = bug_id
        self._reporter = reporter
        self._versions: deque[Version] = deque()

    @property
    def id(self) -> int:
        return self._id

    @property
    def reporter(self) -> str:
        return self._reporter

    @property
    def versions(self) -> tuple[Version, ...]:
        return tuple(self._versions)

    @property
    def num_versions(self) -> int:
        return len(self._versions)

    @property
    def first_version(self) -> Version:
        self._require_versions()
        return self._versions[0]

    @property
    def last_version(self) -> Version:
        self._require_versions()
        return self._versions[-1]

    def __iter__(self) -> Iterator[Version]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if not isinstance(other, BugTimeline):
            return NotImplemented
        return (
            self._id == other._id
            and self._reporter == other._reporter
            and list(self._versions) == list(other._versions)
        )

    __hash__ = None  # mutable aggregate

    # ------------------ Ordered Insertion ------------------
    def append(self, version: Version) -> None:
        if self._versions and self._versions[-1].to > version.from_:
            raise PreconditionViolation(
                f"cannot append {version} after {self._versions[-1]}: intervals overlap",
                bug_id=self._id,
            )
        self._versions.append(version)

    def prepend(self, version: Version) -> None:
        if self._versions and version.to > self._versions[0].from_:
            raise PreconditionViolation(
                f"cannot prepend {version} before {self._versions[0]}: intervals overlap",
                bug_id=self._id,
            )
        self._versions.appendleft(version)

    def pop_first(self) -> Version:
        self._require_versions()
        return self._versions.popleft()

    def take_versions(self) -> list[Version]:
        """Remove and return all versions, transferring their ownership."""
        taken = list(self._versions)
        self._versions.clear()
        return taken

    def replace_versions(self, versions: Iterable[Version]) -> None:
        """Swap in a new version sequence, re-checking the ordering invariant."""
        replacement = list(versions)
        previous = list(self._versions)
        self._versions.clear()
        try:
            for version in replacement:
                self.append(version)
        except PreconditionViolation:
            self._versions = deque(previous)
            raise

    # ------------------ Persistence Helpers ------------------
    def never_saved(self) -> bool:
        return self.first_version.persistence_state is PersistenceState.NEW

    def _require_versions(self) -> None:
        if not self._versions:
            raise PreconditionViolation("timeline has no versions", bug_id=self._id)

    def __str__(self) -> str:
        vis = "".join(v.persistence_state.symbol for v in self._versions)
        return f"{{bug id={self._id}, reporter={self._reporter}, versions={vis} (.saved #dirty *new)}}"

    __repr__ = __str__
