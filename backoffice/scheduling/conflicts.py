"""
Conflict Detector - warns before a task or event double-books someone.

Intervals are half-open: [start, end). Two intervals conflict iff
s1 < e2 and s2 < e1, so back-to-back bookings never conflict.

The detector is advisory. It reports; the caller decides whether to go ahead.
A failed lookup is reported on the ConflictReport (failed / error) and never
as an empty "no conflicts" answer.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

from backoffice.timeutil import ensure_utc

from .commitments import Commitment, CommitmentKind
from .repository import CommitmentRepository, QueryError

logger = logging.getLogger(__name__)


def overlaps(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open interval intersection."""
    return s1 < e2 and s2 < e1


@dataclass(frozen=True)
class Conflict:
    kind: CommitmentKind
    commitment_id: str
    title: str
    start_time: datetime
    end_time: datetime
    shared_participants: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "kind": str(self.kind),
            "commitment_id": self.commitment_id,
            "title": self.title,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "shared_participants": sorted(self.shared_participants),
        }


@dataclass
class ConflictReport:
    conflicts: list[Conflict] = field(default_factory=list)
    error: QueryError | None = None

    @property
    def failed(self) -> bool:
        """True when the lookup failed; conflicts is then empty and meaningless."""
        return self.error is not None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def raise_for_error(self) -> "ConflictReport":
        if self.error is not None:
            raise self.error
        return self

    def __iter__(self) -> Iterator[Conflict]:
        return iter(self.conflicts)

    def __len__(self) -> int:
        return len(self.conflicts)


class ConflictDetector:
    """Checks a candidate interval against participants' existing commitments."""

    def __init__(self, repository: CommitmentRepository):
        self.repository = repository

    def find_conflicts(
        self,
        participant_ids: Iterable[str],
        candidate_start: datetime,
        candidate_end: datetime,
        exclude_commitment_id: str | None = None,
    ) -> ConflictReport:
        """
        Commitments sharing a participant whose interval overlaps the candidate.

        Args:
            participant_ids: assignees/attendees of the commitment being proposed
            candidate_start: proposed start (naive values are taken as UTC)
            candidate_end: proposed end
            exclude_commitment_id: the commitment being edited, ignored

        Returns:
            ConflictReport in discovery order, one entry per commitment record.

        Raises:
            ValueError: candidate_end is before candidate_start
        """
        start = ensure_utc(candidate_start)
        end = ensure_utc(candidate_end)
        if end < start:
            raise ValueError(f"candidate_end {end} is before candidate_start {start}")

        wanted = {p for p in participant_ids if p}
        if not wanted:
            return ConflictReport()

        try:
            commitments = self.repository.find_by_participants(sorted(wanted))
        except QueryError as exc:
            logger.error("Conflict check failed for %s: %s", sorted(wanted), exc)
            return ConflictReport(error=exc)

        report = ConflictReport()
        seen: set[tuple[CommitmentKind, str]] = set()
        for commitment in commitments:
            conflict = self._check(commitment, wanted, start, end, exclude_commitment_id)
            if conflict is None or commitment.key in seen:
                continue
            seen.add(commitment.key)
            report.conflicts.append(conflict)

        if report.conflicts:
            logger.info(
                "%d conflict(s) for %s in [%s, %s)",
                len(report.conflicts),
                sorted(wanted),
                start.isoformat(),
                end.isoformat(),
            )
        return report

    @staticmethod
    def _check(
        commitment: Commitment,
        wanted: set[str],
        start: datetime,
        end: datetime,
        exclude_id: str | None,
    ) -> Conflict | None:
        if exclude_id is not None and commitment.id == exclude_id:
            return None
        if not commitment.has_interval:
            return None
        shared = commitment.participants & wanted
        if not shared:
            return None
        c_start = ensure_utc(commitment.start_time)
        c_end = ensure_utc(commitment.end_time)
        if not overlaps(start, end, c_start, c_end):
            return None
        return Conflict(
            kind=commitment.kind,
            commitment_id=commitment.id,
            title=commitment.title,
            start_time=c_start,
            end_time=c_end,
            shared_participants=frozenset(shared),
        )
