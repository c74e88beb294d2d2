"""
Scheduling Module

Tasks and calendar events shared among participants, and the advisory
overlap check run before a new one is created.

Objects:
- Commitment (task or event with interval + participants)
- ConflictReport (overlaps found, or the lookup error)

Invariants:
- Intervals are half-open; touching intervals never conflict
- A failed lookup is never reported as "no conflicts"
"""

from .commitments import Commitment, CommitmentKind, EventRow, TaskRow
from .conflicts import Conflict, ConflictDetector, ConflictReport, overlaps
from .repository import CommitmentRepository, QueryError, SqliteCommitmentRepository

__all__ = [
    "Commitment",
    "CommitmentKind",
    "EventRow",
    "TaskRow",
    "Conflict",
    "ConflictDetector",
    "ConflictReport",
    "overlaps",
    "CommitmentRepository",
    "QueryError",
    "SqliteCommitmentRepository",
]
