"""
Collaborator Protocol definitions — the contracts the core calls into.

The finder never talks to a database directly. Profile reads go through a
ProfileDataSource and snapshot persistence through a SnapshotStore; any
implementation satisfying the Protocol can be swapped in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from .models import (
    CandidateFilter,
    GroupProfile,
    InteractionAction,
    MatchCandidate,
    MatchResultSnapshot,
    UserProfile,
)


@runtime_checkable
class ProfileDataSource(Protocol):
    """
    Read access to user and group records.

    Candidate queries must honour every rule in the CandidateFilter and
    return at most ``limit`` records in a stable order.
    """

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Return the user, or None when the id is unknown."""
        ...

    async def find_candidate_users(
        self, candidate_filter: CandidateFilter, limit: int
    ) -> list[UserProfile]:
        ...

    async def find_candidate_groups(
        self, candidate_filter: CandidateFilter, limit: int
    ) -> list[GroupProfile]:
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """
    Persistence for match-result snapshots.

    Implementations expire overdue active snapshots lazily on read and on
    write. ``update_candidate_interaction`` must be atomic per candidate so
    that two concurrent actions on one snapshot never lose an update.
    """

    async def get_recent_active_snapshot(
        self,
        user_id: str,
        within_hours: float,
        now: Optional[datetime] = None,
    ) -> Optional[MatchResultSnapshot]:
        """Most recent active snapshot created within the window, or None."""
        ...

    async def save_snapshot(self, snapshot: MatchResultSnapshot) -> str:
        """Persist a new snapshot and return its id."""
        ...

    async def get_snapshot(
        self, snapshot_id: str, now: Optional[datetime] = None
    ) -> Optional[MatchResultSnapshot]:
        ...

    async def update_candidate_interaction(
        self,
        snapshot_id: str,
        candidate_id: str,
        action: InteractionAction,
        at: datetime,
        reason: Optional[str] = None,
    ) -> MatchCandidate:
        """
        Apply one interaction to one candidate and return the updated copy.

        Raises NotFoundError when the snapshot or candidate is unknown.
        """
        ...

    async def delete_expired_snapshots(self, now: Optional[datetime] = None) -> int:
        """Hard-delete expired snapshots. Idempotent. Returns the count removed."""
        ...
