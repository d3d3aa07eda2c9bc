"""
In-memory collaborators for the match finder.

- InMemoryProfileDirectory: ProfileDataSource over dicts of profiles
- InMemorySnapshotStore: SnapshotStore over a dict of snapshots

Suitable for single-instance deployments, demos and tests. Every read
returns a deep copy so callers can never mutate stored state behind the
store's lock.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

from studymatch.core.errors import ConfigError, NotFoundError
from studymatch.core.models import (
    CandidateFilter,
    GroupProfile,
    InteractionAction,
    MatchCandidate,
    MatchResultSnapshot,
    SnapshotStatus,
    UserProfile,
    utcnow,
)

logger = logging.getLogger(__name__)


class InMemoryProfileDirectory:
    """
    ProfileDataSource backed by dicts. Insertion order is retrieval order.
    """

    def __init__(
        self,
        users: Optional[Iterable[UserProfile]] = None,
        groups: Optional[Iterable[GroupProfile]] = None,
    ):
        self._users: dict[str, UserProfile] = {}
        self._groups: dict[str, GroupProfile] = {}
        for user in users or ():
            self.add_user(user)
        for group in groups or ():
            self.add_group(group)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryProfileDirectory:
        """
        Build from ``{"users": [...], "groups": [...]}`` in the client's
        camelCase shape. Group ``members`` are user ids from ``users``.
        """
        try:
            users = {
                u.user_id: u for u in (UserProfile.from_dict(d) for d in data.get("users", []))
            }
            groups = [GroupProfile.from_dict(d, users) for d in data.get("groups", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid profile data: {e}") from e
        return cls(users.values(), groups)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> InMemoryProfileDirectory:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(f"Could not read profiles file {path}: {e}") from e
        directory = cls.from_dict(data)
        logger.info(
            "Loaded %d users and %d groups from %s",
            len(directory._users), len(directory._groups), path,
        )
        return directory

    def add_user(self, user: UserProfile) -> None:
        self._users[user.user_id] = user

    def add_group(self, group: GroupProfile) -> None:
        self._groups[group.group_id] = group

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def find_candidate_users(
        self, candidate_filter: CandidateFilter, limit: int
    ) -> list[UserProfile]:
        found = [u for u in self._users.values() if candidate_filter.matches_user(u)]
        return copy.deepcopy(found[:max(0, limit)])

    async def find_candidate_groups(
        self, candidate_filter: CandidateFilter, limit: int
    ) -> list[GroupProfile]:
        found = [g for g in self._groups.values() if candidate_filter.matches_group(g)]
        return copy.deepcopy(found[:max(0, limit)])


class InMemorySnapshotStore:
    """
    SnapshotStore backed by a dict, guarded by an asyncio.Lock.

    The lock makes each interaction update a read-modify-write that no
    other coroutine can interleave with.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._snapshots: dict[str, MatchResultSnapshot] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._snapshots)

    async def get_recent_active_snapshot(
        self,
        user_id: str,
        within_hours: float,
        now: Optional[datetime] = None,
    ) -> Optional[MatchResultSnapshot]:
        now = now or self._clock()
        since = now - timedelta(hours=within_hours)
        async with self._lock:
            newest: Optional[MatchResultSnapshot] = None
            for snapshot in self._snapshots.values():
                if snapshot.user_id != user_id:
                    continue
                if snapshot.expire_if_due(now):
                    logger.warning("Snapshot %s expired on read", snapshot.snapshot_id)
                if snapshot.status != SnapshotStatus.ACTIVE or snapshot.created_at < since:
                    continue
                if newest is None or snapshot.created_at >= newest.created_at:
                    newest = snapshot
            return copy.deepcopy(newest)

    async def save_snapshot(self, snapshot: MatchResultSnapshot) -> str:
        stored = copy.deepcopy(snapshot)
        stored.expire_if_due(self._clock())
        async with self._lock:
            self._snapshots[stored.snapshot_id] = stored
        logger.debug(
            "Saved snapshot %s for %s (%d candidates)",
            stored.snapshot_id, stored.user_id, len(stored.candidates),
        )
        return stored.snapshot_id

    async def get_snapshot(
        self, snapshot_id: str, now: Optional[datetime] = None
    ) -> Optional[MatchResultSnapshot]:
        async with self._lock:
            snapshot = self._snapshots.get(snapshot_id)
            if snapshot is None:
                return None
            snapshot.expire_if_due(now or self._clock())
            return copy.deepcopy(snapshot)

    async def update_candidate_interaction(
        self,
        snapshot_id: str,
        candidate_id: str,
        action: InteractionAction,
        at: datetime,
        reason: Optional[str] = None,
    ) -> MatchCandidate:
        async with self._lock:
            snapshot = self._snapshots.get(snapshot_id)
            if snapshot is None:
                raise NotFoundError(f"Snapshot {snapshot_id} not found")
            candidate = snapshot.find_candidate(candidate_id)
            if candidate is None:
                raise NotFoundError(
                    f"Candidate {candidate_id} not found in snapshot {snapshot_id}"
                )
            candidate.interaction.apply(action, at, reason)
            return copy.deepcopy(candidate)

    async def delete_expired_snapshots(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock()
        async with self._lock:
            doomed = [
                sid for sid, s in self._snapshots.items()
                if s.status == SnapshotStatus.EXPIRED or s.is_past_expiry(now)
            ]
            for sid in doomed:
                del self._snapshots[sid]
        return len(doomed)
