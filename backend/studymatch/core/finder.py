"""
Match finder — orchestrates one match request from cache lookup to
persisted snapshot.

Flow for ``find_matches``:
  validate options -> load requester -> recent snapshot? (cache hit) ->
  retrieve user + group candidates -> score -> threshold -> per-pool quota ->
  merge, sort, truncate -> save snapshot -> return

The finder holds no per-request state; everything lives in the snapshot
store. Collaborator errors propagate unchanged and never yield a partial
result.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from .errors import InvalidOptionError, NotFoundError, ProfileIncompleteError
from .grouping import build_group_suggestions
from .models import (
    CandidateFilter,
    GroupProfile,
    GroupSuggestion,
    InteractionAction,
    MatchCandidate,
    MatchOptions,
    MatchResult,
    MatchResultSnapshot,
    SuggestionOptions,
    TargetType,
    UserProfile,
    generate_id,
    utcnow,
)
from .protocols import ProfileDataSource, SnapshotStore
from .scorer import CompatibilityScorer

logger = logging.getLogger(__name__)

ALGORITHM_VERSION = "2.0"

DEFAULT_CACHE_WINDOW_HOURS = 24.0
DEFAULT_SNAPSHOT_TTL_DAYS = 7.0
DEFAULT_USER_QUOTA_SHARE = 0.6
DEFAULT_USER_CANDIDATE_MULTIPLIER = 3
DEFAULT_GROUP_CANDIDATE_MULTIPLIER = 2


def _wanted_types(options: MatchOptions) -> set[TargetType]:
    wanted = set()
    if options.include_users:
        wanted.add(TargetType.USER)
    if options.include_groups:
        wanted.add(TargetType.GROUP)
    return wanted


def _covers_pools(snapshot: MatchResultSnapshot, options: MatchOptions) -> bool:
    """Whether ``snapshot`` searched every pool ``options`` asks for."""
    criteria = snapshot.search_criteria
    if options.include_users and not criteria.get("includeUsers", True):
        return False
    if options.include_groups and not criteria.get("includeGroups", True):
        return False
    return True


class MatchFinder:
    """
    Finds, ranks and caches study-partner and study-group matches.

    Args:
        data_source: Read access to users and groups.
        store: Snapshot persistence (doubles as the per-user cache).
        scorer: Compatibility scorer; default weights when omitted.
        clock: Returns the current aware UTC time. Injected for tests.
    """

    def __init__(
        self,
        data_source: ProfileDataSource,
        store: SnapshotStore,
        scorer: Optional[CompatibilityScorer] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        algorithm_version: str = ALGORITHM_VERSION,
        cache_window_hours: float = DEFAULT_CACHE_WINDOW_HOURS,
        snapshot_ttl_days: float = DEFAULT_SNAPSHOT_TTL_DAYS,
        user_quota_share: float = DEFAULT_USER_QUOTA_SHARE,
        user_candidate_multiplier: int = DEFAULT_USER_CANDIDATE_MULTIPLIER,
        group_candidate_multiplier: int = DEFAULT_GROUP_CANDIDATE_MULTIPLIER,
    ):
        self._data_source = data_source
        self._store = store
        self._scorer = scorer or CompatibilityScorer()
        self._clock = clock
        self._algorithm_version = algorithm_version
        self._cache_window_hours = cache_window_hours
        self._snapshot_ttl = timedelta(days=snapshot_ttl_days)
        self._user_quota_share = user_quota_share
        self._user_candidate_multiplier = user_candidate_multiplier
        self._group_candidate_multiplier = group_candidate_multiplier

    @property
    def scorer(self) -> CompatibilityScorer:
        return self._scorer

    # ============ Matching ============

    async def find_matches(
        self, user_id: str, options: Optional[MatchOptions] = None
    ) -> MatchResult:
        """
        Return ranked matches for ``user_id``.

        Raises:
            InvalidOptionError: options out of range.
            NotFoundError: unknown user.
            ProfileIncompleteError: requester profile not complete.
            StorageError: (or any collaborator error) retrieval/persistence failed.
        """
        options = options or MatchOptions()
        options.validate()
        started = time.perf_counter()

        user = await self._load_requester(user_id)

        if not options.refresh:
            cached = await self._store.get_recent_active_snapshot(
                user_id, self._cache_window_hours, now=self._clock()
            )
            if cached is not None and not _covers_pools(cached, options):
                logger.info(
                    "Snapshot %s did not search every requested pool; recomputing",
                    cached.snapshot_id,
                )
                cached = None
            if cached is not None:
                logger.info(
                    "Match cache hit for %s (snapshot %s)", user_id, cached.snapshot_id
                )
                wanted = _wanted_types(options)
                matches = [
                    c for c in cached.visible_candidates
                    if c.target_type in wanted and c.compatibility_score >= options.min_score
                ][:options.max_results]
                return MatchResult(
                    matches=matches,
                    from_cache=True,
                    generated_at=cached.created_at,
                    processing_time_ms=cached.processing_time_ms,
                    snapshot_id=cached.snapshot_id,
                )

        user_quota, group_quota = self._quotas(options)
        user_pool, group_pool = await self._retrieve(user, user_quota, group_quota)

        user_matches = self._rank(user, user_pool, TargetType.USER, options.min_score, user_quota)
        group_matches = self._rank(user, group_pool, TargetType.GROUP, options.min_score, group_quota)

        merged = user_matches + group_matches
        merged.sort(key=lambda c: c.compatibility_score, reverse=True)
        final = merged[:options.max_results]

        now = self._clock()
        processing_ms = round((time.perf_counter() - started) * 1000, 3)
        snapshot = MatchResultSnapshot(
            snapshot_id=generate_id("match"),
            user_id=user_id,
            candidates=final,
            search_criteria={
                **user.search_criteria(),
                "includeUsers": options.include_users,
                "includeGroups": options.include_groups,
            },
            algorithm_version=self._algorithm_version,
            processing_time_ms=processing_ms,
            total_candidates=len(user_pool) + len(group_pool),
            created_at=now,
            expires_at=now + self._snapshot_ttl,
        )
        snapshot_id = await self._store.save_snapshot(snapshot)

        logger.info(
            "Matched %s: %d/%d candidates kept (users=%d groups=%d) in %.1fms",
            user_id,
            len(final),
            snapshot.total_candidates,
            len(user_pool),
            len(group_pool),
            processing_ms,
        )
        return MatchResult(
            matches=final,
            from_cache=False,
            generated_at=now,
            processing_time_ms=processing_ms,
            snapshot_id=snapshot_id,
        )

    def _quotas(self, options: MatchOptions) -> tuple[int, int]:
        """Per-pool result quotas. Both pools share max_results 60/40."""
        if options.include_users and options.include_groups:
            user_quota = max(1, math.floor(options.max_results * self._user_quota_share))
            group_quota = max(1, math.floor(options.max_results * (1 - self._user_quota_share)))
            return user_quota, group_quota
        if options.include_users:
            return options.max_results, 0
        return 0, options.max_results

    async def _retrieve(
        self, user: UserProfile, user_quota: int, group_quota: int
    ) -> tuple[list[UserProfile], list[GroupProfile]]:
        """Fetch both pools concurrently. Either failure fails the request."""
        candidate_filter = CandidateFilter(
            requester_id=user.user_id,
            subjects=list(user.subjects),
            university=user.university or None,
        )

        async def no_candidates() -> list:
            return []

        users_call = (
            self._data_source.find_candidate_users(
                candidate_filter, user_quota * self._user_candidate_multiplier
            )
            if user_quota else no_candidates()
        )
        groups_call = (
            self._data_source.find_candidate_groups(
                candidate_filter, group_quota * self._group_candidate_multiplier
            )
            if group_quota else no_candidates()
        )
        user_pool, group_pool = await asyncio.gather(users_call, groups_call)
        return list(user_pool), list(group_pool)

    def _rank(
        self,
        user: UserProfile,
        pool: list[Union[UserProfile, GroupProfile]],
        target_type: TargetType,
        min_score: int,
        quota: int,
    ) -> list[MatchCandidate]:
        kept: list[MatchCandidate] = []
        for target in pool:
            result = self._scorer.score(user, target)
            target_id = target.group_id if target_type == TargetType.GROUP else target.user_id
            logger.debug(
                "Scored %s %s for %s: %d", target_type.value, target_id, user.user_id,
                result.compatibility_score,
            )
            if result.compatibility_score >= min_score:
                kept.append(MatchCandidate.from_result(target_type, target_id, result))
        kept.sort(key=lambda c: c.compatibility_score, reverse=True)
        return kept[:quota]

    # ============ Group Suggestions ============

    async def suggest_groups(
        self, user_id: str, options: Optional[SuggestionOptions] = None
    ) -> list[GroupSuggestion]:
        """
        Suggest new groups the requester could form with ungrouped students
        who share their subjects. The requester seeds every bucket.
        """
        options = options or SuggestionOptions()
        options.validate()
        user = await self._load_requester(user_id)

        candidate_filter = CandidateFilter(
            requester_id=user.user_id,
            subjects=list(user.subjects),
            university=user.university or None,
            ungrouped_only=True,
        )
        pool = await self._data_source.find_candidate_users(candidate_filter, options.pool_limit)

        suggestions = build_group_suggestions(
            [user, *pool],
            self._scorer,
            min_size=options.min_size,
            max_size=options.max_size,
            subjects=user.subjects,
        )
        logger.info(
            "Built %d group suggestions for %s from a pool of %d",
            len(suggestions), user_id, len(pool),
        )
        return suggestions

    # ============ Snapshots ============

    async def get_snapshot(self, snapshot_id: str) -> MatchResultSnapshot:
        snapshot = await self._store.get_snapshot(snapshot_id, now=self._clock())
        if snapshot is None:
            raise NotFoundError(f"Snapshot {snapshot_id} not found")
        return snapshot

    async def mark_candidate_interaction(
        self,
        snapshot_id: str,
        candidate_id: str,
        action: Union[InteractionAction, str],
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> MatchCandidate:
        """
        Record a UI action (viewed, interested, contacted, joined, dismissed)
        on one candidate of a snapshot.

        When ``user_id`` is given the snapshot must belong to that user.
        """
        try:
            action = InteractionAction(action)
        except ValueError:
            raise InvalidOptionError(f"Unknown interaction action: {action}") from None

        if user_id is not None:
            snapshot = await self.get_snapshot(snapshot_id)
            if snapshot.user_id != user_id:
                # Same error as a missing snapshot: ownership is not disclosed.
                raise NotFoundError(f"Snapshot {snapshot_id} not found")

        candidate = await self._store.update_candidate_interaction(
            snapshot_id, candidate_id, action, at=self._clock(), reason=reason
        )
        logger.info(
            "Snapshot %s candidate %s marked %s", snapshot_id, candidate_id, action.value
        )
        return candidate

    async def sweep_expired(self) -> int:
        """Delete expired snapshots. Safe to run alongside reads."""
        deleted = await self._store.delete_expired_snapshots(now=self._clock())
        logger.info("Expired snapshot sweep removed %d snapshots", deleted)
        return deleted

    # ============ Internals ============

    async def _load_requester(self, user_id: str) -> UserProfile:
        user = await self._data_source.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if not user.is_profile_complete:
            raise ProfileIncompleteError(
                f"User {user_id} profile must be completed before finding matches "
                f"(missing: {', '.join(user.missing_fields())})"
            )
        return user
