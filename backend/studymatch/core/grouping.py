"""
Group-formation suggestions — greedy grouping of ungrouped students.

Algorithm:
1. Bucket the pool by subject (only the requester's subjects when one is given).
2. Skip buckets smaller than ``min_size``.
3. A bucket that already fits in ``max_size`` is suggested whole.
4. Otherwise start from the seed (first member) and repeatedly add the
   candidate with the highest mean compatibility to the members selected so
   far, until ``max_size``.
5. Rank suggestions by mean pairwise compatibility.

This is a greedy local search, not a global optimum. The same pool can
yield a better group from a different seed; callers relying on stable
fixtures should keep the seed first in the pool.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from .models import GroupSuggestion, UserProfile
from .scorer import CompatibilityScorer

logger = logging.getLogger(__name__)


def compatibility_matrix(
    users: Sequence[UserProfile], scorer: CompatibilityScorer
) -> np.ndarray:
    """
    Symmetric matrix of user-user scores. The scorer is directional (the
    schedule factor is a share of the first user's slots), so ``m[i, j]``
    is the mean of both directions. The diagonal is left at zero.
    """
    n = len(users)
    matrix = np.zeros((n, n), dtype=np.float64)
    for i, first in enumerate(users):
        for j, second in enumerate(users):
            if i != j:
                matrix[i, j] = scorer.score_users(first, second).compatibility_score
    return (matrix + matrix.T) / 2


def mean_pairwise_compatibility(matrix: np.ndarray) -> float:
    """Mean of the upper-triangle scores (each unordered pair once)."""
    n = matrix.shape[0]
    if n < 2:
        return 0.0
    rows, cols = np.triu_indices(n, k=1)
    return float(matrix[rows, cols].mean())


def select_greedy(matrix: np.ndarray, max_size: int, seed: int = 0) -> list[int]:
    """
    Indices of a greedily grown group starting from ``seed``.

    Each step adds the unselected index with the highest mean score against
    the selected set. Ties go to the lowest index.
    """
    n = matrix.shape[0]
    if n <= max_size:
        return list(range(n))

    selected = [seed]
    remaining = [i for i in range(n) if i != seed]
    while len(selected) < max_size and remaining:
        averages = matrix[np.ix_(remaining, selected)].mean(axis=1)
        best = remaining[int(np.argmax(averages))]
        selected.append(best)
        remaining.remove(best)
    return selected


def build_group_suggestions(
    users: Sequence[UserProfile],
    scorer: CompatibilityScorer,
    min_size: int = 3,
    max_size: int = 6,
    subjects: Optional[Sequence[str]] = None,
) -> list[GroupSuggestion]:
    """
    Suggest one group per subject bucket.

    Args:
        users: Pool of complete, ungrouped profiles. Pool order decides the
            seed of each bucket.
        scorer: Scorer used for every pairwise comparison.
        min_size: Smallest bucket worth suggesting.
        max_size: Largest group to build.
        subjects: Restrict buckets to these subjects (e.g. the requester's).

    Returns:
        Suggestions sorted by estimated compatibility, best first.
    """
    buckets: dict[str, list[UserProfile]] = {}
    for user in users:
        for subject in user.subjects:
            if subjects is not None and subject not in subjects:
                continue
            buckets.setdefault(subject, []).append(user)

    suggestions: list[GroupSuggestion] = []
    for subject, members in buckets.items():
        if len(members) < min_size:
            logger.debug("Skipping %s: %d members < min_size %d", subject, len(members), min_size)
            continue

        matrix = compatibility_matrix(members, scorer)
        picked = select_greedy(matrix, max_size)
        if len(picked) < min_size:
            continue

        chosen = [members[i] for i in picked]
        estimated = mean_pairwise_compatibility(matrix[np.ix_(picked, picked)])
        suggestions.append(GroupSuggestion(
            subject=subject,
            suggested_members=chosen,
            estimated_compatibility=round(estimated, 2),
            reason=f"Study group for {subject} with {len(chosen)} compatible members",
        ))

    suggestions.sort(key=lambda s: s.estimated_compatibility, reverse=True)
    return suggestions
