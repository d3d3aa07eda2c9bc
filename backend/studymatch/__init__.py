"""
StudyMatch — study partner and study group matching.

Public API surface. Import everything you need from here::

    from studymatch import MatchFinder, CompatibilityScorer, UserProfile

Extension points (implement these Protocols to customize):

- ``ProfileDataSource`` — where users and groups come from
- ``SnapshotStore`` — where match snapshots are persisted
"""

# -- Match finding --
from studymatch.core.finder import MatchFinder
from studymatch.core.grouping import build_group_suggestions

# -- Scoring --
from studymatch.core.scorer import CompatibilityScorer, ScoringConstants, ScoringWeights

# -- Data models --
from studymatch.core.models import (
    GroupProfile,
    GroupSchedule,
    GroupSuggestion,
    InteractionAction,
    MatchCandidate,
    MatchOptions,
    MatchResult,
    MatchResultSnapshot,
    SuggestionOptions,
    UserProfile,
    WeeklyAvailability,
)

# -- Errors --
from studymatch.core.errors import (
    ConfigError,
    InvalidOptionError,
    NotFoundError,
    ProfileIncompleteError,
    StorageError,
    StudyMatchError,
)

# -- Protocols (contracts for extension) --
from studymatch.core.protocols import ProfileDataSource, SnapshotStore

# -- Default implementations --
from studymatch.infra.config import StudyMatchConfig
from studymatch.infra.database import SqlSnapshotStore
from studymatch.infra.memory_store import InMemoryProfileDirectory, InMemorySnapshotStore
from studymatch.infra.sweeper import SnapshotSweeper

__all__ = [
    # Finder
    "MatchFinder",
    "build_group_suggestions",
    # Scoring
    "CompatibilityScorer",
    "ScoringConstants",
    "ScoringWeights",
    # Models
    "UserProfile",
    "GroupProfile",
    "GroupSchedule",
    "WeeklyAvailability",
    "MatchOptions",
    "MatchResult",
    "MatchCandidate",
    "MatchResultSnapshot",
    "InteractionAction",
    "SuggestionOptions",
    "GroupSuggestion",
    # Errors
    "StudyMatchError",
    "NotFoundError",
    "ProfileIncompleteError",
    "InvalidOptionError",
    "StorageError",
    "ConfigError",
    # Protocols
    "ProfileDataSource",
    "SnapshotStore",
    # Default implementations
    "StudyMatchConfig",
    "InMemoryProfileDirectory",
    "InMemorySnapshotStore",
    "SqlSnapshotStore",
    "SnapshotSweeper",
]
