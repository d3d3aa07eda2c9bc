"""Core matching layer — models, scoring, match finding, errors."""

from .errors import (
    StudyMatchError,
    NotFoundError,
    ProfileIncompleteError,
    InvalidOptionError,
    StorageError,
    ConfigError,
)
from .finder import MatchFinder
from .grouping import build_group_suggestions
from .models import (
    CandidateFilter,
    CompatibilityResult,
    Day,
    ExperienceLevel,
    GroupProfile,
    GroupSchedule,
    GroupSize,
    GroupStatus,
    GroupSuggestion,
    InteractionAction,
    InteractionState,
    MatchCandidate,
    MatchFactor,
    MatchFactors,
    MatchOptions,
    MatchResult,
    MatchResultSnapshot,
    MatchType,
    SnapshotStatus,
    StudyGoal,
    StudyStyle,
    SuggestionOptions,
    TargetType,
    TimeSlot,
    UserProfile,
    WeeklyAvailability,
    generate_id,
)
from .protocols import ProfileDataSource, SnapshotStore
from .scorer import CompatibilityScorer, ScoringConstants, ScoringWeights

__all__ = [
    "StudyMatchError", "NotFoundError", "ProfileIncompleteError",
    "InvalidOptionError", "StorageError", "ConfigError",
    "MatchFinder", "build_group_suggestions",
    "CandidateFilter", "CompatibilityResult", "Day", "ExperienceLevel",
    "GroupProfile", "GroupSchedule", "GroupSize", "GroupStatus",
    "GroupSuggestion", "InteractionAction", "InteractionState",
    "MatchCandidate", "MatchFactor", "MatchFactors", "MatchOptions",
    "MatchResult", "MatchResultSnapshot", "MatchType", "SnapshotStatus",
    "StudyGoal", "StudyStyle", "SuggestionOptions", "TargetType", "TimeSlot",
    "UserProfile", "WeeklyAvailability", "generate_id",
    "ProfileDataSource", "SnapshotStore",
    "CompatibilityScorer", "ScoringConstants", "ScoringWeights",
]
