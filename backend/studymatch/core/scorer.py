"""
Compatibility scorer — weighted multi-factor fit between a user and a
candidate user or group.

Pure and deterministic: no I/O, no shared state, never raises for
well-formed profiles. Absent data degrades to a neutral default instead of
penalising the candidate.

Five factors, weighted by an injected ScoringWeights:

- subject     (0.30) shared subjects
- schedule    (0.25) overlapping availability
- experience  (0.20) experience level distance
- study style (0.15) study approach
- goals       (0.10) shared study goals

Group targets additionally blend in the mean compatibility with existing
members and a group-size fit bonus.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from .errors import ConfigError
from .models import (
    CompatibilityResult,
    Day,
    ExperienceLevel,
    GroupProfile,
    GroupSchedule,
    GroupSize,
    MatchFactor,
    MatchFactors,
    StudyStyle,
    TimeSlot,
    UserProfile,
    WeeklyAvailability,
    slot_label,
)

# Numeric rank for experience distance. Unknown levels sit in the middle.
EXPERIENCE_RANK: dict[ExperienceLevel, int] = {
    ExperienceLevel.BEGINNER: 1,
    ExperienceLevel.INTERMEDIATE: 2,
    ExperienceLevel.ADVANCED: 3,
}
DEFAULT_EXPERIENCE_RANK = 2

# Group size the user would ideally end up in.
SIZE_MIDPOINTS: dict[GroupSize, int] = {
    GroupSize.SMALL: 3,
    GroupSize.MEDIUM: 5,
    GroupSize.LARGE: 8,
}
DEFAULT_SIZE_MIDPOINT = 5

MAX_REASONS = 3


@dataclass(frozen=True)
class ScoringWeights:
    """Factor weights. Must sum to 1.0."""
    subject: float = 0.30
    schedule: float = 0.25
    experience: float = 0.20
    study_style: float = 0.15
    goals: float = 0.10

    def __post_init__(self) -> None:
        values = (self.subject, self.schedule, self.experience, self.study_style, self.goals)
        if any(v < 0 for v in values):
            raise ConfigError(f"Scoring weights must be non-negative: {values}")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-6):
            raise ConfigError(f"Scoring weights must sum to 1.0, got {sum(values):.4f}")


@dataclass(frozen=True)
class ScoringConstants:
    """Neutral defaults and group blend shares used by the factor functions."""
    schedule_neutral: int = 50
    group_schedule_neutral: int = 75
    experience_mixed: int = 85
    experience_adjacent: int = 70
    experience_distant: int = 50
    style_mixed: int = 80
    style_different: int = 60
    goals_neutral: int = 50
    goals_mismatch: int = 30
    member_neutral: float = 75.0
    group_raw_share: float = 0.8
    group_member_share: float = 0.1
    group_size_share: float = 0.1
    size_penalty_per_member: int = 15


DEFAULT_WEIGHTS = ScoringWeights()
DEFAULT_CONSTANTS = ScoringConstants()


# ============ Factor Functions ============

def round_half_up(value: float) -> int:
    """Round .5 upwards, matching how clients display scores."""
    return int(math.floor(value + 0.5))


def common_elements(first: Optional[Iterable], second: Optional[Iterable]) -> list:
    """Items of ``first`` also in ``second``, in ``first``'s order."""
    other = set(second or ())
    return [item for item in (first or ()) if item in other]


def overlap_ratio_score(
    first: Optional[Sequence], second: Optional[Sequence], common: Sequence
) -> int:
    largest = max(len(first or ()), len(second or ()))
    if largest == 0:
        return 0
    return round_half_up(len(common) / largest * 100)


def subject_score(subjects1: Optional[Sequence[str]], subjects2: Optional[Sequence[str]]) -> tuple[int, list[str]]:
    common = common_elements(subjects1, subjects2)
    if not subjects1 or not subjects2 or not common:
        return 0, common
    return overlap_ratio_score(subjects1, subjects2, common), common


def schedule_score(
    availability1: Optional[WeeklyAvailability],
    availability2: Optional[WeeklyAvailability],
    neutral: int = DEFAULT_CONSTANTS.schedule_neutral,
) -> tuple[int, list[str]]:
    """
    Share of user1's available cells that user2 is also free in.

    Returns ``neutral`` when user1 has declared no availability at all.
    """
    first = availability1.slots if availability1 else set()
    second = availability2.slots if availability2 else set()
    total_user_slots = 0
    common: list[str] = []
    for day in Day:
        for slot in TimeSlot:
            if (day, slot) not in first:
                continue
            total_user_slots += 1
            if (day, slot) in second:
                common.append(slot_label(day, slot))
    if total_user_slots == 0:
        return neutral, common
    return round_half_up(len(common) / total_user_slots * 100), common


def group_schedule_score(
    availability: Optional[WeeklyAvailability],
    schedule: Optional[GroupSchedule],
    neutral: int = DEFAULT_CONSTANTS.group_schedule_neutral,
) -> tuple[int, list[str]]:
    if schedule is None or not schedule.is_set:
        return neutral, []
    if availability and availability.is_available(schedule.day, schedule.time_slot):
        return 100, [slot_label(schedule.day, schedule.time_slot)]
    return 0, []


def experience_score(
    level1: Optional[ExperienceLevel],
    level2: Optional[ExperienceLevel],
    constants: ScoringConstants = DEFAULT_CONSTANTS,
) -> int:
    if level1 == level2:
        return 100
    if ExperienceLevel.MIXED in (level1, level2):
        return constants.experience_mixed
    diff = abs(
        EXPERIENCE_RANK.get(level1, DEFAULT_EXPERIENCE_RANK)
        - EXPERIENCE_RANK.get(level2, DEFAULT_EXPERIENCE_RANK)
    )
    if diff == 1:
        return constants.experience_adjacent
    return constants.experience_distant


def study_style_score(
    style1: Optional[StudyStyle],
    style2: Optional[StudyStyle],
    constants: ScoringConstants = DEFAULT_CONSTANTS,
) -> int:
    if style1 == style2:
        return 100
    if StudyStyle.MIXED in (style1, style2):
        return constants.style_mixed
    return constants.style_different


def goals_score(
    goals1: Optional[Sequence],
    goals2: Optional[Sequence],
    constants: ScoringConstants = DEFAULT_CONSTANTS,
) -> tuple[int, list]:
    common = common_elements(goals1, goals2)
    if not goals1 or not goals2:
        return constants.goals_neutral, common
    if not common:
        return constants.goals_mismatch, common
    return overlap_ratio_score(goals1, goals2, common), common


def experience_description(level1: Optional[ExperienceLevel], level2: Optional[ExperienceLevel]) -> str:
    if level1 == level2:
        return "Same experience level"
    if ExperienceLevel.MIXED in (level1, level2):
        return "Flexible experience matching"
    return "Different experience levels"


def style_description(style1: Optional[StudyStyle], style2: Optional[StudyStyle]) -> str:
    if style1 == style2:
        return "Matching study approaches"
    if StudyStyle.MIXED in (style1, style2):
        return "Adaptable study styles"
    return "Different study approaches"


def group_size_bonus(
    current_size: int,
    max_size: int,
    preference: Optional[GroupSize],
    constants: ScoringConstants = DEFAULT_CONSTANTS,
) -> int:
    """How close the group would be to the user's preferred size after joining."""
    if max_size - current_size <= 0:
        return 0
    midpoint = SIZE_MIDPOINTS.get(preference, DEFAULT_SIZE_MIDPOINT)
    size_diff = abs(current_size + 1 - midpoint)
    return max(0, 100 - size_diff * constants.size_penalty_per_member)


def build_reasons(
    factors: MatchFactors,
    score: int,
    group: Optional[GroupProfile] = None,
) -> list[str]:
    """Up to three human-readable reasons, most specific first."""
    reasons: list[str] = []

    common_subjects = factors.subject_match.details.get("commonSubjects", [])
    if common_subjects:
        reasons.append(f"Common subjects: {', '.join(common_subjects)}")

    common_slots = factors.schedule_match.details.get("commonTimeSlots", [])
    if len(common_slots) >= 2:
        reasons.append(f"{len(common_slots)} overlapping time slots")

    if factors.experience_match.score >= 85:
        reasons.append("Compatible experience levels")

    if factors.study_style_match.score >= 85:
        reasons.append("Matching study styles")

    if group is not None and group.name:
        reasons.append(f"{group.member_count}/{group.max_members} members in {group.name}")

    if score >= 85:
        reasons.append("Excellent compatibility for productive collaboration")
    elif score >= 70:
        reasons.append("Good potential for effective study partnership")

    return reasons[:MAX_REASONS]


def _clamp_score(value: float) -> int:
    return max(0, min(round_half_up(value), 100))


# ============ Scorer ============

Target = Union[UserProfile, GroupProfile]


class CompatibilityScorer:
    """
    Stateless scorer. Safe to share across concurrent requests.

    Weights and constants are injected so alternative weight profiles can be
    exercised without touching the factor functions.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        constants: Optional[ScoringConstants] = None,
    ):
        self._weights = weights or DEFAULT_WEIGHTS
        self._constants = constants or DEFAULT_CONSTANTS

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    @property
    def constants(self) -> ScoringConstants:
        return self._constants

    def score(self, subject: UserProfile, other: Target) -> CompatibilityResult:
        if isinstance(other, GroupProfile):
            return self.score_group(subject, other)
        return self.score_users(subject, other)

    def score_users(self, user1: UserProfile, user2: UserProfile) -> CompatibilityResult:
        subject_value, common_subjects = subject_score(user1.subjects, user2.subjects)
        schedule_value, common_slots = schedule_score(
            user1.availability, user2.availability, self._constants.schedule_neutral
        )
        factors = self._factors(
            user1,
            other_level=user2.experience_level,
            other_style=user2.study_style,
            other_goals=user2.study_goals,
            subject=(subject_value, common_subjects),
            schedule=(schedule_value, common_slots),
        )
        final_score = _clamp_score(self._weighted_total(factors))
        return CompatibilityResult(
            compatibility_score=final_score,
            factors=factors,
            reasons=build_reasons(factors, final_score),
        )

    def score_group(self, user: UserProfile, group: GroupProfile) -> CompatibilityResult:
        in_subjects = bool(group.subject) and group.subject in (user.subjects or [])
        subject = (100, [group.subject]) if in_subjects else (0, [])
        schedule = group_schedule_score(
            user.availability, group.schedule, self._constants.group_schedule_neutral
        )
        factors = self._factors(
            user,
            other_level=group.experience_level,
            other_style=group.study_style,
            other_goals=group.study_goals,
            subject=subject,
            schedule=schedule,
        )

        c = self._constants
        blended = (
            self._weighted_total(factors) * c.group_raw_share
            + self.average_member_compatibility(user, group) * c.group_member_share
            + group_size_bonus(
                group.member_count, group.max_members, user.preferred_group_size, c
            ) * c.group_size_share
        )
        final_score = _clamp_score(blended)
        return CompatibilityResult(
            compatibility_score=final_score,
            factors=factors,
            reasons=build_reasons(factors, final_score, group=group),
        )

    def average_member_compatibility(self, user: UserProfile, group: GroupProfile) -> float:
        """Mean user-user score against members that carry subjects."""
        scores = [
            self.score_users(user, member).compatibility_score
            for member in group.members
            if member.subjects
        ]
        if not scores:
            return self._constants.member_neutral
        return sum(scores) / len(scores)

    # ============ Internals ============

    def _factors(
        self,
        user: UserProfile,
        *,
        other_level: Optional[ExperienceLevel],
        other_style: Optional[StudyStyle],
        other_goals: Optional[Sequence],
        subject: tuple[int, list[str]],
        schedule: tuple[int, list[str]],
    ) -> MatchFactors:
        w, c = self._weights, self._constants
        goals_value, common_goals = goals_score(user.study_goals, other_goals, c)
        return MatchFactors(
            subject_match=MatchFactor(
                "subjectMatch", subject[0], _percent(w.subject),
                {"commonSubjects": list(subject[1])},
            ),
            schedule_match=MatchFactor(
                "scheduleMatch", schedule[0], _percent(w.schedule),
                {"commonTimeSlots": list(schedule[1])},
            ),
            experience_match=MatchFactor(
                "experienceMatch",
                experience_score(user.experience_level, other_level, c),
                _percent(w.experience),
                {"levelCompatibility": experience_description(user.experience_level, other_level)},
            ),
            study_style_match=MatchFactor(
                "studyStyleMatch",
                study_style_score(user.study_style, other_style, c),
                _percent(w.study_style),
                {"styleCompatibility": style_description(user.study_style, other_style)},
            ),
            goal_match=MatchFactor(
                "goalMatch", goals_value, _percent(w.goals),
                {"commonGoals": [_goal_value(g) for g in common_goals]},
            ),
        )

    def _weighted_total(self, factors: MatchFactors) -> float:
        w = self._weights
        return (
            factors.subject_match.score * w.subject
            + factors.schedule_match.score * w.schedule
            + factors.experience_match.score * w.experience
            + factors.study_style_match.score * w.study_style
            + factors.goal_match.score * w.goals
        )


def _percent(weight: float) -> int:
    return round_half_up(weight * 100)


def _goal_value(goal) -> str:
    return getattr(goal, "value", goal)
