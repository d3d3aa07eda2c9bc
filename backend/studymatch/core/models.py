"""
Core data models for study matching.

These are the data structures shared across the scorer, the finder and the
stores. Profiles are read-only inputs; candidates and snapshots are produced
by the finder and persisted through a SnapshotStore.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from .errors import InvalidOptionError


# ============ ID / Time Helpers ============

def generate_id(prefix: str = "") -> str:
    """Generate a unique ID with optional prefix."""
    uid = uuid.uuid4().hex[:12]
    return f"{prefix}_{uid}" if prefix else uid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============ Closed Vocabularies ============

class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    MIXED = "mixed"


class StudyStyle(str, Enum):
    DISCUSSION = "discussion"
    QUIET = "quiet"
    PROBLEM_SOLVING = "problem-solving"
    MIXED = "mixed"


class GroupSize(str, Enum):
    SMALL = "small"      # 2-3
    MEDIUM = "medium"    # 4-6
    LARGE = "large"      # 7+


class StudyGoal(str, Enum):
    EXAM_PREP = "exam-prep"
    ASSIGNMENT_HELP = "assignment-help"
    CONCEPT_REVIEW = "concept-review"
    PROJECT_WORK = "project-work"
    GENERAL_STUDY = "general-study"


class Day(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class GroupStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MeetingFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    FLEXIBLE = "flexible"


class TargetType(str, Enum):
    USER = "user"
    GROUP = "group"


class MatchType(str, Enum):
    POTENTIAL_PARTNER = "potential_partner"
    EXISTING_GROUP = "existing_group"


class SnapshotStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"


class InteractionAction(str, Enum):
    VIEWED = "viewed"
    INTERESTED = "interested"
    CONTACTED = "contacted"
    JOINED = "joined"
    DISMISSED = "dismissed"


# ============ Availability ============

def slot_label(day: Day, slot: TimeSlot) -> str:
    """Human-readable cell name, e.g. "Monday morning"."""
    return f"{day.label} {slot.value}"


@dataclass
class WeeklyAvailability:
    """
    Weekly availability grid: 7 days x 3 time slots.

    Only the available cells are stored; every other cell is unavailable.
    """
    slots: set[tuple[Day, TimeSlot]] = field(default_factory=set)

    def is_available(self, day: Day, slot: TimeSlot) -> bool:
        return (day, slot) in self.slots

    def cells(self) -> list[tuple[Day, TimeSlot]]:
        """Available cells in calendar order (Monday morning first)."""
        return [(d, s) for d in Day for s in TimeSlot if (d, s) in self.slots]

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> WeeklyAvailability:
        """
        Build from the client shape ``{"monday": {"morning": true}}``.

        Unknown days or slots are ignored rather than rejected.
        """
        slots: set[tuple[Day, TimeSlot]] = set()
        for day_name, day_slots in (data or {}).items():
            try:
                day = Day(day_name)
            except ValueError:
                continue
            for slot_name, available in (day_slots or {}).items():
                try:
                    slot = TimeSlot(slot_name)
                except ValueError:
                    continue
                if available:
                    slots.add((day, slot))
        return cls(slots=slots)

    def to_dict(self) -> dict[str, dict[str, bool]]:
        return {
            d.value: {s.value: (d, s) in self.slots for s in TimeSlot}
            for d in Day
        }


# ============ Profiles ============

@dataclass
class UserProfile:
    """A student's study profile. Read-only input to scoring."""
    user_id: str
    name: str = ""
    university: Optional[str] = None
    year: Optional[str] = None
    major: Optional[str] = None
    subjects: list[str] = field(default_factory=list)
    experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE
    study_style: StudyStyle = StudyStyle.MIXED
    preferred_group_size: GroupSize = GroupSize.MEDIUM
    study_goals: list[StudyGoal] = field(default_factory=list)
    availability: WeeklyAvailability = field(default_factory=WeeklyAvailability)
    is_active: bool = True
    group_ids: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Subjects and goals behave as sets but keep their input order.
        self.subjects = list(dict.fromkeys(s for s in self.subjects if s))
        self.study_goals = list(dict.fromkeys(self.study_goals))

    def missing_fields(self) -> list[str]:
        missing = [
            name for name in ("name", "university", "year", "major")
            if not getattr(self, name)
        ]
        if not self.subjects:
            missing.append("subjects")
        if not self.study_goals:
            missing.append("study_goals")
        return missing

    @property
    def is_profile_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def is_ungrouped(self) -> bool:
        return not self.group_ids

    def search_criteria(self) -> dict[str, Any]:
        """The profile fields a match run was computed from."""
        return {
            "subjects": list(self.subjects),
            "experienceLevel": self.experience_level.value,
            "studyStyle": self.study_style.value,
            "preferredGroupSize": self.preferred_group_size.value,
            "availability": self.availability.to_dict(),
            "studyGoals": [g.value for g in self.study_goals],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProfile:
        """Build from the client's camelCase profile document."""
        return cls(
            user_id=data.get("userId") or data["id"],
            name=data.get("name", ""),
            university=data.get("university"),
            year=data.get("year"),
            major=data.get("major"),
            subjects=list(data.get("subjects", [])),
            experience_level=ExperienceLevel(data.get("experienceLevel", "intermediate")),
            study_style=StudyStyle(data.get("studyStyle", "mixed")),
            preferred_group_size=GroupSize(data.get("preferredGroupSize", "medium")),
            study_goals=[StudyGoal(g) for g in data.get("studyGoals", [])],
            availability=WeeklyAvailability.from_dict(data.get("availability")),
            is_active=data.get("isActive", True),
            group_ids=list(data.get("studyGroups", [])),
        )


@dataclass
class GroupSchedule:
    """A group's preferred meeting slot. Day and slot may be unset."""
    day: Optional[Day] = None
    time_slot: Optional[TimeSlot] = None
    frequency: MeetingFrequency = MeetingFrequency.WEEKLY
    duration_hours: int = 2

    @property
    def is_set(self) -> bool:
        return self.day is not None and self.time_slot is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroupSchedule:
        day = data.get("dayOfWeek")
        slot = data.get("timeSlot")
        return cls(
            day=Day(day) if day else None,
            time_slot=TimeSlot(slot) if slot else None,
            frequency=MeetingFrequency(data.get("frequency", "weekly")),
            duration_hours=int(data.get("duration", 2)),
        )


@dataclass
class GroupProfile:
    """An existing study group. Only active groups are matchable."""
    group_id: str
    name: str = ""
    subject: str = ""
    experience_level: ExperienceLevel = ExperienceLevel.MIXED
    study_style: StudyStyle = StudyStyle.MIXED
    study_goals: list[StudyGoal] = field(default_factory=list)
    schedule: Optional[GroupSchedule] = None
    members: list[UserProfile] = field(default_factory=list)
    max_members: int = 6
    status: GroupStatus = GroupStatus.ACTIVE

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def has_open_spot(self) -> bool:
        return self.member_count < self.max_members

    def is_member(self, user_id: str) -> bool:
        return any(m.user_id == user_id for m in self.members)

    @property
    def is_matchable(self) -> bool:
        return self.status == GroupStatus.ACTIVE and self.has_open_spot

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], users: Optional[dict[str, UserProfile]] = None
    ) -> GroupProfile:
        """
        Build from the client's camelCase group document.

        ``members`` lists user ids; ids missing from ``users`` are skipped.
        """
        users = users or {}
        schedule = data.get("schedule")
        return cls(
            group_id=data.get("groupId") or data["id"],
            name=data.get("name", ""),
            subject=data.get("subject", ""),
            experience_level=ExperienceLevel(data.get("experienceLevel", "mixed")),
            study_style=StudyStyle(data.get("studyStyle", "mixed")),
            study_goals=[StudyGoal(g) for g in data.get("studyGoals", [])],
            schedule=GroupSchedule.from_dict(schedule) if schedule else None,
            members=[users[m] for m in data.get("members", []) if m in users],
            max_members=int(data.get("maxMembers", 6)),
            status=GroupStatus(data.get("status", "active")),
        )


# ============ Scoring Output ============

FACTOR_NAMES = (
    "subjectMatch",
    "scheduleMatch",
    "experienceMatch",
    "studyStyleMatch",
    "goalMatch",
)


@dataclass
class MatchFactor:
    """One weighted scoring dimension with its explanatory detail."""
    name: str
    score: int
    weight: int  # percentage, e.g. 30
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "weight": self.weight, **self.details}

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> MatchFactor:
        details = {k: v for k, v in data.items() if k not in ("score", "weight")}
        return cls(
            name=name,
            score=int(data.get("score", 0)),
            weight=int(data.get("weight", 0)),
            details=details,
        )


@dataclass
class MatchFactors:
    """The fixed set of five factors behind a compatibility score."""
    subject_match: MatchFactor
    schedule_match: MatchFactor
    experience_match: MatchFactor
    study_style_match: MatchFactor
    goal_match: MatchFactor

    def all(self) -> tuple[MatchFactor, ...]:
        return (
            self.subject_match,
            self.schedule_match,
            self.experience_match,
            self.study_style_match,
            self.goal_match,
        )

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {f.name: f.to_dict() for f in self.all()}

    @classmethod
    def from_dict(cls, data: dict[str, dict[str, Any]]) -> MatchFactors:
        return cls(*(MatchFactor.from_dict(n, data.get(n, {})) for n in FACTOR_NAMES))


@dataclass
class CompatibilityResult:
    compatibility_score: int
    factors: MatchFactors
    reasons: list[str] = field(default_factory=list)


# ============ Candidates & Snapshots ============

@dataclass
class InteractionState:
    """UI interaction flags on a candidate. Mutated only by explicit actions."""
    viewed: bool = False
    viewed_at: Optional[datetime] = None
    interested: bool = False
    interested_at: Optional[datetime] = None
    contacted: bool = False
    contacted_at: Optional[datetime] = None
    joined: bool = False
    joined_at: Optional[datetime] = None
    dismissed: bool = False
    dismissed_at: Optional[datetime] = None
    dismiss_reason: Optional[str] = None

    def apply(
        self,
        action: InteractionAction,
        at: datetime,
        reason: Optional[str] = None,
    ) -> None:
        setattr(self, action.value, True)
        setattr(self, f"{action.value}_at", at)
        if action == InteractionAction.DISMISSED:
            self.dismiss_reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "viewed": self.viewed,
            "viewedAt": _iso(self.viewed_at),
            "interested": self.interested,
            "interestedAt": _iso(self.interested_at),
            "contacted": self.contacted,
            "contactedAt": _iso(self.contacted_at),
            "joined": self.joined,
            "joinedAt": _iso(self.joined_at),
            "dismissed": self.dismissed,
            "dismissedAt": _iso(self.dismissed_at),
            "dismissReason": self.dismiss_reason,
        }


@dataclass
class MatchCandidate:
    """A scored user or group, as shown to the requester."""
    target_type: TargetType
    target_id: str
    compatibility_score: int
    factors: MatchFactors
    reasons: list[str] = field(default_factory=list)
    interaction: InteractionState = field(default_factory=InteractionState)

    @property
    def candidate_id(self) -> str:
        return f"{self.target_type.value}:{self.target_id}"

    @property
    def match_type(self) -> MatchType:
        if self.target_type == TargetType.GROUP:
            return MatchType.EXISTING_GROUP
        return MatchType.POTENTIAL_PARTNER

    @property
    def dismissed(self) -> bool:
        return self.interaction.dismissed

    @classmethod
    def from_result(
        cls,
        target_type: TargetType,
        target_id: str,
        result: CompatibilityResult,
    ) -> MatchCandidate:
        return cls(
            target_type=target_type,
            target_id=target_id,
            compatibility_score=result.compatibility_score,
            factors=result.factors,
            reasons=list(result.reasons),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidateId": self.candidate_id,
            "targetType": self.target_type.value,
            self.target_type.value: self.target_id,
            "matchType": self.match_type.value,
            "compatibilityScore": self.compatibility_score,
            "matchFactors": self.factors.to_dict(),
            "reasons": list(self.reasons),
            **self.interaction.to_dict(),
        }


DEFAULT_SNAPSHOT_TTL = timedelta(days=7)


@dataclass
class MatchResultSnapshot:
    """
    A persisted, time-bounded set of match results for one user.

    Candidates keep the order they were ranked in. The snapshot doubles as
    the per-user cache: a recent active snapshot is served instead of
    rescoring.
    """
    snapshot_id: str
    user_id: str
    candidates: list[MatchCandidate] = field(default_factory=list)
    search_criteria: dict[str, Any] = field(default_factory=dict)
    algorithm_version: str = "2.0"
    processing_time_ms: float = 0.0
    total_candidates: int = 0
    status: SnapshotStatus = SnapshotStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.expires_at is None:
            self.expires_at = self.created_at + DEFAULT_SNAPSHOT_TTL

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def expire_if_due(self, now: datetime) -> bool:
        """Flip an overdue active snapshot to expired. Returns True if flipped."""
        if self.status == SnapshotStatus.ACTIVE and self.is_past_expiry(now):
            self.status = SnapshotStatus.EXPIRED
            return True
        return False

    def find_candidate(self, candidate_id: str) -> Optional[MatchCandidate]:
        for candidate in self.candidates:
            if candidate.candidate_id == candidate_id:
                return candidate
        return None

    @property
    def visible_candidates(self) -> list[MatchCandidate]:
        return [c for c in self.candidates if not c.dismissed]

    @property
    def top_matches(self) -> list[MatchCandidate]:
        ranked = sorted(
            self.visible_candidates,
            key=lambda c: c.compatibility_score,
            reverse=True,
        )
        return ranked[:5]

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotId": self.snapshot_id,
            "userId": self.user_id,
            "matches": [c.to_dict() for c in self.candidates],
            "topMatches": [c.candidate_id for c in self.top_matches],
            "searchCriteria": self.search_criteria,
            "algorithmVersion": self.algorithm_version,
            "processingTime": self.processing_time_ms,
            "totalCandidates": self.total_candidates,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "expiresAt": _iso(self.expires_at),
        }


# ============ Requests & Results ============

@dataclass
class MatchOptions:
    include_groups: bool = True
    include_users: bool = True
    max_results: int = 20
    min_score: int = 60
    refresh: bool = False

    def validate(self) -> None:
        """Raises InvalidOptionError for out-of-range options."""
        if self.max_results <= 0:
            raise InvalidOptionError(
                f"max_results must be positive, got {self.max_results}"
            )
        if not 0 <= self.min_score <= 100:
            raise InvalidOptionError(
                f"min_score must be within [0, 100], got {self.min_score}"
            )
        if not (self.include_users or self.include_groups):
            raise InvalidOptionError(
                "At least one of include_users / include_groups is required"
            )


@dataclass
class MatchResult:
    matches: list[MatchCandidate]
    from_cache: bool
    generated_at: datetime
    processing_time_ms: Optional[float] = None
    snapshot_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "matches": [c.to_dict() for c in self.matches],
            "fromCache": self.from_cache,
            "generatedAt": _iso(self.generated_at),
            "processingTime": self.processing_time_ms,
            "snapshotId": self.snapshot_id,
        }


@dataclass
class CandidateFilter:
    """
    What the data collaborator must honour when retrieving candidates.

    ``matches_user`` / ``matches_group`` spell out the rules for
    implementations that filter in Python rather than in a query.
    """
    requester_id: str
    subjects: list[str] = field(default_factory=list)
    university: Optional[str] = None
    ungrouped_only: bool = False

    def matches_user(self, user: UserProfile) -> bool:
        if user.user_id == self.requester_id:
            return False
        if not (user.is_active and user.is_profile_complete):
            return False
        if not set(self.subjects) & set(user.subjects):
            return False
        if self.university and user.university != self.university:
            return False
        if self.ungrouped_only and not user.is_ungrouped:
            return False
        return True

    def matches_group(self, group: GroupProfile) -> bool:
        return (
            group.is_matchable
            and group.subject in self.subjects
            and not group.is_member(self.requester_id)
        )


@dataclass
class SuggestionOptions:
    min_size: int = 3
    max_size: int = 6
    pool_limit: int = 100

    def validate(self) -> None:
        if self.min_size < 2:
            raise InvalidOptionError(f"min_size must be at least 2, got {self.min_size}")
        if self.max_size < self.min_size:
            raise InvalidOptionError(
                f"max_size ({self.max_size}) must not be below min_size ({self.min_size})"
            )
        if self.pool_limit <= 0:
            raise InvalidOptionError(f"pool_limit must be positive, got {self.pool_limit}")


@dataclass
class GroupSuggestion:
    """A proposed new group built from ungrouped users."""
    subject: str
    suggested_members: list[UserProfile]
    estimated_compatibility: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "suggestedMembers": [
                {"userId": m.user_id, "name": m.name} for m in self.suggested_members
            ],
            "estimatedCompatibility": self.estimated_compatibility,
            "reason": self.reason,
        }
