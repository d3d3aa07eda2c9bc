"""
Shared test fixtures for StudyMatch tests.

Provides a controllable clock, sample student and group profiles, and
pre-wired finders over the in-memory stores.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from studymatch.core.finder import MatchFinder
from studymatch.core.models import (
    Day,
    ExperienceLevel,
    GroupProfile,
    GroupSchedule,
    StudyGoal,
    StudyStyle,
    TimeSlot,
    UserProfile,
    WeeklyAvailability,
)
from studymatch.infra.memory_store import InMemoryProfileDirectory, InMemorySnapshotStore


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============ Sample Data ============

MONDAY_MORNING = {"monday": {"morning": True}}


def make_user(user_id: str, **overrides: Any) -> UserProfile:
    """A complete intermediate/discussion/exam-prep student free on Monday mornings."""
    fields: dict[str, Any] = {
        "name": user_id.capitalize(),
        "university": "State University",
        "year": "2",
        "major": "Computer Science",
        "subjects": ["Math"],
        "experience_level": ExperienceLevel.INTERMEDIATE,
        "study_style": StudyStyle.DISCUSSION,
        "study_goals": [StudyGoal.EXAM_PREP],
        "availability": WeeklyAvailability.from_dict(MONDAY_MORNING),
    }
    fields.update(overrides)
    return UserProfile(user_id=user_id, **fields)


def make_group(group_id: str, **overrides: Any) -> GroupProfile:
    fields: dict[str, Any] = {
        "name": group_id.capitalize(),
        "subject": "Math",
        "experience_level": ExperienceLevel.INTERMEDIATE,
        "study_style": StudyStyle.DISCUSSION,
        "study_goals": [StudyGoal.EXAM_PREP],
        "schedule": GroupSchedule(day=Day.MONDAY, time_slot=TimeSlot.MORNING),
        "max_members": 6,
    }
    fields.update(overrides)
    return GroupProfile(group_id=group_id, **fields)


def sample_users() -> list[UserProfile]:
    """
    alice  requester, Math + CS
    bob    Math + Physics, otherwise identical to alice (scores 85), in calc
    carol  Math, little else in common (scores 41)
    dave   History only, never retrieved for alice
    erin   CS, otherwise identical to alice (scores 85)
    frank  inactive
    grace  other university
    """
    return [
        make_user("alice", subjects=["Math", "CS"]),
        make_user("bob", subjects=["Math", "Physics"], group_ids=["calc"]),
        make_user(
            "carol",
            experience_level=ExperienceLevel.ADVANCED,
            study_style=StudyStyle.QUIET,
            study_goals=[StudyGoal.CONCEPT_REVIEW],
            availability=WeeklyAvailability.from_dict({"friday": {"evening": True}}),
        ),
        make_user("dave", subjects=["History"]),
        make_user("erin", subjects=["CS"]),
        make_user("frank", is_active=False),
        make_user("grace", university="Tech Institute"),
    ]


def sample_groups(users: list[UserProfile]) -> list[GroupProfile]:
    """
    calc  Math, perfect fit for alice with bob as member (scores 94)
    chem  Chemistry, never retrieved for alice
    full  CS but already full
    """
    by_id = {u.user_id: u for u in users}
    return [
        make_group("calc", members=[by_id["bob"]]),
        make_group("chem", subject="Chemistry"),
        make_group("full", subject="CS", members=[by_id["erin"]], max_members=1),
    ]


# ============ Fixtures ============

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users():
    return sample_users()


@pytest.fixture
def groups(users):
    return sample_groups(users)


@pytest.fixture
def directory(users, groups):
    return InMemoryProfileDirectory(users, groups)


@pytest.fixture
def store(clock):
    return InMemorySnapshotStore(clock=clock)


@pytest.fixture
def finder(directory, store, clock):
    return MatchFinder(directory, store, clock=clock)


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def group_factory():
    return make_group
