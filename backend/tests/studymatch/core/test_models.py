"""Tests for core data models — validates structure and basic behavior."""

from datetime import timedelta

import pytest

from studymatch.core.errors import InvalidOptionError
from studymatch.core.models import (
    CandidateFilter,
    Day,
    GroupStatus,
    InteractionAction,
    InteractionState,
    MatchCandidate,
    MatchFactors,
    MatchOptions,
    MatchResultSnapshot,
    MatchType,
    SnapshotStatus,
    StudyGoal,
    SuggestionOptions,
    TargetType,
    TimeSlot,
    UserProfile,
    WeeklyAvailability,
    generate_id,
)
from studymatch.core.scorer import CompatibilityScorer


def _candidate(target_id: str, score: int, target_type: TargetType = TargetType.USER) -> MatchCandidate:
    factors = MatchFactors.from_dict({})
    return MatchCandidate(target_type, target_id, score, factors, ["reason"])


class TestGenerateId:
    def test_generates_unique_ids(self):
        ids = {generate_id("match") for _ in range(100)}
        assert len(ids) == 100

    def test_prefix_applied(self):
        assert generate_id("match").startswith("match_")

    def test_no_prefix(self):
        assert "_" not in generate_id("")


class TestWeeklyAvailability:
    def test_from_client_shape(self):
        availability = WeeklyAvailability.from_dict({
            "monday": {"morning": True, "evening": False},
            "sunday": {"afternoon": True},
        })
        assert availability.is_available(Day.MONDAY, TimeSlot.MORNING)
        assert not availability.is_available(Day.MONDAY, TimeSlot.EVENING)
        assert availability.cells() == [
            (Day.MONDAY, TimeSlot.MORNING),
            (Day.SUNDAY, TimeSlot.AFTERNOON),
        ]

    def test_unknown_keys_ignored(self):
        availability = WeeklyAvailability.from_dict({
            "funday": {"morning": True},
            "monday": {"midnight": True},
        })
        assert availability.cells() == []

    def test_none_is_empty(self):
        assert WeeklyAvailability.from_dict(None).slots == set()

    def test_to_dict_is_full_grid(self):
        grid = WeeklyAvailability.from_dict({"friday": {"evening": True}}).to_dict()
        assert len(grid) == 7
        assert grid["friday"] == {"morning": False, "afternoon": False, "evening": True}


class TestUserProfile:
    def test_complete_profile(self, user_factory):
        assert user_factory("alice").is_profile_complete

    def test_missing_fields_reported(self):
        user = UserProfile("u1", name="U", university="State University", subjects=["Math"])
        assert user.missing_fields() == ["year", "major", "study_goals"]
        assert not user.is_profile_complete

    def test_duplicate_subjects_and_goals_collapse(self):
        user = UserProfile(
            "u1",
            subjects=["Math", "CS", "Math", ""],
            study_goals=[StudyGoal.EXAM_PREP, StudyGoal.EXAM_PREP],
        )
        assert user.subjects == ["Math", "CS"]
        assert user.study_goals == [StudyGoal.EXAM_PREP]

    def test_search_criteria_uses_client_names(self, user_factory):
        criteria = user_factory("alice").search_criteria()
        assert criteria["subjects"] == ["Math"]
        assert criteria["experienceLevel"] == "intermediate"
        assert criteria["studyGoals"] == ["exam-prep"]
        assert criteria["availability"]["monday"]["morning"] is True


class TestGroupProfile:
    def test_matchable_needs_open_spot(self, group_factory, user_factory):
        group = group_factory("g", members=[user_factory("a")], max_members=1)
        assert not group.has_open_spot
        assert not group.is_matchable

    def test_inactive_not_matchable(self, group_factory):
        assert not group_factory("g", status=GroupStatus.COMPLETED).is_matchable

    def test_is_member(self, group_factory, user_factory):
        group = group_factory("g", members=[user_factory("a")])
        assert group.is_member("a")
        assert not group.is_member("b")


class TestMatchCandidate:
    def test_ids_and_match_type(self):
        user = _candidate("bob", 80)
        group = _candidate("calc", 90, TargetType.GROUP)
        assert user.candidate_id == "user:bob"
        assert user.match_type == MatchType.POTENTIAL_PARTNER
        assert group.candidate_id == "group:calc"
        assert group.match_type == MatchType.EXISTING_GROUP

    def test_to_dict(self, users):
        result = CompatibilityScorer().score_users(users[0], users[1])
        data = MatchCandidate.from_result(TargetType.USER, "bob", result).to_dict()
        assert data["candidateId"] == "user:bob"
        assert data["user"] == "bob"
        assert data["matchType"] == "potential_partner"
        assert data["compatibilityScore"] == 85
        assert data["matchFactors"]["subjectMatch"] == {
            "score": 50, "weight": 30, "commonSubjects": ["Math"],
        }
        assert data["dismissed"] is False
        assert data["viewedAt"] is None

    def test_factors_round_trip_through_dict(self, users):
        result = CompatibilityScorer().score_users(users[0], users[2])
        assert MatchFactors.from_dict(result.factors.to_dict()) == result.factors


class TestInteractionState:
    def test_apply_sets_flag_and_time(self, clock):
        state = InteractionState()
        state.apply(InteractionAction.INTERESTED, clock.now)
        assert state.interested
        assert state.interested_at == clock.now
        assert not state.viewed

    def test_dismiss_records_reason(self, clock):
        state = InteractionState()
        state.apply(InteractionAction.DISMISSED, clock.now, reason="schedule clash")
        assert state.dismissed
        assert state.dismiss_reason == "schedule clash"


class TestMatchResultSnapshot:
    def test_default_expiry_is_seven_days(self, clock):
        snapshot = MatchResultSnapshot("s1", "alice", created_at=clock.now)
        assert snapshot.expires_at == clock.now + timedelta(days=7)

    def test_expire_if_due(self, clock):
        snapshot = MatchResultSnapshot("s1", "alice", created_at=clock.now)
        assert not snapshot.expire_if_due(clock.advance(days=6))
        assert snapshot.status == SnapshotStatus.ACTIVE
        assert snapshot.expire_if_due(clock.advance(days=2))
        assert snapshot.status == SnapshotStatus.EXPIRED

    def test_top_matches_skip_dismissed(self, clock):
        candidates = [_candidate(f"u{i}", 60 + i) for i in range(7)]
        candidates[-1].interaction.apply(InteractionAction.DISMISSED, clock.now)
        snapshot = MatchResultSnapshot("s1", "alice", candidates=candidates)
        assert [c.target_id for c in snapshot.top_matches] == ["u5", "u4", "u3", "u2", "u1"]
        assert len(snapshot.visible_candidates) == 6

    def test_find_candidate(self):
        snapshot = MatchResultSnapshot("s1", "alice", candidates=[_candidate("bob", 70)])
        assert snapshot.find_candidate("user:bob").target_id == "bob"
        assert snapshot.find_candidate("user:nobody") is None


class TestMatchOptions:
    def test_defaults_valid(self):
        MatchOptions().validate()

    @pytest.mark.parametrize("options", [
        MatchOptions(max_results=0),
        MatchOptions(min_score=-1),
        MatchOptions(min_score=101),
        MatchOptions(include_users=False, include_groups=False),
    ])
    def test_invalid(self, options):
        with pytest.raises(InvalidOptionError):
            options.validate()


class TestSuggestionOptions:
    def test_max_below_min(self):
        with pytest.raises(InvalidOptionError):
            SuggestionOptions(min_size=4, max_size=3).validate()

    def test_min_size_floor(self):
        with pytest.raises(InvalidOptionError):
            SuggestionOptions(min_size=1).validate()


class TestCandidateFilter:
    def test_user_rules(self, users):
        candidate_filter = CandidateFilter("alice", ["Math", "CS"], "State University")
        kept = [u.user_id for u in users if candidate_filter.matches_user(u)]
        assert kept == ["bob", "carol", "erin"]

    def test_ungrouped_only(self, users):
        candidate_filter = CandidateFilter("alice", ["Math", "CS"], ungrouped_only=True)
        kept = [u.user_id for u in users if candidate_filter.matches_user(u)]
        assert "bob" not in kept
        assert "grace" in kept

    def test_group_rules(self, groups):
        candidate_filter = CandidateFilter("alice", ["Math", "CS"])
        assert [g.group_id for g in groups if candidate_filter.matches_group(g)] == ["calc"]

    def test_excludes_groups_already_joined(self, groups):
        candidate_filter = CandidateFilter("bob", ["Math"])
        assert not candidate_filter.matches_group(groups[0])
