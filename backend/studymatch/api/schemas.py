"""
Pydantic request/response models for the StudyMatch API.

Responses use the client's camelCase names; requests accept either
camelCase or snake_case keys.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ Matches ============

class FindMatchesRequest(CamelModel):
    include_groups: bool = True
    include_users: bool = True
    max_results: Optional[int] = None
    min_score: Optional[int] = None
    refresh: bool = False


class CandidateResponse(CamelModel):
    candidate_id: str
    target_type: str
    user: Optional[str] = None
    group: Optional[str] = None
    match_type: str
    compatibility_score: int
    match_factors: dict[str, dict[str, Any]]
    reasons: list[str]
    viewed: bool = False
    viewed_at: Optional[str] = None
    interested: bool = False
    interested_at: Optional[str] = None
    contacted: bool = False
    contacted_at: Optional[str] = None
    joined: bool = False
    joined_at: Optional[str] = None
    dismissed: bool = False
    dismissed_at: Optional[str] = None
    dismiss_reason: Optional[str] = None


class MatchResultResponse(CamelModel):
    matches: list[CandidateResponse]
    from_cache: bool
    generated_at: str
    processing_time: Optional[float] = None
    snapshot_id: Optional[str] = None


# ============ Snapshots ============

class SnapshotResponse(CamelModel):
    snapshot_id: str
    user_id: str
    matches: list[CandidateResponse]
    top_matches: list[str]
    search_criteria: dict[str, Any]
    algorithm_version: str
    processing_time: float
    total_candidates: int
    status: str
    created_at: str
    expires_at: Optional[str] = None


class InteractionRequest(CamelModel):
    action: str
    reason: Optional[str] = None
    user_id: Optional[str] = None


class SweepResponse(CamelModel):
    deleted: int


# ============ Group Suggestions ============

class SuggestedMember(CamelModel):
    user_id: str
    name: str


class GroupSuggestionResponse(CamelModel):
    subject: str
    suggested_members: list[SuggestedMember]
    estimated_compatibility: float
    reason: str
