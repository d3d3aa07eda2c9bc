"""
API endpoints for StudyMatch.

The router is a thin binding over MatchFinder, which it reads from
``request.app.state.finder``. Domain errors map onto HTTP status codes here
and nowhere else.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from studymatch.core.errors import (
    InvalidOptionError,
    NotFoundError,
    ProfileIncompleteError,
    StorageError,
    StudyMatchError,
)
from studymatch.core.finder import MatchFinder
from studymatch.core.models import MatchOptions, SuggestionOptions

from .schemas import (
    CandidateResponse,
    FindMatchesRequest,
    GroupSuggestionResponse,
    InteractionRequest,
    MatchResultResponse,
    SnapshotResponse,
    SweepResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_STATUS_CODES = (
    (NotFoundError, 404),
    (ProfileIncompleteError, 400),
    (InvalidOptionError, 422),
    (StorageError, 503),
)


def _http_error(exc: StudyMatchError) -> HTTPException:
    for error_type, status in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status, str(exc))
    logger.error("Unmapped StudyMatch error: %s", exc)
    return HTTPException(500, str(exc))


def _finder(request: Request) -> MatchFinder:
    return request.app.state.finder


# ============ Matches ============

@router.post("/users/{user_id}/matches", response_model=MatchResultResponse)
async def find_matches(user_id: str, req: FindMatchesRequest, request: Request):
    config = request.app.state.config
    options = MatchOptions(
        include_groups=req.include_groups,
        include_users=req.include_users,
        max_results=req.max_results if req.max_results is not None else config.default_max_results,
        min_score=req.min_score if req.min_score is not None else config.default_min_score,
        refresh=req.refresh,
    )
    try:
        result = await _finder(request).find_matches(user_id, options)
    except StudyMatchError as e:
        raise _http_error(e) from e
    return MatchResultResponse.model_validate(result.to_dict())


@router.get(
    "/users/{user_id}/group-suggestions",
    response_model=list[GroupSuggestionResponse],
)
async def group_suggestions(
    user_id: str,
    request: Request,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
):
    config = request.app.state.config
    options = SuggestionOptions(
        min_size=min_size if min_size is not None else config.suggestion_min_size,
        max_size=max_size if max_size is not None else config.suggestion_max_size,
        pool_limit=config.suggestion_pool_limit,
    )
    try:
        suggestions = await _finder(request).suggest_groups(user_id, options)
    except StudyMatchError as e:
        raise _http_error(e) from e
    return [GroupSuggestionResponse.model_validate(s.to_dict()) for s in suggestions]


# ============ Snapshots ============

@router.get("/snapshots/{snapshot_id}", response_model=SnapshotResponse)
async def get_snapshot(snapshot_id: str, request: Request):
    try:
        snapshot = await _finder(request).get_snapshot(snapshot_id)
    except StudyMatchError as e:
        raise _http_error(e) from e
    return SnapshotResponse.model_validate(snapshot.to_dict())


@router.post(
    "/snapshots/{snapshot_id}/candidates/{candidate_id}/interactions",
    response_model=CandidateResponse,
)
async def mark_interaction(
    snapshot_id: str, candidate_id: str, req: InteractionRequest, request: Request
):
    try:
        candidate = await _finder(request).mark_candidate_interaction(
            snapshot_id,
            candidate_id,
            req.action,
            reason=req.reason,
            user_id=req.user_id,
        )
    except StudyMatchError as e:
        raise _http_error(e) from e
    return CandidateResponse.model_validate(candidate.to_dict())


# ============ Maintenance ============

@router.post("/maintenance/sweep", response_model=SweepResponse)
async def sweep_expired(request: Request):
    try:
        deleted = await _finder(request).sweep_expired()
    except StudyMatchError as e:
        raise _http_error(e) from e
    return SweepResponse(deleted=deleted)
