"""Trending listing endpoints."""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse

from shadefast_stage.api.v1.dependencies import CurrentUserIdDep, SessionDep, json_body
from shadefast_stage.core.errors import ApiError
from shadefast_stage.core.http import json_response, preflight_response
from shadefast_stage.schemas.trending import (
    DEFAULT_TRENDING_LIMIT,
    MAX_TRENDING_LIMIT,
    ListTrendingChallengesRequest,
    ListTrendingPollsRequest,
    TrendingChallengeResponse,
    TrendingChallengesResponse,
    TrendingPollPostResponse,
    TrendingPollResponse,
    TrendingPollsResponse,
)
from shadefast_stage.services.trending import (
    TrendingQueryError,
    can_access_community,
    list_trending_challenges,
    list_trending_polls,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trending"])

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

ChallengesBody = Annotated[
    ListTrendingChallengesRequest,
    Depends(json_body(ListTrendingChallengesRequest)),
]
PollsBody = Annotated[ListTrendingPollsRequest, Depends(json_body(ListTrendingPollsRequest))]


def _resolve_limit(limit: int | None) -> int:
    resolved = DEFAULT_TRENDING_LIMIT if limit is None else limit
    if not 1 <= resolved <= MAX_TRENDING_LIMIT:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "invalid_limit",
            f"limit must be between 1 and {MAX_TRENDING_LIMIT}.",
        )
    return resolved


@router.options("/list-trending-challenges")
async def list_trending_challenges_preflight() -> PlainTextResponse:
    return preflight_response()


@router.post("/list-trending-challenges")
async def get_trending_challenges(
    user_id: CurrentUserIdDep,
    payload: ChallengesBody,
    db: SessionDep,
) -> JSONResponse:
    """List unexpired challenges ranked by recent participation."""
    limit = _resolve_limit(payload.limit)

    try:
        ranked = list_trending_challenges(db, limit)
    except TrendingQueryError as exc:
        logger.error("list-trending-challenges query failed: %s", exc)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.code, exc.message) from exc

    body = TrendingChallengesResponse(
        challenges=[
            TrendingChallengeResponse(
                id=item.challenge.id,
                title=item.challenge.title,
                description=item.challenge.description,
                creator_uuid=item.challenge.creator_id,
                created_at=item.challenge.created_at,
                expires_at=item.challenge.expires_at,
                entry_count=item.entry_count,
                recent_entry_count=item.recent_entry_count,
                participant_count=item.participant_count,
                trend_score=item.trend_score,
            )
            for item in ranked
        ]
    )
    return json_response(body.model_dump(mode="json", by_alias=True))


@router.options("/list-trending-polls")
async def list_trending_polls_preflight() -> PlainTextResponse:
    return preflight_response()


@router.post("/list-trending-polls")
async def get_trending_polls(
    user_id: CurrentUserIdDep,
    payload: PollsBody,
    db: SessionDep,
) -> JSONResponse:
    """List visible polls ranked by votes and likes, with the caller's own vote."""
    limit = _resolve_limit(payload.limit)

    community_id = (payload.community_id or "").strip() or None
    if community_id and not UUID_PATTERN.match(community_id):
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "invalid_community_id",
            "communityId must be a valid UUID.",
        )

    if community_id and not can_access_community(db, community_id, user_id):
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "membership_required",
            "You are not allowed to view polls in this private community.",
        )

    try:
        ranked = list_trending_polls(db, user_id, limit, community_id=community_id)
    except TrendingQueryError as exc:
        logger.error("list-trending-polls query failed: %s", exc)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.code, exc.message) from exc

    body = TrendingPollsResponse(
        polls=[
            TrendingPollResponse(
                id=item.poll.id,
                question=item.poll.question,
                options=item.poll.options,
                counts=item.counts,
                total_votes=item.total_votes,
                trend_score=item.trend_score,
                selected_option_index=item.selected_option_index,
                created_at=item.poll.created_at,
                post=TrendingPollPostResponse(
                    id=item.poll.post.id,
                    community_id=item.poll.post.community_id,
                    content=item.poll.post.content,
                    like_count=item.poll.post.like_count,
                    created_at=item.poll.post.created_at,
                    expires_at=item.poll.post.expires_at,
                ),
            )
            for item in ranked
        ]
    )
    return json_response(body.model_dump(mode="json", by_alias=True))
