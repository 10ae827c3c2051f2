"""Trending listing Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, StrictInt
from pydantic.alias_generators import to_camel

DEFAULT_TRENDING_LIMIT = 20
MAX_TRENDING_LIMIT = 50


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListTrendingChallengesRequest(_CamelModel):
    """Body accepted by list-trending-challenges."""

    # Range is checked by the route so it can answer with invalid_limit.
    limit: StrictInt | None = None


class ListTrendingPollsRequest(_CamelModel):
    """Body accepted by list-trending-polls."""

    limit: StrictInt | None = None
    community_id: str | None = None


class TrendingChallengeResponse(_CamelModel):
    id: str
    title: str
    description: str | None
    creator_uuid: str
    created_at: datetime
    expires_at: datetime
    entry_count: int
    recent_entry_count: int
    participant_count: int
    trend_score: int


class TrendingChallengesResponse(BaseModel):
    challenges: list[TrendingChallengeResponse]


class TrendingPollPostResponse(_CamelModel):
    id: str
    community_id: str | None
    content: str | None
    like_count: int
    created_at: datetime
    expires_at: datetime


class TrendingPollResponse(_CamelModel):
    id: str
    question: str
    options: list[str]
    counts: list[int]
    total_votes: int
    trend_score: int
    selected_option_index: int | None
    created_at: datetime
    post: TrendingPollPostResponse


class TrendingPollsResponse(BaseModel):
    polls: list[TrendingPollResponse]
