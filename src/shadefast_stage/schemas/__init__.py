"""Pydantic schemas for API requests and responses."""

from .trending import (
    ListTrendingChallengesRequest,
    ListTrendingPollsRequest,
    TrendingChallengeResponse,
    TrendingChallengesResponse,
    TrendingPollResponse,
    TrendingPollsResponse,
)
from .uploads import ApprovedVerdict, ModerateUploadRequest, ModerateUploadResponse

__all__ = [
    "ApprovedVerdict",
    "ModerateUploadRequest",
    "ModerateUploadResponse",
    "ListTrendingChallengesRequest",
    "ListTrendingPollsRequest",
    "TrendingChallengeResponse",
    "TrendingChallengesResponse",
    "TrendingPollResponse",
    "TrendingPollsResponse",
]
