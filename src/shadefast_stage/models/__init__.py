# src/shadefast_stage/models/__init__.py
"""SQLAlchemy models for the ShadeFast application."""

from .challenge import Challenge, ChallengeEntry
from .community import Community, CommunityMembership
from .enforcement import UserBan
from .media import MediaPolicyCheck
from .poll import Poll, PollVote
from .post import Post
from .rate import RateLimitCounter

__all__ = [
    "Challenge", "ChallengeEntry",
    "Community", "CommunityMembership",
    "UserBan",
    "MediaPolicyCheck",
    "Poll", "PollVote",
    "Post",
    "RateLimitCounter",
]
