"""Trending rankings for challenges and polls.

Scores are computed in-process over a bounded window of the newest
candidates:

- challenges: ``2 * entries + 3 * entries in the last 24h + distinct participants``
- polls: ``2 * total votes + post likes``

Ties are broken by creation time, newest first.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shadefast_stage.db.time import ensure_utc, utcnow
from shadefast_stage.models import (
    Challenge,
    ChallengeEntry,
    Community,
    CommunityMembership,
    Poll,
    PollVote,
    Post,
)

logger = logging.getLogger(__name__)

RECENT_ENTRY_WINDOW: Final[timedelta] = timedelta(hours=24)
MAX_CANDIDATES: Final[int] = 200
CANDIDATE_MULTIPLIER: Final[int] = 4


class TrendingQueryError(RuntimeError):
    """Raised when trending candidates cannot be loaded.

    ``code`` and ``message`` name the query that failed and are returned to
    the caller as-is.
    """

    def __init__(self, code: str, message: str, detail: str = "") -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ChallengeSnapshot:
    id: str
    title: str
    description: str | None
    creator_id: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class EntrySnapshot:
    challenge_id: str | None
    user_id: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class RankedChallenge:
    challenge: ChallengeSnapshot
    entry_count: int
    recent_entry_count: int
    participant_count: int
    trend_score: int


@dataclass(frozen=True)
class PostSnapshot:
    id: str
    community_id: str | None
    content: str | None
    like_count: int
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class PollSnapshot:
    id: str
    question: str
    options: list[str]
    created_at: datetime
    post: PostSnapshot


@dataclass(frozen=True)
class VoteSnapshot:
    poll_id: str | None
    option_index: int | None


@dataclass(frozen=True)
class RankedPoll:
    poll: PollSnapshot
    counts: list[int]
    total_votes: int
    trend_score: int
    selected_option_index: int | None


def candidate_limit(limit: int) -> int:
    """Number of newest candidates scored for a page of ``limit`` results."""
    return min(limit * CANDIDATE_MULTIPLIER, MAX_CANDIDATES)


def normalize_options(value: Any) -> list[str]:
    """Keep the non-empty string options of a stored poll, trimmed."""
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def rank_challenges(
    challenges: Sequence[ChallengeSnapshot],
    entries: Iterable[EntrySnapshot],
    now: datetime,
    limit: int,
) -> list[RankedChallenge]:
    """Score and order challenges by recent participation."""
    entry_counts: Counter[str] = Counter()
    recent_counts: Counter[str] = Counter()
    participants: defaultdict[str, set[str]] = defaultdict(set)
    recent_cutoff = ensure_utc(now) - RECENT_ENTRY_WINDOW

    for entry in entries:
        if not entry.challenge_id:
            continue
        entry_counts[entry.challenge_id] += 1
        if entry.user_id:
            participants[entry.challenge_id].add(entry.user_id)
        if entry.created_at is not None and ensure_utc(entry.created_at) >= recent_cutoff:
            recent_counts[entry.challenge_id] += 1

    ranked = []
    for challenge in challenges:
        entry_count = entry_counts[challenge.id]
        recent_entry_count = recent_counts[challenge.id]
        participant_count = len(participants.get(challenge.id, ()))
        ranked.append(
            RankedChallenge(
                challenge=challenge,
                entry_count=entry_count,
                recent_entry_count=recent_entry_count,
                participant_count=participant_count,
                trend_score=entry_count * 2 + recent_entry_count * 3 + participant_count,
            )
        )

    ranked.sort(
        key=lambda item: (item.trend_score, ensure_utc(item.challenge.created_at)),
        reverse=True,
    )
    return ranked[:limit]


def rank_polls(
    polls: Sequence[PollSnapshot],
    votes: Iterable[VoteSnapshot],
    user_votes: Mapping[str, int],
    limit: int,
) -> list[RankedPoll]:
    """Score and order polls by votes and post likes.

    Votes for unknown polls or out-of-range options are ignored.
    """
    counts_by_poll = {poll.id: [0] * len(poll.options) for poll in polls}

    for vote in votes:
        if not vote.poll_id or not isinstance(vote.option_index, int):
            continue
        counts = counts_by_poll.get(vote.poll_id)
        if counts is None or not 0 <= vote.option_index < len(counts):
            continue
        counts[vote.option_index] += 1

    ranked = []
    for poll in polls:
        counts = counts_by_poll[poll.id]
        total_votes = sum(counts)
        ranked.append(
            RankedPoll(
                poll=poll,
                counts=counts,
                total_votes=total_votes,
                trend_score=total_votes * 2 + poll.post.like_count,
                selected_option_index=user_votes.get(poll.id),
            )
        )

    ranked.sort(
        key=lambda item: (item.trend_score, ensure_utc(item.poll.created_at)),
        reverse=True,
    )
    return ranked[:limit]


def list_trending_challenges(
    db: Session,
    limit: int,
    now: datetime | None = None,
) -> list[RankedChallenge]:
    """Load unexpired challenges and their entries, then rank them.

    Raises:
        TrendingQueryError: If either query fails.
    """
    reference = now or utcnow()
    try:
        rows = (
            db.query(Challenge)
            .filter(Challenge.expires_at > reference)
            .order_by(Challenge.created_at.desc())
            .limit(candidate_limit(limit))
            .all()
        )
    except SQLAlchemyError as exc:
        raise TrendingQueryError(
            "challenges_query_failed", "Unable to fetch challenges.", str(exc)
        ) from exc
    if not rows:
        return []

    try:
        entries = (
            db.query(ChallengeEntry)
            .filter(ChallengeEntry.challenge_id.in_([row.id for row in rows]))
            .all()
        )
    except SQLAlchemyError as exc:
        raise TrendingQueryError(
            "challenge_entries_query_failed", "Unable to fetch challenge activity.", str(exc)
        ) from exc

    challenges = [
        ChallengeSnapshot(
            id=row.id,
            title=row.title,
            description=row.description,
            creator_id=row.creator_id,
            created_at=ensure_utc(row.created_at),
            expires_at=ensure_utc(row.expires_at),
        )
        for row in rows
    ]
    entry_snapshots = [
        EntrySnapshot(
            challenge_id=entry.challenge_id,
            user_id=entry.user_id,
            created_at=entry.created_at,
        )
        for entry in entries
    ]
    return rank_challenges(challenges, entry_snapshots, reference, limit)


def can_access_community(db: Session, community_id: str, user_id: str) -> bool:
    """Return True if the community is public, or the user created or joined it.

    Lookup failures deny access.
    """
    try:
        community = db.get(Community, community_id)
        if community is None:
            return False
        if not community.is_private or community.creator_id == user_id:
            return True
        membership = db.get(CommunityMembership, (community_id, user_id))
    except SQLAlchemyError:
        logger.error("community access lookup failed for %s", community_id, exc_info=True)
        return False
    return membership is not None


def list_trending_polls(
    db: Session,
    user_id: str,
    limit: int,
    community_id: str | None = None,
    now: datetime | None = None,
) -> list[RankedPoll]:
    """Load visible, unexpired polls with their votes, then rank them.

    Raises:
        TrendingQueryError: If the poll or vote queries fail.
    """
    reference = ensure_utc(now or utcnow())
    try:
        rows = (
            db.query(Poll, Post)
            .join(Post, Poll.post_id == Post.id)
            .order_by(Poll.created_at.desc())
            .limit(candidate_limit(limit))
            .all()
        )
    except SQLAlchemyError as exc:
        raise TrendingQueryError(
            "polls_query_failed", "Unable to fetch trending polls.", str(exc)
        ) from exc

    access: dict[str, bool] = {}
    visible: list[PollSnapshot] = []
    for poll, post in rows:
        if ensure_utc(post.expires_at) <= reference:
            continue
        if community_id and post.community_id != community_id:
            continue
        if post.community_id:
            if post.community_id not in access:
                access[post.community_id] = can_access_community(db, post.community_id, user_id)
            if not access[post.community_id]:
                continue

        visible.append(
            PollSnapshot(
                id=poll.id,
                question=poll.question,
                options=normalize_options(poll.options),
                created_at=ensure_utc(poll.created_at),
                post=PostSnapshot(
                    id=post.id,
                    community_id=post.community_id,
                    content=post.content,
                    like_count=post.like_count,
                    created_at=ensure_utc(post.created_at),
                    expires_at=ensure_utc(post.expires_at),
                ),
            )
        )

    if not visible:
        return []

    poll_ids = [poll.id for poll in visible]
    try:
        votes = db.query(PollVote).filter(PollVote.poll_id.in_(poll_ids)).all()
    except SQLAlchemyError as exc:
        raise TrendingQueryError(
            "poll_votes_query_failed", "Unable to fetch poll votes.", str(exc)
        ) from exc

    try:
        own_votes = (
            db.query(PollVote)
            .filter(PollVote.poll_id.in_(poll_ids), PollVote.user_id == user_id)
            .all()
        )
    except SQLAlchemyError as exc:
        raise TrendingQueryError(
            "poll_user_votes_query_failed", "Unable to fetch your votes.", str(exc)
        ) from exc

    vote_snapshots = [
        VoteSnapshot(poll_id=vote.poll_id, option_index=vote.option_index) for vote in votes
    ]
    user_votes = {vote.poll_id: vote.option_index for vote in own_votes}
    return rank_polls(visible, vote_snapshots, user_votes, limit)
