# tests/v1/test_trending_routes.py
import uuid
from datetime import timedelta

import pytest

from shadefast_stage.db.time import utcnow
from shadefast_stage.models import (
    Challenge,
    ChallengeEntry,
    Community,
    CommunityMembership,
    Poll,
    PollVote,
    Post,
)
from shadefast_stage.services.trending import TrendingQueryError

CHALLENGES_URL = "/api/v1/list-trending-challenges"
POLLS_URL = "/api/v1/list-trending-polls"
VIEWER = "viewer-1"


def error_code(response) -> str:
    return response.json()["error"]["code"]


def add_challenge(db, title: str, entries: int = 0, hours_old: int = 1) -> Challenge:
    now = utcnow()
    item = Challenge(
        title=title,
        description=f"{title} description",
        creator_id="creator-1",
        created_at=now - timedelta(hours=hours_old),
        expires_at=now + timedelta(days=1),
    )
    db.add(item)
    db.flush()
    for index in range(entries):
        db.add(ChallengeEntry(challenge_id=item.id, user_id=f"user-{index}", created_at=now))
    db.flush()
    return item


def add_poll(db, question: str, community_id: str | None = None, likes: int = 0) -> Poll:
    now = utcnow()
    post = Post(
        community_id=community_id,
        user_id="author-1",
        content=question,
        like_count=likes,
        created_at=now - timedelta(hours=1),
        expires_at=now + timedelta(days=1),
    )
    db.add(post)
    db.flush()
    item = Poll(
        post_id=post.id,
        question=question,
        options=["Yes", "No"],
        created_at=post.created_at,
    )
    db.add(item)
    db.flush()
    return item


@pytest.mark.parametrize("url", [CHALLENGES_URL, POLLS_URL])
def test_preflight_and_method_guard(client, url: str) -> None:
    assert client.options(url).status_code == 200
    response = client.get(url)
    assert response.status_code == 405
    assert error_code(response) == "method_not_allowed"


@pytest.mark.parametrize("url", [CHALLENGES_URL, POLLS_URL])
def test_browser_preflight_is_always_accepted(client, url: str) -> None:
    response = client.options(
        url,
        headers={
            "Origin": "https://app.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, x-request-id",
        },
    )
    assert response.status_code == 200
    assert response.text == "ok"


@pytest.mark.parametrize("url", [CHALLENGES_URL, POLLS_URL])
def test_requires_auth(client, url: str) -> None:
    response = client.post(url, json={})
    assert response.status_code == 401
    assert error_code(response) == "missing_auth"


def test_challenges_ranked(client, auth_headers, db_session) -> None:
    quiet = add_challenge(db_session, "Quiet", entries=0)
    busy = add_challenge(db_session, "Busy", entries=2, hours_old=5)

    response = client.post(CHALLENGES_URL, json={}, headers=auth_headers(VIEWER))

    assert response.status_code == 200
    challenges = response.json()["challenges"]
    assert [item["id"] for item in challenges] == [busy.id, quiet.id]
    top = challenges[0]
    assert top["creatorUuid"] == "creator-1"
    assert top["entryCount"] == 2
    assert top["recentEntryCount"] == 2
    assert top["participantCount"] == 2
    assert top["trendScore"] == 2 * 2 + 2 * 3 + 2


def test_challenges_limit(client, auth_headers, db_session) -> None:
    for index in range(3):
        add_challenge(db_session, f"Challenge {index}", hours_old=index + 1)

    response = client.post(CHALLENGES_URL, json={"limit": 2}, headers=auth_headers(VIEWER))

    assert len(response.json()["challenges"]) == 2


@pytest.mark.parametrize("limit", [0, 51, -3])
def test_out_of_range_limit(client, auth_headers, limit: int) -> None:
    response = client.post(CHALLENGES_URL, json={"limit": limit}, headers=auth_headers(VIEWER))
    assert response.status_code == 400
    assert error_code(response) == "invalid_limit"


def test_non_integer_limit(client, auth_headers) -> None:
    response = client.post(POLLS_URL, json={"limit": "ten"}, headers=auth_headers(VIEWER))
    assert response.status_code == 400
    assert error_code(response) == "invalid_payload"


def test_challenges_query_failure(client, auth_headers, monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise TrendingQueryError(
            "challenges_query_failed", "Unable to fetch challenges.", "db down"
        )

    monkeypatch.setattr("shadefast_stage.api.v1.endpoints.trending.list_trending_challenges", _fail)
    response = client.post(CHALLENGES_URL, json={}, headers=auth_headers(VIEWER))
    assert response.status_code == 500
    assert error_code(response) == "challenges_query_failed"


def test_polls_ranked_with_own_vote(client, auth_headers, db_session) -> None:
    liked = add_poll(db_session, "Liked?", likes=3)
    voted = add_poll(db_session, "Voted?")
    db_session.add_all(
        [
            PollVote(poll_id=voted.id, user_id=VIEWER, option_index=1),
            PollVote(poll_id=voted.id, user_id="other", option_index=1),
        ]
    )
    db_session.flush()

    response = client.post(POLLS_URL, json={}, headers=auth_headers(VIEWER))

    assert response.status_code == 200
    polls = response.json()["polls"]
    assert [item["id"] for item in polls] == [voted.id, liked.id]
    assert polls[0]["counts"] == [0, 2]
    assert polls[0]["totalVotes"] == 2
    assert polls[0]["trendScore"] == 4
    assert polls[0]["selectedOptionIndex"] == 1
    assert polls[1]["selectedOptionIndex"] is None
    assert polls[1]["post"]["likeCount"] == 3


def test_invalid_community_id(client, auth_headers) -> None:
    response = client.post(
        POLLS_URL,
        json={"communityId": "not-a-uuid"},
        headers=auth_headers(VIEWER),
    )
    assert response.status_code == 400
    assert error_code(response) == "invalid_community_id"


def test_private_community_requires_membership(client, auth_headers, db_session) -> None:
    community = Community(id=str(uuid.uuid4()), name="Closed", is_private=True, creator_id="owner")
    db_session.add(community)
    db_session.flush()
    add_poll(db_session, "Secret?", community_id=community.id)

    denied = client.post(
        POLLS_URL,
        json={"communityId": community.id},
        headers=auth_headers(VIEWER),
    )
    assert denied.status_code == 403
    assert error_code(denied) == "membership_required"

    db_session.add(CommunityMembership(community_id=community.id, user_id=VIEWER))
    db_session.flush()

    allowed = client.post(
        POLLS_URL,
        json={"communityId": community.id},
        headers=auth_headers(VIEWER),
    )
    assert allowed.status_code == 200
    assert [item["question"] for item in allowed.json()["polls"]] == ["Secret?"]


def test_polls_query_failure(client, auth_headers, monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise TrendingQueryError(
            "polls_query_failed", "Unable to fetch trending polls.", "db down"
        )

    monkeypatch.setattr("shadefast_stage.api.v1.endpoints.trending.list_trending_polls", _fail)
    response = client.post(POLLS_URL, json={}, headers=auth_headers(VIEWER))
    assert response.status_code == 500
    assert error_code(response) == "polls_query_failed"


def test_vote_query_failure_code_reaches_caller(client, auth_headers, monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise TrendingQueryError(
            "poll_votes_query_failed", "Unable to fetch poll votes.", "db down"
        )

    monkeypatch.setattr("shadefast_stage.api.v1.endpoints.trending.list_trending_polls", _fail)
    response = client.post(POLLS_URL, json={}, headers=auth_headers(VIEWER))
    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "poll_votes_query_failed", "message": "Unable to fetch poll votes."}
    }
