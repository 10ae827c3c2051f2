# tests/v1/test_moderate_upload.py
from datetime import timedelta

import httpx
from jose import jwt

from shadefast_stage.core.settings import settings
from shadefast_stage.db.time import utcnow
from shadefast_stage.models import MediaPolicyCheck, RateLimitCounter, UserBan
from shadefast_stage.services.rate_limit import window_start_for
from shadefast_stage.services.upload_moderation import (
    RATE_LIMIT_ACTION,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
)

URL = "/api/v1/moderate-upload"
USER_ID = "8c3f0a52-2f1e-4c8e-9b1a-6d2f4e7a9c10"
OTHER_USER_ID = "1b7d9e44-5a3c-4f2b-8e6d-0c9a7b5e3f21"
IMAGE_PATH = f"posts/{USER_ID}/photo.jpg"
VIDEO_PATH = f"videos/{USER_ID}/clip.mp4"
MiB = 1024 * 1024

JPEG = b"\xff\xd8\xff\xe0"
MP4 = b"\x00\x00\x00\x18ftypmp42"


def error_code(response) -> str:
    return response.json()["error"]["code"]


def test_options_preflight(client) -> None:
    response = client.options(URL)
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


def test_browser_preflight_is_always_accepted(client) -> None:
    response = client.options(
        URL,
        headers={
            "Origin": "https://app.example",
            "Access-Control-Request-Method": "PUT",
            "Access-Control-Request-Headers": "x-request-id",
        },
    )
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_other_methods_are_rejected(client) -> None:
    response = client.get(URL)
    assert response.status_code == 405
    assert error_code(response) == "method_not_allowed"


def test_missing_configuration_is_reported_before_auth(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "supabase_service_role_key", None)
    response = client.post(URL, json={"objectPath": IMAGE_PATH})
    assert response.status_code == 500
    assert error_code(response) == "misconfigured_env"


def test_missing_auth(client) -> None:
    response = client.post(URL, json={"objectPath": IMAGE_PATH})
    assert response.status_code == 401
    assert error_code(response) == "missing_auth"


def test_invalid_auth(client) -> None:
    response = client.post(
        URL,
        json={"objectPath": IMAGE_PATH},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
    assert error_code(response) == "invalid_auth"


def test_expired_token_is_invalid(client) -> None:
    token = jwt.encode(
        {"sub": USER_ID, "aud": settings.jwt_audience, "exp": utcnow() - timedelta(minutes=1)},
        settings.supabase_jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    response = client.post(
        URL,
        json={"objectPath": IMAGE_PATH},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert error_code(response) == "invalid_auth"


def test_malformed_json(client, auth_headers) -> None:
    response = client.post(
        URL,
        content=b"{not json",
        headers={**auth_headers(USER_ID), "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert error_code(response) == "invalid_json"


def test_non_object_payload(client, auth_headers) -> None:
    response = client.post(URL, json=["posts"], headers=auth_headers(USER_ID))
    assert response.status_code == 400
    assert error_code(response) == "invalid_payload"


def test_missing_target(client, auth_headers) -> None:
    response = client.post(URL, json={}, headers=auth_headers(USER_ID))
    assert response.status_code == 400
    assert error_code(response) == "missing_media_target"


def test_media_url_with_malformed_escape_has_no_target(client, auth_headers) -> None:
    media_url = (
        f"https://project.supabase.co/storage/v1/object/public/media/posts/{USER_ID}/%E0%A4%A"
    )
    response = client.post(URL, json={"mediaUrl": media_url}, headers=auth_headers(USER_ID))
    assert response.status_code == 400
    assert error_code(response) == "missing_media_target"


def test_small_jpeg_is_approved(client, auth_headers, fake_storage, db_session) -> None:
    fake_storage.put(IMAGE_PATH, JPEG + b"\x00" * (2 * MiB))

    response = client.post(
        URL,
        json={"objectPath": IMAGE_PATH, "mediaType": "image"},
        headers=auth_headers(USER_ID),
    )

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    verdict = response.json()["verdict"]
    assert verdict == {
        "status": "approved",
        "mediaType": "image",
        "objectPath": IMAGE_PATH,
        "mimeType": "image/jpeg",
        "byteSize": len(JPEG) + 2 * MiB,
        "provider": "builtin",
        "providerReference": None,
        "confidence": None,
        "labels": [],
    }
    assert db_session.get(MediaPolicyCheck, IMAGE_PATH).status == "approved"


def test_oversized_jpeg_is_blocked_and_removed(client, auth_headers, fake_storage) -> None:
    fake_storage.put(IMAGE_PATH, JPEG + b"\x00" * (9 * MiB))

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 422
    body = response.json()["error"]
    assert body["code"] == "media_blocked"
    assert "8 MB" in body["message"]
    assert fake_storage.removed == [IMAGE_PATH]


def test_webhook_block_is_enforced(
    client, auth_headers, fake_storage, webhook, policy_config, db_session
) -> None:
    policy_config["webhook_url"] = "https://policy.test/check"
    webhook.reply(json={"decision": "block", "reason": "nudity", "provider": "hive"})
    fake_storage.put(VIDEO_PATH, MP4 + b"\x00" * 4096)

    response = client.post(
        URL,
        json={"objectPath": VIDEO_PATH, "mediaType": "video"},
        headers=auth_headers(USER_ID),
    )

    assert response.status_code == 422
    assert response.json()["error"] == {"code": "media_blocked", "message": "nudity"}
    assert fake_storage.removed == [VIDEO_PATH]
    assert len(webhook.requests) == 1
    stored = db_session.get(MediaPolicyCheck, VIDEO_PATH)
    assert (stored.status, stored.provider) == ("blocked", "hive")


def test_webhook_approval_details_are_returned(
    client, auth_headers, fake_storage, webhook, policy_config
) -> None:
    policy_config["webhook_url"] = "https://policy.test/check"
    webhook.reply(
        json={
            "decision": "allow",
            "provider": "hive",
            "reference": "req-7",
            "confidence": "0.12",
            "labels": ["safe"],
        }
    )
    fake_storage.put(VIDEO_PATH, MP4 + b"\x00" * 4096)

    response = client.post(URL, json={"objectPath": VIDEO_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 200
    verdict = response.json()["verdict"]
    assert verdict["provider"] == "hive"
    assert verdict["providerReference"] == "req-7"
    assert verdict["confidence"] == 0.12
    assert verdict["labels"] == ["safe"]


def test_media_owned_by_someone_else(client, auth_headers, fake_storage) -> None:
    path = f"images/{OTHER_USER_ID}/x.png"
    fake_storage.put(path, b"\x89PNG\r\n\x1a\n")

    response = client.post(URL, json={"objectPath": path}, headers=auth_headers(USER_ID))

    assert response.status_code == 403
    assert error_code(response) == "media_not_owned"
    assert fake_storage.downloads == []


def test_webhook_failure_fails_open(
    client, auth_headers, fake_storage, webhook, policy_config, db_session
) -> None:
    policy_config["webhook_url"] = "https://policy.test/check"
    webhook.fail(httpx.ReadTimeout("timed out"))
    fake_storage.put(IMAGE_PATH, JPEG + b"\x00" * 1024)

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 200
    assert response.json()["verdict"]["provider"] == "webhook_fallback"
    stored = db_session.get(MediaPolicyCheck, IMAGE_PATH)
    assert stored.reason == "webhook_request_failed"
    assert fake_storage.removed == []


def test_webhook_failure_in_strict_mode(
    client, auth_headers, fake_storage, webhook, policy_config
) -> None:
    policy_config.update(webhook_url="https://policy.test/check", strict_mode=True)
    webhook.reply(status_code=500)
    fake_storage.put(IMAGE_PATH, JPEG + b"\x00" * 1024)

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 503
    assert error_code(response) == "policy_provider_unavailable"
    assert fake_storage.removed == [IMAGE_PATH]


def test_media_url_is_accepted(client, auth_headers, fake_storage) -> None:
    fake_storage.put(IMAGE_PATH, JPEG + b"\x00" * 16)
    media_url = f"https://project.supabase.co/storage/v1/object/public/media/{IMAGE_PATH}"

    response = client.post(URL, json={"mediaUrl": media_url}, headers=auth_headers(USER_ID))

    assert response.status_code == 200
    assert response.json()["verdict"]["objectPath"] == IMAGE_PATH


def test_declared_type_must_match_path(client, auth_headers) -> None:
    response = client.post(
        URL,
        json={"objectPath": IMAGE_PATH, "mediaType": "video"},
        headers=auth_headers(USER_ID),
    )
    assert response.status_code == 400
    assert error_code(response) == "invalid_media_type"


def test_banned_user(client, auth_headers, fake_storage, db_session) -> None:
    db_session.add(UserBan(user_id=USER_ID, reason="abuse"))
    db_session.flush()
    fake_storage.put(IMAGE_PATH, JPEG)

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 403
    assert error_code(response) == "banned_user"


def test_rate_limited(client, auth_headers, fake_storage, db_session) -> None:
    now = utcnow()
    # Seed the current and next window so a boundary crossing mid-test still trips the limit.
    for moment in (now, now + timedelta(seconds=RATE_LIMIT_WINDOW_SECONDS)):
        db_session.add(
            RateLimitCounter(
                user_id=USER_ID,
                action=RATE_LIMIT_ACTION,
                window_start=window_start_for(moment, RATE_LIMIT_WINDOW_SECONDS),
                request_count=RATE_LIMIT_MAX_REQUESTS,
            )
        )
    db_session.flush()
    fake_storage.put(IMAGE_PATH, JPEG)

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 429
    assert error_code(response) == "rate_limited"
    assert fake_storage.downloads == []


def test_missing_object(client, auth_headers) -> None:
    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))
    assert response.status_code == 404
    assert error_code(response) == "media_not_found"


def test_unreadable_object(client, auth_headers, fake_storage, db_session) -> None:
    fake_storage.put(IMAGE_PATH, JPEG)
    fake_storage.unreadable.add(IMAGE_PATH)

    response = client.post(URL, json={"objectPath": IMAGE_PATH}, headers=auth_headers(USER_ID))

    assert response.status_code == 500
    assert error_code(response) == "media_read_failed"
    assert db_session.get(MediaPolicyCheck, IMAGE_PATH).status == "error"
