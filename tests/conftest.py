# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator, Sequence
from datetime import timedelta
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "http://storage.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "jwt-test-secret")

from shadefast_stage.api.v1.dependencies import (  # noqa: E402
    get_media_storage,
    get_policy_webhook_client,
    get_upload_policy_config,
)
from shadefast_stage.core.settings import settings  # noqa: E402
from shadefast_stage.db.session import Base  # noqa: E402
from shadefast_stage.db.session import get_db as app_get_session  # noqa: E402
from shadefast_stage.db.time import utcnow  # noqa: E402
from shadefast_stage.main import app as fastapi_app  # noqa: E402
from shadefast_stage.services.policy_webhook import (  # noqa: E402
    PolicyWebhookClient,
    UploadPolicyConfig,
)
from shadefast_stage.services.storage import (  # noqa: E402
    ObjectNotFoundError,
    ObjectReadError,
    StorageError,
)

TEST_DB_URL = "sqlite://"


def make_token(user_id: str, **claims: Any) -> str:
    """Encode an access token the way the identity provider issues them."""
    payload: dict[str, Any] = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "exp": utcnow() + timedelta(hours=1),
    }
    payload.update(claims)
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm=settings.jwt_algorithm)


class FakeStorage:
    """In-memory stand-in for the media bucket."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.downloads: list[str] = []
        self.removed: list[str] = []
        self.signed: list[tuple[str, int]] = []
        self.unreadable: set[str] = set()
        self.fail_removal = False
        self.signed_url: str | None = "http://storage.test/storage/v1/object/sign/media/x?token=t"

    def put(self, object_path: str, data: bytes) -> None:
        self.objects[object_path] = data

    async def download(self, object_path: str) -> bytes:
        self.downloads.append(object_path)
        if object_path in self.unreadable:
            raise ObjectReadError(f"Reading {object_path} failed")
        if object_path not in self.objects:
            raise ObjectNotFoundError(f"Storage responded with 404 for {object_path}")
        return self.objects[object_path]

    async def create_signed_url(self, object_path: str, expires_in: int) -> str | None:
        self.signed.append((object_path, expires_in))
        return self.signed_url

    async def remove(self, object_paths: Sequence[str]) -> None:
        if self.fail_removal:
            raise StorageError("Storage responded with 500 on removal")
        for path in object_paths:
            self.removed.append(path)
            self.objects.pop(path, None)


class WebhookStub:
    """Configurable handler for an ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.response: Callable[[httpx.Request], httpx.Response] = lambda request: (
            httpx.Response(200, json={"decision": "allow"})
        )

    def reply(self, status_code: int = 200, **kwargs: Any) -> None:
        self.response = lambda request: httpx.Response(status_code, **kwargs)

    def fail(self, exc: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc

        self.response = _raise

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response(request)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def webhook() -> WebhookStub:
    return WebhookStub()


@pytest.fixture()
def policy_config() -> dict[str, Any]:
    """Mutable knobs turned into an ``UploadPolicyConfig`` per request."""
    return {"webhook_url": None, "webhook_token": None, "strict_mode": False}


@pytest.fixture(autouse=True)
def override_collaborators(
    app: FastAPI,
    fake_storage: FakeStorage,
    webhook: WebhookStub,
    policy_config: dict[str, Any],
) -> Iterator[None]:
    def _config_override() -> UploadPolicyConfig:
        return UploadPolicyConfig(**policy_config)

    def _storage_override() -> FakeStorage:
        return fake_storage

    def _client_override() -> PolicyWebhookClient:
        return PolicyWebhookClient(
            UploadPolicyConfig(**policy_config),
            fake_storage,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(webhook)),
        )

    app.dependency_overrides[get_upload_policy_config] = _config_override
    app.dependency_overrides[get_media_storage] = _storage_override
    app.dependency_overrides[get_policy_webhook_client] = _client_override
    try:
        yield
    finally:
        for dependency in (get_upload_policy_config, get_media_storage, get_policy_webhook_client):
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build bearer headers for an arbitrary caller identity."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers
