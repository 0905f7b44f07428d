"""Pytest fixtures for the notification backend."""

import os
from collections.abc import Generator

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PUSH_FALLBACK_ENABLED", "false")
os.environ.setdefault("REDIS_RELAY_ENABLED", "false")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-vapid-private-key")
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-vapid-public-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from chirp import models  # noqa: F401  # Imported for table registration
from chirp.core.security import create_access_token
from chirp.db import get_session
from chirp.main import create_application
from chirp.services.connection_registry import ConnectionRegistry
from chirp.services.notification_gateway import NotificationGateway


class FakeChannel:
    """Stands in for a WebSocket: records frames, optionally fails on send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []
        self.closed_with: int | None = None

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(message)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        SQLModel.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture()
def gateway(registry: ConnectionRegistry) -> NotificationGateway:
    return NotificationGateway(registry, secret_key="test-secret-key", algorithm="HS256", send_timeout=1.0)


@pytest.fixture()
def app(db_session: Session):
    app = create_application()

    def override_get_session() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    return app


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers():
    def build(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return build


@pytest.fixture()
def make_channel():
    return FakeChannel
