# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CHATCHAIN_FALLBACK_LATENCY_SECONDS", "0")

from chatchain.core.settings import Settings
from chatchain.db.session import Base
from chatchain.main import app as fastapi_app
from chatchain.schemas.publish_config import Unconfigured
from chatchain.services.content_store import ContentStore, PublishConfigStore
from chatchain.services.deletion_overlay import DeletionOverlay
from chatchain.services.local_cache import LocalCache
from chatchain.services.remote_ledger import RemoteLedger
from chatchain.services.sync_engine import MessageSyncEngine
from tests.helpers import auth_headers


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every piece of local state at a temp directory."""
    return Settings(
        data_dir=tmp_path / "state",
        fallback_latency_seconds=0,
        poll_interval_seconds=0.01,
        enrich_on_fetch=False,
    )


@pytest.fixture()
def engine(tmp_path: Path) -> Iterator[Engine]:
    # File-backed so worker threads each get their own connection.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def ledger(session_factory: sessionmaker[Session]) -> RemoteLedger:
    return RemoteLedger(session_factory)


@pytest.fixture()
def cache(test_settings: Settings) -> LocalCache:
    return LocalCache(test_settings.messages_path)


@pytest.fixture()
def overlay(test_settings: Settings) -> DeletionOverlay:
    return DeletionOverlay(test_settings.deleted_messages_path)


@pytest.fixture()
def content_store(test_settings: Settings) -> ContentStore:
    return ContentStore(Unconfigured(), app_settings=test_settings)


@pytest.fixture()
def sync_engine(
    content_store: ContentStore,
    ledger: RemoteLedger,
    cache: LocalCache,
    overlay: DeletionOverlay,
    test_settings: Settings,
) -> MessageSyncEngine:
    return MessageSyncEngine(
        content_store,
        ledger,
        cache,
        overlay,
        publish_config_store=PublishConfigStore(test_settings.publish_config_path),
        app_settings=test_settings,
    )


@pytest.fixture()
def app(sync_engine: MessageSyncEngine) -> Iterator[FastAPI]:
    fastapi_app.state.engine = sync_engine
    try:
        yield fastapi_app
    finally:
        fastapi_app.state.engine = None


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def alice_headers() -> dict[str, str]:
    return auth_headers("alice")


@pytest.fixture()
def bob_headers() -> dict[str, str]:
    return auth_headers("bob")
