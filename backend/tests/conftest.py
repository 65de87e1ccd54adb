"""
Shared fixtures.

Every test runs against a fresh in-memory SQLite database, a dictionary-backed
redis double and a fake ceremony backend; RSA keys are generated once per session
at 2048 bits.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("FRONTEND_BASE_URL", "https://id.example.com")
os.environ.setdefault("OIDC_ISSUER_URI", "https://id.example.com")

from typing import Generator, Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from idbroker.api.dependencies.database import get_db
from idbroker.api.dependencies.services import (
    get_ceremony_backend,
    get_grant_store,
    get_key_ring_dep,
)
from idbroker.core.ids import SnowflakeGenerator
from idbroker.core.keys import KeyRing, set_key_ring
from idbroker.core.tokens import TokenCodec
from idbroker.database import Base, init_db
from idbroker.services.grant_store import GrantStore
from tests.helpers.fakes import DummyRedis, FakeCeremonyBackend


@pytest.fixture(scope="session")
def key_ring() -> KeyRing:
    return KeyRing.generate(rsa_bits=2048, kid=1700000000)


@pytest.fixture
def codec(key_ring: KeyRing) -> TokenCodec:
    return TokenCodec(key_ring)


@pytest.fixture
def id_generator() -> SnowflakeGenerator:
    return SnowflakeGenerator(instance_id=7)


@pytest.fixture
def dummy_redis() -> DummyRedis:
    return DummyRedis()


@pytest.fixture
def grant_store(dummy_redis: DummyRedis) -> GrantStore:
    return GrantStore(dummy_redis)


@pytest.fixture
def fake_backend() -> FakeCeremonyBackend:
    return FakeCeremonyBackend()


@pytest.fixture
def db_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, expire_on_commit=False, future=True)


@pytest.fixture
def unit_db(session_factory: sessionmaker) -> Iterator[Session]:
    """Session on the test's private in-memory database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(
    session_factory: sessionmaker,
    key_ring: KeyRing,
    dummy_redis: DummyRedis,
    fake_backend: FakeCeremonyBackend,
) -> Generator[TestClient, None, None]:
    from idbroker.main import app

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_key_ring_dep] = lambda: key_ring
    app.dependency_overrides[get_ceremony_backend] = lambda: fake_backend
    app.dependency_overrides[get_grant_store] = lambda: GrantStore(dummy_redis)
    set_key_ring(key_ring)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        set_key_ring(None)
