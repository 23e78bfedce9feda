# conftest.py
import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SILSON_API_KEYS"] = "test-key"

import pytest
from httpx import AsyncClient
from httpx._transports.asgi import ASGITransport  # required for ASGI testing
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from silson.main import app
from silson.model import ReceiptRecord
from silson.worksheet_database import get_db, Base

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

API_HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def api_headers():
    return dict(API_HEADERS)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(anyio_backend):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=API_HEADERS) as ac:
        yield ac


@pytest.fixture
def make_record():
    def _make(**kwargs):
        base = dict(
            date="2024-02-09",
            treatment_type="outpatient",
            facility="clinic",
            disease_code="J20",
        )
        base.update(kwargs)
        return ReceiptRecord(**base)
    return _make
