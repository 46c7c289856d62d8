import os

# Secrets must exist before the app modules are imported
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime
import pytest
from jose import jwt
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

import models  # noqa: F401  registers every table on Base.metadata
from database import Base, build_engine, get_db
from app import app
from services.geo_resolver import VisitLocation, get_geo_resolver
from services.share_pages import create_share_page

NOW = datetime(2026, 10, 19, 14, 30, 0)

SAMPLE_FILES = [
    {"name": "deck.pdf", "url": "https://files.example.com/deck.pdf", "previewUrl": "https://files.example.com/deck.png"},
    {"name": "notes.txt", "url": "https://files.example.com/notes.txt"},
]

KNOWN_LOCATIONS = {
    "8.8.8.8": VisitLocation(city="Mountain View", region="California", country="United States"),
    "81.2.69.160": VisitLocation(city="London", region="England", country="United Kingdom"),
    "203.0.113.9": VisitLocation(country="Japan"),
}


class StaticGeoResolver:
    """Deterministic stand-in for the ipapi.co lookup."""

    def __init__(self, table=None):
        self.table = dict(table or {})
        self.calls = []

    async def resolve(self, ip_address):
        self.calls.append(ip_address)
        return self.table.get(ip_address)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sharepages_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def geo():
    return StaticGeoResolver(KNOWN_LOCATIONS)


@pytest.fixture
def client(session_factory, geo):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_geo_resolver] = lambda: geo
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def make_page(db):
    def _make_page(owner_id=1, title="Quarterly deck", password=None, expires_at=None, files=None):
        return create_share_page(
            db,
            owner_id=owner_id,
            title=title,
            files=SAMPLE_FILES if files is None else files,
            password=password,
            expires_at=expires_at,
            description="Numbers for the board",
        )
    return _make_page


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id):
        token = jwt.encode({"sub": str(user_id)}, os.environ["JWT_SECRET_KEY"], algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
