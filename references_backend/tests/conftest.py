import os
from datetime import datetime, timedelta

import pytest

# The app module builds its engine at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from references_backend.api.main import app, get_db
from references_backend.repository import ReferenceRepository
from references_database.models import Base, Reference, Screenshot


@pytest.fixture
def engine():
    """Fixture for an in-memory SQLite engine private to one test."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Provide a SQLAlchemy session for isolated test usage."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def repository(db_session):
    return ReferenceRepository(db_session)


@pytest.fixture
def client(db_session):
    """Fixture for FastAPI TestClient with test DB dependency override."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def tableless_client():
    """TestClient whose session points at a store with no tables, so every query fails."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    session.close()
    engine.dispose()


@pytest.fixture
def add_reference(db_session):
    """
    Inserts a Reference row directly, with updated_at pinned `age` minutes in
    the past so tests control listing order.
    """
    base = datetime(2024, 1, 1, 12, 0, 0)

    def _add(title, age=0, **fields):
        stamp = base - timedelta(minutes=age)
        fields.setdefault("tags", [])
        item = Reference(title=title, created_at=stamp, updated_at=stamp, **fields)
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _add


@pytest.fixture
def add_screenshot(db_session):
    counter = {"n": 0}

    def _add(reference_id=None, **fields):
        counter["n"] += 1
        n = counter["n"]
        values = dict(
            reference_id=reference_id,
            filename=f"shot-{n}.png",
            original_filename=f"Screen Shot {n}.png",
            file_path=f"/uploads/shot-{n}.png",
            file_size=1024 * n,
            mime_type="image/png",
        )
        values.update(fields)
        item = Screenshot(**values)
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _add


@pytest.fixture
def reference_data():
    """Returns default payload for creating a reference."""
    return {
        "title": "React Documentation",
        "url": "https://react.dev",
        "description": "Official docs",
        "notes": "Good component examples",
        "tags": ["react", "javascript"],
    }


@pytest.fixture
def screenshot_data():
    """Returns default payload for registering a screenshot."""
    return {
        "filename": "abc123.png",
        "original_filename": "login form.png",
        "file_path": "/uploads/abc123.png",
        "file_size": 20480,
        "mime_type": "image/png",
        "alt_text": "Login form",
    }
