import os

# database.base builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base, get_db
from database.models import Assets, Project


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def project(db):
    project = Project(project_name="Demo project")
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@pytest.fixture
def make_asset(db, project):
    def _make(
        asset_type: str = "video",
        duration: float | None = 5.0,
        name: str = "clip.mp4",
        project_id=None,
    ) -> Assets:
        metadata = {"duration": duration} if duration is not None else {}
        asset = Assets(
            project_id=project_id or project.project_id,
            asset_name=name,
            asset_type=asset_type,
            asset_url=f"https://media.example.com/{name}",
            asset_metadata=metadata,
        )
        db.add(asset)
        db.commit()
        db.refresh(asset)
        return asset

    return _make


@pytest.fixture
def client(session_factory):
    from main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
