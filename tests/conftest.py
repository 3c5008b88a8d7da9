import os
import tempfile

# settings are read once at import time; point them at a throwaway database first
_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="riskboard-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["SIMULATION_SEED"] = "7"

import pytest
from fastapi.testclient import TestClient

from riskboard_app import main
from riskboard_app.database import Base, SessionLocal, engine
from riskboard_app.models_db import Profile


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    main.app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(main.app)


def _profile(db, email, full_name, role):
    p = Profile(email=email, full_name=full_name, role=role)
    db.add(p); db.commit(); db.refresh(p)
    return p


@pytest.fixture
def advisor(db):
    return _profile(db, "advisor@uni.edu", "Ada Advisor", "advisor")


@pytest.fixture
def student_profile(db):
    return _profile(db, "ann@uni.edu", "Ann Lee", "student")


@pytest.fixture
def advisor_headers(advisor):
    return {"X-Profile-Id": str(advisor.id)}


@pytest.fixture
def student_headers(student_profile):
    return {"X-Profile-Id": str(student_profile.id)}
