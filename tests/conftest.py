"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before any
greentax module is imported.
"""
import os
import tempfile
from datetime import datetime

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="greentax-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'greentax.db')}"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["API_KEY"] = "test-api-key"

from greentax.db.database import Base, SessionLocal, engine  # noqa: E402
from greentax.db import models  # noqa: E402,F401
from greentax.db.models import ProofSubmission, ProofStatus, Society  # noqa: E402
from greentax.utils.helpers import generate_unique_id  # noqa: E402

API_KEY = "test-api-key"

# Registered location of the test society (Mumbai, K-West ward)
SOCIETY_LAT = 19.1364
SOCIETY_LNG = 72.8296


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts from empty tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def society(db):
    society = Society(
        id=generate_unique_id("SOC-"),
        name="Green Meadows CHS",
        ward="K-West",
        latitude=SOCIETY_LAT,
        longitude=SOCIETY_LNG,
        property_tax_number="PTN-KW-000123",
        is_active=True
    )
    db.add(society)
    db.commit()
    db.refresh(society)
    return society


@pytest.fixture
def add_proof(db):
    """Insert a proof directly into the log."""
    def _add(
        society_id: str,
        timestamp: datetime,
        status: ProofStatus = ProofStatus.VERIFIED,
        image_hash: str = None
    ) -> ProofSubmission:
        proof_id = generate_unique_id("PROOF-")
        proof = ProofSubmission(
            id=proof_id,
            society_id=society_id,
            image_url=f"/media/{proof_id}.jpg",
            image_hash=image_hash or proof_id.ljust(64, "0"),
            timestamp=timestamp,
            latitude=SOCIETY_LAT,
            longitude=SOCIETY_LNG,
            status=status.value,
            validation_reason=""
        )
        db.add(proof)
        db.commit()
        db.refresh(proof)
        return proof

    return _add


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from greentax.main import app

    with TestClient(app) as test_client:
        yield test_client
