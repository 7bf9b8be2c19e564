"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from greentax.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Local/test runs; TestClient serves requests from a worker thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """Create all tables"""
    # Models must be imported so they register on Base.metadata
    from greentax.db import models  # noqa: F401
    Base.metadata.create_all(bind=engine)

