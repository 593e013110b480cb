import os

# Settings are read at import time by core.db / core.celery_app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gtm_intel.core.config import Settings
from gtm_intel.core.db import Base
import gtm_intel.models  # noqa: F401  (registers every table on Base.metadata)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(eng)
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="dev",
        DATABASE_URL="sqlite://",
        REDIS_URL="redis://localhost:6379/0",
        OPENAI_API_KEY="sk-test",
        APOLLO_API_KEY="apollo-test",
        APOLLO_BASE_URL="https://apollo.test/api/v1",
        LLM_MODEL="test-model",
    )
