import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add the project root directory to sys.path so that 'prospect_matcher' can be imported
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from prospect_matcher.models.matching import CandidatePodcast
from prospect_matcher.persistence.postgresql import Base


def build_candidate(podcast_id, similarity, name=None, description="A show about things", categories=None):
    return CandidatePodcast(
        id=podcast_id,
        name=name or f"Podcast {podcast_id}",
        description=description,
        categories=categories if categories is not None else [{"category_id": "1", "category_name": "Business"}],
        similarity=similarity,
    )


@pytest.fixture
def make_candidate():
    """Factory fixture: make_candidate('p1', 0.8) -> CandidatePodcast."""
    return build_candidate


@pytest.fixture
def session_factory():
    """Sessionmaker bound to a fresh in-memory SQLite database with the dashboard tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()
