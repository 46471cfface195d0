import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..config import get_settings

logger = logging.getLogger(__name__)

# SQLAlchemy setup
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None
Base = declarative_base()

# --- Database Models ---

class ProspectDashboard(Base):
    __tablename__ = "prospect_dashboards"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String, nullable=False, unique=True, index=True)
    prospect_name = Column(String, nullable=False)
    prospect_bio = Column(Text, nullable=True)
    prospect_image_url = Column(String, nullable=True)
    spreadsheet_id = Column(String, nullable=True)
    spreadsheet_url = Column(String, nullable=True)
    content_ready = Column(Boolean, nullable=False, default=False)
    personalized_tagline = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<ProspectDashboard(id='{self.id}', prospect_name='{self.prospect_name}')>"


class ProspectPodcastLink(Base):
    __tablename__ = "prospect_podcast_links"

    # Composite key doubles as the upsert conflict target
    prospect_id = Column(String(36), primary_key=True)
    podcast_id = Column(String, primary_key=True)
    similarity_score = Column(Float, nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<ProspectPodcastLink(prospect_id='{self.prospect_id}', podcast_id='{self.podcast_id}')>"

# --- Database Connection Management ---

def connect_to_postgres(database_url: Optional[str] = None) -> Engine:
    """Establishes the database connection and sessionmaker."""
    global engine, SessionLocal
    if engine is not None:
        logger.info("Already connected to PostgreSQL.")
        return engine

    url = database_url or get_settings().database_url
    if not url:
        logger.error("Missing PostgreSQL connection details in environment variables.")
        raise ValueError("PostgreSQL connection details not fully configured.")

    try:
        logger.info("Connecting to PostgreSQL database.")
        new_engine = create_engine(url, pool_pre_ping=True)
        # Test connection
        with new_engine.connect():
            logger.info("Successfully connected to PostgreSQL.")
        engine = new_engine
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        return engine
    except SQLAlchemyError as e:
        logger.error(f"Failed to connect to PostgreSQL: {e}")
        engine = None
        SessionLocal = None
        raise


def get_session_factory() -> sessionmaker:
    """Returns the shared sessionmaker, connecting on first use."""
    if SessionLocal is None:
        connect_to_postgres()
    return SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Provides a database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Optional[Engine] = None):
    """Creates the dashboard tables. The podcast table and its search function are owned by the ingestion jobs."""
    target = bind or engine
    if target is None:
        raise ValueError("No database engine available; call connect_to_postgres() first.")
    Base.metadata.create_all(bind=target)
    logger.info("Prospect dashboard tables created (if they did not exist).")

# --- CRUD Operations ---

def create_prospect(db: Session, **fields: Any) -> ProspectDashboard:
    """Inserts a new prospect dashboard row and returns it refreshed."""
    prospect = ProspectDashboard(**fields)
    try:
        db.add(prospect)
        db.commit()
        db.refresh(prospect)
        logger.info(f"Created prospect dashboard {prospect.id} ({prospect.slug}).")
        return prospect
    except SQLAlchemyError:
        db.rollback()
        raise


def get_prospect(db: Session, prospect_id: str) -> Optional[ProspectDashboard]:
    """Retrieves a single prospect dashboard by id."""
    logger.debug(f"Querying for prospect dashboard with ID: {prospect_id}")
    return db.get(ProspectDashboard, prospect_id)


def update_prospect(db: Session, prospect_id: str, **fields: Any) -> Optional[ProspectDashboard]:
    """Applies `fields` to an existing prospect; returns None when the id is unknown."""
    prospect = db.get(ProspectDashboard, prospect_id)
    if prospect is None:
        return None
    try:
        for key, value in fields.items():
            setattr(prospect, key, value)
        db.commit()
        db.refresh(prospect)
        return prospect
    except SQLAlchemyError:
        db.rollback()
        raise


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"Upsert is not supported for the '{dialect}' dialect")
    return insert


def upsert_podcast_links(db: Session, links: List[Dict[str, Any]]) -> int:
    """Writes prospect/podcast links, overwriting score and timestamp on conflict.

    Re-exporting the same (prospect_id, podcast_id) pair updates the existing
    row. Returns the number of distinct pairs written.
    """
    if not links:
        return 0

    # One statement cannot touch the same conflict row twice
    unique_links: Dict[tuple, Dict[str, Any]] = {}
    for link in links:
        unique_links[(link["prospect_id"], link["podcast_id"])] = link
    rows = list(unique_links.values())

    insert = _dialect_insert(db)
    stmt = insert(ProspectPodcastLink).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["prospect_id", "podcast_id"],
        set_={
            "similarity_score": stmt.excluded.similarity_score,
            "matched_at": stmt.excluded.matched_at,
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info(f"Upserted {len(rows)} prospect podcast links.")
    return len(rows)


def get_podcast_links(db: Session, prospect_id: str) -> List[ProspectPodcastLink]:
    return (
        db.query(ProspectPodcastLink)
        .filter(ProspectPodcastLink.prospect_id == prospect_id)
        .order_by(ProspectPodcastLink.similarity_score.desc())
        .all()
    )
