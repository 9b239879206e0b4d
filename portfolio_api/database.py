"""SQLite store setup: engine, session factory and the ``get_db`` dependency."""

import os
import logging
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

from portfolio_api.models import Base

# Load environment variables
load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)

# Get database configuration from environment
PATH_DATABASE = os.getenv("PATH_DATABASE")
NAME_DB = os.getenv("NAME_DB")

if not PATH_DATABASE or not NAME_DB:
    raise ValueError("PATH_DATABASE and NAME_DB must be set in .env file")

# Ensure database directory exists
db_dir = Path(PATH_DATABASE)
db_dir.mkdir(parents=True, exist_ok=True)

DATABASE_URL = f"sqlite:///{db_dir / NAME_DB}"
logger.info(f"Database URL: {DATABASE_URL}")

# Writers wait up to 30s for the file lock instead of failing at once
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30}
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_conn, _):
    """Make SQLite enforce foreign keys so comments and reactions cannot outlive their post."""
    cur = dbapi_conn.cursor()
    try:
        cur.execute("PRAGMA foreign_keys=ON")
    finally:
        cur.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Create any missing tables."""
    logger.info("Initializing database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def get_db():
    """
    Dependency yielding a session that is closed after the request.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
