from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Fetch DATABASE_URL from environment, fallback to SQLite if not set
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sharepages.db")


def build_engine(url: str):
    """Create an engine configured for the given database URL."""
    if url.startswith("sqlite"):
        # Concurrent writers wait on the file lock instead of failing immediately
        sqlite_engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

        @event.listens_for(sqlite_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_engine(
        url,
        pool_size=5,          # modest pool to reduce wait timeouts
        max_overflow=5,       # allow short bursts of page views
        pool_pre_ping=True,   # recycle dead/stale connections automatically
        pool_recycle=1800,    # recycle every 30 minutes
        pool_timeout=30
    )


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
