# imposters/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from imposters.config import settings


def build_engine(url: str):
    """SQLite needs the same-thread check off since FastAPI runs sync routes in a threadpool."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# Create the database engine
engine = build_engine(settings.DATABASE_URL)

# Create a session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def init_db(bind=None):
    """Create all tables that don't exist yet."""
    import imposters.db_models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=bind or engine)
