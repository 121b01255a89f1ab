"""Database engine and session factory."""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from fin_engine.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def make_engine(db_url: str = None):
    db_url = db_url or settings.DATABASE_URL
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, connect_args=connect_args)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind) -> None:
    """Create missing tables. Idempotent."""
    from fin_engine.db import models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=bind)
    logger.info("Database schema ready (%s)", bind.url.render_as_string(hide_password=True))
