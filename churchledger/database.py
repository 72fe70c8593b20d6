"""Database setup and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from churchledger.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# SQLite needs check_same_thread=False (sync requests run in the threadpool)
connect_args = {} if "sqlite" not in settings.database_url else {"check_same_thread": False}
engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for DB sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables."""
    import churchledger.models  # noqa: F401  registers mappers on Base.metadata

    Base.metadata.create_all(bind=engine)
