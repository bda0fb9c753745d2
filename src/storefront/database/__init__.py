from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool, QueuePool

import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")


def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")  # ON DELETE CASCADE / SET NULL / RESTRICT
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks
    cursor.close()


def make_engine(url: str = DATABASE_URL, echo: bool = False):
    """Build an engine with the pool and pragmas appropriate for the backend.

    In-memory SQLite shares one connection through StaticPool so every session
    sees the same database; file-backed SQLite and server databases get a real
    pool so concurrent sessions hold separate transactions.
    """
    if url.startswith("sqlite"):
        pool_args = {}
        if url in ("sqlite://", "sqlite:///:memory:"):
            pool_args["poolclass"] = StaticPool
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo,
            **pool_args,
        )
        event.listen(engine, "connect", _set_sqlite_pragma)
        return engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=echo,
    )


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create all tables on the given engine (defaults to the module engine)."""
    from ..models import Base

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Yield a session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
