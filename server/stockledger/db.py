from contextlib import contextmanager
import logging
import os
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./stockledger.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in {"1", "true", "yes"}
LOCK_TIMEOUT_MS = int(os.getenv("INVENTORY_LOCK_TIMEOUT_MS", "5000"))

# SQLSTATE lock_not_available, raised when lock_timeout expires.
LOCK_NOT_AVAILABLE = "55P03"


class Base(DeclarativeBase):
    pass


def _build_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=DATABASE_ECHO, pool_pre_ping=True, connect_args=connect_args)


engine = _build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@event.listens_for(Session, "after_begin")
def _apply_lock_timeout(session, transaction, connection):
    # Row locks taken with FOR UPDATE give up after this wait instead of blocking forever.
    if connection.dialect.name == "postgresql" and LOCK_TIMEOUT_MS > 0:
        connection.execute(text(f"SET LOCAL lock_timeout = {int(LOCK_TIMEOUT_MS)}"))


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run one inventory operation as a single transaction.

    Commits when the block exits normally. Any exception rolls back every
    pending change on the session and is re-raised unchanged.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Inventory transaction rolled back", exc_info=True)
        raise


def is_lock_timeout(exc: OperationalError) -> bool:
    """True when ``exc`` is a lock wait giving up rather than a broken connection or schema."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return sqlstate == LOCK_NOT_AVAILABLE
    return "database is locked" in str(orig or exc).lower()
