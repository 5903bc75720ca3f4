from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from marketplace.config import settings
from marketplace.errors import ConflictError
from marketplace.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections are shared across FastAPI worker threads."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Generator[Session, None, None]:
    """Commit everything done inside the block, or nothing.

    Version mismatches and unique-key clashes detected at flush/commit are
    reported as ConflictError; any other exception is re-raised after rollback.
    """
    try:
        yield db
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        logger.warning("transaction_conflict", extra={"error": str(e)})
        raise ConflictError(f"Concurrent modification detected: {e.__class__.__name__}") from e
    except Exception:
        db.rollback()
        raise
