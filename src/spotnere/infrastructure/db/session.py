# src/spotnere/infrastructure/db/session.py

from contextlib import contextmanager
import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


# -----------------------------
# Base Class for Models
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Engine
# -----------------------------
def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every checkout sees an empty DB.
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, future=True, **kwargs)

    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
    )


# -----------------------------
# Session Factory
# -----------------------------
def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


def wait_for_db(engine: Engine, max_retries: int = 30, retry_delay_seconds: float = 1.5) -> None:
    """Blocks until a trivial query succeeds or max_retries connection attempts fail."""
    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            if attempt == max_retries:
                logger.exception("Gave up connecting to the booking store after %s attempts", attempt)
                raise
            logger.warning(
                "Booking store unavailable, attempt %s of %s; next try in %.1fs",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)
        else:
            logger.info("Booking store connection ok after %s attempt(s)", attempt)
            return


# -----------------------------
# Context Manager (Non-FastAPI usage)
# -----------------------------
@contextmanager
def session_scope(session_factory: sessionmaker[Session]):
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
