import logging
from contextlib import contextmanager
from typing import Any
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from swapnet.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()


# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    return create_engine(db_url, connect_args=connect_args, **kwargs)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    `expire_on_commit=False` keeps attributes accessible after a commit, so
    rows returned by a service can still be serialised by FastAPI once the
    request-scoped session is closed.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def _resolve_db_url() -> str:
    if _settings.database_url:
        return _settings.database_url
    return "sqlite:///:memory:" if _settings.testing else "sqlite:///./swapnet.db"


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# ``swapnet.database.default_session_factory`` with their own factory.
default_engine = make_engine(_resolve_db_url())
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the session factory currently configured for the application."""
    return default_session_factory


def get_db(session_factory: Any = None) -> Iterator[Session]:
    """Dependency provider for database sessions.

    Args:
        session_factory: Optional custom session factory

    Yields:
        SQLAlchemy Session object
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run a multi-write mutation as one transaction on an existing session.

    Ledger rows and every mirror write made inside the block are committed
    together; any exception rolls all of them back and is re-raised.
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.debug(f"Unit of work rolled back due to error: {e}")
        raise


def initialize_database(engine: Engine = None) -> None:
    """Initialize database tables using the given engine.

    If no engine is provided, uses the default engine.
    """
    # Import all models to ensure they are registered with Base
    from swapnet.models.models import BarterRequest  # noqa: F401
    from swapnet.models.models import Connection  # noqa: F401
    from swapnet.models.models import FeedComment  # noqa: F401
    from swapnet.models.models import FeedPost  # noqa: F401
    from swapnet.models.models import Message  # noqa: F401
    from swapnet.models.models import User  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
