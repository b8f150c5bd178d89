from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ..models.base import Base


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")


def _ensure_sqlite_dir(url: str) -> None:
    # sqlite will not create the parent directory of its database file
    if url.startswith("sqlite:///") and ":memory:" not in url:
        db_path = url.split("sqlite:///")[-1]
        try:
            Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # the real error surfaces on connect
            pass


def make_session_factory(url: str, **engine_kwargs):
    """Build an engine and a ``get_session``-style context manager bound to it."""
    _ensure_sqlite_dir(url)
    bound_engine = create_engine(url, future=True, **engine_kwargs)
    factory = sessionmaker(bind=bound_engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def session_scope():
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    session_scope.engine = bound_engine
    return session_scope


get_session = make_session_factory(DATABASE_URL)
engine = get_session.engine


def init_db(bind=None) -> None:
    from ..models import coupon, menu_item, order  # noqa: F401  registers tables

    Base.metadata.create_all(bind=bind or engine)
