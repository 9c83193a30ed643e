from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import Base


DB_URL = "sqlite:///./outputs/prediction.db"


def make_session_factory(db_url: str = DB_URL) -> sessionmaker:
    """Create the engine for ``db_url`` and return a session factory bound to it."""
    url = make_url(db_url)
    kwargs = {}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if not url.database or url.database == ":memory:":
            # one shared connection, otherwise each worker thread sees an empty db
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(db_url, **kwargs)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(session_factory: sessionmaker) -> None:
    Base.metadata.create_all(bind=session_factory.kw["bind"])
