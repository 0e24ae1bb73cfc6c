from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ..models import Base


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")

# Ensure sqlite file parent directory exists to avoid 'unable to open database file'
if DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.split("sqlite:///")[-1]
    try:
        parent = Path(db_path).expanduser().resolve().parent
        parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # best-effort; real error will surface on connect if still invalid
        pass

engine = create_engine(DATABASE_URL, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def make_session_factory(bind):
    """Build a ``get_session``-style context manager bound to another engine."""
    factory = sessionmaker(bind=bind, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def _session_scope():
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _session_scope


@contextmanager
def get_session():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
