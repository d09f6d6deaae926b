from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # in-memory databases live as long as their single connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))    # Connecting to the database
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)   # A temporary connection to work with the database.


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
