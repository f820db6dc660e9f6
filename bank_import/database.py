"""
Database setup and session management.
SQLite at ~/BankImport/bank_import.db by default; set
BANK_IMPORT_DATABASE_URL to point at another database.
"""

import os
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

DB_DIR = Path(os.getenv("BANK_IMPORT_DATA_DIR", str(Path.home() / "BankImport")))
DB_PATH = DB_DIR / "bank_import.db"

DATABASE_URL = os.getenv("BANK_IMPORT_DATABASE_URL", f"sqlite:///{DB_PATH}")

Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get WAL and foreign keys enabled."""
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, **kwargs)

    connect_args = kwargs.pop("connect_args", {})
    connect_args.setdefault("check_same_thread", False)  # Required for SQLite + FastAPI
    sqlite_engine = create_engine(url, connect_args=connect_args, echo=False, **kwargs)

    @event.listens_for(sqlite_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if ":memory:" not in url:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


if "BANK_IMPORT_DATABASE_URL" not in os.environ:
    DB_DIR.mkdir(parents=True, exist_ok=True)

engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create all tables if they don't exist."""
    from . import models  # noqa: F401  (registers models)
    Base.metadata.create_all(bind=bind or engine)
