"""
Base database model and session management
"""
import os
from typing import List

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import declarative_base, sessionmaker
from storefront.config import get_settings
from storefront.utils.logger import log

settings = get_settings()

# Resolve relative SQLite paths to absolute so cwd changes can't break it
_db_url = settings.database_url
if _db_url.startswith("sqlite:///") and not _db_url.startswith("sqlite:////"):
    rel_path = _db_url[len("sqlite:///"):]
    _db_url = "sqlite:///" + os.path.abspath(rel_path)

# One engine per process; every request borrows a connection from it
if _db_url.startswith("sqlite"):
    engine = create_engine(
        _db_url,
        connect_args={"check_same_thread": False, "timeout": 60},
        poolclass=NullPool,
        pool_pre_ping=True
    )
else:
    engine = create_engine(
        _db_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()




def migrate_missing_columns(bind=None) -> List[str]:
    """Add model columns that an existing table predates.

    ``create_all()`` never alters a table it finds, so a database created
    before a column (say ``users.avatar_public_id``) was added would fail on
    the first query that selects it. Added columns are always nullable;
    returns them as ``table.column``.
    """
    bind = bind or engine
    inspector = inspect(bind)
    added = []
    with bind.begin() as conn:
        for table in Base.metadata.sorted_tables:
            if not inspector.has_table(table.name):
                continue
            existing = {c["name"] for c in inspector.get_columns(table.name)}
            for col in table.columns:
                if col.name in existing:
                    continue
                col_type = col.type.compile(dialect=bind.dialect)
                conn.execute(text(f"ALTER TABLE {table.name} ADD COLUMN {col.name} {col_type}"))
                added.append(f"{table.name}.{col.name}")
    for name in added:
        log.info(f"Added missing column {name}")
    return added


def init_db(bind=None) -> List[str]:
    """Create the user, session and reset tables, then add missing columns."""
    from storefront.models import user  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    return migrate_missing_columns(bind)
