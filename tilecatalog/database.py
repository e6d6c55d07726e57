"""
Engine and session construction for the catalog database.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def create_engine_for(database_url: str) -> Engine:
    """
    Create an engine for ``database_url``. In-memory SQLite databases share
    a single connection so that every thread sees the same tables.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(database_url)


def create_session_maker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
