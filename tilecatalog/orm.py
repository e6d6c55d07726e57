"""
SQLAlchemy ORM models for the tile catalog database.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
    cast,
)
from sqlalchemy.orm import DeclarativeBase


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TileORM(Base):
    __tablename__ = "tiles"
    __table_args__ = (UniqueConstraint("z", "x", "y", name="uq_tiles_coordinate"),)

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    file_name = Column(String, unique=True, nullable=False)
    # Stored as decimal strings; see numeric_order for sorting.
    z = Column(String, nullable=False, index=True)
    x = Column(String, nullable=False)
    y = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="image/jpeg")
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    @classmethod
    def numeric_order(cls):
        return (cast(cls.z, Integer), cast(cls.x, Integer), cast(cls.y, Integer))


class TileObjectORM(Base):
    """
    Tile image bytes, for deployments that keep payloads in the database
    rather than on disk.
    """

    __tablename__ = "tile_objects"

    key = Column(String, primary_key=True)
    content_type = Column(String, nullable=False)
    data = Column(LargeBinary, nullable=False)
