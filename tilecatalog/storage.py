"""
Object stores for tile image bytes. The record database only knows the
object key (the tile's file name); the bytes live here.
"""

import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import structlog
from sqlalchemy.orm import sessionmaker
from structlog.types import FilteringBoundLogger

from .orm import TileObjectORM


class ObjectNotFound(Exception):
    pass


class ObjectStore(ABC):
    internal_store_id: str
    logger: FilteringBoundLogger

    def __init__(self, internal_store_id: str | None = None):
        self.internal_store_id = internal_store_id or str(uuid.uuid4())
        self.logger = structlog.get_logger()

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class FilesystemObjectStore(ObjectStore):
    """
    Keeps each object as a single file under ``root``.
    """

    root: Path

    def __init__(self, root: Path, internal_store_id: str | None = None):
        self.root = Path(root)
        super().__init__(internal_store_id=internal_store_id or "filesystem")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()

        if self.root.resolve() not in path.parents:
            raise ValueError(f"Object key {key!r} escapes the store root")

        return path

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("wb") as handle:
            handle.write(data)

        self.logger.debug("store.filesystem.put", key=key, size=len(data))

    def get(self, key: str) -> bytes:
        path = self._path(key)

        if not path.exists():
            raise ObjectNotFound(f"Object {key} not found")

        with path.open("rb") as handle:
            return handle.read()

    def delete(self, key: str) -> None:
        path = self._path(key)

        if not path.exists():
            raise ObjectNotFound(f"Object {key} not found")

        path.unlink()
        self.logger.debug("store.filesystem.deleted", key=key)


class DatabaseObjectStore(ObjectStore):
    """
    Keeps objects as rows of the ``tile_objects`` table.
    """

    def __init__(self, session_maker: sessionmaker, internal_store_id: str | None = None):
        self.session_maker = session_maker
        super().__init__(internal_store_id=internal_store_id or "database")

    def put(self, key: str, data: bytes, content_type: str) -> None:
        with self.session_maker() as session:
            session.merge(TileObjectORM(key=key, content_type=content_type, data=data))
            session.commit()

        self.logger.debug("store.database.put", key=key, size=len(data))

    def get(self, key: str) -> bytes:
        with self.session_maker() as session:
            obj = session.get(TileObjectORM, key)

            if obj is None:
                raise ObjectNotFound(f"Object {key} not found")

            return obj.data

    def delete(self, key: str) -> None:
        with self.session_maker() as session:
            obj = session.get(TileObjectORM, key)

            if obj is None:
                raise ObjectNotFound(f"Object {key} not found")

            session.delete(obj)
            session.commit()

        self.logger.debug("store.database.deleted", key=key)
