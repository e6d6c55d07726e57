"""
The record repository: the source of truth for tile records, backed by
SQLAlchemy, with tile bytes kept in an object store.

Deleting a prefix removes every record under it together with the stored
image bytes. Failing to remove bytes never undoes a record deletion; the
affected object keys are reported back instead.
"""

import structlog
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from .catalog.core import RecordNotFound
from .database import create_session_maker
from .orm import Base, TileORM
from .records import DeleteResult, Prefix, TileRecord, file_name_for
from .storage import ObjectNotFound, ObjectStore


class TileRepository:
    """
    Synchronous access to tile records and their payloads.
    """

    def __init__(
        self,
        engine: Engine,
        store: ObjectStore,
        session_maker: sessionmaker | None = None,
    ):
        """
        Parameters
        ----------
        engine : Engine
            SQLAlchemy engine for the record database.
        store : ObjectStore
            Where tile image bytes are kept, keyed by file name.
        session_maker : sessionmaker, optional
            Shared session factory; one is created from ``engine`` if not given.
        """
        self.engine = engine
        self.store = store
        self.session_maker = session_maker or create_session_maker(engine)
        self.log = structlog.get_logger()

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def _orm_to_record(self, orm_tile: TileORM) -> TileRecord:
        return TileRecord(
            id=orm_tile.id,
            file_name=orm_tile.file_name,
            z=orm_tile.z,
            x=orm_tile.x,
            y=orm_tile.y,
        )

    def _query_prefix(self, session: Session, prefix: Prefix):
        filters = {"z": prefix.z}

        if prefix.x is not None:
            filters["x"] = prefix.x

        if prefix.y is not None:
            filters["y"] = prefix.y

        return (
            session.query(TileORM)
            .filter_by(**filters)
            .order_by(*TileORM.numeric_order())
        )

    def list_all(self) -> list[TileRecord]:
        with self.session_maker() as session:
            orm_tiles = session.query(TileORM).order_by(*TileORM.numeric_order()).all()
            return [self._orm_to_record(t) for t in orm_tiles]

    def list_prefix(self, prefix: Prefix) -> list[TileRecord]:
        with self.session_maker() as session:
            return [self._orm_to_record(t) for t in self._query_prefix(session, prefix)]

    def get(self, z: str, x: str, y: str) -> TileORM:
        with self.session_maker() as session:
            orm_tile = session.query(TileORM).filter_by(z=z, x=x, y=y).first()

            if orm_tile is None:
                raise RecordNotFound(f"Tile {file_name_for(z, x, y)} not found")

            return orm_tile

    def create(
        self, z: str, x: str, y: str, payload: bytes, content_type: str
    ) -> TileRecord:
        """
        Store a tile, replacing the payload of an existing tile at the same
        coordinate.
        """
        Prefix(z=z, x=x, y=y)
        file_name = file_name_for(z, x, y)

        log = self.log.bind(file_name=file_name, size=len(payload))

        self.store.put(file_name, payload, content_type)

        with self.session_maker() as session:
            orm_tile = session.query(TileORM).filter_by(file_name=file_name).first()

            if orm_tile is None:
                orm_tile = TileORM(
                    file_name=file_name, z=z, x=x, y=y, content_type=content_type
                )
                session.add(orm_tile)
                log = log.bind(replaced=False)
            else:
                orm_tile.content_type = content_type
                log = log.bind(replaced=True)

            session.commit()
            record = self._orm_to_record(orm_tile)

        log.info("repository.created", tile_id=record.id)

        return record

    def read(self, z: str, x: str, y: str) -> tuple[bytes, str]:
        """
        Return the image bytes and content type of a tile.
        """
        orm_tile = self.get(z, x, y)

        try:
            data = self.store.get(orm_tile.file_name)
        except ObjectNotFound:
            self.log.warning("repository.object_missing", file_name=orm_tile.file_name)
            raise RecordNotFound(f"Tile {orm_tile.file_name} has no stored image")

        return data, orm_tile.content_type

    def _delete_objects(self, records: list[TileRecord]) -> list[str]:
        failed = []

        for record in records:
            try:
                self.store.delete(record.file_name)
            except Exception as e:
                self.log.warning(
                    "repository.object_delete_failed",
                    file_name=record.file_name,
                    error=str(e),
                )
                failed.append(record.file_name)

        return failed

    def delete_one(self, z: str, x: str, y: str) -> DeleteResult:
        with self.session_maker() as session:
            orm_tile = session.query(TileORM).filter_by(z=z, x=x, y=y).first()

            if orm_tile is None:
                raise RecordNotFound(f"Tile {file_name_for(z, x, y)} not found")

            record = self._orm_to_record(orm_tile)
            session.delete(orm_tile)
            session.commit()

        return DeleteResult(
            deleted_records=[record], failed_objects=self._delete_objects([record])
        )

    def delete_by_prefix(self, prefix: Prefix) -> DeleteResult:
        """
        Delete every tile under ``prefix``. A prefix matching nothing gives
        an empty result.
        """
        log = self.log.bind(prefix=str(prefix))

        with self.session_maker() as session:
            orm_tiles = self._query_prefix(session, prefix).all()
            records = [self._orm_to_record(t) for t in orm_tiles]

            for orm_tile in orm_tiles:
                session.delete(orm_tile)

            session.commit()

        failed = self._delete_objects(records)

        log = log.bind(deleted=len(records), failed_objects=len(failed))
        log.info("repository.deleted")

        return DeleteResult(deleted_records=records, failed_objects=failed)

    def delete_by_prefixes(self, prefixes: list[Prefix]) -> DeleteResult:
        result = DeleteResult()

        for prefix in prefixes:
            result = result.merge(self.delete_by_prefix(prefix))

        return result
