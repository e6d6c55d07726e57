"""
A catalog backed directly by the record repository, for use in-process
(the server, the CLI against a local database, tests).
"""

import asyncio

from sqlalchemy.exc import SQLAlchemyError

from tilecatalog.records import DeleteResult, Prefix, TileRecord
from tilecatalog.repository import TileRepository

from .core import CatalogUnavailable, TileCatalog, TransferFailure


class LocalTileCatalog(TileCatalog):
    """
    Runs the blocking repository calls in a worker thread so that callers
    on the event loop are never blocked.
    """

    repository: TileRepository

    def __init__(self, repository: TileRepository):
        self.repository = repository
        super().__init__()

    async def list_all(self) -> list[TileRecord]:
        try:
            return await asyncio.to_thread(self.repository.list_all)
        except SQLAlchemyError as e:
            self.logger.error("catalog.local.unavailable", error=str(e))
            raise CatalogUnavailable(str(e)) from e

    async def list_prefix(self, prefix: Prefix) -> list[TileRecord]:
        return await asyncio.to_thread(self.repository.list_prefix, prefix)

    async def create(
        self, z: str, x: str, y: str, payload: bytes, content_type: str
    ) -> TileRecord:
        try:
            return await asyncio.to_thread(
                self.repository.create, z, x, y, payload, content_type
            )
        except (SQLAlchemyError, OSError) as e:
            raise TransferFailure(f"Could not store tile {z}-{x}-{y}: {e}") from e

    async def read(self, z: str, x: str, y: str) -> bytes:
        data, _ = await asyncio.to_thread(self.repository.read, z, x, y)
        return data

    async def delete_one(self, z: str, x: str, y: str) -> TileRecord:
        result = await asyncio.to_thread(self.repository.delete_one, z, x, y)
        return result.deleted_records[0]

    async def delete_by_prefix(self, prefix: Prefix) -> DeleteResult:
        return await asyncio.to_thread(self.repository.delete_by_prefix, prefix)

    async def delete_by_prefixes(self, prefixes: list[Prefix]) -> DeleteResult:
        return await asyncio.to_thread(self.repository.delete_by_prefixes, prefixes)
