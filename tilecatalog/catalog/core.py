"""
Core (abstract) tile catalog. The catalog is the source of truth for tile
records; the index, the resolver and the transfer queue only ever talk to
it through this interface.
"""

from abc import ABC, abstractmethod

import structlog
from structlog.types import FilteringBoundLogger

from tilecatalog.records import DeleteResult, Prefix, TileRecord


class RecordNotFound(Exception):
    """Raised when no tile record exists at the requested coordinate."""

    pass


class TransferFailure(Exception):
    """Raised when a single request to the catalog fails."""

    pass


class CatalogUnavailable(Exception):
    """Raised when the catalog cannot be reached at all."""

    pass


class TileCatalog(ABC):
    logger: FilteringBoundLogger

    def __init__(self):
        self.logger = structlog.get_logger()

    @abstractmethod
    async def list_all(self) -> list[TileRecord]:
        raise NotImplementedError

    @abstractmethod
    async def list_prefix(self, prefix: Prefix) -> list[TileRecord]:
        raise NotImplementedError

    @abstractmethod
    async def create(
        self, z: str, x: str, y: str, payload: bytes, content_type: str
    ) -> TileRecord:
        raise NotImplementedError

    @abstractmethod
    async def read(self, z: str, x: str, y: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    async def delete_one(self, z: str, x: str, y: str) -> TileRecord:
        raise NotImplementedError

    @abstractmethod
    async def delete_by_prefix(self, prefix: Prefix) -> DeleteResult:
        raise NotImplementedError

    async def delete_by_prefixes(self, prefixes: list[Prefix]) -> DeleteResult:
        result = DeleteResult()

        for prefix in prefixes:
            result = result.merge(await self.delete_by_prefix(prefix))

        return result
