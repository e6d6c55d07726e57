"""
Caches for tile images served to map viewers.
"""

import abc

import structlog
from cachetools import LFUCache
from pymemcache.client.base import Client


class CacheMiss(Exception):
    """Raised when a tile image is not in the cache."""

    pass


class TileCache(abc.ABC):
    def __init__(self):
        self.logger = structlog.get_logger()

    @abc.abstractmethod
    def get(self, file_name: str) -> tuple[bytes, str]:
        raise NotImplementedError

    @abc.abstractmethod
    def set(self, file_name: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def evict(self, file_name: str) -> None:
        raise NotImplementedError


class PassThroughCache(TileCache):
    """
    A cache that does nothing. It is used when caching is disabled.
    """

    def get(self, file_name: str) -> tuple[bytes, str]:
        raise CacheMiss(f"Tile {file_name} not found in cache.")

    def set(self, file_name: str, data: bytes, content_type: str) -> None:
        pass

    def evict(self, file_name: str) -> None:
        pass


class InMemoryCache(TileCache):
    """
    A simple in-memory cache for tile images.
    """

    cache: LFUCache

    def __init__(self, cache_size: int = 8192):
        self.cache = LFUCache(maxsize=cache_size)
        super().__init__()

    def get(self, file_name: str) -> tuple[bytes, str]:
        cached = self.cache.get(file_name, None)

        if cached is None:
            self.logger.debug("cache.inmemory.miss", file_name=file_name)
            raise CacheMiss(f"Tile {file_name} not found in cache.")

        self.logger.debug("cache.inmemory.hit", file_name=file_name)
        return cached

    def set(self, file_name: str, data: bytes, content_type: str) -> None:
        self.cache[file_name] = (data, content_type)

    def evict(self, file_name: str) -> None:
        self.cache.pop(file_name, None)


class MemcachedCache(TileCache):
    """
    A cache that uses Memcached for storing tile images.
    """

    client: Client

    def __init__(self, client: Client):
        self.client = client
        super().__init__()

    def _key(self, file_name: str) -> str:
        return f"tile-{file_name}"

    def get(self, file_name: str) -> tuple[bytes, str]:
        log = self.logger.bind(file_name=file_name)

        data = self.client.get(self._key(file_name), None)
        content_type = self.client.get(self._key(file_name) + "-type", None)

        if data is None or content_type is None:
            log.debug("cache.memcached.miss")
            raise CacheMiss(f"Tile {file_name} not found in cache.")

        log.debug("cache.memcached.hit")
        return data, content_type.decode()

    def set(self, file_name: str, data: bytes, content_type: str) -> None:
        self.client.set(self._key(file_name), data, noreply=True)
        self.client.set(self._key(file_name) + "-type", content_type, noreply=True)
        self.logger.debug("cache.memcached.set", file_name=file_name)

    def evict(self, file_name: str) -> None:
        self.client.delete(self._key(file_name), noreply=True)
        self.client.delete(self._key(file_name) + "-type", noreply=True)
