"""
Settings for the project.
"""

from pathlib import Path
from typing import Literal

from fastapi import FastAPI
from pydantic_settings import BaseSettings

from .transfer import DrainPolicy


class Settings(BaseSettings):
    database_url: str = "sqlite:///tilecatalog.db"
    "SQLAlchemy URL of the tile record database."

    store_type: Literal["database", "filesystem"] = "filesystem"
    "Where tile image bytes are kept."
    store_path: Path = Path("./tiles")
    "Root directory of the filesystem store."

    origins: list[str] | None = ["*"]
    add_cors: bool = True
    "Settings for managng CORS middleware; useful for development."

    api_endpoint: str = "http://127.0.0.1:8000"
    "The location of the API endpoint used by the command-line client."
    request_timeout_seconds: float = 30.0
    "Timeout for each request the client makes to the API."

    drain_policy: DrainPolicy = DrainPolicy.EAGER
    "When a batch of uploads starts draining: on first submission, or once all files are queued."

    # Caching settings
    cache_type: Literal["in_memory", "memcached", "pass_through"] = "in_memory"
    "Type of caching to use for tile images. Options are 'in_memory', 'memcached', or 'pass_through'."
    cache_size: int = 8192
    "Number of tile images kept by the in-memory cache."
    memcached_host: str = "localhost"
    "Host for the Memcached server."
    memcached_port: int = 11211
    "Port for the Memcached server."
    memcached_client_pool_size: int = 4
    "Number of connections in the Memcached client pool."
    memcached_timeout_seconds: float = 0.5
    "Timeout for Memcached operations in seconds."

    class Config:
        env_prefix = "TILECATALOG_"

    def create_store(self, session_maker):
        """
        Create the object store for tile image bytes. The database store
        shares the record database through ``session_maker``.
        """
        from tilecatalog.storage import DatabaseObjectStore, FilesystemObjectStore

        if self.store_type == "database":
            return DatabaseObjectStore(session_maker=session_maker)

        return FilesystemObjectStore(root=self.store_path)

    def create_repository(self):
        """
        Create the record repository and its object store.
        """
        from tilecatalog.database import create_engine_for, create_session_maker
        from tilecatalog.repository import TileRepository

        engine = create_engine_for(self.database_url)
        session_maker = create_session_maker(engine)

        repository = TileRepository(
            engine=engine,
            store=self.create_store(session_maker),
            session_maker=session_maker,
        )
        repository.create_tables()

        return repository

    def create_cache(self):
        """
        Create a tile image cache based on the settings.
        """
        if self.cache_type == "in_memory":
            from tilecatalog.caching import InMemoryCache

            return InMemoryCache(cache_size=self.cache_size)
        elif self.cache_type == "memcached":
            from pymemcache.client.base import PooledClient

            from tilecatalog.caching import MemcachedCache

            client = PooledClient(
                server=(self.memcached_host, self.memcached_port),
                max_pool_size=self.memcached_client_pool_size,
                timeout=self.memcached_timeout_seconds,
                ignore_exc=True,
            )
            return MemcachedCache(client=client)
        else:
            from tilecatalog.caching import PassThroughCache

            return PassThroughCache()

    def create_client_catalog(self):
        from tilecatalog.catalog.http import HttpTileCatalog

        return HttpTileCatalog(
            base_url=self.api_endpoint, timeout=self.request_timeout_seconds
        )

    def setup_app(self, app: FastAPI):
        if not hasattr(app, "repository"):
            app.repository = self.create_repository()

        if not hasattr(app, "cache"):
            app.cache = self.create_cache()

        return app


settings = Settings()
