import pytest

from tilecatalog.catalog.local import LocalTileCatalog
from tilecatalog.database import create_engine_for
from tilecatalog.repository import TileRepository
from tilecatalog.storage import FilesystemObjectStore


@pytest.fixture
def store(tmp_path):
    return FilesystemObjectStore(root=tmp_path / "objects")


@pytest.fixture
def repository(tmp_path, store):
    engine = create_engine_for(f"sqlite:///{tmp_path / 'tiles.db'}")
    repository = TileRepository(engine=engine, store=store)
    repository.create_tables()
    return repository


@pytest.fixture
def catalog(repository):
    return LocalTileCatalog(repository=repository)
