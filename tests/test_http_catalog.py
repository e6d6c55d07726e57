"""
Tests for the HTTP catalog client, against the app itself and against
canned responses.
"""

import asyncio

import httpx
import pytest

from tilecatalog.caching import PassThroughCache
from tilecatalog.catalog.core import CatalogUnavailable, RecordNotFound, TransferFailure
from tilecatalog.catalog.http import HttpTileCatalog
from tilecatalog.records import Prefix
from tilecatalog.server import create_app

from .helpers import JPEG


@pytest.fixture
def app(repository):
    return create_app(repository=repository, cache=PassThroughCache())


def _catalog(transport) -> HttpTileCatalog:
    return HttpTileCatalog(base_url="http://testserver", transport=transport)


def test_round_trip_through_app(app):
    async def run():
        async with _catalog(httpx.ASGITransport(app=app)) as catalog:
            created = await catalog.create("2", "1", "0", JPEG, "image/jpeg")
            await catalog.create("2", "1", "3", JPEG, "image/jpeg")
            await catalog.create("10", "0", "0", JPEG, "image/jpeg")

            listed = await catalog.list_all()
            under = await catalog.list_prefix(Prefix(z="2", x="1"))
            image = await catalog.read("2", "1", "0")
            deleted = await catalog.delete_by_prefixes([Prefix(z="2")])
            nothing = await catalog.delete_by_prefix(Prefix(z="2"))
            return created, listed, under, image, deleted, nothing

    created, listed, under, image, deleted, nothing = asyncio.run(run())

    assert created.file_name == "2-1-0"
    assert [r.file_name for r in listed] == ["2-1-0", "2-1-3", "10-0-0"]
    assert listed[0].id == created.id
    assert len(under) == 2
    assert image == JPEG
    assert deleted.deleted_count == 2
    assert nothing.deleted_count == 0


def test_delete_one_missing(app):
    async def run():
        async with _catalog(httpx.ASGITransport(app=app)) as catalog:
            await catalog.delete_one("1", "1", "1")

    with pytest.raises(RecordNotFound):
        asyncio.run(run())


def test_server_error_is_transfer_failure():
    def handler(request):
        return httpx.Response(500, json={"detail": "database is locked"})

    async def run():
        async with _catalog(httpx.MockTransport(handler)) as catalog:
            await catalog.create("1", "0", "0", JPEG, "image/jpeg")

    with pytest.raises(TransferFailure, match="database is locked"):
        asyncio.run(run())


def test_connection_error_is_transfer_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with _catalog(httpx.MockTransport(handler)) as catalog:
            await catalog.create("1", "0", "0", JPEG, "image/jpeg")

    with pytest.raises(TransferFailure):
        asyncio.run(run())


def test_unreachable_catalog_on_load():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with _catalog(httpx.MockTransport(handler)) as catalog:
            await catalog.list_all()

    with pytest.raises(CatalogUnavailable):
        asyncio.run(run())


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"detail": "Not Found"}),
        httpx.Response(200, json={"tiles": []}),
        httpx.Response(200, text="<html>proxy login</html>"),
    ],
)
def test_wrong_endpoint_on_load_is_unavailable(response):
    def handler(request):
        return response

    async def run():
        async with _catalog(httpx.MockTransport(handler)) as catalog:
            await catalog.list_all()

    with pytest.raises(CatalogUnavailable):
        asyncio.run(run())
