"""
A catalog that talks to a remote tilecatalog server over HTTP.
"""

import httpx

from tilecatalog import index
from tilecatalog.keys import decode
from tilecatalog.records import DeleteResult, Prefix, TileRecord

from .core import CatalogUnavailable, RecordNotFound, TileCatalog, TransferFailure


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text

    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)

    return str(body)


class HttpTileCatalog(TileCatalog):
    """
    Async httpx client for the ``/tile`` API. Every failed request is
    raised as ``TransferFailure`` (or ``RecordNotFound`` for a 404) so
    that callers can attribute it to a single tile.
    """

    client: httpx.AsyncClient

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        super().__init__()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        log = self.logger.bind(method=method, path=path)

        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.error("catalog.http.transport_error", error=str(e))
            raise TransferFailure(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            log.debug("catalog.http.not_found")
            raise RecordNotFound(_detail(response))

        if response.is_error:
            log = log.bind(status=response.status_code)
            log.error("catalog.http.error")
            raise TransferFailure(_detail(response))

        return response

    async def list_all(self) -> list[TileRecord]:
        try:
            response = await self._request("GET", "/tile")
            tree = [index.TreeNode.model_validate(n) for n in response.json()["data"]]
        except (TransferFailure, RecordNotFound) as e:
            raise CatalogUnavailable(str(e)) from e
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error("catalog.http.bad_listing", error=str(e))
            raise CatalogUnavailable(
                f"Unexpected tile listing from {self.client.base_url}"
            ) from e

        records = []
        for leaf in index.leaves(tree):
            prefix = decode(leaf.key)
            records.append(
                TileRecord(
                    id=leaf.tile_id,
                    file_name=leaf.file_name,
                    z=prefix.z,
                    x=prefix.x,
                    y=prefix.y,
                )
            )

        return records

    async def list_prefix(self, prefix: Prefix) -> list[TileRecord]:
        response = await self._request("GET", f"/tile/{prefix}")
        return [TileRecord.model_validate(r) for r in response.json()["data"]]

    async def create(
        self, z: str, x: str, y: str, payload: bytes, content_type: str
    ) -> TileRecord:
        response = await self._request(
            "POST",
            f"/tile/{z}/{x}/{y}",
            content=payload,
            headers={"Content-Type": content_type},
        )
        return TileRecord.model_validate(response.json()["data"])

    async def read(self, z: str, x: str, y: str) -> bytes:
        response = await self._request("GET", f"/tile/{z}/{x}/{y}/image")
        return response.content

    async def delete_one(self, z: str, x: str, y: str) -> TileRecord:
        response = await self._request("DELETE", f"/tile/{z}/{x}/{y}")
        return TileRecord.model_validate(response.json()["data"])

    async def delete_by_prefix(self, prefix: Prefix) -> DeleteResult:
        return await self.delete_by_prefixes([prefix])

    async def delete_by_prefixes(self, prefixes: list[Prefix]) -> DeleteResult:
        try:
            response = await self._request(
                "DELETE",
                "/tile",
                json={"coordinates": [p.model_dump(exclude_none=True) for p in prefixes]},
            )
        except RecordNotFound:
            return DeleteResult()

        return DeleteResult.model_validate(response.json()["data"])
