"""
Endpoints for tiles.
"""

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError

from tilecatalog import index
from tilecatalog.caching import CacheMiss
from tilecatalog.catalog.core import RecordNotFound
from tilecatalog.records import Prefix, file_name_for
from tilecatalog.uploads import SUPPORTED_CONTENT_TYPES

tiles_router = APIRouter(prefix="/tile", tags=["Tiles"])


class DeleteRequest(BaseModel):
    coordinates: list[Prefix]


def _prefix(z: str, x: str | None = None, y: str | None = None) -> Prefix:
    try:
        return Prefix(z=z, x=x, y=y)
    except ValidationError:
        raise HTTPException(
            status_code=400, detail="z, x and y must be non-negative integers"
        )


def _list(request: Request, prefix: Prefix) -> dict:
    records = request.app.repository.list_prefix(prefix)

    return {
        "success": True,
        "data": [r.model_dump(by_alias=True) for r in records],
        "count": len(records),
        "message": f"Found {len(records)} tiles under {prefix}",
    }


@tiles_router.get(
    "",
    summary="Get the tile tree.",
    description="Every tile record, organised as a z -> x -> y tree sorted numerically at each level.",
)
def get_tree(request: Request):
    records = request.app.repository.list_all()
    tree = index.build(records)

    return {
        "success": True,
        "data": [n.model_dump(by_alias=True, exclude_none=True) for n in tree],
        "count": len(records),
        "message": "Tile tree retrieved",
    }


@tiles_router.delete(
    "",
    summary="Delete tiles by coordinate prefix.",
    description="Deletes every tile under each of the given (z), (z, x) or (z, x, y) prefixes, along with the stored images.",
)
def delete_tiles(body: DeleteRequest, request: Request):
    if not body.coordinates:
        raise HTTPException(status_code=400, detail="No coordinates to delete")

    result = request.app.repository.delete_by_prefixes(body.coordinates)

    if not result.deleted_records:
        raise HTTPException(status_code=404, detail="No tiles matched the coordinates")

    for record in result.deleted_records:
        request.app.cache.evict(record.file_name)

    return {
        "success": True,
        "data": {
            "deletedCount": result.deleted_count,
            **result.model_dump(by_alias=True),
        },
        "message": f"Deleted {result.deleted_count} tiles",
    }


@tiles_router.get("/{z}", summary="List the tiles of a zoom level.")
def get_level(z: str, request: Request):
    return _list(request, _prefix(z))


@tiles_router.get("/{z}/{x}", summary="List the tiles of a column.")
def get_column(z: str, x: str, request: Request):
    return _list(request, _prefix(z, x))


@tiles_router.get("/{z}/{x}/{y}", summary="Get the record of a single tile.")
def get_tile(z: str, x: str, y: str, request: Request):
    return _list(request, _prefix(z, x, y))


@tiles_router.post(
    "/{z}/{x}/{y}",
    status_code=201,
    summary="Upload a tile.",
    description="The request body is the raw image, with a Content-Type of image/jpeg or image/png. Uploading to an existing coordinate replaces its image.",
)
async def post_tile(z: str, x: str, y: str, request: Request):
    _prefix(z, x, y)

    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    if content_type not in SUPPORTED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415, detail=f"Unsupported content type {content_type!r}"
        )

    payload = await request.body()
    if not payload:
        raise HTTPException(status_code=400, detail="Empty tile image")

    record = await run_in_threadpool(
        request.app.repository.create, z, x, y, payload, content_type
    )
    request.app.cache.evict(record.file_name)

    return {
        "success": True,
        "data": record.model_dump(by_alias=True),
        "message": "Tile stored",
    }


@tiles_router.delete("/{z}/{x}/{y}", summary="Delete a single tile.")
def delete_tile(z: str, x: str, y: str, request: Request):
    _prefix(z, x, y)

    try:
        result = request.app.repository.delete_one(z, x, y)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    record = result.deleted_records[0]
    request.app.cache.evict(record.file_name)

    return {
        "success": True,
        "data": record.model_dump(by_alias=True),
        "message": "Tile deleted",
    }


@tiles_router.get(
    "/{z}/{x}/{y}/image",
    summary="Retrieve a tile image.",
    description="The stored image bytes, for map viewers using a /tile/{z}/{x}/{y}/image URL template.",
)
def get_tile_image(z: str, x: str, y: str, request: Request):
    _prefix(z, x, y)
    file_name = file_name_for(z, x, y)

    try:
        data, content_type = request.app.cache.get(file_name)
    except CacheMiss:
        try:
            data, content_type = request.app.repository.read(z, x, y)
        except RecordNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

        request.app.cache.set(file_name, data, content_type)

    return Response(content=data, media_type=content_type)
